"""Persistence contract shared by the local and remote backends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from config import backend_configured
from models import CompletedWorkout, PlannedWorkout, WeightLogEntry
from settings_schema import SettingsSchema

logger = logging.getLogger(__name__)


class PlannedWorkoutStore(ABC):
    """Stores planned workouts together with their exercises."""

    @abstractmethod
    def list(self, owner_id: str) -> list[PlannedWorkout]:
        """Return the owner's plans, newest first."""

    @abstractmethod
    def create(self, owner_id: str, plan: PlannedWorkout) -> PlannedWorkout:
        """Persist ``plan`` and return it with its assigned id."""

    @abstractmethod
    def delete(self, plan_id: str) -> None:
        """Remove the plan and its exercises."""


class CompletedWorkoutStore(ABC):
    """Stores completed workouts together with their sets."""

    @abstractmethod
    def list(self, owner_id: str) -> list[CompletedWorkout]:
        """Return the owner's completed workouts, newest first."""

    @abstractmethod
    def create(self, owner_id: str, workout: CompletedWorkout) -> CompletedWorkout:
        """Persist ``workout`` and return it with its assigned id."""

    @abstractmethod
    def delete(self, workout_id: str) -> None:
        """Remove the workout and its sets."""


class WeightLogStore(ABC):
    """Stores body weight log entries."""

    @abstractmethod
    def list(self, owner_id: str) -> list[WeightLogEntry]:
        """Return the owner's entries, newest first."""

    @abstractmethod
    def create(self, owner_id: str, entry: WeightLogEntry) -> WeightLogEntry:
        """Persist ``entry`` and return it with its assigned id."""

    @abstractmethod
    def delete(self, entry_id: str) -> None:
        """Remove the entry."""


@dataclass
class Backend:
    """The three stores of one storage backend."""

    name: str
    planned_workouts: PlannedWorkoutStore
    completed_workouts: CompletedWorkoutStore
    weight_logs: WeightLogStore


def open_backend(settings: SettingsSchema) -> Backend:
    """Select the storage backend once, at startup."""
    if backend_configured(settings):
        from remote_db import RemoteClient, RemoteCompletedWorkoutRepository
        from remote_db import RemotePlannedWorkoutRepository, RemoteWeightLogRepository

        client = RemoteClient(
            settings.backend_url,
            settings.backend_key,
            timeout=settings.request_timeout,
            read_retries=settings.read_retries,
            backoff=settings.retry_backoff,
        )
        logger.info("Using remote backend at %s", settings.backend_url)
        return Backend(
            "remote",
            RemotePlannedWorkoutRepository(client),
            RemoteCompletedWorkoutRepository(client),
            RemoteWeightLogRepository(client),
        )

    from db import CompletedWorkoutRepository, PlannedWorkoutRepository, WeightLogRepository

    logger.info("Remote backend not configured, using local store %s", settings.db_path)
    return Backend(
        "local",
        PlannedWorkoutRepository(settings.db_path),
        CompletedWorkoutRepository(settings.db_path),
        WeightLogRepository(settings.db_path),
    )
