from __future__ import annotations

import logging
from typing import Callable, TypeVar

from exceptions import PersistenceError
from models import ActiveSession, CompletedWorkout, PlannedWorkout, WeightLogEntry
from planner_service import PlannerService
from repositories import Backend

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkoutStore:
    """In-memory view of one user's data, reloaded after every write.

    Collections are only replaced by a full reload from the backend, never
    patched locally. The message of the last failed call is kept in ``error``.
    """

    def __init__(self, backend: Backend, owner_id: str, planner: PlannerService | None = None) -> None:
        self.backend = backend
        self.owner_id = owner_id
        self.planner = planner or PlannerService(
            backend.planned_workouts, backend.completed_workouts, owner_id
        )
        self.planned_workouts: list[PlannedWorkout] = []
        self.completed_workouts: list[CompletedWorkout] = []
        self.weight_logs: list[WeightLogEntry] = []
        self.error: str | None = None

    def _call(self, action: str, fn: Callable[[], T]) -> T:
        self.error = None
        try:
            return fn()
        except PersistenceError as e:
            logger.error("Failed to %s for %s: %s", action, self.owner_id, e)
            self.error = f"Failed to {action}"
            raise

    def refresh(self) -> None:
        self.load_planned()
        self.load_completed()
        self.load_weight_logs()

    def load_planned(self) -> None:
        self.planned_workouts = self._call(
            "load planned workouts",
            lambda: self.backend.planned_workouts.list(self.owner_id),
        )

    def load_completed(self) -> None:
        self.completed_workouts = self._call(
            "load completed workouts",
            lambda: self.backend.completed_workouts.list(self.owner_id),
        )

    def load_weight_logs(self) -> None:
        self.weight_logs = self._call(
            "load weight logs",
            lambda: self.backend.weight_logs.list(self.owner_id),
        )

    def find_plan(self, plan_id: str) -> PlannedWorkout:
        for plan in self.planned_workouts:
            if plan.id == plan_id:
                return plan
        raise ValueError("planned workout not found")

    def save_plan(self, plan: PlannedWorkout) -> PlannedWorkout:
        saved = self._call("save workout", lambda: self.planner.save_plan(plan))
        self.load_planned()
        return saved

    def delete_plan(self, plan_id: str) -> None:
        self._call(
            "delete workout", lambda: self.backend.planned_workouts.delete(plan_id)
        )
        self.load_planned()

    def finish_session(
        self, session: ActiveSession, duration_minutes: float | None = None
    ) -> CompletedWorkout:
        workout = self._call(
            "save completed workout",
            lambda: self.planner.finish(session, duration_minutes),
        )
        self.load_planned()
        self.load_completed()
        return workout

    def delete_completed(self, workout_id: str) -> None:
        self._call(
            "delete workout",
            lambda: self.backend.completed_workouts.delete(workout_id),
        )
        self.load_completed()

    def log_weight(self, weight: float, notes: str | None = None) -> WeightLogEntry:
        entry = WeightLogEntry(weight=weight, notes=notes or None)
        saved = self._call(
            "save weight log",
            lambda: self.backend.weight_logs.create(self.owner_id, entry),
        )
        self.load_weight_logs()
        return saved

    def delete_weight_log(self, entry_id: str) -> None:
        self._call(
            "delete weight log",
            lambda: self.backend.weight_logs.delete(entry_id),
        )
        self.load_weight_logs()
