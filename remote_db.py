"""Repositories backed by a hosted PostgREST database."""

from __future__ import annotations

import logging
import math
from typing import Any

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from exceptions import PersistenceError
from models import CompletedWorkout, PlannedWorkout, WeightLogEntry
from repositories import CompletedWorkoutStore, PlannedWorkoutStore, WeightLogStore

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"


class RemoteClient:
    """Thin REST client for the hosted tables.

    GET requests are idempotent and are retried with exponential backoff on
    connection errors and 502/503/504 responses. Writes are sent once.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: str | None = None,
        *,
        timeout: float = 10.0,
        read_retries: int = 3,
        backoff: float = 0.5,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or requests.Session()
        retry = Retry(
            total=read_retries,
            backoff_factor=backoff,
            status_forcelist=(502, 503, 504),
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(self, method: str, table: str, **kwargs) -> Any:
        url = f"{self.base_url}{REST_PREFIX}/{table}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(kwargs.pop("prefer", None)),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, table, e)
            raise PersistenceError(f"backend unreachable: {e}") from e

        if response.status_code >= 400:
            logger.error("%s %s returned %s", method, table, response.status_code)
            raise PersistenceError(
                f"backend rejected {method} {table}: {response.text}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise PersistenceError(f"backend returned invalid JSON for {table}") from e

    def select(self, table: str, params: dict[str, str]) -> list[dict]:
        data = self._request("GET", table, params=params)
        if not isinstance(data, list):
            raise PersistenceError(f"expected a list of rows from {table}")
        return data

    def insert(self, table: str, rows: dict | list[dict]) -> list[dict]:
        data = self._request("POST", table, json=rows, prefer="return=representation")
        if not isinstance(data, list):
            raise PersistenceError(f"expected inserted rows from {table}")
        return data

    def delete(self, table: str, params: dict[str, str]) -> None:
        self._request("DELETE", table, params=params)


def _validate(model, data: dict):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise PersistenceError(f"unexpected {model.__name__} row: {e}") from e


def _children(row: dict, key: str) -> list[dict]:
    children = row.get(key) or []
    if not isinstance(children, list):
        raise PersistenceError(f"unexpected {key} shape")
    return sorted(children, key=lambda c: c.get("order_index", 0))


def _single(rows: list[dict], table: str) -> dict:
    if len(rows) != 1 or "id" not in rows[0]:
        raise PersistenceError(f"expected one inserted row in {table}")
    return rows[0]


class RemotePlannedWorkoutRepository(PlannedWorkoutStore):
    """Planned workouts stored in ``planned_workouts``/``planned_exercises``."""

    def __init__(self, client: RemoteClient) -> None:
        self.client = client

    def _to_model(self, row: dict) -> PlannedWorkout:
        try:
            exercises = [
                {"name": ex["name"], "target_sets": ex["sets"]}
                for ex in _children(row, "planned_exercises")
            ]
            data = {
                "id": str(row["id"]),
                "name": row["name"],
                "created_at": row.get("created_at"),
                "exercises": exercises,
            }
        except KeyError as e:
            raise PersistenceError(f"planned workout row missing {e}") from e
        return _validate(PlannedWorkout, data)

    def list(self, owner_id: str) -> list[PlannedWorkout]:
        rows = self.client.select(
            "planned_workouts",
            {
                "select": "*,planned_exercises(*)",
                "user_id": f"eq.{owner_id}",
                "order": "created_at.desc",
            },
        )
        return [self._to_model(row) for row in rows]

    def create(self, owner_id: str, plan: PlannedWorkout) -> PlannedWorkout:
        row = _single(
            self.client.insert("planned_workouts", {"name": plan.name, "user_id": owner_id}),
            "planned_workouts",
        )
        plan_id = str(row["id"])
        children = [
            {
                "workout_id": plan_id,
                "name": ex.name,
                "sets": ex.target_sets,
                "order_index": index,
            }
            for index, ex in enumerate(plan.exercises)
        ]
        if children:
            try:
                row["planned_exercises"] = self.client.insert("planned_exercises", children)
            except PersistenceError:
                self._discard(plan_id)
                raise
        return self._to_model(row)

    def _discard(self, plan_id: str) -> None:
        try:
            self.delete(plan_id)
        except PersistenceError as e:
            logger.error("Could not remove partial planned workout %s: %s", plan_id, e)

    def delete(self, plan_id: str) -> None:
        # planned_exercises rows go with the parent through ON DELETE CASCADE
        self.client.delete("planned_workouts", {"id": f"eq.{plan_id}"})


class RemoteCompletedWorkoutRepository(CompletedWorkoutStore):
    """Completed workouts stored in ``completed_workouts``/``completed_sets``."""

    def __init__(self, client: RemoteClient) -> None:
        self.client = client

    def _to_model(self, row: dict) -> CompletedWorkout:
        try:
            sets = [
                {
                    "exercise_name": s["exercise_name"],
                    "set_number": s["set_number"],
                    "weight": s["weight"],
                    "reps": s["reps"],
                }
                for s in _children(row, "completed_sets")
            ]
            data = {
                "id": str(row["id"]),
                "planned_workout_id": row.get("planned_workout_id"),
                "name": row["name"],
                "completed_at": row["completed_at"],
                "duration_minutes": row.get("duration_minutes") or 0,
                "sets": sets,
            }
        except KeyError as e:
            raise PersistenceError(f"completed workout row missing {e}") from e
        return _validate(CompletedWorkout, data)

    def list(self, owner_id: str) -> list[CompletedWorkout]:
        rows = self.client.select(
            "completed_workouts",
            {
                "select": "*,completed_sets(*)",
                "user_id": f"eq.{owner_id}",
                "order": "completed_at.desc",
            },
        )
        return [self._to_model(row) for row in rows]

    def create(self, owner_id: str, workout: CompletedWorkout) -> CompletedWorkout:
        row = _single(
            self.client.insert(
                "completed_workouts",
                {
                    "planned_workout_id": workout.planned_workout_id,
                    "name": workout.name,
                    "completed_at": workout.completed_at.isoformat(),
                    "duration_minutes": workout.duration_minutes,
                    "user_id": owner_id,
                },
            ),
            "completed_workouts",
        )
        workout_id = str(row["id"])
        children = [
            {
                "completed_workout_id": workout_id,
                "exercise_name": s.exercise_name,
                "set_number": s.set_number,
                "weight": s.weight,
                "reps": s.reps,
                "order_index": index,
            }
            for index, s in enumerate(workout.sets)
        ]
        if children:
            try:
                row["completed_sets"] = self.client.insert("completed_sets", children)
            except PersistenceError:
                self._discard(workout_id)
                raise
        return self._to_model(row)

    def _discard(self, workout_id: str) -> None:
        try:
            self.delete(workout_id)
        except PersistenceError as e:
            logger.error("Could not remove partial workout %s: %s", workout_id, e)

    def delete(self, workout_id: str) -> None:
        # completed_sets rows go with the parent through ON DELETE CASCADE
        self.client.delete("completed_workouts", {"id": f"eq.{workout_id}"})


class RemoteWeightLogRepository(WeightLogStore):
    """Body weight entries stored in ``user_weight_logs``."""

    def __init__(self, client: RemoteClient) -> None:
        self.client = client

    def _to_model(self, row: dict) -> WeightLogEntry:
        if "id" not in row:
            raise PersistenceError("weight log row missing 'id'")
        data = dict(row)
        data["id"] = str(row["id"])
        return _validate(WeightLogEntry, data)

    def list(self, owner_id: str) -> list[WeightLogEntry]:
        rows = self.client.select(
            "user_weight_logs",
            {"select": "*", "user_id": f"eq.{owner_id}", "order": "logged_at.desc"},
        )
        return [self._to_model(row) for row in rows]

    def create(self, owner_id: str, entry: WeightLogEntry) -> WeightLogEntry:
        if not math.isfinite(entry.weight) or entry.weight <= 0:
            raise ValueError("weight must be positive")
        payload = {"weight": entry.weight, "notes": entry.notes or None, "user_id": owner_id}
        if entry.logged_at is not None:
            payload["logged_at"] = entry.logged_at.isoformat()
        row = _single(self.client.insert("user_weight_logs", payload), "user_weight_logs")
        return self._to_model(row)

    def delete(self, entry_id: str) -> None:
        self.client.delete("user_weight_logs", {"id": f"eq.{entry_id}"})
