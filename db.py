from __future__ import annotations

import math
import sqlite3
import logging
import datetime
from contextlib import contextmanager
from typing import List, Tuple

from pydantic import ValidationError

from exceptions import PersistenceError
from models import CompletedSet, CompletedWorkout, PlannedExercise, PlannedWorkout, WeightLogEntry, utcnow
from repositories import CompletedWorkoutStore, PlannedWorkoutStore, WeightLogStore

logger = logging.getLogger(__name__)


def _timestamp(value: datetime.datetime | None) -> str:
    """Return ``value`` as an ISO string in UTC, defaulting to now."""
    if value is None:
        value = utcnow()
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).isoformat()


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "planned_workouts": (
            """CREATE TABLE planned_workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );""",
            ["id", "owner_id", "name", "created_at"],
        ),
        "planned_exercises": (
            """CREATE TABLE planned_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    sets INTEGER NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_id) REFERENCES planned_workouts(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "name", "sets", "position"],
        ),
        "completed_workouts": (
            """CREATE TABLE completed_workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    planned_workout_id TEXT,
                    name TEXT NOT NULL,
                    completed_at TEXT NOT NULL,
                    duration_minutes REAL NOT NULL DEFAULT 0
                );""",
            [
                "id",
                "owner_id",
                "planned_workout_id",
                "name",
                "completed_at",
                "duration_minutes",
            ],
        ),
        "completed_sets": (
            """CREATE TABLE completed_sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    completed_workout_id INTEGER NOT NULL,
                    exercise_name TEXT NOT NULL,
                    set_number INTEGER NOT NULL,
                    weight REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(completed_workout_id) REFERENCES completed_workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "completed_workout_id",
                "exercise_name",
                "set_number",
                "weight",
                "reps",
                "position",
            ],
        ),
        "weight_logs": (
            """CREATE TABLE weight_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    weight REAL NOT NULL,
                    logged_at TEXT NOT NULL,
                    notes TEXT
                );""",
            ["id", "owner_id", "weight", "logged_at", "notes"],
        ),
    }

    def __init__(self, db_path: str = "workout.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        try:
            connection = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open local store: {e}") from e
        try:
            connection.execute("PRAGMA foreign_keys=on;")
            yield connection
            connection.commit()
        except sqlite3.Error as e:
            logger.error("Local store call failed: %s", e)
            raise PersistenceError(f"local store error: {e}") from e
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("position", "duration_minutes"):
                        return "0"
                    if col == "owner_id":
                        return "'local'"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    @staticmethod
    def _validate(model, data: dict):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"unexpected {model.__name__} row: {e}") from e


class PlannedWorkoutRepository(BaseRepository, PlannedWorkoutStore):
    """Repository for planned workouts and their exercises."""

    def create(self, owner_id: str, plan: PlannedWorkout) -> PlannedWorkout:
        created_at = _timestamp(plan.created_at)
        with self._connection() as conn:
            cur = conn.execute(
                "INSERT INTO planned_workouts (owner_id, name, created_at) VALUES (?, ?, ?);",
                (owner_id, plan.name, created_at),
            )
            plan_id = cur.lastrowid
            conn.executemany(
                "INSERT INTO planned_exercises (workout_id, name, sets, position) VALUES (?, ?, ?, ?);",
                [
                    (plan_id, ex.name, ex.target_sets, pos)
                    for pos, ex in enumerate(plan.exercises)
                ],
            )
        return plan.model_copy(
            update={"id": str(plan_id), "created_at": datetime.datetime.fromisoformat(created_at)}
        )

    def list(self, owner_id: str) -> list[PlannedWorkout]:
        rows = self.fetch_all(
            "SELECT id, name, created_at FROM planned_workouts WHERE owner_id = ? ORDER BY created_at DESC, id DESC;",
            (owner_id,),
        )
        plans = []
        for pid, name, created_at in rows:
            exercises = self.fetch_exercises(pid)
            plans.append(
                self._validate(
                    PlannedWorkout,
                    {
                        "id": str(pid),
                        "name": name,
                        "created_at": created_at,
                        "exercises": exercises,
                    },
                )
            )
        return plans

    def fetch_exercises(self, plan_id: int | str) -> list[PlannedExercise]:
        rows = self.fetch_all(
            "SELECT name, sets FROM planned_exercises WHERE workout_id = ? ORDER BY position;",
            (plan_id,),
        )
        return [
            self._validate(PlannedExercise, {"name": name, "target_sets": sets})
            for name, sets in rows
        ]

    def delete(self, plan_id: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM planned_exercises WHERE workout_id = ?;", (plan_id,))
            cur = conn.execute("DELETE FROM planned_workouts WHERE id = ?;", (plan_id,))
            if cur.rowcount == 0:
                logger.debug("Planned workout %s already removed", plan_id)


class CompletedWorkoutRepository(BaseRepository, CompletedWorkoutStore):
    """Repository for completed workouts and their sets."""

    def create(self, owner_id: str, workout: CompletedWorkout) -> CompletedWorkout:
        completed_at = _timestamp(workout.completed_at)
        with self._connection() as conn:
            cur = conn.execute(
                "INSERT INTO completed_workouts (owner_id, planned_workout_id, name, completed_at, duration_minutes) VALUES (?, ?, ?, ?, ?);",
                (
                    owner_id,
                    workout.planned_workout_id,
                    workout.name,
                    completed_at,
                    workout.duration_minutes,
                ),
            )
            workout_id = cur.lastrowid
            conn.executemany(
                "INSERT INTO completed_sets (completed_workout_id, exercise_name, set_number, weight, reps, position) VALUES (?, ?, ?, ?, ?, ?);",
                [
                    (workout_id, s.exercise_name, s.set_number, s.weight, s.reps, pos)
                    for pos, s in enumerate(workout.sets)
                ],
            )
        return workout.model_copy(
            update={
                "id": str(workout_id),
                "completed_at": datetime.datetime.fromisoformat(completed_at),
            }
        )

    def list(self, owner_id: str) -> list[CompletedWorkout]:
        rows = self.fetch_all(
            "SELECT id, planned_workout_id, name, completed_at, duration_minutes FROM completed_workouts WHERE owner_id = ? ORDER BY completed_at DESC, id DESC;",
            (owner_id,),
        )
        workouts = []
        for wid, plan_id, name, completed_at, duration in rows:
            workouts.append(
                self._validate(
                    CompletedWorkout,
                    {
                        "id": str(wid),
                        "planned_workout_id": plan_id,
                        "name": name,
                        "completed_at": completed_at,
                        "duration_minutes": duration,
                        "sets": self.fetch_sets(wid),
                    },
                )
            )
        return workouts

    def fetch_sets(self, workout_id: int | str) -> list[CompletedSet]:
        rows = self.fetch_all(
            "SELECT exercise_name, set_number, weight, reps FROM completed_sets WHERE completed_workout_id = ? ORDER BY position;",
            (workout_id,),
        )
        return [
            self._validate(
                CompletedSet,
                {
                    "exercise_name": name,
                    "set_number": number,
                    "weight": weight,
                    "reps": reps,
                },
            )
            for name, number, weight, reps in rows
        ]

    def delete(self, workout_id: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "DELETE FROM completed_sets WHERE completed_workout_id = ?;",
                (workout_id,),
            )
            conn.execute("DELETE FROM completed_workouts WHERE id = ?;", (workout_id,))


class WeightLogRepository(BaseRepository, WeightLogStore):
    """Repository for body weight logs."""

    def create(self, owner_id: str, entry: WeightLogEntry) -> WeightLogEntry:
        if not math.isfinite(entry.weight) or entry.weight <= 0:
            raise ValueError("weight must be positive")
        logged_at = _timestamp(entry.logged_at)
        entry_id = self.execute(
            "INSERT INTO weight_logs (owner_id, weight, logged_at, notes) VALUES (?, ?, ?, ?);",
            (owner_id, entry.weight, logged_at, entry.notes or None),
        )
        return entry.model_copy(
            update={"id": str(entry_id), "logged_at": datetime.datetime.fromisoformat(logged_at)}
        )

    def list(self, owner_id: str) -> list[WeightLogEntry]:
        rows = self.fetch_all(
            "SELECT id, weight, logged_at, notes FROM weight_logs WHERE owner_id = ? ORDER BY logged_at DESC, id DESC;",
            (owner_id,),
        )
        return [
            self._validate(
                WeightLogEntry,
                {"id": str(rid), "weight": weight, "logged_at": logged_at, "notes": notes},
            )
            for rid, weight, logged_at, notes in rows
        ]

    def delete(self, entry_id: str) -> None:
        self.execute("DELETE FROM weight_logs WHERE id = ?;", (entry_id,))
