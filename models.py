"""Workout tracker data models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

WINDOW_DAYS: dict[str, int | None] = {
    "1month": 30,
    "2months": 60,
    "3months": 90,
    "alltime": None,
}

DEFAULT_TARGET_SETS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def window_days(window: str) -> int | None:
    """Return the number of days covered by ``window`` (None for all-time)."""
    if window not in WINDOW_DAYS:
        raise ValueError(f"unknown window: {window}")
    return WINDOW_DAYS[window]


class PlannedExercise(BaseModel):
    """An exercise inside a planned workout."""
    name: str = Field(min_length=1)
    target_sets: int = Field(DEFAULT_TARGET_SETS, ge=1)


class PlannedWorkout(BaseModel):
    """A named, ordered template of exercises."""
    id: str | None = None
    name: str = Field(min_length=1)
    exercises: list[PlannedExercise] = []
    created_at: datetime | None = None

    @property
    def exercise_names(self) -> list[str]:
        return [ex.name for ex in self.exercises]


class WorkoutSet(BaseModel):
    """A set being performed during an active session."""
    set_number: int = Field(ge=1)
    weight: float = Field(0.0, ge=0, allow_inf_nan=False)
    reps: int = Field(0, ge=0)
    completed: bool = False


class SessionExercise(BaseModel):
    name: str
    sets: list[WorkoutSet] = []


class ActiveSession(BaseModel):
    """In-memory expansion of a planned workout while it is performed."""
    id: str
    planned_workout_id: str | None = None
    name: str
    started_at: datetime
    status: str = "active"
    exercises: list[SessionExercise] = []

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def completed_sets(self) -> int:
        return sum(1 for ex in self.exercises for s in ex.sets if s.completed)


class CompletedSet(BaseModel):
    """A set that was actually performed."""
    exercise_name: str
    set_number: int = Field(ge=1)
    weight: float = Field(ge=0, allow_inf_nan=False)
    reps: int = Field(ge=0)

    @property
    def volume(self) -> float:
        return self.weight * self.reps


class CompletedWorkout(BaseModel):
    """Historical record of a finished session."""
    id: str | None = None
    planned_workout_id: str | None = None
    name: str
    completed_at: datetime
    duration_minutes: float = Field(0, ge=0)
    sets: list[CompletedSet] = []

    @property
    def total_volume(self) -> float:
        return sum(s.volume for s in self.sets)

    def exercise_groups(self) -> list[tuple[str, list[CompletedSet]]]:
        """Return the sets grouped by exercise in stored order."""
        groups: dict[str, list[CompletedSet]] = {}
        for s in self.sets:
            groups.setdefault(s.exercise_name, []).append(s)
        return list(groups.items())


class WeightLogEntry(BaseModel):
    """A body weight measurement."""
    id: str | None = None
    weight: float = Field(gt=0, allow_inf_nan=False)
    logged_at: datetime | None = None
    notes: str | None = None


class ExerciseSession(BaseModel):
    """Aggregated numbers for one exercise within one workout."""
    date: str
    completed_at: datetime
    max_weight: float
    total_reps: int
    total_sets: int
    total_volume: float


class ExerciseSeries(BaseModel):
    exercise_name: str
    sessions: list[ExerciseSession] = []


class WeightPoint(BaseModel):
    date: str
    weight: float
    notes: str | None = None
