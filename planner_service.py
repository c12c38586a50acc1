from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime
from typing import Callable

from exceptions import InvalidPlanError, PersistenceError, SetLockedError
from models import (
    DEFAULT_TARGET_SETS,
    ActiveSession,
    CompletedSet,
    CompletedWorkout,
    PlannedExercise,
    PlannedWorkout,
    SessionExercise,
    WorkoutSet,
    utcnow,
)
from repositories import CompletedWorkoutStore, PlannedWorkoutStore

logger = logging.getLogger(__name__)


class PlannerService:
    """Handles planning and the conversion of planned workouts to completed ones."""

    def __init__(
        self,
        plan_repo: PlannedWorkoutStore,
        completed_repo: CompletedWorkoutStore,
        owner_id: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.planned_workouts = plan_repo
        self.completed_workouts = completed_repo
        self.owner_id = owner_id
        self.clock = clock

    # Planning

    @staticmethod
    def new_plan(name: str) -> PlannedWorkout:
        return PlannedWorkout(name=name.strip(), exercises=[])

    @staticmethod
    def add_exercise(
        plan: PlannedWorkout, name: str, target_sets: int = DEFAULT_TARGET_SETS
    ) -> PlannedWorkout:
        if name in plan.exercise_names:
            raise ValueError(f"{name} is already in the plan")
        plan.exercises.append(PlannedExercise(name=name, target_sets=target_sets))
        return plan

    @staticmethod
    def remove_exercise(plan: PlannedWorkout, index: int) -> PlannedWorkout:
        if not 0 <= index < len(plan.exercises):
            raise ValueError("exercise not found")
        del plan.exercises[index]
        return plan

    @staticmethod
    def move_exercise(plan: PlannedWorkout, index: int, new_index: int) -> PlannedWorkout:
        if not 0 <= index < len(plan.exercises):
            raise ValueError("exercise not found")
        if not 0 <= new_index < len(plan.exercises):
            raise ValueError("invalid position")
        plan.exercises.insert(new_index, plan.exercises.pop(index))
        return plan

    @staticmethod
    def set_target_sets(plan: PlannedWorkout, index: int, sets: int) -> PlannedWorkout:
        if not 0 <= index < len(plan.exercises):
            raise ValueError("exercise not found")
        plan.exercises[index].target_sets = max(1, sets)
        return plan

    def save_plan(self, plan: PlannedWorkout) -> PlannedWorkout:
        if not plan.name.strip():
            raise InvalidPlanError("workout name required")
        if not plan.exercises:
            raise InvalidPlanError("add at least one exercise")
        if len(set(plan.exercise_names)) != len(plan.exercises):
            raise InvalidPlanError("each exercise can only appear once in a plan")
        return self.planned_workouts.create(self.owner_id, plan)

    def duplicate_plan(self, plan: PlannedWorkout, name: str | None = None) -> PlannedWorkout:
        copy = PlannedWorkout(
            name=name or f"{plan.name} (copy)",
            exercises=[ex.model_copy() for ex in plan.exercises],
        )
        return self.save_plan(copy)

    # Lifecycle

    def start(self, plan: PlannedWorkout) -> ActiveSession:
        """Expand ``plan`` into an active session with zeroed sets."""
        if not plan.exercises:
            raise InvalidPlanError(f"plan {plan.name!r} has no exercises")
        exercises = [
            SessionExercise(
                name=ex.name,
                sets=[WorkoutSet(set_number=n) for n in range(1, ex.target_sets + 1)],
            )
            for ex in plan.exercises
        ]
        return ActiveSession(
            id=uuid.uuid4().hex,
            planned_workout_id=plan.id,
            name=plan.name,
            started_at=self.clock(),
            exercises=exercises,
        )

    @staticmethod
    def _set(session: ActiveSession, exercise_index: int, set_index: int) -> WorkoutSet:
        if not session.is_active:
            raise ValueError(f"session is {session.status}")
        if not 0 <= exercise_index < len(session.exercises):
            raise ValueError("exercise not found")
        sets = session.exercises[exercise_index].sets
        if not 0 <= set_index < len(sets):
            raise ValueError("set not found")
        return sets[set_index]

    def record_set(
        self,
        session: ActiveSession,
        exercise_index: int,
        set_index: int,
        weight: float,
        reps: int,
    ) -> WorkoutSet:
        target = self._set(session, exercise_index, set_index)
        if target.completed:
            raise SetLockedError(f"set {target.set_number} is already completed")
        if not math.isfinite(weight) or weight < 0:
            raise ValueError("weight must be a non-negative number")
        if reps < 0:
            raise ValueError("reps must be non-negative")
        target.weight = float(weight)
        target.reps = int(reps)
        return target

    def mark_set_complete(
        self, session: ActiveSession, exercise_index: int, set_index: int
    ) -> WorkoutSet:
        target = self._set(session, exercise_index, set_index)
        if target.completed:
            return target
        if target.weight <= 0 or target.reps <= 0:
            raise ValueError("weight and reps are required to complete a set")
        target.completed = True
        return target

    def finish(
        self, session: ActiveSession, duration_minutes: float | None = None
    ) -> CompletedWorkout:
        """Persist the completed sets of ``session`` and consume its plan."""
        if not session.is_active:
            raise ValueError(f"session is {session.status}")
        completed_at = self.clock()
        if duration_minutes is None:
            elapsed = (completed_at - session.started_at).total_seconds()
            duration_minutes = max(0, int(elapsed // 60))
        if duration_minutes < 0:
            raise ValueError("duration must be non-negative")
        sets = [
            CompletedSet(
                exercise_name=ex.name,
                set_number=s.set_number,
                weight=s.weight,
                reps=s.reps,
            )
            for ex in session.exercises
            for s in ex.sets
            if s.completed
        ]
        workout = self.completed_workouts.create(
            self.owner_id,
            CompletedWorkout(
                planned_workout_id=session.planned_workout_id,
                name=session.name,
                completed_at=completed_at,
                duration_minutes=duration_minutes,
                sets=sets,
            ),
        )
        session.status = "completed"
        if session.planned_workout_id is not None:
            try:
                self.planned_workouts.delete(session.planned_workout_id)
            except PersistenceError as e:
                logger.warning(
                    "Workout %s saved but planned workout %s was not removed: %s",
                    workout.id,
                    session.planned_workout_id,
                    e,
                )
        return workout

    @staticmethod
    def abandon(session: ActiveSession) -> None:
        if not session.is_active:
            raise ValueError(f"session is {session.status}")
        session.status = "abandoned"
