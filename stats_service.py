from __future__ import annotations
import datetime
from typing import Callable, Dict, List, Optional, Sequence

from models import (
    CompletedWorkout,
    ExerciseSeries,
    ExerciseSession,
    WeightLogEntry,
    WeightPoint,
    utcnow,
    window_days,
)
from tools import MathTools


class StatisticsService:
    """Compute progress series and summary statistics from workout history.

    Every method is a pure function of its arguments and of the current time,
    which is read from ``clock`` so results can be pinned in tests.
    """

    RECENT_DAYS = 30

    def __init__(self, clock: Callable[[], datetime.datetime] = utcnow) -> None:
        self.clock = clock

    @staticmethod
    def _parse_timestamp(ts: datetime.datetime | str) -> datetime.datetime:
        """Return ``ts`` as timezone-aware datetime in UTC."""
        dt = datetime.datetime.fromisoformat(ts) if isinstance(ts, str) else ts
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=datetime.timezone.utc)
        return dt.astimezone(datetime.timezone.utc)

    def _within(self, moment: datetime.datetime, days: Optional[int]) -> bool:
        if days is None:
            return True
        return MathTools.days_ago(moment, self.clock()) <= days

    def exercise_series(
        self,
        workouts: Sequence[CompletedWorkout],
        window: str = "alltime",
    ) -> List[ExerciseSeries]:
        """Return per-exercise session series with at least two sessions.

        Each workout contributes one session per exercise it contains. Sessions
        outside ``window`` are dropped and the rest are ordered oldest first.
        """
        days = window_days(window)
        grouped: Dict[str, List[ExerciseSession]] = {}
        for workout in workouts:
            completed_at = self._parse_timestamp(workout.completed_at)
            for name, sets in workout.exercise_groups():
                grouped.setdefault(name, []).append(
                    ExerciseSession(
                        date=completed_at.date().isoformat(),
                        completed_at=completed_at,
                        max_weight=max(s.weight for s in sets),
                        total_reps=sum(s.reps for s in sets),
                        total_sets=len(sets),
                        total_volume=MathTools.volume((s.reps, s.weight) for s in sets),
                    )
                )

        series = []
        for name, sessions in grouped.items():
            kept = [
                s
                for s in sessions
                if self._within(
                    datetime.datetime.combine(
                        s.completed_at.date(), datetime.time(), datetime.timezone.utc
                    ),
                    days,
                )
            ]
            if len(kept) < 2:
                continue
            kept.sort(key=lambda s: s.completed_at)
            series.append(ExerciseSeries(exercise_name=name, sessions=kept))
        return series

    def weight_series(
        self,
        logs: Sequence[WeightLogEntry],
        window: str = "alltime",
    ) -> List[WeightPoint]:
        days = window_days(window)
        entries = [
            (self._parse_timestamp(log.logged_at), log)
            for log in logs
            if log.logged_at is not None
        ]
        entries = [(ts, log) for ts, log in entries if self._within(ts, days)]
        entries.sort(key=lambda item: item[0])
        return [
            WeightPoint(date=ts.date().isoformat(), weight=log.weight, notes=log.notes)
            for ts, log in entries
        ]

    @staticmethod
    def progress_delta(points: Sequence, metric: str) -> Dict[str, float] | None:
        """Return the current value of ``metric`` and its change since the first point."""
        if not points:
            return None
        values = [float(getattr(p, metric)) for p in points]
        return {"current": values[-1], "change": MathTools.change(values)}

    def summary_stats(self, workouts: Sequence[CompletedWorkout]) -> Dict[str, float]:
        """Return total workouts, total volume and recent weekly frequency."""
        now = self.clock()
        volume = sum(w.total_volume for w in workouts)
        recent = [
            w
            for w in workouts
            if MathTools.days_ago(self._parse_timestamp(w.completed_at), now)
            <= self.RECENT_DAYS
        ]
        return {
            "total_workouts": len(workouts),
            "total_volume": round(volume, 2),
            "avg_workouts_per_week": MathTools.weekly_rate(len(recent)),
        }

    @staticmethod
    def workout_summary(workout: CompletedWorkout) -> Dict[str, float]:
        total_sets = len(workout.sets)
        total_reps = sum(s.reps for s in workout.sets)
        return {
            "total_volume": round(workout.total_volume, 2),
            "total_sets": total_sets,
            "total_reps": total_reps,
            "avg_reps": round(total_reps / total_sets) if total_sets else 0,
        }

    @staticmethod
    def weight_change(logs: Sequence[WeightLogEntry]) -> Dict[str, float | None]:
        """Compare the two most recent entries of a newest-first log list."""
        current = logs[0].weight if logs else None
        previous = logs[1].weight if len(logs) > 1 else None
        change = None
        if current is not None and previous is not None:
            change = round(current - previous, 2)
        return {"current": current, "previous": previous, "change": change}
