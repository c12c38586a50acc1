import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import CompletedSet, CompletedWorkout, WeightLogEntry
from stats_service import StatisticsService

NOW = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


def workout(days_ago: float, *sets: tuple[str, float, int], name: str = "Session") -> CompletedWorkout:
    return CompletedWorkout(
        id=f"w{days_ago}",
        name=name,
        completed_at=NOW - datetime.timedelta(days=days_ago),
        duration_minutes=30,
        sets=[
            CompletedSet(exercise_name=ex, set_number=n, weight=w, reps=r)
            for n, (ex, w, r) in enumerate(sets, start=1)
        ],
    )


class ExerciseSeriesTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.stats = StatisticsService(clock=lambda: NOW)

    def test_single_session_excluded(self) -> None:
        workouts = [
            workout(1, ("Bench Press", 100, 5), ("Squat", 140, 5)),
            workout(3, ("Bench Press", 95, 5)),
        ]
        series = self.stats.exercise_series(workouts)
        self.assertEqual([s.exercise_name for s in series], ["Bench Press"])

    def test_sessions_sorted_ascending(self) -> None:
        workouts = [
            workout(1, ("Bench Press", 110, 5)),
            workout(10, ("Bench Press", 100, 5)),
            workout(5, ("Bench Press", 105, 5)),
        ]
        (series,) = self.stats.exercise_series(workouts)
        self.assertEqual([s.max_weight for s in series.sessions], [100, 105, 110])
        dates = [s.completed_at for s in series.sessions]
        self.assertEqual(dates, sorted(dates))
        self.assertEqual(series.sessions[-1].date, "2024-05-31")

    def test_session_aggregates(self) -> None:
        workouts = [
            workout(
                2,
                ("Bench Press", 135, 10),
                ("Bench Press", 145, 8),
                ("Bench Press", 155, 5),
            ),
            workout(9, ("Bench Press", 135, 8)),
        ]
        (series,) = self.stats.exercise_series(workouts)
        latest = series.sessions[-1]
        self.assertEqual(latest.max_weight, 155)
        self.assertEqual(latest.total_reps, 23)
        self.assertEqual(latest.total_sets, 3)
        self.assertEqual(latest.total_volume, 3285)

    def test_two_months_window(self) -> None:
        workouts = [
            workout(0, ("Squat", 150, 5)),
            workout(40, ("Squat", 140, 5)),
            workout(100, ("Squat", 130, 5)),
        ]
        (series,) = self.stats.exercise_series(workouts, "2months")
        self.assertEqual([s.max_weight for s in series.sessions], [140, 150])
        (alltime,) = self.stats.exercise_series(workouts, "alltime")
        self.assertEqual(len(alltime.sessions), 3)
        self.assertEqual(self.stats.exercise_series(workouts, "1month"), [])

    def test_window_compares_session_date(self) -> None:
        # 29.5 days ago by timestamp, but its date starts 30.5 days ago
        boundary = CompletedWorkout(
            name="Late",
            completed_at=datetime.datetime(2024, 5, 2, 23, 0, tzinfo=datetime.timezone.utc),
            sets=[CompletedSet(exercise_name="Row", set_number=1, weight=60, reps=10)],
        )
        recent = [workout(1, ("Row", 65, 10)), workout(2, ("Row", 62.5, 10))]
        (series,) = self.stats.exercise_series([boundary, *recent], "1month")
        self.assertEqual([s.max_weight for s in series.sessions], [62.5, 65])

    def test_unknown_window(self) -> None:
        with self.assertRaises(ValueError):
            self.stats.exercise_series([], "1year")

    def test_progress_delta(self) -> None:
        workouts = [
            workout(1, ("Bench Press", 110, 5)),
            workout(10, ("Bench Press", 100, 5)),
        ]
        (series,) = self.stats.exercise_series(workouts)
        self.assertEqual(
            StatisticsService.progress_delta(series.sessions, "max_weight"),
            {"current": 110.0, "change": 10.0},
        )
        self.assertIsNone(StatisticsService.progress_delta([], "max_weight"))


class SummaryStatsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.stats = StatisticsService(clock=lambda: NOW)

    def test_summary(self) -> None:
        workouts = [
            workout(1, ("Bench Press", 100, 10)),
            workout(12, ("Squat", 120.5, 4)),
            workout(29, ("Row", 50, 10)),
            workout(45, ("Row", 50, 10)),
        ]
        summary = self.stats.summary_stats(workouts)
        self.assertEqual(summary["total_workouts"], 4)
        self.assertEqual(summary["total_volume"], 2482.0)
        self.assertEqual(summary["avg_workouts_per_week"], 0.7)

    def test_summary_is_idempotent(self) -> None:
        workouts = [workout(d, ("Squat", 100, 5)) for d in (1, 2, 3, 40)]
        self.assertEqual(self.stats.summary_stats(workouts), self.stats.summary_stats(workouts))

    def test_summary_empty(self) -> None:
        self.assertEqual(
            self.stats.summary_stats([]),
            {"total_workouts": 0, "total_volume": 0, "avg_workouts_per_week": 0.0},
        )

    def test_workout_summary(self) -> None:
        w = workout(0, ("Bench Press", 135, 10), ("Bench Press", 145, 8), ("Bench Press", 155, 5))
        self.assertEqual(
            StatisticsService.workout_summary(w),
            {"total_volume": 3285, "total_sets": 3, "total_reps": 23, "avg_reps": 8},
        )
        empty = workout(0)
        self.assertEqual(StatisticsService.workout_summary(empty)["avg_reps"], 0)


class WeightSeriesTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.stats = StatisticsService(clock=lambda: NOW)
        self.logs = [
            WeightLogEntry(id="3", weight=180.0, logged_at=NOW - datetime.timedelta(days=1)),
            WeightLogEntry(id="2", weight=182.5, logged_at=NOW - datetime.timedelta(days=20), notes="after trip"),
            WeightLogEntry(id="1", weight=186.0, logged_at=NOW - datetime.timedelta(days=75)),
        ]

    def test_weight_series_window(self) -> None:
        points = self.stats.weight_series(self.logs, "2months")
        self.assertEqual([p.weight for p in points], [182.5, 180.0])
        self.assertEqual(points[0].notes, "after trip")
        self.assertEqual(len(self.stats.weight_series(self.logs, "3months")), 3)

    def test_weight_series_delta(self) -> None:
        points = self.stats.weight_series(self.logs)
        self.assertEqual(
            StatisticsService.progress_delta(points, "weight"),
            {"current": 180.0, "change": -6.0},
        )

    def test_weight_change(self) -> None:
        self.assertEqual(
            StatisticsService.weight_change(self.logs),
            {"current": 180.0, "previous": 182.5, "change": -2.5},
        )
        self.assertEqual(
            StatisticsService.weight_change(self.logs[:1]),
            {"current": 180.0, "previous": None, "change": None},
        )
        self.assertEqual(
            StatisticsService.weight_change([]),
            {"current": None, "previous": None, "change": None},
        )


if __name__ == "__main__":
    unittest.main()
