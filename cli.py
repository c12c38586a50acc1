import argparse
import csv
import datetime
import json
import logging
import os
import shutil
from typing import Optional

from config import YamlConfig
from models import CompletedSet, CompletedWorkout, PlannedExercise, PlannedWorkout, utcnow
from repositories import open_backend
from stats_service import StatisticsService
from tools import WeightConverter
from workout_store import WorkoutStore

logger = logging.getLogger(__name__)

CSV_FIELDS = ["exercise_name", "set_number", "weight", "reps"]


def open_store(yaml_path: str, db_path: Optional[str], owner_id: str) -> WorkoutStore:
    settings = YamlConfig(yaml_path).settings()
    if db_path is not None:
        settings.db_path = db_path
    store = WorkoutStore(open_backend(settings), owner_id)
    store.refresh()
    return store


def export_workouts(store: WorkoutStore, fmt: str, output_dir: str = ".") -> list[str]:
    """Write one file per completed workout and return the written paths."""
    paths = []
    for workout in store.completed_workouts:
        out_path = os.path.join(output_dir, f"workout_{workout.id}.{fmt}")
        with open(out_path, "w", encoding="utf-8", newline="") as f:
            if fmt == "csv":
                writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
                writer.writeheader()
                for s in workout.sets:
                    writer.writerow(s.model_dump())
            else:
                json.dump(workout.model_dump(mode="json"), f, indent=2)
        paths.append(out_path)
    return paths


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def demo_data(store: WorkoutStore, now: Optional[datetime.datetime] = None) -> bool:
    """Populate the store with demo workouts if it has none."""
    if store.completed_workouts:
        print("Database already contains workouts")
        return False
    now = now or utcnow()
    store.save_plan(
        PlannedWorkout(
            name="Push Day",
            exercises=[
                PlannedExercise(name="Bench Press"),
                PlannedExercise(name="Overhead Press"),
            ],
        )
    )
    completed = store.backend.completed_workouts
    for days_ago, bench in ((9, 135.0), (5, 140.0), (1, 145.0)):
        completed.create(
            store.owner_id,
            CompletedWorkout(
                name="Push Day",
                completed_at=now - datetime.timedelta(days=days_ago),
                duration_minutes=45,
                sets=[
                    CompletedSet(exercise_name="Bench Press", set_number=1, weight=bench, reps=8),
                    CompletedSet(exercise_name="Bench Press", set_number=2, weight=bench, reps=6),
                    CompletedSet(exercise_name="Overhead Press", set_number=1, weight=85.0, reps=8),
                ],
            ),
        )
    for weight in (182.4, 181.0):
        store.log_weight(weight)
    store.load_completed()
    print("Demo data inserted")
    return True


def print_stats(store: WorkoutStore, window: str, unit: str = "lb", clock=utcnow) -> None:
    statistics = StatisticsService(clock)
    summary = statistics.summary_stats(store.completed_workouts)
    print(f"Total workouts: {summary['total_workouts']}")
    print(f"Total volume: {summary['total_volume']}")
    print(f"Workouts per week: {summary['avg_workouts_per_week']}")
    for series in statistics.exercise_series(store.completed_workouts, window):
        delta = statistics.progress_delta(series.sessions, "max_weight")
        print(f"{series.exercise_name}: {delta['current']} {unit} ({delta['change']:+})")
    change = statistics.weight_change(store.weight_logs)
    if change["current"] is not None:
        print(f"Body weight: {change['current']} {unit}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Workout tracker utility commands")
    parser.add_argument("--yaml", default="settings.yaml")
    parser.add_argument("--db", default=None)
    parser.add_argument("--user", default="local")
    sub = parser.add_subparsers(dest="cmd", required=True)

    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    sub.add_parser("demo")

    stats = sub.add_parser("stats")
    stats.add_argument(
        "--window", choices=["1month", "2months", "3months", "alltime"], default=None
    )

    exp = sub.add_parser("export")
    exp.add_argument("--fmt", choices=["csv", "json"], default="csv")
    exp.add_argument("--out", default=".")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    conv = sub.add_parser("convert")
    conv.add_argument("--weight", type=float, required=True)
    conv.add_argument("--unit", choices=["kg", "lb"], default=None)

    args = parser.parse_args(argv)

    settings = YamlConfig(args.yaml).settings()
    logging.basicConfig(level=settings.log_level.upper())
    db_path = args.db or settings.db_path

    if args.cmd == "serve":
        import uvicorn

        from rest_api import GymAPI

        uvicorn.run(GymAPI(db_path=db_path, yaml_path=args.yaml).app, host=args.host, port=args.port)
    elif args.cmd == "demo":
        demo_data(open_store(args.yaml, db_path, args.user))
    elif args.cmd == "stats":
        store = open_store(args.yaml, db_path, args.user)
        print_stats(store, args.window or settings.default_window, settings.weight_unit)
    elif args.cmd == "export":
        store = open_store(args.yaml, db_path, args.user)
        for path in export_workouts(store, args.fmt, args.out):
            logger.info("Exported %s", path)
    elif args.cmd == "backup":
        backup_db(db_path, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, db_path)
    elif args.cmd == "convert":
        if (args.unit or settings.weight_unit) == "kg":
            print(f"{args.weight} kg = {WeightConverter.kg_to_lb(args.weight)} lb")
        else:
            print(f"{args.weight} lb = {WeightConverter.lb_to_kg(args.weight)} kg")


if __name__ == "__main__":
    main()
