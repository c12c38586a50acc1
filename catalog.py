from __future__ import annotations

from models import PlannedWorkout

MUSCLE_GROUPS: dict[str, list[str]] = {
    "Chest": [
        "Chest Press Machine",
        "Incline Chest Press Machine",
        "Pec Fly Machine",
        "Dumbbell Bench Press",
        "Dumbbell Incline Press",
        "Dumbbell Flyes",
        "Push-ups",
        "Chest Dips",
    ],
    "Back": [
        "Lat Pulldown Machine",
        "Seated Row Machine",
        "Assisted Pull-up Machine",
        "T-Bar Row Machine",
        "Dumbbell Rows",
        "Cable Rows",
        "Pull-ups",
        "Reverse Flyes",
    ],
    "Shoulders": [
        "Shoulder Press Machine",
        "Lateral Raise Machine",
        "Rear Delt Machine",
        "Dumbbell Shoulder Press",
        "Dumbbell Lateral Raises",
        "Dumbbell Front Raises",
        "Cable Lateral Raises",
        "Upright Rows",
    ],
    "Arms": [
        "Bicep Curl Machine",
        "Tricep Extension Machine",
        "Cable Bicep Curls",
        "Cable Tricep Pushdowns",
        "Dumbbell Bicep Curls",
        "Dumbbell Tricep Extensions",
        "Hammer Curls",
        "Tricep Dips",
    ],
    "Legs": [
        "Leg Press Machine",
        "Leg Extension Machine",
        "Leg Curl Machine",
        "Calf Raise Machine",
        "Hip Abduction Machine",
        "Hip Adduction Machine",
        "Squats",
        "Lunges",
        "Goblet Squats",
        "Romanian Deadlifts",
    ],
    "Core": [
        "Ab Machine",
        "Captain's Chair",
        "Cable Crunches",
        "Planks",
        "Russian Twists",
        "Mountain Climbers",
        "Dead Bug",
        "Bicycle Crunches",
    ],
    "Cardio": [
        "Treadmill",
        "Elliptical",
        "Stationary Bike",
        "Stair Climber",
        "Rowing Machine",
        "Arc Trainer",
    ],
}


def muscle_groups() -> list[str]:
    return list(MUSCLE_GROUPS)


def available_exercises(group: str, plan: PlannedWorkout | None = None) -> list[str]:
    """Return the exercises of ``group`` not already part of ``plan``."""
    if group not in MUSCLE_GROUPS:
        raise ValueError(f"unknown muscle group: {group}")
    chosen = set(plan.exercise_names) if plan is not None else set()
    return [name for name in MUSCLE_GROUPS[group] if name not in chosen]
