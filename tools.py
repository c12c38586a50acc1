import datetime
from typing import Iterable


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    WEEKS_PER_MONTH: float = 4.3
    SECONDS_PER_DAY: int = 86400

    @staticmethod
    def volume(sets: Iterable[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @staticmethod
    def days_ago(
        moment: datetime.datetime, now: datetime.datetime
    ) -> float:
        """Return the fractional number of days between ``moment`` and ``now``."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=datetime.timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=datetime.timezone.utc)
        return (now - moment).total_seconds() / MathTools.SECONDS_PER_DAY

    @staticmethod
    def weekly_rate(count: int) -> float:
        """Return ``count`` events over the last 30 days as a per-week rate."""
        if count < 0:
            raise ValueError("count must be non-negative")
        return round(count / MathTools.WEEKS_PER_MONTH, 1)

    @staticmethod
    def change(values: list[float]) -> float:
        """Return the signed difference between the last and first value."""
        if not values:
            raise ValueError("values must not be empty")
        return values[-1] - values[0]


class WeightConverter:
    """Utility for converting between kg and lb."""

    KG_TO_LB = 2.20462

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb / WeightConverter.KG_TO_LB, 2)
