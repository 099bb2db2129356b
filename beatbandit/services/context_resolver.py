"""
Context Resolver

Derives the coarse listening context (time-of-day bucket, weekday/weekend,
suggested mood) from wall-clock time. Pure apart from reading the clock,
which is injectable.
"""

from datetime import datetime
from typing import Callable, Optional

import structlog

from ..models.learning_models import DayType, ListeningContext, Mood, TimeOfDay

logger = structlog.get_logger(__name__)


def time_of_day_for_hour(hour: int) -> TimeOfDay:
    """05-12 morning, 12-17 afternoon, 17-21 evening, otherwise night."""
    if 5 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def day_type_for_weekday(weekday: int) -> DayType:
    """Saturday and Sunday are the weekend (Monday is 0)."""
    return DayType.WEEKEND if weekday >= 5 else DayType.WEEKDAY


def suggested_mood(time_of_day: TimeOfDay, day_type: DayType) -> Mood:
    """
    Mood lookup:
    weekday morning -> energetic, weekday afternoon -> focus,
    any evening -> relaxed, weekend night -> party, anything else -> chill.
    """
    if day_type == DayType.WEEKDAY and time_of_day == TimeOfDay.MORNING:
        return Mood.ENERGETIC
    if day_type == DayType.WEEKDAY and time_of_day == TimeOfDay.AFTERNOON:
        return Mood.FOCUS
    if time_of_day == TimeOfDay.EVENING:
        return Mood.RELAXED
    if day_type == DayType.WEEKEND and time_of_day == TimeOfDay.NIGHT:
        return Mood.PARTY
    return Mood.CHILL


def resolve_context(moment: datetime) -> ListeningContext:
    """Listening context for a given moment."""
    time_of_day = time_of_day_for_hour(moment.hour)
    day_type = day_type_for_weekday(moment.weekday())
    return ListeningContext(
        time_of_day=time_of_day,
        day_type=day_type,
        suggested_mood=suggested_mood(time_of_day, day_type),
        day_of_week=(moment.weekday() + 1) % 7,  # Sunday is 0
        hour=moment.hour,
        timestamp=moment,
    )


class ContextResolver:
    """Resolves the current listening context from an injectable clock."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or datetime.now
        self.logger = logger.bind(component="ContextResolver")

    def current_context(self) -> ListeningContext:
        context = resolve_context(self.clock())
        self.logger.debug("Context resolved", **context.to_dict())
        return context
