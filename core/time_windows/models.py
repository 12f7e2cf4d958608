"""
Time Window Models

Time segments used for busy-interval merging, per-user shift spans and
record filtering.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

MAX_SPAN_HOURS = 24


@dataclass
class TimeSegment:
    """
    Represents a single time range.

    Zero-length segments are allowed (tasks logged with Start == Finish).
    """
    start: datetime
    end: datetime
    description: str = ""

    def __post_init__(self):
        """Validate time segment"""
        if self.end < self.start:
            raise ValueError(
                f"End time ({self.end}) must not be before start time ({self.start})"
            )

    @property
    def duration_seconds(self) -> float:
        """Segment duration in seconds"""
        return (self.end - self.start).total_seconds()

    @property
    def duration_minutes(self) -> float:
        """Calculate segment duration in minutes"""
        return self.duration_seconds / 60.0

    @property
    def duration_hours(self) -> float:
        """Calculate segment duration in hours"""
        return self.duration_minutes / 60.0

    def contains(self, timestamp: datetime) -> bool:
        """Check if timestamp falls within this segment"""
        return self.start <= timestamp <= self.end

    def __repr__(self) -> str:
        desc = f" ({self.description})" if self.description else ""
        return (
            f"TimeSegment({self.start.strftime('%Y-%m-%d %H:%M')} → "
            f"{self.end.strftime('%Y-%m-%d %H:%M')}{desc})"
        )


@dataclass
class UserSpan:
    """
    Wall-clock window a user was engaged: first task start to last task finish.
    """
    user: str
    start: datetime
    finish: datetime

    @property
    def duration_minutes(self) -> float:
        return max(0.0, (self.finish - self.start).total_seconds() / 60.0)

    @property
    def duration_hours(self) -> float:
        return self.duration_minutes / 60.0

    def clamped(self, max_hours: float = MAX_SPAN_HOURS) -> 'UserSpan':
        """Span limited to max_hours from its start"""
        limit = self.start + timedelta(hours=max_hours)
        if self.finish <= limit:
            return self
        return UserSpan(self.user, self.start, limit)

    def __repr__(self) -> str:
        return f"UserSpan(user={self.user}, hours={self.duration_hours:.2f})"
