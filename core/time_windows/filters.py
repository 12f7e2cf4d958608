"""
Time Window Utilities

Functions to filter records by time window, reconstruct per-user spans and
merge overlapping busy intervals.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from core.records.models import ShiftRecord
from .models import TimeSegment, UserSpan

logger = logging.getLogger(__name__)


def filter_records_by_window(
    records: Sequence[ShiftRecord],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> List[ShiftRecord]:
    """
    Keep records whose start falls within [start, end].

    Args:
        records: Shift records
        start: Window start (open if None)
        end: Window end (open if None)

    Returns:
        Filtered list in input order

    Example:
        >>> filtered = filter_records_by_window(records, shift_start, shift_end)
        >>> print(f"Filtered from {len(records)} to {len(filtered)} records")
    """
    if start is not None and end is not None:
        window = TimeSegment(start, end, "filter window")
        filtered = [r for r in records if window.contains(r.start)]
    else:
        filtered = [
            r for r in records
            if (start is None or r.start >= start) and (end is None or r.start <= end)
        ]

    logger.info(f"Time window filter kept {len(filtered)}/{len(records)} records")
    return filtered


def user_spans(records: Iterable[ShiftRecord]) -> Dict[str, UserSpan]:
    """
    First start to last finish per user.

    Returns:
        Dictionary user -> UserSpan (insertion ordered by first appearance)
    """
    spans: Dict[str, UserSpan] = {}
    for r in records:
        span = spans.get(r.user)
        if span is None:
            spans[r.user] = UserSpan(r.user, r.start, r.finish)
            continue
        if r.start < span.start:
            span.start = r.start
        if r.finish > span.finish:
            span.finish = r.finish
    return spans


def total_span_hours(records: Iterable[ShiftRecord]) -> float:
    """Sum of per-user shift spans in hours (occupancy denominator)"""
    return sum(span.duration_minutes for span in user_spans(records).values()) / 60.0


def merge_adjacent_segments(segments: List[TimeSegment], gap_tolerance_minutes: float = 0) -> List[TimeSegment]:
    """
    Merge adjacent or overlapping time segments.

    Args:
        segments: List of TimeSegment objects
        gap_tolerance_minutes: Maximum gap between segments to merge (default 0)

    Returns:
        List of merged TimeSegment objects

    Example:
        >>> # Merge segments with gaps up to 30 minutes
        >>> merged = merge_adjacent_segments(segments, gap_tolerance_minutes=30)
    """
    if not segments:
        return []

    # Sort by start time
    sorted_segments = sorted(segments, key=lambda s: s.start)

    merged = [sorted_segments[0]]

    for current in sorted_segments[1:]:
        previous = merged[-1]

        gap_minutes = (current.start - previous.end).total_seconds() / 60.0

        if gap_minutes <= gap_tolerance_minutes:
            merged[-1] = TimeSegment(
                start=previous.start,
                end=max(previous.end, current.end),
                description=previous.description
            )
        else:
            merged.append(current)

    return merged


def busy_seconds(records: Iterable[ShiftRecord]) -> float:
    """
    Wall-clock busy time of a set of tasks.

    Overlapping or touching [start, finish] ranges are merged first so that
    concurrent tasks are not double counted. Records with finish < start are
    treated as zero-length.
    """
    segments = [TimeSegment(r.start, max(r.start, r.finish)) for r in records]
    return sum(seg.duration_seconds for seg in merge_adjacent_segments(segments))
