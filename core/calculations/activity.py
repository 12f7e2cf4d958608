"""
Activity Matrix

User x hour-of-day matrix of units finished, used by the shift heatmap.
User spans longer than a day are clamped so the hour axis stays bounded.
"""

import logging
from typing import Optional, Sequence

import pandas as pd

from core.records.models import ShiftRecord
from core.time_windows.filters import user_spans
from core.time_windows.models import MAX_SPAN_HOURS
from utils.formatting import to_local

logger = logging.getLogger(__name__)


def build_activity_matrix(
    records: Sequence[ShiftRecord],
    timezone: Optional[str] = None,
    max_span_hours: int = MAX_SPAN_HOURS
) -> pd.DataFrame:
    """
    Units finished per user per clock hour.

    Args:
        records: Shift records
        timezone: Optional timezone for hour-of-day bucketing
        max_span_hours: Span clamp; records finishing after a user's clamped
                        span end are dropped

    Returns:
        DataFrame indexed by user, one column per clock hour (0-23) in the
        order the shift covers them, values = units. Empty frame for no records.
    """
    if not records:
        return pd.DataFrame()

    spans = user_spans(records)
    clamped = {user: span.clamped(max_span_hours) for user, span in spans.items()}
    clamped_users = [u for u in spans if clamped[u].finish < spans[u].finish]
    if clamped_users:
        logger.warning(f"Clamped shift span to {max_span_hours}h for users: {clamped_users}")

    rows = []
    for r in records:
        if r.finish > clamped[r.user].finish:
            continue
        rows.append({
            'user': r.user,
            'hour': to_local(r.finish, timezone).hour,
            'quantity': r.quantity,
        })

    if not rows:
        return pd.DataFrame()

    df = pd.DataFrame(rows)
    matrix = df.pivot_table(index='user', columns='hour', values='quantity', aggfunc='sum', fill_value=0)

    # Order hour columns from the earliest shift start, wrapping past midnight
    first_hour = to_local(min(s.start for s in clamped.values()), timezone).hour
    ordered_hours = [(first_hour + h) % 24 for h in range(24)]
    columns = [h for h in ordered_hours if h in matrix.columns]
    return matrix[columns].sort_index()
