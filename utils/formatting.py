"""
Formatting Utilities

Functions for coercing and formatting timestamps, safe arithmetic, and the
calendar keys used to bucket shift records by hour and date.
"""

import logging
import math
import pandas as pd
import pytz
from datetime import datetime
from typing import Optional
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)


def coerce_timestamp(value) -> datetime:
    """
    Convert an ISO string, pandas Timestamp or datetime into a python datetime.

    Args:
        value: Timestamp-like value from an export row

    Returns:
        datetime object (timezone information is preserved when present)

    Raises:
        ValueError: If the value is empty or cannot be parsed
    """
    if value is None or (not isinstance(value, datetime) and pd.isna(value)):
        raise ValueError("Timestamp is missing")

    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value

    if isinstance(value, str):
        text = value.strip()
        # Handle 'Z' suffix for UTC
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        try:
            return dateutil_parser.parse(text)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Unparseable timestamp: {value!r}") from e

    try:
        return pd.Timestamp(value).to_pydatetime()
    except (ValueError, TypeError) as e:
        raise ValueError(f"Unparseable timestamp: {value!r}") from e


def format_timestamp(ts) -> str:
    """
    Convert a timestamp to readable format (YYYY-MM-DD HH:MM:SS), handling potential errors.

    Args:
        ts: datetime, ISO string or None

    Returns:
        Formatted timestamp string or empty string if invalid
    """
    if ts is None:
        return ""
    try:
        return coerce_timestamp(ts).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return str(ts)


def to_local(ts: datetime, timezone: Optional[str] = None) -> datetime:
    """
    Convert a timezone-aware timestamp to the given timezone.

    Naive timestamps are returned unchanged (they are assumed to already be
    in facility local time).
    """
    if not timezone or ts.tzinfo is None:
        return ts
    return ts.astimezone(pytz.timezone(timezone))


def hour_key(ts: datetime, timezone: Optional[str] = None) -> str:
    """Calendar hour bucket key (yyyy-MM-ddTHH)."""
    return to_local(ts, timezone).strftime("%Y-%m-%dT%H")


def date_key(ts: datetime, timezone: Optional[str] = None) -> str:
    """Calendar date bucket key (yyyy-MM-dd)."""
    return to_local(ts, timezone).strftime("%Y-%m-%d")


def seconds_between(start: datetime, end: datetime) -> float:
    """Signed difference end - start in seconds."""
    return (end - start).total_seconds()


def safe_div(numerator: float, denominator: float) -> float:
    """Division that degrades to 0.0 instead of raising or producing inf/NaN."""
    if not denominator:
        return 0.0
    result = numerator / denominator
    if pd.isna(result) or result in (float("inf"), float("-inf")):
        return 0.0
    return result


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))
