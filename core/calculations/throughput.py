"""
Throughput Calculation Functions

Calculates per-process (picking, packing, sorting, global) throughput,
utilization and density metrics from enriched shift records, plus the
dynamic interval flow score and its per-bucket breakdown.

Time denominators:
- Shift span (occupancy): per user, last finish - first start, summed over users
- Direct time: sum of process + travel time of the tasks
- Busy time: per user, merged wall-clock task intervals (no double counting)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from core.records.models import (
    BufferConfig,
    EnrichedShiftRecord,
    FLOW_METHOD_USER_DAILY_AVERAGE,
    ShiftRecord,
    records_to_dataframe,
)
from core.time_windows.filters import busy_seconds, total_span_hours
from utils.formatting import date_key, hour_key, round_half_up, safe_div, seconds_between, to_local

logger = logging.getLogger(__name__)


@dataclass
class IntervalData:
    """One dynamic-flow bucket"""
    interval_start: datetime
    interval_end: datetime
    volume: float
    active_user_count: int
    rate: float
    users: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'interval_start': self.interval_start,
            'interval_end': self.interval_end,
            'volume': self.volume,
            'active_user_count': self.active_user_count,
            'rate': round(self.rate, 2),
            'users': dict(self.users),
        }


@dataclass
class FlowDetailData:
    """Drill-down structure behind the dynamic interval UPH"""
    intervals: List[IntervalData] = field(default_factory=list)
    all_users: List[str] = field(default_factory=list)
    method: str = "interval"

    def to_dataframe(self) -> pd.DataFrame:
        """One row per interval, one column per user volume"""
        if not self.intervals:
            return pd.DataFrame(columns=['interval_start', 'interval_end', 'volume', 'active_user_count', 'rate'])
        rows = []
        for interval in self.intervals:
            row = {k: v for k, v in interval.to_dict().items() if k != 'users'}
            for user in self.all_users:
                row[user] = interval.users.get(user, 0)
            rows.append(row)
        return pd.DataFrame(rows)


@dataclass
class ProcessStats:
    """Throughput metrics for one process subset"""
    uph: float = 0.0
    uph_pure: float = 0.0
    uph_hourly_flow: float = 0.0
    productive_uph: float = 0.0
    floor_uph: float = 0.0
    output_density: float = 0.0
    dynamic_interval_uph: float = 0.0
    flow_details: FlowDetailData = field(default_factory=FlowDetailData)
    tph: float = 0.0
    utilization: float = 0.0
    total_volume: float = 0
    total_active_time: float = 0.0   # hours (shift span)
    direct_time: float = 0.0         # minutes
    distinct_locations: int = 0
    total_tasks: int = 0
    locations_per_unit: float = 0.0
    avg_task_duration: float = 0.0
    avg_process_time_sec: float = 0.0
    avg_travel_time_sec: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (flow details excluded)"""
        return {
            'uph': self.uph,
            'uph_pure': self.uph_pure,
            'uph_hourly_flow': self.uph_hourly_flow,
            'productive_uph': self.productive_uph,
            'floor_uph': self.floor_uph,
            'output_density': self.output_density,
            'dynamic_interval_uph': self.dynamic_interval_uph,
            'tph': self.tph,
            'utilization': self.utilization,
            'total_volume': self.total_volume,
            'total_active_time': self.total_active_time,
            'direct_time': self.direct_time,
            'distinct_locations': self.distinct_locations,
            'total_tasks': self.total_tasks,
            'locations_per_unit': self.locations_per_unit,
            'avg_task_duration': self.avg_task_duration,
            'avg_process_time_sec': self.avg_process_time_sec,
            'avg_travel_time_sec': self.avg_travel_time_sec,
        }


def filter_process(records: Sequence[ShiftRecord], process: str) -> List[ShiftRecord]:
    """
    Select the subset for a process: "picking", "packing", "sorting" or "global".

    Raises:
        ValueError: If process is not recognized
    """
    if process == 'global':
        return list(records)
    if process == 'picking':
        return [r for r in records if r.is_picking]
    if process == 'packing':
        return [r for r in records if r.is_packing]
    if process == 'sorting':
        return [r for r in records if r.is_sorting]
    raise ValueError(
        f"Unknown process: '{process}'. "
        f"Valid options: 'global', 'picking', 'packing', 'sorting'"
    )


def active_seconds(record: ShiftRecord) -> float:
    """Process + travel time for enriched records, clamped Finish - Start otherwise"""
    if isinstance(record, EnrichedShiftRecord):
        return record.active_seconds
    return record.duration_sec


def distinct_job_locations(records: Sequence[ShiftRecord]) -> int:
    """Count of unique (job, location) visits"""
    return len({(r.job_code, r.location) for r in records if r.job_code and r.location})


def calculate_hourly_flow(records: Sequence[ShiftRecord], timezone: Optional[str] = None) -> float:
    """
    Average units per calendar hour, over hours that saw at least one finish.

    Records are bucketed by the hour of their Finish timestamp.
    """
    if not records:
        return 0.0
    df = pd.DataFrame({
        'hour': [hour_key(r.finish, timezone) for r in records],
        'quantity': [r.quantity for r in records],
    })
    hourly = df.groupby('hour')['quantity'].sum()
    return float(hourly.mean()) if len(hourly) > 0 else 0.0


def calculate_utilization(records: Sequence[ShiftRecord]) -> float:
    """
    Busy percentage of the shift span.

    Busy time is merged per user so overlapping task timestamps cannot push
    utilization above 100%.
    """
    span_hours = total_span_hours(records)
    if span_hours <= 0:
        return 0.0

    by_user: Dict[str, List[ShiftRecord]] = defaultdict(list)
    for r in records:
        by_user[r.user].append(r)
    busy_sec = sum(busy_seconds(user_records) for user_records in by_user.values())

    return safe_div(busy_sec / 3600.0, span_hours) * 100


def calculate_break_seconds(records: Sequence[ShiftRecord], break_threshold_sec: float) -> float:
    """
    Idle gaps of at least break_threshold_sec between a user's tasks.

    Gaps are measured from the latest finish seen so far on the user's timeline.
    """
    by_user: Dict[str, List[ShiftRecord]] = defaultdict(list)
    for r in records:
        by_user[r.user].append(r)

    total = 0.0
    for user_records in by_user.values():
        ordered = sorted(user_records, key=lambda r: r.start)
        cursor = ordered[0].finish
        for r in ordered[1:]:
            gap = seconds_between(cursor, r.start)
            if gap >= break_threshold_sec:
                total += gap
            if r.finish > cursor:
                cursor = r.finish
    return total


def _utc_timestamp(value: datetime) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    return ts.tz_localize('UTC') if ts.tzinfo is None else ts.tz_convert('UTC')


def _bucket_origin(records: Sequence[ShiftRecord], interval_min: int) -> pd.Timestamp:
    earliest = min(
        min(_utc_timestamp(r.start) for r in records),
        min(_utc_timestamp(r.finish) for r in records)
    )
    return earliest.floor(f"{interval_min}min")


def build_interval_data(
    records: Sequence[ShiftRecord],
    interval_min: int,
    timezone: Optional[str] = None
) -> List[IntervalData]:
    """
    Partition the records' time range into fixed buckets keyed by Finish.

    Every bucket between the first and last one is returned, including
    buckets with no volume. Rates are normalized by active users and scaled
    to an hourly figure.

    Bucketing runs on UTC so exports whose offsets change mid-shift (DST)
    stay on one timeline. Bucket bounds are naive for naive input, otherwise
    expressed in `timezone` (UTC when not set).
    """
    if not records:
        return []

    origin = _bucket_origin(records, interval_min)
    step = pd.Timedelta(minutes=interval_min)
    naive = records[0].finish.tzinfo is None

    df = records_to_dataframe(records)[['user', 'quantity', 'finish']]
    df['bucket'] = ((pd.to_datetime(df['finish'], utc=True) - origin) // step).astype(int)

    volume_by_bucket = df.groupby('bucket')['quantity'].sum()
    user_volume = df.groupby(['bucket', 'user'])['quantity'].sum()

    def _bound(ts: pd.Timestamp) -> datetime:
        if naive:
            ts = ts.tz_localize(None)
        elif timezone:
            ts = ts.tz_convert(timezone)
        return ts.to_pydatetime()

    intervals = []
    for bucket in range(int(df['bucket'].max()) + 1):
        bucket_start = origin + bucket * step
        users = {}
        if bucket in volume_by_bucket.index:
            users = {user: float(qty) for user, qty in user_volume.loc[bucket].items()}
        volume = float(volume_by_bucket.get(bucket, 0))
        active = len(users)
        intervals.append(IntervalData(
            interval_start=_bound(bucket_start),
            interval_end=_bound(bucket_start + step),
            volume=volume,
            active_user_count=active,
            rate=safe_div(volume, active) * (60 / interval_min),
            users=users
        ))

    return intervals


def calculate_interval_score(intervals: Sequence[IntervalData], exclude_empty: bool = True) -> float:
    """Mean per-bucket rate (optionally ignoring zero-volume buckets)"""
    rates = [i.rate for i in intervals if not exclude_empty or i.volume > 0]
    return float(np.mean(rates)) if rates else 0.0


def calculate_user_daily_average(records: Sequence[ShiftRecord], timezone: Optional[str] = None) -> float:
    """
    Grand average of daily team averages.

    For each user and date, the user's rate is the mean of their per-active-hour
    volumes; a date's team rate is the mean over users; the score is the mean
    over dates.
    """
    if not records:
        return 0.0

    df = pd.DataFrame({
        'user': [r.user for r in records],
        'date': [date_key(r.finish, timezone) for r in records],
        'hour': [to_local(r.finish, timezone).hour for r in records],
        'quantity': [r.quantity for r in records],
    })

    hourly = df.groupby(['user', 'date', 'hour'])['quantity'].sum()
    user_daily = hourly.groupby(level=['user', 'date']).mean()
    team_daily = user_daily.groupby(level='date').mean()

    return float(team_daily.mean()) if len(team_daily) > 0 else 0.0


def calculate_dynamic_interval_uph(
    records: Sequence[ShiftRecord],
    config: BufferConfig
) -> Tuple[float, FlowDetailData]:
    """
    Dynamic interval throughput score and its per-bucket breakdown.

    Args:
        records: Process subset
        config: Supplies flow_bucket_interval, flow_exclude_empty,
                flow_calculation_method and timezone

    Returns:
        Tuple of (score, FlowDetailData)
    """
    intervals = build_interval_data(records, config.flow_bucket_interval, config.timezone)
    details = FlowDetailData(
        intervals=intervals,
        all_users=sorted({r.user for r in records}),
        method=config.flow_calculation_method
    )

    if config.flow_calculation_method == FLOW_METHOD_USER_DAILY_AVERAGE:
        score = calculate_user_daily_average(records, config.timezone)
    else:
        score = calculate_interval_score(intervals, config.flow_exclude_empty)

    return round(score, 2), details


def calculate_process_stats(
    records: Sequence[ShiftRecord],
    config: BufferConfig
) -> ProcessStats:
    """
    Calculate throughput metrics for one process subset.

    Args:
        records: Enriched (or raw) records of the subset
        config: Buffer configuration

    Returns:
        ProcessStats; all fields are 0 for an empty subset
    """
    if not records:
        return ProcessStats()

    volume = sum(r.quantity for r in records)
    task_count = len(records)

    span_hours = total_span_hours(records)
    direct_sec = sum(active_seconds(r) for r in records)
    direct_hours = direct_sec / 3600.0
    break_hours = calculate_break_seconds(records, config.break_threshold_sec) / 3600.0
    productive_hours = max(0.0, span_hours - break_hours)
    dist_locs = distinct_job_locations(records)

    process_times = [r.process_time_sec for r in records if isinstance(r, EnrichedShiftRecord) and r.process_time_sec is not None]
    travel_times = [r.travel_time_sec for r in records if isinstance(r, EnrichedShiftRecord) and r.travel_time_sec is not None]

    dynamic_uph, flow_details = calculate_dynamic_interval_uph(records, config)

    return ProcessStats(
        uph=round_half_up(safe_div(volume, span_hours)),
        uph_pure=round_half_up(safe_div(volume, direct_hours)),
        uph_hourly_flow=round_half_up(calculate_hourly_flow(records, config.timezone)),
        productive_uph=round(safe_div(volume, productive_hours), 2),
        floor_uph=round(safe_div(volume, span_hours), 2),
        output_density=round(safe_div(volume, dist_locs), 2),
        dynamic_interval_uph=dynamic_uph,
        flow_details=flow_details,
        tph=round(safe_div(task_count, span_hours), 2),
        utilization=round(calculate_utilization(records), 2),
        total_volume=volume,
        total_active_time=round(span_hours, 2),
        direct_time=round(direct_sec / 60.0, 2),
        distinct_locations=dist_locs,
        total_tasks=task_count,
        locations_per_unit=round(safe_div(dist_locs, volume), 4),
        avg_task_duration=round(safe_div(direct_sec, task_count), 2),
        avg_process_time_sec=round(safe_div(sum(process_times), len(process_times)), 2),
        avg_travel_time_sec=round(safe_div(sum(travel_times), len(travel_times)), 2)
    )


def calculate_all_process_stats(
    records: Sequence[ShiftRecord],
    config: BufferConfig
) -> Dict[str, ProcessStats]:
    """ProcessStats for global, picking, packing and sorting subsets"""
    stats = {}
    for process in ('global', 'picking', 'packing', 'sorting'):
        subset = filter_process(records, process)
        stats[process] = calculate_process_stats(subset, config)
        logger.info(
            f"{process}: {stats[process].total_tasks} tasks, "
            f"UPH={stats[process].uph:.0f}, Utilization={stats[process].utilization:.1f}%"
        )
    return stats
