"""
Job / Wave Rollups

Aggregates shift records into job-level statistics and rolls those up by
wave, job type and task type. Also produces the data-health summary, the
task duration audit and per-user performance ranking.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from core.calculations.throughput import active_seconds, calculate_utilization, distinct_job_locations
from core.calculations.timing import percentile_value
from core.records.models import EnrichedShiftRecord, GapType, ShiftRecord, records_to_dataframe
from core.time_windows.filters import user_spans
from utils.formatting import safe_div

logger = logging.getLogger(__name__)

UNKNOWN_WAVE = "Unknown"
UNKNOWN_TASK_TYPE = "Unknown"


@dataclass
class JobCodeStats:
    job_code: str
    job_type: str
    total_orders: int
    total_locations: int
    total_skus: int
    total_units: float
    is_ai: bool


@dataclass
class JobTypeStats:
    job_type: str
    total_jobs: int
    avg_orders_per_job: float
    avg_units_per_job: float
    avg_skus_per_job: float


@dataclass
class TaskTypeStats:
    task_type: str
    total_jobs: int
    avg_orders_per_job: float
    avg_units_per_job: float
    avg_skus_per_job: float


@dataclass
class WaveStats:
    wave_code: str
    total_jobs: int
    avg_orders: float
    avg_units: float


@dataclass
class TaskDurationAudit:
    """P10 baseline audit of task durations for one task type (seconds)"""
    task_type: str
    task_count: int
    p10: float
    avg: float
    median: float
    calculated_travel: float


@dataclass
class UserPerformanceStats:
    user: str
    total_volume: float
    total_shift_span: float     # hours
    direct_time: float          # hours
    uph: float
    utilization: float
    shift_start: Optional[datetime]
    shift_end: Optional[datetime]
    rank: int = 0


@dataclass
class HealthStats:
    """Data-health and workload profile of the dataset"""
    total_orders: int = 0
    single_item_orders: int = 0
    multi_item_orders: int = 0
    unique_locs_visited: int = 0
    total_unique_locations: int = 0
    total_units: float = 0
    unique_pickers: int = 0
    unique_packers: int = 0
    total_distinct_employees: int = 0
    cross_trained_employees: int = 0
    avg_pick_duration_sec: float = 0.0
    avg_pack_duration_sec: float = 0.0
    avg_job_transition_min: float = 0.0
    avg_travel_time_sec: float = 0.0
    total_jobs: int = 0
    avg_units_per_job: float = 0.0
    avg_skus_per_job: float = 0.0
    avg_locations_per_job: float = 0.0
    avg_orders_per_job: float = 0.0
    avg_tasks_per_job: float = 0.0
    negative_duration_records: int = 0
    job_code_stats: List[JobCodeStats] = field(default_factory=list)
    job_type_stats: List[JobTypeStats] = field(default_factory=list)
    task_type_stats: List[TaskTypeStats] = field(default_factory=list)
    wave_stats: List[WaveStats] = field(default_factory=list)
    task_duration_audit: List[TaskDurationAudit] = field(default_factory=list)


@dataclass
class RoleDiagnostics:
    """Users counted as pickers/packers and the task type that qualified them"""
    pickers: List[Dict[str, str]] = field(default_factory=list)
    packers: List[Dict[str, str]] = field(default_factory=list)


def _scalar(value):
    """Unwrap numpy scalars produced by pandas aggregation"""
    return value.item() if hasattr(value, "item") else value


def calculate_job_code_stats(records: Sequence[ShiftRecord]) -> List[JobCodeStats]:
    """
    Per-job distinct orders, locations, SKUs and summed units.

    Returns:
        List sorted by total units descending
    """
    if not records:
        return []

    df = records_to_dataframe(records)
    grouped = df.groupby('job_code', sort=False).agg(
        job_type=('job_type', 'first'),
        total_orders=('order_code', 'nunique'),
        total_locations=('location', 'nunique'),
        total_skus=('sku', 'nunique'),
        total_units=('quantity', 'sum'),
        is_ai=('is_ai', 'any'),
    )

    stats = [
        JobCodeStats(
            job_code=str(job_code),
            job_type=row.job_type,
            total_orders=int(row.total_orders),
            total_locations=int(row.total_locations),
            total_skus=int(row.total_skus),
            total_units=_scalar(row.total_units),
            is_ai=bool(row.is_ai)
        )
        for job_code, row in grouped.iterrows()
    ]
    return sorted(stats, key=lambda s: -s.total_units)


def _averages(jobs: Sequence[JobCodeStats]) -> Dict[str, float]:
    count = len(jobs)
    return {
        'orders': round(safe_div(sum(j.total_orders for j in jobs), count), 1),
        'units': round(safe_div(sum(j.total_units for j in jobs), count), 1),
        'skus': round(safe_div(sum(j.total_skus for j in jobs), count), 1),
    }


def calculate_job_type_stats(job_stats: Sequence[JobCodeStats]) -> List[JobTypeStats]:
    """Average per-job orders/units/SKUs grouped by job type"""
    by_type: Dict[str, List[JobCodeStats]] = {}
    for job in job_stats:
        by_type.setdefault(job.job_type, []).append(job)

    results = []
    for job_type, jobs in by_type.items():
        avg = _averages(jobs)
        results.append(JobTypeStats(
            job_type=job_type,
            total_jobs=len(jobs),
            avg_orders_per_job=avg['orders'],
            avg_units_per_job=avg['units'],
            avg_skus_per_job=avg['skus']
        ))
    return sorted(results, key=lambda s: s.job_type)


def calculate_task_type_stats(
    records: Sequence[ShiftRecord],
    job_stats: Sequence[JobCodeStats]
) -> List[TaskTypeStats]:
    """
    Average per-job totals grouped by task type.

    A job contributes its totals once to every task type present in it.
    """
    job_lookup = {j.job_code: j for j in job_stats}
    job_task_types: Dict[str, set] = {}
    for r in records:
        job_task_types.setdefault(r.job_code, set()).add(r.task_type or UNKNOWN_TASK_TYPE)

    by_type: Dict[str, List[JobCodeStats]] = {}
    for job_code, task_types in job_task_types.items():
        job = job_lookup.get(job_code)
        if job is None:
            continue
        for task_type in task_types:
            by_type.setdefault(task_type, []).append(job)

    results = []
    for task_type, jobs in by_type.items():
        avg = _averages(jobs)
        results.append(TaskTypeStats(
            task_type=task_type,
            total_jobs=len(jobs),
            avg_orders_per_job=avg['orders'],
            avg_units_per_job=avg['units'],
            avg_skus_per_job=avg['skus']
        ))
    return sorted(results, key=lambda s: s.task_type)


def _wave_sort_key(wave_code: str):
    try:
        return (0, int(wave_code), wave_code)
    except ValueError:
        return (1, 0, wave_code)


def calculate_wave_stats(records: Sequence[ShiftRecord]) -> List[WaveStats]:
    """
    Average orders and units per job, grouped by wave.

    A job's wave is the wave code of its first record ("Unknown" if absent).
    Numeric wave codes sort numerically, ahead of non-numeric ones.
    """
    jobs: Dict[str, Dict[str, Any]] = {}
    for r in records:
        job = jobs.get(r.job_code)
        if job is None:
            job = jobs[r.job_code] = {'wave': r.wave_code or UNKNOWN_WAVE, 'orders': set(), 'units': 0}
        job['orders'].add(r.order_code)
        job['units'] += r.quantity

    waves: Dict[str, List[Dict[str, Any]]] = {}
    for job in jobs.values():
        waves.setdefault(job['wave'], []).append(job)

    results = [
        WaveStats(
            wave_code=wave_code,
            total_jobs=len(wave_jobs),
            avg_orders=round(safe_div(sum(len(j['orders']) for j in wave_jobs), len(wave_jobs)), 1),
            avg_units=round(safe_div(sum(j['units'] for j in wave_jobs), len(wave_jobs)), 1)
        )
        for wave_code, wave_jobs in waves.items()
    ]
    return sorted(results, key=lambda s: _wave_sort_key(s.wave_code))


def calculate_task_duration_audit(records: Sequence[ShiftRecord]) -> List[TaskDurationAudit]:
    """
    P10 / average / median task duration per task type.

    Travel is estimated as average - P10: the fastest decile approximates
    pure process time.
    """
    by_type: Dict[str, List[float]] = {}
    for r in records:
        by_type.setdefault(r.task_type or UNKNOWN_TASK_TYPE, []).append(active_seconds(r))

    audit = []
    for task_type, durations in sorted(by_type.items()):
        ordered = sorted(durations)
        p10 = percentile_value(ordered, 10)
        avg = float(np.mean(ordered))
        audit.append(TaskDurationAudit(
            task_type=task_type,
            task_count=len(ordered),
            p10=round(p10, 2),
            avg=round(avg, 2),
            median=round(float(np.median(ordered)), 2),
            calculated_travel=round(max(0.0, avg - p10), 2)
        ))
    return audit


def calculate_role_diagnostics(records: Sequence[ShiftRecord]) -> RoleDiagnostics:
    """Users whose task type is exactly picking / packing"""
    pickers: Dict[str, str] = {}
    packers: Dict[str, str] = {}
    for r in records:
        if r.task_type_lower == 'picking':
            pickers.setdefault(r.user, f"TaskType: {r.task_type}")
        if r.task_type_lower == 'packing':
            packers.setdefault(r.user, f"TaskType: {r.task_type}")
    return RoleDiagnostics(
        pickers=[{'user': u, 'reason': reason} for u, reason in sorted(pickers.items())],
        packers=[{'user': u, 'reason': reason} for u, reason in sorted(packers.items())]
    )


def calculate_health_stats(records: Sequence[EnrichedShiftRecord]) -> HealthStats:
    """
    Build the data-health summary from enriched records.

    Args:
        records: Enriched records (sorted or not)

    Returns:
        HealthStats (zeros and empty lists for empty input)
    """
    if not records:
        return HealthStats()

    # Single vs multi item orders: picking tasks only
    order_units: Dict[str, float] = {}
    for r in records:
        if 'picking' in r.task_type_lower:
            order_units[r.order_code] = order_units.get(r.order_code, 0) + r.quantity
    single_item = sum(1 for qty in order_units.values() if qty == 1)

    roles = calculate_role_diagnostics(records)
    pickers = {p['user'] for p in roles.pickers}
    packers = {p['user'] for p in roles.packers}

    pick_durations = [r.duration_sec for r in records if r.task_type_lower == 'picking']
    pack_durations = [r.duration_sec for r in records if r.task_type_lower == 'packing']

    transitions = [r.raw_gap for r in records if r.gap_type == GapType.TRANSITION]
    travel_gaps = [r.raw_gap * 60 for r in records if r.raw_gap > 0 and r.gap_type != GapType.OVERLAP]

    job_stats = calculate_job_code_stats(records)
    total_jobs = len(job_stats)
    total_units = sum(r.quantity for r in records)
    negative = sum(1 for r in records if r.raw_duration_sec < 0)
    if negative:
        logger.warning(f"{negative} records have Finish before Start; durations clamped to 0")

    return HealthStats(
        total_orders=len(order_units),
        single_item_orders=single_item,
        multi_item_orders=len(order_units) - single_item,
        unique_locs_visited=distinct_job_locations(records),
        total_unique_locations=len({r.location for r in records if r.location}),
        total_units=total_units,
        unique_pickers=len(pickers),
        unique_packers=len(packers),
        total_distinct_employees=len({r.user for r in records}),
        cross_trained_employees=len(pickers & packers),
        avg_pick_duration_sec=round(safe_div(sum(pick_durations), len(pick_durations)), 1),
        avg_pack_duration_sec=round(safe_div(sum(pack_durations), len(pack_durations)), 1),
        avg_job_transition_min=round(safe_div(sum(transitions), len(transitions)), 1),
        avg_travel_time_sec=round(safe_div(sum(travel_gaps), len(travel_gaps)), 1),
        total_jobs=total_jobs,
        avg_units_per_job=round(safe_div(total_units, total_jobs), 2),
        avg_skus_per_job=round(safe_div(sum(j.total_skus for j in job_stats), total_jobs), 2),
        avg_locations_per_job=round(safe_div(sum(j.total_locations for j in job_stats), total_jobs), 2),
        avg_orders_per_job=round(safe_div(sum(j.total_orders for j in job_stats), total_jobs), 2),
        avg_tasks_per_job=round(safe_div(len(records), total_jobs), 2),
        negative_duration_records=negative,
        job_code_stats=job_stats,
        job_type_stats=calculate_job_type_stats(job_stats),
        task_type_stats=calculate_task_type_stats(records, job_stats),
        wave_stats=calculate_wave_stats(records),
        task_duration_audit=calculate_task_duration_audit(records)
    )


def calculate_user_performance(records: Sequence[ShiftRecord]) -> List[UserPerformanceStats]:
    """
    Per-user occupancy UPH and utilization, ranked by UPH (rank 1 = highest).

    Ties are broken by user name so ranking is deterministic.
    """
    by_user: Dict[str, List[ShiftRecord]] = {}
    for r in records:
        by_user.setdefault(r.user, []).append(r)

    spans = user_spans(records)
    results = []
    for user, user_records in by_user.items():
        span = spans[user]
        volume = sum(r.quantity for r in user_records)
        results.append(UserPerformanceStats(
            user=user,
            total_volume=volume,
            total_shift_span=round(span.duration_hours, 2),
            direct_time=round(sum(active_seconds(r) for r in user_records) / 3600.0, 2),
            uph=round(safe_div(volume, span.duration_hours), 2),
            utilization=round(calculate_utilization(user_records), 2),
            shift_start=span.start,
            shift_end=span.finish
        ))

    results.sort(key=lambda s: (-s.uph, s.user))
    for rank, stats in enumerate(results, start=1):
        stats.rank = rank
    return results
