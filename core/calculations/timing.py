"""
Job Timing Calculations

Builds each job's (start, end, user) envelope and measures, per user, the
rhythm of consecutive jobs:

- Job duration: end - start
- Inter-job gap: next start - previous end
- Cycle time: next start - previous start

Gap and cycle samples of 8 hours or more are treated as cross-day artifacts
and excluded (but counted).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Sequence

import numpy as np

from core.records.models import ShiftRecord
from utils.formatting import seconds_between

logger = logging.getLogger(__name__)

OUTLIER_THRESHOLD_MIN = 8 * 60


@dataclass
class JobEnvelope:
    """Wall-clock extent of one job"""
    job_code: str
    user: str
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> float:
        return max(0.0, seconds_between(self.start, self.end) / 60.0)


@dataclass
class JobTimingMetrics:
    """Inter-job gap, cycle time and duration statistics (minutes)"""
    avg_inter_job_gap_min: float = 0.0
    median_inter_job_gap_min: float = 0.0
    p90_inter_job_gap_min: float = 0.0
    avg_cycle_time_min: float = 0.0
    median_cycle_time_min: float = 0.0
    p90_cycle_time_min: float = 0.0
    avg_job_duration_min: float = 0.0
    median_job_duration_min: float = 0.0
    p90_job_duration_min: float = 0.0
    total_jobs_analyzed: int = 0
    outliers_excluded: int = 0

    def to_dict(self) -> Dict[str, float]:
        return dict(self.__dict__)


def percentile_value(sorted_values: Sequence[float], pct: float) -> float:
    """
    Nearest-rank style percentile: element at floor(pct/100 * n), clamped to the last element.

    Args:
        sorted_values: Values sorted ascending
        pct: Percentile (0-100)
    """
    if len(sorted_values) == 0:
        return 0.0
    index = min(int(np.floor(pct / 100 * len(sorted_values))), len(sorted_values) - 1)
    return float(sorted_values[index])


def summarize(values: Sequence[float]) -> Dict[str, float]:
    """Average, median and P90 of a sample (zeros for an empty sample)"""
    if len(values) == 0:
        return {'avg': 0.0, 'median': 0.0, 'p90': 0.0}
    ordered = sorted(values)
    return {
        'avg': float(np.mean(ordered)),
        'median': float(np.median(ordered)),
        'p90': percentile_value(ordered, 90),
    }


def build_job_envelopes(records: Sequence[ShiftRecord]) -> List[JobEnvelope]:
    """
    One envelope per job code: earliest start, latest finish.

    The job's user is the user of its earliest task.
    """
    envelopes: Dict[str, JobEnvelope] = {}
    for r in records:
        env = envelopes.get(r.job_code)
        if env is None:
            envelopes[r.job_code] = JobEnvelope(r.job_code, r.user, r.start, r.finish)
            continue
        if r.start < env.start:
            env.start = r.start
            env.user = r.user
        if r.finish > env.end:
            env.end = r.finish
    return list(envelopes.values())


def calculate_job_timing_metrics(records: Sequence[ShiftRecord]) -> JobTimingMetrics:
    """
    Calculate job timing statistics.

    Args:
        records: Shift records (any order)

    Returns:
        JobTimingMetrics (all zero for empty input)
    """
    envelopes = build_job_envelopes(records)
    if not envelopes:
        return JobTimingMetrics()

    by_user: Dict[str, List[JobEnvelope]] = defaultdict(list)
    for env in envelopes:
        by_user[env.user].append(env)

    gaps: List[float] = []
    cycles: List[float] = []
    durations = [env.duration_minutes for env in envelopes]
    outliers = 0

    for user_jobs in by_user.values():
        user_jobs.sort(key=lambda e: e.start)
        for prev, curr in zip(user_jobs, user_jobs[1:]):
            gap_min = seconds_between(prev.end, curr.start) / 60.0
            cycle_min = seconds_between(prev.start, curr.start) / 60.0

            if gap_min >= OUTLIER_THRESHOLD_MIN:
                outliers += 1
            else:
                gaps.append(gap_min)

            if cycle_min >= OUTLIER_THRESHOLD_MIN:
                outliers += 1
            else:
                cycles.append(cycle_min)

    if outliers:
        logger.warning(f"Excluded {outliers} job timing samples >= {OUTLIER_THRESHOLD_MIN / 60:.0f}h as outliers")

    gap_stats = summarize(gaps)
    cycle_stats = summarize(cycles)
    duration_stats = summarize(durations)

    return JobTimingMetrics(
        avg_inter_job_gap_min=round(gap_stats['avg'], 2),
        median_inter_job_gap_min=round(gap_stats['median'], 2),
        p90_inter_job_gap_min=round(gap_stats['p90'], 2),
        avg_cycle_time_min=round(cycle_stats['avg'], 2),
        median_cycle_time_min=round(cycle_stats['median'], 2),
        p90_cycle_time_min=round(cycle_stats['p90'], 2),
        avg_job_duration_min=round(duration_stats['avg'], 2),
        median_job_duration_min=round(duration_stats['median'], 2),
        p90_job_duration_min=round(duration_stats['p90'], 2),
        total_jobs_analyzed=len(envelopes),
        outliers_excluded=outliers
    )
