"""
Travel / Process Time Decomposition

Calibrates a facility-wide Ground Standard Process Time (GSPT) for picking:
the 10th percentile duration of picks repeated at the same location within a
job. Such repeat picks involve almost no travel, so the fastest decile is a
good estimate of pure process time. Every picking task is then split into
process time (up to GSPT) and travel time (the remainder).

When there are too few repeat picks to trust the percentile, a fixed-ratio
heuristic is used instead.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from core.records.models import ShiftRecord
from core.records.normalizer import adjusted_duration

logger = logging.getLogger(__name__)

GSPT_MIN_SAMPLES = 30
GSPT_MIN_FRACTION = 0.01
GSPT_PERCENTILE = 10
FALLBACK_SAMELOC_TRAVEL_PCT = 0.05
FALLBACK_CROSSLOC_TRAVEL_PCT = 0.70


@dataclass
class Decomposition:
    """Process/travel split for one task (seconds)"""
    process_time_sec: float
    travel_time_sec: float


def _same_location_repeat(prev: Optional[ShiftRecord], curr: ShiftRecord) -> bool:
    return (
        prev is not None
        and prev.user == curr.user
        and prev.job_code == curr.job_code
        and prev.location == curr.location
    )


def collect_gspt_samples(
    sorted_records: Sequence[ShiftRecord],
    adjustments: Dict[int, float]
) -> List[float]:
    """
    Adjusted durations (> 0) of picks that repeat the previous task's location.

    Returns:
        Samples sorted ascending
    """
    samples = []
    for i in range(1, len(sorted_records)):
        curr = sorted_records[i]
        if not curr.is_picking:
            continue
        if not _same_location_repeat(sorted_records[i - 1], curr):
            continue
        duration = adjusted_duration(sorted_records, adjustments, i)
        if duration > 0:
            samples.append(duration)
    samples.sort()
    return samples


def required_gspt_samples(total_records: int) -> int:
    """Significance gate: max(30, ceil(1% of all records))"""
    return max(GSPT_MIN_SAMPLES, math.ceil(GSPT_MIN_FRACTION * total_records))


def calibrate_gspt(
    sorted_records: Sequence[ShiftRecord],
    adjustments: Dict[int, float]
) -> Optional[float]:
    """
    Compute the Ground Standard Process Time for picking.

    Args:
        sorted_records: Records sorted by user then start
        adjustments: Normalized duration overrides

    Returns:
        GSPT in seconds, or None if there are not enough same-location samples
    """
    samples = collect_gspt_samples(sorted_records, adjustments)
    required = required_gspt_samples(len(sorted_records))

    if len(samples) < required:
        logger.info(
            f"GSPT not calibrated: {len(samples)} same-location pick samples, "
            f"{required} required. Using ratio fallback."
        )
        return None

    index = int(np.floor(GSPT_PERCENTILE / 100 * len(samples)))
    gspt = float(samples[min(index, len(samples) - 1)])
    logger.info(f"GSPT calibrated at {gspt:.2f}s from {len(samples)} samples")
    return gspt


def decompose_task(
    duration_sec: float,
    is_picking: bool,
    gspt: Optional[float],
    same_location: bool = False
) -> Decomposition:
    """
    Split one task's duration into process and travel time.

    Args:
        duration_sec: Adjusted task duration
        is_picking: Only picking tasks carry travel time
        gspt: Calibrated GSPT or None for the ratio fallback
        same_location: Task repeats the location of the previous task
                       in the same user and job

    Returns:
        Decomposition with process_time_sec + travel_time_sec == duration_sec
    """
    duration_sec = max(0.0, duration_sec)

    if not is_picking:
        return Decomposition(process_time_sec=duration_sec, travel_time_sec=0.0)

    if gspt is not None:
        return Decomposition(
            process_time_sec=min(duration_sec, gspt),
            travel_time_sec=max(0.0, duration_sec - gspt)
        )

    travel_pct = FALLBACK_SAMELOC_TRAVEL_PCT if same_location else FALLBACK_CROSSLOC_TRAVEL_PCT
    travel = duration_sec * travel_pct
    return Decomposition(process_time_sec=duration_sec - travel, travel_time_sec=travel)


def decompose_records(
    sorted_records: Sequence[ShiftRecord],
    adjustments: Dict[int, float]
) -> Tuple[Optional[float], List[Decomposition]]:
    """
    Calibrate GSPT and decompose every record of the sorted sequence.

    Returns:
        Tuple of (gspt, decompositions aligned with sorted_records)
    """
    gspt = calibrate_gspt(sorted_records, adjustments)

    decompositions = []
    last_in_job: Dict[Tuple[str, str], ShiftRecord] = {}
    for i, record in enumerate(sorted_records):
        key = (record.user, record.job_code)
        prev = last_in_job.get(key)
        last_in_job[key] = record
        decompositions.append(decompose_task(
            adjusted_duration(sorted_records, adjustments, i),
            record.is_picking,
            gspt,
            same_location=_same_location_repeat(prev, record)
        ))

    return gspt, decompositions
