"""
Record Normalization

Sorts shift records onto per-user timelines and reconstructs task durations
that the source system logs poorly:

- Batch splitting: back-to-back records for the same user/job/location/SKU
  share one physical visit, so the visit envelope is amortized over them.
- Sort-block spreading: sort events logged with zero duration get the
  block envelope (minus breaks) spread evenly across the block.

Adjustments are returned as an index -> seconds map over the sorted sequence.
Record timestamps are never modified.
"""

import logging
from typing import Callable, Dict, List, Sequence

from core.records.models import ShiftRecord
from utils.formatting import seconds_between

logger = logging.getLogger(__name__)

BREAK_THRESHOLD_SEC = 300


def sort_records(records: Sequence[ShiftRecord]) -> List[ShiftRecord]:
    """
    Stable sort by (user ASC, start ASC).

    Python's sort is stable, so records with equal keys keep their input order.
    """
    return sorted(records, key=lambda r: (r.user, r.start))


def _runs(records: Sequence[ShiftRecord], key: Callable[[ShiftRecord], tuple]) -> List[List[int]]:
    """Split the sequence into maximal runs of consecutive indices sharing key()"""
    runs: List[List[int]] = []
    previous_key = None
    for i, record in enumerate(records):
        current_key = key(record)
        if runs and current_key == previous_key:
            runs[-1].append(i)
        else:
            runs.append([i])
        previous_key = current_key
    return runs


def batch_adjustments(sorted_records: Sequence[ShiftRecord]) -> Dict[int, float]:
    """
    Amortize consecutive same user/job/location/SKU records over their envelope.

    For every run of size > 1, each member gets
    (Finish(last) - Start(first)) / count seconds.

    Args:
        sorted_records: Output of sort_records

    Returns:
        Dictionary of record index -> adjusted duration in seconds
    """
    adjustments: Dict[int, float] = {}
    batches = _runs(sorted_records, lambda r: (r.user, r.job_code, r.location, r.sku))

    for batch in batches:
        if len(batch) < 2:
            continue
        first = sorted_records[batch[0]]
        last = sorted_records[batch[-1]]
        total_sec = max(0.0, seconds_between(first.start, last.finish))
        avg_sec = total_sec / len(batch)
        for i in batch:
            adjustments[i] = avg_sec

    if adjustments:
        logger.debug(f"Batch splitting adjusted {len(adjustments)} records")
    return adjustments


def sort_block_adjustments(
    sorted_records: Sequence[ShiftRecord],
    break_threshold_sec: float = BREAK_THRESHOLD_SEC
) -> Dict[int, float]:
    """
    Spread the envelope of zero-duration sort blocks over their tasks.

    Within each run of consecutive records sharing user and job, the sort tasks
    form a block. Blocks with >= 2 tasks where at least one has zero raw
    duration get (span - internal breaks) / count seconds per task, where
    internal gaps longer than break_threshold_sec count as breaks.

    Args:
        sorted_records: Output of sort_records
        break_threshold_sec: Gap length (seconds) treated as a break

    Returns:
        Dictionary of record index -> adjusted duration in seconds
    """
    adjustments: Dict[int, float] = {}
    job_runs = _runs(sorted_records, lambda r: (r.user, r.job_code))

    for run in job_runs:
        sort_indices = [i for i in run if sorted_records[i].is_sorting]
        if len(sort_indices) < 2:
            continue
        if not any(sorted_records[i].start == sorted_records[i].finish for i in sort_indices):
            continue

        first = sorted_records[sort_indices[0]]
        last = sorted_records[sort_indices[-1]]
        span_sec = seconds_between(first.start, last.finish)

        break_sec = 0.0
        for prev_i, curr_i in zip(sort_indices, sort_indices[1:]):
            gap_sec = seconds_between(sorted_records[prev_i].finish, sorted_records[curr_i].start)
            if gap_sec > break_threshold_sec:
                break_sec += gap_sec

        per_task_sec = max(0.0, span_sec - break_sec) / len(sort_indices)
        for i in sort_indices:
            adjustments[i] = per_task_sec

        logger.debug(
            f"Sort block for {first.user}/{first.job_code}: {len(sort_indices)} tasks, "
            f"{per_task_sec:.1f}s each ({break_sec:.0f}s of breaks removed)"
        )

    return adjustments


def merge_adjustments(*adjustment_maps: Dict[int, float]) -> Dict[int, float]:
    """Merge adjustment maps; later maps take precedence for the same index"""
    merged: Dict[int, float] = {}
    for adjustments in adjustment_maps:
        merged.update(adjustments)
    return merged


def normalize_durations(
    sorted_records: Sequence[ShiftRecord],
    break_threshold_sec: float = BREAK_THRESHOLD_SEC
) -> Dict[int, float]:
    """
    Run both normalization passes over an already sorted sequence.

    Sort-block spreading is applied after batch splitting and wins where both
    touch the same record.
    """
    adjustments = merge_adjustments(
        batch_adjustments(sorted_records),
        sort_block_adjustments(sorted_records, break_threshold_sec)
    )
    logger.info(f"Normalized durations for {len(adjustments)}/{len(sorted_records)} records")
    return adjustments


def adjusted_duration(
    sorted_records: Sequence[ShiftRecord],
    adjustments: Dict[int, float],
    index: int
) -> float:
    """Adjusted duration for a record if one exists, else its clamped Finish - Start"""
    if index in adjustments:
        return adjustments[index]
    return sorted_records[index].duration_sec
