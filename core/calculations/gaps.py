"""
Gap and Anomaly Classification

Walks each user's timeline and classifies the idle time before every task:

- FIRST_TASK: no earlier task for this user
- INTRA_JOB: previous task belongs to the same job
- TRANSITION: previous task belongs to a different job
- OVERLAP: task starts before the previous one finished (logged to telemetry)

Gaps beyond the configured buffer count as lost time and are flagged as
anomalies once they exceed the alert threshold.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from core.records.models import BufferConfig, GapType, ShiftRecord, TelemetryLog
from utils.formatting import format_timestamp, seconds_between

logger = logging.getLogger(__name__)


@dataclass
class GapClassification:
    """Gap result for one task. Gaps are in minutes."""
    raw_gap: float
    net_gap: float
    gap_type: GapType
    is_anomaly: bool
    allowed_buffer: float = 0.0
    inter_job_gap_sec: Optional[float] = None


def classify_gap(
    prev: Optional[ShiftRecord],
    curr: ShiftRecord,
    config: BufferConfig
) -> GapClassification:
    """
    Classify the gap between two consecutive records of a sorted sequence.

    Args:
        prev: Preceding record in the sorted sequence (any user) or None
        curr: Current record
        config: Buffer configuration

    Returns:
        GapClassification
    """
    if prev is None or prev.user != curr.user:
        return GapClassification(raw_gap=0.0, net_gap=0.0, gap_type=GapType.FIRST_TASK, is_anomaly=False)

    gap_sec = seconds_between(prev.finish, curr.start)

    if gap_sec < 0:
        return GapClassification(raw_gap=0.0, net_gap=0.0, gap_type=GapType.OVERLAP, is_anomaly=False)

    is_same_job = prev.job_code == curr.job_code
    gap_type = GapType.INTRA_JOB if is_same_job else GapType.TRANSITION
    buffer_min = config.intra_job_buffer if is_same_job else config.job_transition_buffer

    valid_gap_sec = max(0.0, gap_sec - buffer_min * 60)
    raw_gap = gap_sec / 60.0

    return GapClassification(
        raw_gap=raw_gap,
        net_gap=valid_gap_sec / 60.0,
        gap_type=gap_type,
        is_anomaly=valid_gap_sec > config.alert_threshold * 60,
        allowed_buffer=min(raw_gap, buffer_min),
        inter_job_gap_sec=gap_sec if gap_type == GapType.TRANSITION else None
    )


def classify_gaps(
    sorted_records: Sequence[ShiftRecord],
    config: BufferConfig
) -> Tuple[List[GapClassification], List[TelemetryLog]]:
    """
    Classify gaps for a sequence sorted by user then start.

    Returns:
        Tuple of (classifications aligned with sorted_records, overlap telemetry)
    """
    classifications = []
    telemetry = []

    for i, curr in enumerate(sorted_records):
        prev = sorted_records[i - 1] if i > 0 else None
        result = classify_gap(prev, curr, config)

        if result.gap_type == GapType.OVERLAP:
            telemetry.append(TelemetryLog(
                user=curr.user,
                timestamp=curr.start,
                type=GapType.OVERLAP.value,
                message=(
                    f"Overlap detected: Task starts at {format_timestamp(curr.start)} "
                    f"but previous finished at {format_timestamp(prev.finish)}"
                )
            ))

        classifications.append(result)

    anomalies = sum(1 for c in classifications if c.is_anomaly)
    if telemetry:
        logger.warning(f"Detected {len(telemetry)} overlapping tasks")
    logger.info(f"Classified {len(classifications)} gaps ({anomalies} anomalies)")

    return classifications, telemetry
