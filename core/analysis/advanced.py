"""
Advanced Flow Metrics

Ratios describing how smoothly work flows between jobs and processes.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np

from core.calculations.throughput import active_seconds
from core.calculations.timing import build_job_envelopes
from core.records.models import ShiftRecord
from core.time_windows.filters import total_span_hours
from utils.formatting import safe_div, seconds_between

logger = logging.getLogger(__name__)


@dataclass
class AdvancedMetrics:
    transition_friction: float = 0.0    # active task time / job envelope time
    pick_to_pack_sync_min: float = 0.0  # mean per wave: first pack start - last pick finish
    active_scan_ratio: float = 0.0      # active task time / shift span
    sku_batchability: float = 0.0       # units per distinct SKU

    def to_dict(self) -> Dict[str, float]:
        return dict(self.__dict__)


def calculate_pick_to_pack_sync(records: Sequence[ShiftRecord]) -> float:
    """
    Average minutes between a wave's last pick finish and its first pack start.

    Only waves with both picking and packing tasks contribute. Negative values
    mean packing started before picking finished.
    """
    waves: Dict[str, Dict[str, list]] = {}
    for r in records:
        if not r.wave_code:
            continue
        wave = waves.setdefault(r.wave_code, {'pick_finish': [], 'pack_start': []})
        if r.is_picking:
            wave['pick_finish'].append(r.finish)
        elif r.is_packing:
            wave['pack_start'].append(r.start)

    deltas: List[float] = [
        seconds_between(max(w['pick_finish']), min(w['pack_start'])) / 60.0
        for w in waves.values()
        if w['pick_finish'] and w['pack_start']
    ]
    return float(np.mean(deltas)) if deltas else 0.0


def calculate_advanced_metrics(records: Sequence[ShiftRecord]) -> AdvancedMetrics:
    """
    Calculate advanced flow metrics.

    Args:
        records: Enriched (or raw) shift records

    Returns:
        AdvancedMetrics (all zero for empty input)
    """
    if not records:
        return AdvancedMetrics()

    active_sec = sum(active_seconds(r) for r in records)
    envelope_sec = sum(env.duration_minutes * 60.0 for env in build_job_envelopes(records))
    span_sec = total_span_hours(records) * 3600.0
    units = sum(r.quantity for r in records)
    distinct_skus = len({r.sku for r in records if r.sku})

    metrics = AdvancedMetrics(
        transition_friction=round(safe_div(active_sec, envelope_sec), 2),
        pick_to_pack_sync_min=round(calculate_pick_to_pack_sync(records), 2),
        active_scan_ratio=round(safe_div(active_sec, span_sec), 4),
        sku_batchability=round(safe_div(units, distinct_skus), 2)
    )
    logger.debug(f"Advanced metrics: {metrics.to_dict()}")
    return metrics
