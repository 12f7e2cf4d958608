"""
Shift Analysis Engine

Orchestrates a full analysis run over a shift export:

1. Sort records by user then start
2. Normalize batch and sort-block durations
3. Calibrate GSPT and decompose task time into process / travel
4. Classify gaps between consecutive tasks of each user
5. Aggregate throughput, health, timing, user and job-type statistics

The run is pure: identical records and config always produce an identical
AnalysisResult, and no state survives between calls.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from core.analysis.advanced import AdvancedMetrics, calculate_advanced_metrics
from core.analysis.job_types import JobClassification, classify_jobs
from core.analysis.maturity import MaturityScore, calculate_maturity_score
from core.analysis.rollups import (
    HealthStats,
    RoleDiagnostics,
    UserPerformanceStats,
    calculate_health_stats,
    calculate_role_diagnostics,
    calculate_user_performance,
)
from core.calculations.decomposition import decompose_records
from core.calculations.gaps import classify_gaps
from core.calculations.throughput import ProcessStats, calculate_all_process_stats
from core.calculations.timing import JobTimingMetrics, calculate_job_timing_metrics
from core.records.models import (
    BufferConfig,
    DEFAULT_BUFFER_CONFIG,
    EnrichedShiftRecord,
    ShiftRecord,
    TelemetryLog,
)
from core.records.normalizer import adjusted_duration, normalize_durations, sort_records

logger = logging.getLogger(__name__)


@dataclass
class AggregatedStats:
    """Global throughput figures plus per-process breakdowns"""
    uph: float = 0.0
    uph_pure: float = 0.0
    uph_hourly_flow: float = 0.0
    productive_uph: float = 0.0
    floor_uph: float = 0.0
    output_density: float = 0.0
    dynamic_interval_uph: float = 0.0
    picking: ProcessStats = field(default_factory=ProcessStats)
    packing: ProcessStats = field(default_factory=ProcessStats)
    sorting: ProcessStats = field(default_factory=ProcessStats)
    tph: float = 0.0
    utilization: float = 0.0
    total_volume: float = 0
    total_time_off_task: float = 0.0    # minutes
    total_active_time: float = 0.0      # hours (sum of user shift spans)
    direct_time: float = 0.0            # minutes
    allowed_buffer_time: float = 0.0    # minutes
    lost_time: float = 0.0              # minutes
    distinct_locations: int = 0
    locations_per_unit: float = 0.0
    gspt_sec: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {k: v for k, v in self.__dict__.items() if not isinstance(v, ProcessStats)}
        for process in ('picking', 'packing', 'sorting'):
            result[process] = getattr(self, process).to_dict()
        return result


@dataclass
class AnalysisResult:
    """Complete output of one analysis run"""
    records: List[EnrichedShiftRecord] = field(default_factory=list)
    stats: AggregatedStats = field(default_factory=AggregatedStats)
    health: HealthStats = field(default_factory=HealthStats)
    advanced: AdvancedMetrics = field(default_factory=AdvancedMetrics)
    job_timing_metrics: JobTimingMetrics = field(default_factory=JobTimingMetrics)
    user_performance: List[UserPerformanceStats] = field(default_factory=list)
    telemetry: List[TelemetryLog] = field(default_factory=list)
    role_diagnostics: RoleDiagnostics = field(default_factory=RoleDiagnostics)
    job_classification: JobClassification = field(default_factory=JobClassification)
    maturity: MaturityScore = field(default_factory=MaturityScore)

    def summary(self) -> Dict[str, Any]:
        """JSON-friendly overview (no per-record or per-interval detail)"""
        return {
            'records': len(self.records),
            'stats': self.stats.to_dict(),
            'advanced': self.advanced.to_dict(),
            'job_timing_metrics': self.job_timing_metrics.to_dict(),
            'telemetry_events': len(self.telemetry),
            'job_types': {
                archetype.value: {'count': s.count, 'volume': s.volume}
                for archetype, s in self.job_classification.summary.items()
            },
            'classification_metadata': self.job_classification.metadata.to_dict(),
            'maturity': {
                'weighted_score': self.maturity.weighted_score,
                'label': self.maturity.label,
            },
            'top_users': [
                {'rank': u.rank, 'user': u.user, 'uph': u.uph, 'utilization': u.utilization}
                for u in self.user_performance[:10]
            ],
        }


def _validate_inputs(records, config) -> None:
    if not isinstance(records, (list, tuple)):
        raise TypeError(f"records must be a list or tuple of ShiftRecord, got {type(records).__name__}")
    for i, record in enumerate(records):
        if not isinstance(record, ShiftRecord):
            raise TypeError(f"records[{i}] must be a ShiftRecord, got {type(record).__name__}")
    if not isinstance(config, BufferConfig):
        raise TypeError(f"config must be a BufferConfig, got {type(config).__name__}")


def enrich_records(
    records: Sequence[ShiftRecord],
    config: BufferConfig = DEFAULT_BUFFER_CONFIG
) -> Dict[str, Any]:
    """
    Run the per-record passes (sort, normalize, decompose, classify gaps).

    Returns:
        Dictionary with:
        - records: List[EnrichedShiftRecord] sorted by user then start
        - telemetry: List[TelemetryLog]
        - gspt: Optional[float]
        - allowed_buffer_min: float
        - lost_time_min: float
    """
    sorted_records = sort_records(records)
    adjustments = normalize_durations(sorted_records, config.break_threshold_sec)
    gspt, decompositions = decompose_records(sorted_records, adjustments)
    gaps, telemetry = classify_gaps(sorted_records, config)

    enriched = []
    for i, record in enumerate(sorted_records):
        gap = gaps[i]
        enriched.append(EnrichedShiftRecord.from_record(
            record,
            raw_gap=gap.raw_gap,
            net_gap=gap.net_gap,
            gap_type=gap.gap_type,
            is_anomaly=gap.is_anomaly,
            adjusted_duration_sec=adjusted_duration(sorted_records, adjustments, i),
            process_time_sec=decompositions[i].process_time_sec,
            travel_time_sec=decompositions[i].travel_time_sec,
            inter_job_gap_sec=gap.inter_job_gap_sec
        ))

    return {
        'records': enriched,
        'telemetry': telemetry,
        'gspt': gspt,
        'allowed_buffer_min': sum(g.allowed_buffer for g in gaps),
        'lost_time_min': sum(g.net_gap for g in gaps),
    }


def analyze_shift(
    records: Sequence[ShiftRecord],
    config: BufferConfig = DEFAULT_BUFFER_CONFIG
) -> AnalysisResult:
    """
    Analyze a shift export.

    Args:
        records: List of ShiftRecord (may be empty)
        config: Buffer configuration

    Returns:
        AnalysisResult; structurally complete with zero / empty values for
        empty input

    Raises:
        TypeError: If records is not a list/tuple of ShiftRecord or config
                   is not a BufferConfig

    Example:
        >>> result = analyze_shift(records, BufferConfig(intra_job_buffer=2))
        >>> print(f"UPH: {result.stats.uph}, Utilization: {result.stats.utilization}%")
    """
    _validate_inputs(records, config)

    if not records:
        logger.info("No records to analyze")
        return AnalysisResult()

    logger.info(f"Analyzing {len(records)} records")

    enrichment = enrich_records(records, config)
    enriched = enrichment['records']

    process_stats = calculate_all_process_stats(enriched, config)
    global_stats = process_stats['global']
    lost_time = round(enrichment['lost_time_min'], 2)

    stats = AggregatedStats(
        uph=global_stats.uph,
        uph_pure=global_stats.uph_pure,
        uph_hourly_flow=global_stats.uph_hourly_flow,
        productive_uph=global_stats.productive_uph,
        floor_uph=global_stats.floor_uph,
        output_density=global_stats.output_density,
        dynamic_interval_uph=global_stats.dynamic_interval_uph,
        picking=process_stats['picking'],
        packing=process_stats['packing'],
        sorting=process_stats['sorting'],
        tph=global_stats.tph,
        utilization=global_stats.utilization,
        total_volume=global_stats.total_volume,
        total_time_off_task=lost_time,
        total_active_time=global_stats.total_active_time,
        direct_time=global_stats.direct_time,
        allowed_buffer_time=round(enrichment['allowed_buffer_min'], 2),
        lost_time=lost_time,
        distinct_locations=global_stats.distinct_locations,
        locations_per_unit=global_stats.locations_per_unit,
        gspt_sec=enrichment['gspt']
    )

    classification = classify_jobs(enriched, config.utilization_cap)

    result = AnalysisResult(
        records=enriched,
        stats=stats,
        health=calculate_health_stats(enriched),
        advanced=calculate_advanced_metrics(enriched),
        job_timing_metrics=calculate_job_timing_metrics(enriched),
        user_performance=calculate_user_performance(enriched),
        telemetry=enrichment['telemetry'],
        role_diagnostics=calculate_role_diagnostics(enriched),
        job_classification=classification,
        maturity=calculate_maturity_score(classification, config)
    )

    logger.info(
        f"Analysis complete: UPH={stats.uph:.0f}, Utilization={stats.utilization:.1f}%, "
        f"Lost time={stats.lost_time:.1f} min, {len(result.telemetry)} telemetry events"
    )
    return result
