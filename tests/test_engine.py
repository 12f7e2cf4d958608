from __future__ import annotations

import pytest

from core.analysis.engine import AnalysisResult, analyze_shift
from core.records.models import BufferConfig, EnrichedShiftRecord, GapType, ShiftRecord


def _numeric_values(mapping):
    for value in mapping.values():
        if isinstance(value, dict):
            yield from _numeric_values(value)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            yield value


def test_empty_input_returns_complete_zero_result():
    result = analyze_shift([], BufferConfig())

    assert isinstance(result, AnalysisResult)
    assert result.records == []
    assert result.telemetry == []
    assert result.user_performance == []
    assert result.health.job_code_stats == []
    assert result.health.wave_stats == []
    assert result.role_diagnostics.pickers == []
    assert result.stats.gspt_sec is None
    assert all(v == 0 for v in _numeric_values(result.stats.to_dict()))
    assert all(v == 0 for v in result.advanced.to_dict().values())
    assert result.job_timing_metrics.total_jobs_analyzed == 0


@pytest.mark.parametrize("records", ["not records", None, {"a": 1}, [1, 2]])
def test_invalid_records_raise_type_error(records):
    with pytest.raises(TypeError):
        analyze_shift(records, BufferConfig())


def test_invalid_config_raises_type_error(record_factory):
    with pytest.raises(TypeError):
        analyze_shift([record_factory(0, 1)], {"intra_job_buffer": 2})


def test_gap_enrichment_and_lost_time(record_factory):
    records = [record_factory(15, 20, order="O2"), record_factory(0, 10)]

    result = analyze_shift(records, BufferConfig(intra_job_buffer=2))

    assert all(isinstance(r, EnrichedShiftRecord) for r in result.records)
    first, second = result.records
    assert first.start < second.start
    assert second.gap_type == GapType.INTRA_JOB
    assert second.raw_gap == pytest.approx(5)
    assert second.net_gap == pytest.approx(3)
    assert result.stats.lost_time == pytest.approx(3)
    assert result.stats.total_time_off_task == pytest.approx(3)
    assert result.stats.allowed_buffer_time == pytest.approx(2)


def test_overlap_reaches_telemetry(record_factory):
    result = analyze_shift([record_factory(0, 10), record_factory(5, 15, order="O2")])
    assert len(result.telemetry) == 1
    assert result.records[1].gap_type == GapType.OVERLAP
    assert result.records[1].net_gap == 0


def test_batch_conservation_through_engine(record_factory):
    records = [
        record_factory(0, 1, order="O1"),
        record_factory(1, 2, order="O2"),
        record_factory(5, 9, order="O3"),
    ]

    result = analyze_shift(records)

    assert sum(r.adjusted_duration_sec for r in result.records) == pytest.approx(9 * 60)
    for r in result.records:
        assert r.process_time_sec + r.travel_time_sec == pytest.approx(r.adjusted_duration_sec)


def test_mixed_shift_end_to_end(mixed_shift):
    result = analyze_shift(mixed_shift, BufferConfig())

    stats = result.stats
    assert stats.total_volume == 13
    assert stats.picking.total_volume == 8
    assert stats.packing.total_volume == 5
    assert stats.sorting.total_tasks == 0
    assert stats.gspt_sec is None
    assert 0 < stats.utilization <= 100

    health = result.health
    assert health.total_jobs == 5
    assert health.total_distinct_employees == 3
    assert health.unique_pickers == 2
    assert health.unique_packers == 1
    assert health.total_orders == 5
    assert health.single_item_orders == 3
    assert health.multi_item_orders == 2
    assert [w.wave_code for w in health.wave_stats] == ["1", "2"]

    assert [u.rank for u in result.user_performance] == [1, 2, 3]
    assert result.job_classification.total_jobs == 5
    assert result.maturity.label == "Foundational"
    assert result.advanced.pick_to_pack_sync_min == pytest.approx(((10 - 5) + (40 - 24)) / 2)


def test_analysis_is_deterministic(mixed_shift):
    first = analyze_shift(mixed_shift)
    second = analyze_shift(list(reversed(mixed_shift)))
    assert first.summary() == second.summary()
    assert first.records == second.records


def test_dst_crossing_timestamps_are_analyzed():
    def pick(start, finish, order):
        return ShiftRecord(
            job_code="J1", order_code=order, task_type="Picking", sku="A", location="L1",
            user="alice", quantity=1, start=start, finish=finish,
        )

    records = [
        pick("2024-03-31T01:50:00+01:00", "2024-03-31T01:55:00+01:00", "O1"),
        pick("2024-03-31T03:05:00+02:00", "2024-03-31T03:10:00+02:00", "O2"),
    ]

    result = analyze_shift(records, BufferConfig())

    assert result.stats.total_volume == 2
    assert result.stats.picking.total_tasks == 2
    assert len(result.stats.picking.flow_details.intervals) == 3
