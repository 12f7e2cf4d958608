from __future__ import annotations

import pytest

from core.calculations.timing import (
    build_job_envelopes,
    calculate_job_timing_metrics,
    percentile_value,
)


def test_percentile_value_floor_index():
    values = list(range(1, 11))
    assert percentile_value(values, 90) == 10
    assert percentile_value(values, 10) == 2
    assert percentile_value([], 90) == 0.0


def test_envelope_user_is_earliest_task_owner(record_factory):
    envelopes = build_job_envelopes([
        record_factory(5, 10, user="bob"),
        record_factory(0, 3, user="alice"),
        record_factory(12, 20, user="bob"),
    ])
    assert len(envelopes) == 1
    env = envelopes[0]
    assert env.user == "alice"
    assert env.duration_minutes == pytest.approx(20)


def test_job_timing_excludes_cross_day_outliers(record_factory):
    records = [
        record_factory(0, 10, job="J1"),
        record_factory(15, 30, job="J2"),
        record_factory(600, 610, job="J3"),
    ]

    metrics = calculate_job_timing_metrics(records)

    assert metrics.total_jobs_analyzed == 3
    assert metrics.outliers_excluded == 2
    assert metrics.avg_inter_job_gap_min == pytest.approx(5)
    assert metrics.avg_cycle_time_min == pytest.approx(15)
    assert metrics.avg_job_duration_min == pytest.approx(11.67)
    assert metrics.median_job_duration_min == pytest.approx(10)
    assert metrics.p90_job_duration_min == pytest.approx(15)


def test_job_timing_empty():
    metrics = calculate_job_timing_metrics([])
    assert all(v == 0 for v in metrics.to_dict().values())
