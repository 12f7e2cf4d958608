from __future__ import annotations

import pytest

from core.analysis.rollups import (
    calculate_job_code_stats,
    calculate_role_diagnostics,
    calculate_task_duration_audit,
    calculate_task_type_stats,
    calculate_user_performance,
    calculate_wave_stats,
)


def test_job_code_stats_sorted_by_units(record_factory):
    records = [
        record_factory(0, 1, job="J1", order="O1", sku="A", location="L1", quantity=1),
        record_factory(1, 2, job="J2", order="O2", sku="A", location="L1", quantity=3),
        record_factory(2, 3, job="J2", order="O3", sku="B", location="L2", quantity=2, is_ai=True),
    ]

    stats = calculate_job_code_stats(records)

    assert [s.job_code for s in stats] == ["J2", "J1"]
    j2 = stats[0]
    assert j2.total_orders == 2
    assert j2.total_locations == 2
    assert j2.total_skus == 2
    assert j2.total_units == 5
    assert j2.is_ai is True
    assert stats[1].is_ai is False


def test_task_type_stats_counts_mixed_jobs_in_each_type(record_factory):
    records = [
        record_factory(0, 1, job="J1", order="O1", quantity=2, task_type="Picking"),
        record_factory(1, 2, job="J1", order="O2", quantity=2, task_type="Packing"),
        record_factory(2, 3, job="J2", order="O3", quantity=6, task_type="Picking"),
    ]

    stats = {s.task_type: s for s in calculate_task_type_stats(records, calculate_job_code_stats(records))}

    assert stats["Picking"].total_jobs == 2
    assert stats["Picking"].avg_units_per_job == pytest.approx(5.0)
    assert stats["Packing"].total_jobs == 1
    assert stats["Packing"].avg_orders_per_job == pytest.approx(2.0)


def test_wave_stats_numeric_ordering_and_unknown(record_factory):
    records = [
        record_factory(0, 1, job="J1", wave_code="10"),
        record_factory(0, 1, job="J2", wave_code="2", quantity=4),
        record_factory(0, 1, job="J3", wave_code="2", quantity=2, order="O9"),
        record_factory(0, 1, job="J4"),
    ]

    waves = calculate_wave_stats(records)

    assert [w.wave_code for w in waves] == ["2", "10", "Unknown"]
    assert waves[0].total_jobs == 2
    assert waves[0].avg_units == pytest.approx(3.0)


def test_task_duration_audit(record_factory):
    records = [record_factory(i, i + 1 + i, order=f"O{i}") for i in range(10)]

    audit = calculate_task_duration_audit(records)

    assert len(audit) == 1
    row = audit[0]
    # durations 60, 120, ... 600 seconds
    assert row.task_count == 10
    assert row.p10 == pytest.approx(120)
    assert row.avg == pytest.approx(330)
    assert row.median == pytest.approx(330)
    assert row.calculated_travel == pytest.approx(210)


def test_role_diagnostics_exact_task_types(record_factory):
    records = [
        record_factory(0, 1, user="alice", task_type="Picking"),
        record_factory(0, 1, user="bob", task_type="Packing"),
        record_factory(0, 1, user="carol", task_type="Batch Picking"),
    ]

    roles = calculate_role_diagnostics(records)

    assert [p["user"] for p in roles.pickers] == ["alice"]
    assert roles.packers == [{"user": "bob", "reason": "TaskType: Packing"}]


def test_user_performance_ranking(record_factory):
    records = [
        record_factory(0, 60, user="alice", quantity=10),
        record_factory(0, 30, user="bob", quantity=10),
        record_factory(0, 60, user="carol", quantity=10),
    ]

    ranking = calculate_user_performance(records)

    assert [u.user for u in ranking] == ["bob", "alice", "carol"]
    assert [u.rank for u in ranking] == [1, 2, 3]
    assert ranking[0].uph == pytest.approx(20)
    assert ranking[0].utilization == pytest.approx(100)
    assert ranking[1].direct_time == pytest.approx(1.0)
