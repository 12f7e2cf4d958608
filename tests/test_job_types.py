from __future__ import annotations

import pytest

from core.analysis.job_types import JobArchetype, build_job_profiles, classify_job, classify_jobs


def _classify(records):
    profiles = build_job_profiles(records)
    assert len(profiles) == 1
    return classify_job(next(iter(profiles.values())))


def test_sorting_task_means_put_to_wall(record_factory):
    records = [
        record_factory(0, 1, order="O1", sku="A", task_type="Picking"),
        record_factory(1, 2, order="O1", sku="A", task_type="Put Wall"),
    ]
    assert _classify(records) == JobArchetype.PUT_TO_WALL


def test_identical_item_checked_before_mixed_singles(record_factory):
    # Two single-unit orders of the same SKU also satisfy the mixed singles rule
    records = [
        record_factory(0, 1, order="O1", sku="A"),
        record_factory(1, 2, order="O2", sku="A"),
    ]
    assert _classify(records) == JobArchetype.IDENTICAL_ITEM


def test_mixed_singles(record_factory):
    records = [
        record_factory(0, 1, order="O1", sku="A"),
        record_factory(1, 2, order="O2", sku="B"),
    ]
    assert _classify(records) == JobArchetype.MIXED_SINGLES


def test_identical_orders(record_factory):
    records = [
        record_factory(0, 1, order="O1", sku="A", quantity=1),
        record_factory(1, 2, order="O1", sku="B", quantity=2),
        record_factory(2, 3, order="O2", sku="B", quantity=2),
        record_factory(3, 4, order="O2", sku="A", quantity=1),
    ]
    assert _classify(records) == JobArchetype.IDENTICAL_ORDERS


def test_order_based(record_factory):
    records = [
        record_factory(0, 1, order="O1", sku="A"),
        record_factory(1, 2, order="O1", sku="B", quantity=3),
    ]
    assert _classify(records) == JobArchetype.ORDER_BASED


def test_multi_item(record_factory):
    records = [
        record_factory(0, 1, order="O1", sku="A"),
        record_factory(1, 2, order="O1", sku="B"),
        record_factory(2, 3, order="O2", sku="C", quantity=2),
    ]
    assert _classify(records) == JobArchetype.MULTI_ITEM


def test_classify_jobs_summary_and_metadata(record_factory):
    records = [
        # MIXED_SINGLES, two clients
        record_factory(0, 1, job="J1", order="O1", sku="A", location="L1", client="C1", wave_code="W1"),
        record_factory(1, 2, job="J1", order="O2", sku="B", location="L2", client="C2", wave_code="W1"),
        # ORDER_BASED
        record_factory(2, 3, job="J2", order="O3", sku="C", location="L3", quantity=4, wave_code="W2"),
        # MULTI_ITEM with three orders
        record_factory(3, 4, job="J3", order="O4", sku="A", location="L1", quantity=2),
        record_factory(4, 5, job="J3", order="O5", sku="B", location="L2"),
        record_factory(5, 6, job="J3", order="O6", sku="C", location="L3"),
    ]

    result = classify_jobs(records, utilization_cap=1)

    assert result.job_types == {
        "J1": JobArchetype.MIXED_SINGLES,
        "J2": JobArchetype.ORDER_BASED,
        "J3": JobArchetype.MULTI_ITEM,
    }
    assert result.total_jobs == 3
    assert result.summary[JobArchetype.MULTI_ITEM].volume == 4
    assert result.summary[JobArchetype.ORDER_BASED].jobs == ["J2"]
    assert sum(s.count for s in result.summary.values()) == 3

    meta = result.metadata
    assert meta.total_waves == 2
    assert meta.total_volume == 10
    assert meta.multi_client_job_count == 1
    assert meta.visits_per_unit == pytest.approx(6 / 10)
    assert meta.utilization_target_avg_orders == pytest.approx(2.5)
    assert meta.utilization_standard_capacity == pytest.approx(3)


def test_classify_jobs_empty():
    result = classify_jobs([])
    assert result.total_jobs == 0
    assert all(s.count == 0 for s in result.summary.values())
    assert result.metadata.utilization_standard_capacity == 1.0
