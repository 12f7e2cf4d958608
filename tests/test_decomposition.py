from __future__ import annotations

from datetime import timedelta

import pytest

from core.calculations.decomposition import (
    calibrate_gspt,
    decompose_records,
    decompose_task,
    required_gspt_samples,
)
from core.records.models import ShiftRecord
from core.records.normalizer import sort_records


def _repeat_picks(ts, count):
    """`count` picks at one location, each with a distinct SKU, durations 1..count seconds."""
    records = []
    for i in range(count):
        start = ts(0) + timedelta(seconds=100 * i)
        records.append(ShiftRecord(
            job_code="J1", order_code=f"O{i}", task_type="Picking", sku=f"SKU{i}",
            location="L1", user="alice", quantity=1,
            start=start, finish=start + timedelta(seconds=i + 1),
        ))
    return records


def test_required_samples_gate():
    assert required_gspt_samples(100) == 30
    assert required_gspt_samples(5000) == 50
    assert required_gspt_samples(3001) == 31


def test_gspt_not_calibrated_below_gate(ts):
    records = sort_records(_repeat_picks(ts, 20))
    assert calibrate_gspt(records, {}) is None


def test_gspt_is_tenth_percentile_of_repeat_picks(ts):
    records = sort_records(_repeat_picks(ts, 40))

    # 39 samples (durations 2..40s); index floor(0.1 * 39) = 3
    gspt, decompositions = decompose_records(records, {})

    assert gspt == pytest.approx(5.0)
    last = decompositions[-1]
    assert last.process_time_sec == pytest.approx(5.0)
    assert last.travel_time_sec == pytest.approx(35.0)


def test_fallback_split_same_location():
    split = decompose_task(100.0, is_picking=True, gspt=None, same_location=True)
    assert split.travel_time_sec == pytest.approx(5.0)
    assert split.process_time_sec == pytest.approx(95.0)


def test_fallback_split_cross_location():
    split = decompose_task(100.0, is_picking=True, gspt=None, same_location=False)
    assert split.travel_time_sec == pytest.approx(70.0)
    assert split.process_time_sec == pytest.approx(30.0)


def test_gspt_caps_process_time():
    split = decompose_task(3.0, is_picking=True, gspt=5.0)
    assert split.process_time_sec == pytest.approx(3.0)
    assert split.travel_time_sec == 0


def test_non_picking_tasks_have_no_travel():
    split = decompose_task(60.0, is_picking=False, gspt=5.0)
    assert split.process_time_sec == 60.0
    assert split.travel_time_sec == 0.0


def test_small_dataset_uses_fallback(record_factory):
    records = sort_records([
        record_factory(0, 1, sku="A"),
        record_factory(1, 2, sku="B"),
        record_factory(2, 3, sku="C", location="L9"),
    ])

    gspt, decompositions = decompose_records(records, {})

    assert gspt is None
    assert decompositions[0].travel_time_sec == pytest.approx(42.0)
    assert decompositions[1].travel_time_sec == pytest.approx(3.0)
    assert decompositions[2].travel_time_sec == pytest.approx(42.0)


def test_fallback_compares_with_previous_task_of_same_job(record_factory):
    records = sort_records([
        record_factory(0, 1, job="J1", location="L1", sku="A"),
        record_factory(1, 2, job="J2", location="L2", sku="B"),
        record_factory(2, 3, job="J1", location="L1", sku="C"),
    ])

    _, decompositions = decompose_records(records, {})

    assert decompositions[1].travel_time_sec == pytest.approx(42.0)
    # J1 returns to L1 after a J2 task in between
    assert decompositions[2].travel_time_sec == pytest.approx(3.0)
