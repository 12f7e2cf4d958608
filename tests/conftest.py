from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from core.records.models import ShiftRecord

BASE_TIME = datetime(2024, 3, 4, 8, 0, 0)


def at(minutes: float) -> datetime:
    """Timestamp `minutes` after 08:00 on the reference shift day."""
    return BASE_TIME + timedelta(minutes=minutes)


def make_record(
    start_min: float,
    finish_min: float,
    *,
    user: str = "alice",
    job: str = "J1",
    order: str = "O1",
    sku: str = "SKU1",
    location: str = "L1",
    task_type: str = "Picking",
    quantity: float = 1,
    **extra,
) -> ShiftRecord:
    return ShiftRecord(
        job_code=job,
        order_code=order,
        task_type=task_type,
        sku=sku,
        location=location,
        user=user,
        quantity=quantity,
        start=at(start_min),
        finish=at(finish_min),
        **extra,
    )


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def mixed_shift():
    """Two pickers and one packer over roughly an hour, two waves."""
    return [
        make_record(0, 2, user="alice", job="J1", order="O1", sku="A", location="L1", quantity=2, wave_code="1"),
        make_record(3, 5, user="alice", job="J1", order="O2", sku="B", location="L2", quantity=1, wave_code="1"),
        make_record(20, 24, user="alice", job="J2", order="O3", sku="C", location="L3", quantity=3, wave_code="2"),
        make_record(0, 3, user="bob", job="J3", order="O4", sku="A", location="L1", quantity=1, wave_code="2"),
        make_record(4, 6, user="bob", job="J3", order="O5", sku="D", location="L4", quantity=1, wave_code="2"),
        make_record(10, 15, user="carol", job="J4", order="O1", sku="A", location="PACK1",
                    task_type="Packing", quantity=2, wave_code="1"),
        make_record(40, 42, user="carol", job="J5", order="O3", sku="C", location="PACK1",
                    task_type="Packing", quantity=3, wave_code="2"),
    ]


@pytest.fixture
def ts():
    return at
