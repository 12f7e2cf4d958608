from __future__ import annotations

from datetime import datetime

import pandas as pd
import pytest

from core.records.models import (
    BufferConfig,
    DEFAULT_BUFFER_CONFIG,
    EnrichedShiftRecord,
    GapType,
    ShiftRecord,
    records_from_dataframe,
    records_to_dataframe,
)


def _export_frame(**overrides):
    data = {
        "JobCode": ["J1", "J1"],
        "OrderCode": ["O1", "O2"],
        "WaveCode": ["W1", None],
        "TaskType": ["Picking", "Picking"],
        "SKU": ["A", "B"],
        "Location": ["L1", "L2"],
        "User": ["alice", "alice"],
        "Quantity": [2, 1],
        "Start": ["2024-03-04T08:00:00", "2024-03-04T08:05:00Z"],
        "Finish": ["2024-03-04T08:02:00", "2024-03-04T08:06:00Z"],
        "IsAI": ["true", "no"],
    }
    data.update(overrides)
    return pd.DataFrame(data)


def test_shift_record_coerces_timestamps_and_quantity():
    record = ShiftRecord(
        job_code="J1", order_code="O1", task_type="Picking", sku="A", location="L1",
        user="alice", quantity="3", start="2024-03-04 08:00:00", finish="2024-03-04T08:01:30",
    )
    assert record.start == datetime(2024, 3, 4, 8, 0, 0)
    assert record.quantity == 3
    assert isinstance(record.quantity, int)
    assert record.duration_sec == 90


def test_negative_duration_is_clamped(record_factory):
    record = record_factory(10, 5)
    assert record.raw_duration_sec == -300
    assert record.duration_sec == 0


@pytest.mark.parametrize("quantity", [-1, "abc", None])
def test_invalid_quantity_rejected(record_factory, quantity):
    with pytest.raises(ValueError):
        record_factory(0, 1, quantity=quantity)


def test_unparseable_timestamp_rejected():
    with pytest.raises(ValueError):
        ShiftRecord(
            job_code="J1", order_code="O1", task_type="Picking", sku="A", location="L1",
            user="alice", quantity=1, start="not a time", finish="2024-03-04T08:00:00",
        )


def test_task_type_flags(record_factory):
    assert record_factory(0, 1, task_type="Picking").is_picking
    assert record_factory(0, 1, task_type="PACKING").is_packing
    assert record_factory(0, 1, task_type="Sort to wall").is_sorting
    assert not record_factory(0, 1, task_type="Replenishment").is_picking


def test_enriched_record_active_seconds_falls_back_to_duration(record_factory):
    base = record_factory(0, 2)
    plain = EnrichedShiftRecord.from_record(base)
    assert plain.gap_type == GapType.FIRST_TASK
    assert plain.active_seconds == 120

    decomposed = EnrichedShiftRecord.from_record(base, process_time_sec=30.0, travel_time_sec=60.0)
    assert decomposed.active_seconds == 90
    assert decomposed.job_code == base.job_code


def test_buffer_config_defaults():
    assert DEFAULT_BUFFER_CONFIG.flow_bucket_interval == 10
    assert DEFAULT_BUFFER_CONFIG.flow_exclude_empty is True
    assert DEFAULT_BUFFER_CONFIG.flow_calculation_method == "interval"
    assert DEFAULT_BUFFER_CONFIG.utilization_cap == 5


@pytest.mark.parametrize(
    "kwargs",
    [
        {"intra_job_buffer": -1},
        {"alert_threshold": -0.5},
        {"flow_bucket_interval": 0},
        {"utilization_cap": 0},
        {"flow_calculation_method": "median"},
    ],
)
def test_buffer_config_validation(kwargs):
    with pytest.raises(ValueError):
        BufferConfig(**kwargs)


def test_records_from_dataframe_maps_export_columns():
    records = records_from_dataframe(_export_frame())
    assert len(records) == 2
    first, second = records
    assert first.job_code == "J1"
    assert first.wave_code == "W1"
    assert first.is_ai is True
    assert second.wave_code is None
    assert second.is_ai is False
    assert second.finish.tzinfo is not None


def test_records_from_dataframe_missing_columns():
    df = _export_frame().drop(columns=["SKU", "User"])
    with pytest.raises(ValueError, match="Missing required columns"):
        records_from_dataframe(df)


def test_records_from_empty_dataframe():
    assert records_from_dataframe(pd.DataFrame()) == []


def test_records_to_dataframe_columns(record_factory):
    df = records_to_dataframe([record_factory(0, 2, quantity=4)])
    assert list(df["quantity"]) == [4]
    assert df.loc[0, "duration_sec"] == 120
    assert df.loc[0, "active_sec"] == 120
    assert "travel_time_sec" in df.columns
