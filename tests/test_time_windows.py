from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from core.calculations.activity import build_activity_matrix
from core.time_windows.filters import (
    busy_seconds,
    filter_records_by_window,
    merge_adjacent_segments,
    total_span_hours,
    user_spans,
)
from core.time_windows.models import TimeSegment, UserSpan


def test_time_segment_rejects_reversed_range(ts):
    with pytest.raises(ValueError):
        TimeSegment(ts(10), ts(0))


def test_merge_adjacent_segments(ts):
    merged = merge_adjacent_segments([
        TimeSegment(ts(20), ts(30)),
        TimeSegment(ts(0), ts(10)),
        TimeSegment(ts(5), ts(12)),
    ])
    assert [(s.start, s.end) for s in merged] == [(ts(0), ts(12)), (ts(20), ts(30))]


def test_busy_seconds_ignores_negative_durations(record_factory):
    records = [record_factory(0, 10), record_factory(20, 15)]
    assert busy_seconds(records) == pytest.approx(600)


def test_user_spans_and_total(record_factory):
    records = [
        record_factory(0, 10, user="alice"),
        record_factory(50, 60, user="alice"),
        record_factory(0, 30, user="bob"),
    ]
    spans = user_spans(records)
    assert spans["alice"].duration_minutes == pytest.approx(60)
    assert total_span_hours(records) == pytest.approx(1.5)


def test_user_span_clamp():
    start = datetime(2024, 3, 4, 8, 0)
    span = UserSpan("alice", start, start + timedelta(hours=30))
    assert span.clamped(24).duration_hours == pytest.approx(24)
    assert span.clamped(48) is span


def test_filter_records_by_window(record_factory, ts):
    records = [record_factory(0, 1), record_factory(30, 31), record_factory(90, 91)]

    assert len(filter_records_by_window(records, ts(10), ts(60))) == 1
    assert len(filter_records_by_window(records, start=ts(30))) == 2
    assert len(filter_records_by_window(records, end=ts(30))) == 2
    assert len(filter_records_by_window(records)) == 3


def test_activity_matrix(record_factory):
    records = [
        record_factory(0, 30, user="alice", quantity=5),
        record_factory(60, 70, user="alice", quantity=3),
        record_factory(20, 40, user="bob", quantity=2),
    ]

    matrix = build_activity_matrix(records)

    assert list(matrix.columns) == [8, 9]
    assert list(matrix.index) == ["alice", "bob"]
    assert matrix.loc["alice", 8] == 5
    assert matrix.loc["alice", 9] == 3
    assert matrix.loc["bob", 9] == 0


def test_activity_matrix_clamps_long_spans(record_factory):
    records = [
        record_factory(0, 10, user="alice", quantity=4),
        record_factory(30 * 60, 30 * 60 + 10, user="alice", quantity=9),
    ]

    matrix = build_activity_matrix(records)

    assert matrix.values.sum() == 4


def test_activity_matrix_empty():
    assert build_activity_matrix([]).empty
