"""
Shift Record Models

Input records (one row per physical pick, pack or sort task), their enriched
counterpart produced by the analysis pass, telemetry entries and the buffer
configuration supplied by the caller.
"""

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from utils.formatting import coerce_timestamp, seconds_between

logger = logging.getLogger(__name__)


FLOW_METHOD_INTERVAL = "interval"
FLOW_METHOD_USER_DAILY_AVERAGE = "user_daily_average"
FLOW_METHODS = (FLOW_METHOD_INTERVAL, FLOW_METHOD_USER_DAILY_AVERAGE)

# Export column name -> ShiftRecord attribute
COLUMN_MAP = {
    'JobCode': 'job_code',
    'OrderCode': 'order_code',
    'WaveCode': 'wave_code',
    'TaskType': 'task_type',
    'SKU': 'sku',
    'Location': 'location',
    'Zone': 'zone',
    'User': 'user',
    'Client': 'client',
    'JobType': 'job_type',
    'Quantity': 'quantity',
    'Start': 'start',
    'Finish': 'finish',
    'IsAI': 'is_ai',
    'Account': 'account',
    'Warehouse': 'warehouse',
}

REQUIRED_COLUMNS = ['JobCode', 'OrderCode', 'TaskType', 'SKU', 'Location', 'User', 'Quantity', 'Start', 'Finish']


class GapType(str, Enum):
    """Classification of the idle time preceding a task on a user's timeline."""
    FIRST_TASK = "FIRST_TASK"
    INTRA_JOB = "INTRA_JOB"
    TRANSITION = "TRANSITION"
    OVERLAP = "OVERLAP"


@dataclass(frozen=True)
class ShiftRecord:
    """
    One physical task execution as exported by the WMS.

    Timestamps are coerced to datetime on construction. Finish may precede
    Start in dirty exports; consumers clamp the resulting duration to zero.
    """
    job_code: str
    order_code: str
    task_type: str
    sku: str
    location: str
    user: str
    quantity: float
    start: datetime
    finish: datetime
    job_type: str = ""
    wave_code: Optional[str] = None
    zone: Optional[str] = None
    client: Optional[str] = None
    is_ai: bool = False
    account: Optional[str] = None
    warehouse: Optional[str] = None

    def __post_init__(self):
        """Validate and coerce field types"""
        object.__setattr__(self, 'start', coerce_timestamp(self.start))
        object.__setattr__(self, 'finish', coerce_timestamp(self.finish))

        try:
            quantity = float(self.quantity)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Quantity must be numeric, got {self.quantity!r}") from e
        if pd.isna(quantity) or quantity < 0:
            raise ValueError(f"Quantity must be >= 0, got {self.quantity!r}")
        if quantity.is_integer():
            quantity = int(quantity)
        object.__setattr__(self, 'quantity', quantity)

        for name in ('job_code', 'order_code', 'task_type', 'sku', 'location', 'user', 'job_type'):
            value = getattr(self, name)
            object.__setattr__(self, name, "" if value is None else str(value))

    @property
    def raw_duration_sec(self) -> float:
        """Finish - Start in seconds (may be negative)"""
        return seconds_between(self.start, self.finish)

    @property
    def duration_sec(self) -> float:
        """Finish - Start in seconds, clamped to zero"""
        return max(0.0, self.raw_duration_sec)

    @property
    def task_type_lower(self) -> str:
        return self.task_type.lower()

    @property
    def is_picking(self) -> bool:
        return 'pick' in self.task_type_lower

    @property
    def is_packing(self) -> bool:
        return 'pack' in self.task_type_lower

    @property
    def is_sorting(self) -> bool:
        return 'sort' in self.task_type_lower


@dataclass(frozen=True)
class EnrichedShiftRecord(ShiftRecord):
    """
    ShiftRecord plus the gap classification and time decomposition computed
    by a single analysis run.

    raw_gap and net_gap are in minutes. The decomposition fields are optional;
    use active_seconds which falls back to Finish - Start when they are absent.
    """
    raw_gap: float = 0.0
    net_gap: float = 0.0
    gap_type: GapType = GapType.FIRST_TASK
    is_anomaly: bool = False
    adjusted_duration_sec: Optional[float] = None
    process_time_sec: Optional[float] = None
    travel_time_sec: Optional[float] = None
    inter_job_gap_sec: Optional[float] = None

    @classmethod
    def from_record(cls, record: ShiftRecord, **enrichment) -> 'EnrichedShiftRecord':
        """Copy a ShiftRecord and attach enrichment fields"""
        base = {f.name: getattr(record, f.name) for f in fields(ShiftRecord)}
        return cls(**base, **enrichment)

    @property
    def active_seconds(self) -> float:
        """Process + travel time, or the clamped raw duration if not decomposed"""
        if self.process_time_sec is None and self.travel_time_sec is None:
            return self.duration_sec
        return (self.process_time_sec or 0.0) + (self.travel_time_sec or 0.0)


@dataclass(frozen=True)
class TelemetryLog:
    """Data-quality event detected during the analysis pass"""
    user: str
    timestamp: datetime
    type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user': self.user,
            'timestamp': self.timestamp,
            'type': self.type,
            'message': self.message,
        }


@dataclass(frozen=True)
class BufferConfig:
    """
    Caller supplied tolerances and flow settings.

    Buffers and thresholds are in minutes. break_threshold_sec is the idle gap
    length treated as a break when reconstructing sort blocks and productive time.
    """
    intra_job_buffer: float = 0.0
    job_transition_buffer: float = 0.0
    alert_threshold: float = 10.0
    flow_bucket_interval: int = 10
    flow_exclude_empty: bool = True
    flow_calculation_method: str = FLOW_METHOD_INTERVAL
    utilization_cap: int = 5
    break_threshold_sec: float = 300.0
    is_2d_layout_used: bool = False
    is_engineered_standards_used: bool = False
    timezone: Optional[str] = None

    def __post_init__(self):
        """Validate configuration values"""
        for name in ('intra_job_buffer', 'job_transition_buffer', 'alert_threshold', 'break_threshold_sec'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")

        if self.flow_bucket_interval <= 0:
            raise ValueError(
                f"flow_bucket_interval must be positive, got {self.flow_bucket_interval}"
            )

        if self.utilization_cap <= 0:
            raise ValueError(f"utilization_cap must be positive, got {self.utilization_cap}")

        if self.flow_calculation_method not in FLOW_METHODS:
            raise ValueError(
                f"Invalid flow_calculation_method: '{self.flow_calculation_method}'. "
                f"Must be one of: {list(FLOW_METHODS)}"
            )


DEFAULT_BUFFER_CONFIG = BufferConfig()


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return False
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in ('true', 'yes', '1')


def _optional_str(value) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return str(value)


def records_from_dataframe(df: pd.DataFrame) -> List[ShiftRecord]:
    """
    Convert an export DataFrame (WMS column names) into ShiftRecords.

    Args:
        df: DataFrame with at least the REQUIRED_COLUMNS

    Returns:
        List of ShiftRecord in DataFrame row order

    Raises:
        ValueError: If required columns are missing or a row is invalid
    """
    if df.empty:
        return []

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(
            f"Missing required columns: {missing}. "
            f"Available columns: {list(df.columns)}"
        )

    records = []
    for row in df.to_dict(orient='records'):
        kwargs = {attr: row[col] for col, attr in COLUMN_MAP.items() if col in row}
        for attr in ('wave_code', 'zone', 'client', 'account', 'warehouse'):
            if attr in kwargs:
                kwargs[attr] = _optional_str(kwargs[attr])
        if 'is_ai' in kwargs:
            kwargs['is_ai'] = parse_bool(kwargs['is_ai'])
        if 'job_type' in kwargs and _optional_str(kwargs['job_type']) is None:
            kwargs['job_type'] = ""
        records.append(ShiftRecord(**kwargs))

    logger.info(f"Converted {len(records)} rows into shift records")
    return records


def records_to_dataframe(records: Iterable[ShiftRecord]) -> pd.DataFrame:
    """
    Build a DataFrame with one row per record for pandas aggregation.

    Columns: the ShiftRecord attributes plus duration_sec, and for enriched
    records active_sec / process_time_sec / travel_time_sec.
    """
    columns = [f.name for f in fields(ShiftRecord)] + [
        'duration_sec', 'active_sec', 'process_time_sec', 'travel_time_sec'
    ]

    rows = []
    for r in records:
        row = {f.name: getattr(r, f.name) for f in fields(ShiftRecord)}
        row['duration_sec'] = r.duration_sec
        if isinstance(r, EnrichedShiftRecord):
            row['active_sec'] = r.active_seconds
            row['process_time_sec'] = r.process_time_sec
            row['travel_time_sec'] = r.travel_time_sec
        else:
            row['active_sec'] = r.duration_sec
            row['process_time_sec'] = None
            row['travel_time_sec'] = None
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)
