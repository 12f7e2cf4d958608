"""
Job-Type Classifier

Assigns every job one operational archetype using a strict decision list
(first match wins):

1. PUT_TO_WALL       - any task type mentions "sort" or "wall"
2. IDENTICAL_ITEM    - one SKU in the whole job, every order has one SKU, > 1 order
3. MIXED_SINGLES     - every order is exactly 1 SKU x 1 unit, >= 2 orders
4. IDENTICAL_ORDERS  - every order has the same SKU:qty signature, >= 2 orders
5. ORDER_BASED       - exactly one order
6. MULTI_ITEM        - more than one order
7. COMPLEX           - anything else

Rules 3 and 4 overlap for some jobs; the order above is what decides.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Sequence

from core.records.models import ShiftRecord
from utils.formatting import safe_div

logger = logging.getLogger(__name__)

DEFAULT_STANDARD_CAPACITY = 1.0


class JobArchetype(str, Enum):
    PUT_TO_WALL = "PUT_TO_WALL"
    IDENTICAL_ITEM = "IDENTICAL_ITEM"
    MIXED_SINGLES = "MIXED_SINGLES"
    IDENTICAL_ORDERS = "IDENTICAL_ORDERS"
    ORDER_BASED = "ORDER_BASED"
    MULTI_ITEM = "MULTI_ITEM"
    COMPLEX = "COMPLEX"


# Archetypes where small batches indicate under-utilized capacity
UTILIZATION_TARGET_TYPES = frozenset({
    JobArchetype.PUT_TO_WALL,
    JobArchetype.MIXED_SINGLES,
    JobArchetype.MULTI_ITEM,
    JobArchetype.COMPLEX,
})


@dataclass
class OrderProfile:
    """SKU -> quantity contents of one order within a job"""
    skus: Dict[str, float] = field(default_factory=dict)

    @property
    def total_units(self) -> float:
        return sum(self.skus.values())

    @property
    def total_skus(self) -> int:
        return len(self.skus)

    @property
    def signature(self) -> str:
        """Order contents as 'SKU:qty|SKU:qty' sorted by SKU"""
        return '|'.join(f"{sku}:{qty}" for sku, qty in sorted(self.skus.items()))


@dataclass
class JobProfile:
    """Everything the classifier needs to know about one job"""
    job_code: str
    task_types: set = field(default_factory=set)
    skus: set = field(default_factory=set)
    locations: set = field(default_factory=set)
    clients: set = field(default_factory=set)
    orders: Dict[str, OrderProfile] = field(default_factory=dict)

    @property
    def order_count(self) -> int:
        return len(self.orders)

    @property
    def volume(self) -> float:
        return sum(o.total_units for o in self.orders.values())

    @property
    def has_sorting(self) -> bool:
        return any('sort' in t.lower() or 'wall' in t.lower() for t in self.task_types)


@dataclass
class ArchetypeSummary:
    count: int = 0
    volume: float = 0
    jobs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'count': self.count, 'volume': self.volume, 'jobs': list(self.jobs)}


@dataclass
class ClassificationMetadata:
    """Dataset-level figures consumed by maturity scoring"""
    total_waves: int = 0
    total_volume: float = 0
    avg_units_per_job: float = 0.0
    visits_per_unit: float = 0.0
    multi_client_job_count: int = 0
    utilization_target_avg_orders: float = 0.0
    utilization_standard_capacity: float = DEFAULT_STANDARD_CAPACITY

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class JobClassification:
    """Per-job archetypes plus per-archetype summary"""
    job_types: Dict[str, JobArchetype] = field(default_factory=dict)
    summary: Dict[JobArchetype, ArchetypeSummary] = field(
        default_factory=lambda: {a: ArchetypeSummary() for a in JobArchetype}
    )
    metadata: ClassificationMetadata = field(default_factory=ClassificationMetadata)

    @property
    def total_jobs(self) -> int:
        return len(self.job_types)


def build_job_profiles(records: Sequence[ShiftRecord]) -> Dict[str, JobProfile]:
    """Group records by job code into JobProfiles (insertion ordered)"""
    jobs: Dict[str, JobProfile] = {}
    for r in records:
        job = jobs.get(r.job_code)
        if job is None:
            job = jobs[r.job_code] = JobProfile(job_code=r.job_code)
        if r.task_type:
            job.task_types.add(r.task_type)
        job.skus.add(r.sku)
        job.locations.add(r.location)
        if r.client:
            job.clients.add(r.client)

        order = job.orders.setdefault(r.order_code, OrderProfile())
        order.skus[r.sku] = order.skus.get(r.sku, 0) + r.quantity
    return jobs


def classify_job(job: JobProfile) -> JobArchetype:
    """
    Classify a single job.

    Args:
        job: JobProfile built from the job's records

    Returns:
        The first archetype whose rule matches
    """
    orders = list(job.orders.values())
    order_count = len(orders)
    all_single_sku = all(o.total_skus == 1 for o in orders)
    all_single_unit = all(o.total_skus == 1 and o.total_units == 1 for o in orders)
    identical_orders = len({o.signature for o in orders}) == 1

    if job.has_sorting:
        return JobArchetype.PUT_TO_WALL
    if len(job.skus) == 1 and all_single_sku and order_count > 1:
        return JobArchetype.IDENTICAL_ITEM
    if all_single_unit and order_count >= 2:
        return JobArchetype.MIXED_SINGLES
    if identical_orders and order_count >= 2:
        return JobArchetype.IDENTICAL_ORDERS
    if order_count == 1:
        return JobArchetype.ORDER_BASED
    if order_count > 1:
        return JobArchetype.MULTI_ITEM
    return JobArchetype.COMPLEX


def classify_jobs(records: Sequence[ShiftRecord], utilization_cap: int = 5) -> JobClassification:
    """
    Classify every job and build the archetype summary and metadata.

    Args:
        records: Shift records
        utilization_cap: Number of largest target-scope jobs (by order count)
                         averaged into the standard batch capacity

    Returns:
        JobClassification (empty summary counts for empty input)
    """
    result = JobClassification()
    jobs = build_job_profiles(records)
    if not jobs:
        return result

    total_units = sum(r.quantity for r in records)
    waves = {r.wave_code for r in records if r.wave_code}
    unique_visits = 0
    multi_client = 0
    target_order_counts: List[int] = []

    for job_code, job in jobs.items():
        archetype = classify_job(job)
        result.job_types[job_code] = archetype

        summary = result.summary[archetype]
        summary.count += 1
        summary.volume += job.volume
        summary.jobs.append(job_code)

        unique_visits += len(job.locations)
        if len(job.clients) > 1:
            multi_client += 1
        if archetype in UTILIZATION_TARGET_TYPES:
            target_order_counts.append(job.order_count)

        logger.debug(f"Job {job_code}: {archetype.value} ({job.order_count} orders, {len(job.skus)} SKUs)")

    top = sorted(target_order_counts, reverse=True)[:utilization_cap]
    result.metadata = ClassificationMetadata(
        total_waves=len(waves),
        total_volume=total_units,
        avg_units_per_job=safe_div(total_units, len(jobs)),
        visits_per_unit=safe_div(unique_visits, total_units),
        multi_client_job_count=multi_client,
        utilization_target_avg_orders=safe_div(sum(target_order_counts), len(target_order_counts)),
        utilization_standard_capacity=(sum(top) / len(top)) if top else DEFAULT_STANDARD_CAPACITY
    )

    logger.info(
        f"Classified {len(jobs)} jobs: " +
        ", ".join(f"{a.value}={s.count}" for a, s in result.summary.items() if s.count)
    )
    return result
