"""
Operational Maturity Scoring

Scores a dataset against five adoption phases. Each phase asks one or more
questions scored 0-10; a phase's score is the mean of its questions and the
overall score is the weighted sum of phase scores:

    P1 Batching Intelligence   40%
    P2 Layout Intelligence     20%
    P3 Multi-Client Synergy    15%
    P4 Engineered Standards    10%
    P5 Advanced Flows          15%
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from core.analysis.job_types import ClassificationMetadata, JobArchetype, JobClassification
from core.records.models import BufferConfig
from utils.formatting import round_half_up, safe_div

logger = logging.getLogger(__name__)

JOB_MIX_WEIGHTS = {
    JobArchetype.IDENTICAL_ITEM: 10,
    JobArchetype.IDENTICAL_ORDERS: 9,
    JobArchetype.MIXED_SINGLES: 8,
    JobArchetype.PUT_TO_WALL: 7,
    JobArchetype.COMPLEX: 6,
    JobArchetype.MULTI_ITEM: 5,
    JobArchetype.ORDER_BASED: 1,
}

PHASE_WEIGHTS = {
    'P1': 0.40,
    'P2': 0.20,
    'P3': 0.15,
    'P4': 0.10,
    'P5': 0.15,
}

JOB_MIX_TARGET_INDEX = 6.0
UTILIZATION_TARGET_RATIO = 0.8
WAVE_VOLUME_TARGET = 100


@dataclass
class QuestionResult:
    id: str
    text: str
    answer: str
    value: str
    is_positive: bool
    explanation: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class PhaseScore:
    id: str
    title: str
    score: float = 0.0
    results: List[QuestionResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'score': self.score,
            'results': [r.to_dict() for r in self.results],
        }


@dataclass
class MaturityScore:
    phases: Dict[str, PhaseScore] = field(default_factory=dict)
    weighted_score: float = 0.0
    label: str = "Foundational"
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phases': {pid: p.to_dict() for pid, p in self.phases.items()},
            'weighted_score': self.weighted_score,
            'label': self.label,
            'description': self.description,
        }


def job_mix_index(classification: JobClassification) -> float:
    """Volume-weighted archetype index (10 = identical item, 1 = order based)"""
    weighted = 0.0
    total = 0.0
    for archetype, summary in classification.summary.items():
        weighted += summary.volume * JOB_MIX_WEIGHTS.get(archetype, 0)
        total += summary.volume
    return safe_div(weighted, total)


def _job_mix(classification: JobClassification, metadata: ClassificationMetadata, config: BufferConfig) -> QuestionResult:
    index = job_mix_index(classification)
    total_volume = sum(s.volume for s in classification.summary.values())
    return QuestionResult(
        id='p1_job_mix',
        text='Job Mix: Are you utilizing high-velocity job types?',
        answer=f"{index:.2f} Index",
        value=f"{total_volume:,} Units Evaluated" if total_volume > 0 else 'No Data',
        is_positive=index >= JOB_MIX_TARGET_INDEX,
        explanation=f"Volume-weighted job mix (10=Identical Item, 1=Order Based). Target: >{JOB_MIX_TARGET_INDEX}",
        score=round(index, 2)
    )


def _batch_utilization(classification: JobClassification, metadata: ClassificationMetadata, config: BufferConfig) -> QuestionResult:
    avg = metadata.utilization_target_avg_orders
    capacity = metadata.utilization_standard_capacity or 1
    ratio = avg / capacity
    optimized = ratio >= UTILIZATION_TARGET_RATIO
    return QuestionResult(
        id='p1_utilization',
        text='Under-Utilization: Are batch sizes optimized?',
        answer='Yes' if optimized else 'Potential Waste',
        value=f"{ratio * 100:.2f}% Capacity Used",
        is_positive=optimized,
        explanation=(
            f"Utilization Ratio: {avg:.2f} Avg / {capacity:.2f} Standard Capacity "
            f"(Top {config.utilization_cap} Avg). Target: >{UTILIZATION_TARGET_RATIO:.0%}."
        ),
        score=min(10, round_half_up(ratio * 10))
    )


def _wave_consolidation(classification: JobClassification, metadata: ClassificationMetadata, config: BufferConfig) -> QuestionResult:
    wave_count = metadata.total_waves or 1
    avg_volume = metadata.total_volume / wave_count
    consolidated = avg_volume > WAVE_VOLUME_TARGET
    return QuestionResult(
        id='p1_scheduling',
        text='Scheduling: Is the wave schedule consolidated?',
        answer='Yes' if consolidated else 'Fragmented',
        value=f"{avg_volume:.2f} Units/Wave",
        is_positive=consolidated,
        explanation=f"Divided Total Volume ({metadata.total_volume}) by Total Wave Count ({wave_count}).",
        score=min(10, round_half_up(avg_volume / WAVE_VOLUME_TARGET * 10))
    )


def _layout(classification: JobClassification, metadata: ClassificationMetadata, config: BufferConfig) -> QuestionResult:
    if config.is_2d_layout_used:
        return QuestionResult(
            id='p2_density',
            text='Distance Logic: Is density optimized?',
            answer='Implemented',
            value='2D Layout Active',
            is_positive=True,
            explanation='2D layout logic is active.',
            score=10
        )
    return QuestionResult(
        id='p2_density',
        text='Distance Logic: Is density optimized?',
        answer='N/A',
        value='Config Required',
        is_positive=False,
        explanation='Requires 2D layout configuration.',
        score=0
    )


def _multi_client(classification: JobClassification, metadata: ClassificationMetadata, config: BufferConfig) -> QuestionResult:
    count = metadata.multi_client_job_count
    return QuestionResult(
        id='p3_sharing',
        text='Account Sharing: Are pickers picking for multiple clients in a single trip?',
        answer='Yes' if count > 0 else 'No',
        value=f"{count} Jobs",
        is_positive=count > 0,
        explanation='Jobs containing orders from more than one distinct client.',
        score=10 if count > 0 else 0
    )


def _engineered_standards(classification: JobClassification, metadata: ClassificationMetadata, config: BufferConfig) -> QuestionResult:
    if config.is_engineered_standards_used:
        return QuestionResult(
            id='p4_predict',
            text='Predictive Planning: Is completion time predictable?',
            answer='Implemented',
            value='Standards Active',
            is_positive=True,
            explanation='Engineered labor standards are active.',
            score=10
        )
    return QuestionResult(
        id='p4_predict',
        text='Predictive Planning: Is completion time predictable?',
        answer='N/A',
        value='Config Required',
        is_positive=False,
        explanation='Requires engineered standards configuration.',
        score=0
    )


def _put_to_wall(classification: JobClassification, metadata: ClassificationMetadata, config: BufferConfig) -> QuestionResult:
    count = classification.summary[JobArchetype.PUT_TO_WALL].count
    return QuestionResult(
        id='p5_complex',
        text='Complex Flows: Are you utilizing Put-to-Wall?',
        answer='Yes' if count > 0 else 'No',
        value=f"{count} Jobs",
        is_positive=count > 0,
        explanation='Checked for put-to-wall (sorting) jobs.',
        score=10 if count > 0 else 0
    )


def _mixed_tote(classification: JobClassification, metadata: ClassificationMetadata, config: BufferConfig) -> QuestionResult:
    # No mixed tote signal exists in shift exports
    return QuestionResult(
        id='p5_mixed_tote',
        text='Complex Flows: Are you utilizing Mixed Tote Carts?',
        answer='Not Available',
        value='N/A',
        is_positive=False,
        explanation='Mixed tote cart detection is not available.',
        score=0
    )


PHASES: List[Dict[str, Any]] = [
    {'id': 'P1', 'title': 'Phase 1: Batching Intelligence', 'questions': [_job_mix, _batch_utilization, _wave_consolidation]},
    {'id': 'P2', 'title': 'Phase 2: Layout Intelligence', 'questions': [_layout]},
    {'id': 'P3', 'title': 'Phase 3: Multi-Client Synergy', 'questions': [_multi_client]},
    {'id': 'P4', 'title': 'Phase 4: Engineered Labor Standards', 'questions': [_engineered_standards]},
    {'id': 'P5', 'title': 'Phase 5: Advanced Fulfillment Flows', 'questions': [_put_to_wall, _mixed_tote]},
]


def maturity_label(weighted_score: float) -> Dict[str, str]:
    """Label and description for a weighted maturity score"""
    if weighted_score > 8.5:
        return {'label': 'Elite / Autonomous', 'description': 'Benchmark facility. Operation is fully optimized.'}
    if weighted_score >= 6.0:
        return {'label': 'High-Performing', 'description': 'Modern AI-driven operation with minor manual friction.'}
    if weighted_score >= 3.0:
        return {'label': 'Developing', 'description': 'Transitioning away from legacy WMS constraints.'}
    return {'label': 'Foundational', 'description': 'Relying primarily on manual or basic batching logic.'}


def calculate_maturity_score(classification: JobClassification, config: BufferConfig) -> MaturityScore:
    """
    Score all phases and combine them.

    Args:
        classification: Output of classify_jobs
        config: Supplies the layout / standards flags

    Returns:
        MaturityScore with per-phase detail
    """
    metadata = classification.metadata
    phases: Dict[str, PhaseScore] = {}
    for phase in PHASES:
        results = [question(classification, metadata, config) for question in phase['questions']]
        score = safe_div(sum(r.score for r in results), len(results))
        phases[phase['id']] = PhaseScore(id=phase['id'], title=phase['title'], score=score, results=results)

    weighted = sum(phases[pid].score * weight for pid, weight in PHASE_WEIGHTS.items())
    label = maturity_label(weighted)

    logger.info(f"Maturity score {weighted:.2f} ({label['label']})")
    return MaturityScore(
        phases=phases,
        weighted_score=round(weighted, 2),
        label=label['label'],
        description=label['description']
    )
