"""
Typed result schemas for the Analysis context.

Every analyzer returns a raw dict. AnalysisUnit.validate() turns it into an
AnalysisResult whose evidence is one of the pydantic models below (a tagged
union keyed by AnalysisType). Evidence models are strict and forbid unknown
fields, so a renamed or mistyped field fails validation instead of silently
flowing into stored results.
"""

import math
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict

from fitscore.exceptions import ErrorKind


class AnalysisType(str, Enum):
    """The five specialized analyses."""

    SKILL = "skill"
    EXPERIENCE = "experience"
    EDUCATION = "education"
    CERTIFICATION = "certification"
    SEMANTIC = "semantic"


class AnalysisStatus(str, Enum):
    """Outcome of one analysis task."""

    SUCCESS = "Success"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


# =============================================================================
# EVIDENCE MODELS
# =============================================================================


class EvidenceModel(BaseModel):
    """Base for per-analyzer evidence: strict, closed, immutable."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)


class SkillEvidence(EvidenceModel):
    matched_skills: List[str]
    missing_skills: List[str]
    matched_count: int
    required_count: int
    match_percentage: float
    # job skill -> resume skill it was matched to by similarity
    fuzzy_matches: Dict[str, str]


class ExperienceEvidence(EvidenceModel):
    candidate_years: float
    required_years: float
    meets_requirement: bool
    overqualified: bool
    score_reason: str
    job_count: int
    average_tenure_years: float
    career_direction: str
    stability: str


class EducationEvidence(EvidenceModel):
    candidate_degree: str
    candidate_tier: int
    required_degree: str
    required_tier: int
    meets_requirement: bool
    field_of_study: Optional[str]
    field_relevance: float
    score_reason: str


class CertificationEvidence(EvidenceModel):
    candidate_certifications: List[str]
    required_certifications: List[str]
    matched_certifications: List[str]
    missing_certifications: List[str]
    match_percentage: float
    has_critical_certs: bool
    certification_value: int
    score_reason: str


class SemanticEvidence(EvidenceModel):
    similarity: float
    top_keywords: List[str]
    covered_keywords: List[str]
    keyword_coverage: float
    embedding_dim: int


EVIDENCE_SCHEMAS: Dict[AnalysisType, Type[EvidenceModel]] = {
    AnalysisType.SKILL: SkillEvidence,
    AnalysisType.EXPERIENCE: ExperienceEvidence,
    AnalysisType.EDUCATION: EducationEvidence,
    AnalysisType.CERTIFICATION: CertificationEvidence,
    AnalysisType.SEMANTIC: SemanticEvidence,
}


# =============================================================================
# ANALYSIS RESULT
# =============================================================================


@dataclass(frozen=True)
class AnalysisResult:
    """
    Outcome of one analysis task.

    Successful results carry a score in [0, 100] and typed evidence. Failed and
    TimedOut results carry an error description and never a score.

    Attributes:
        analysis_type: Analysis that produced the result
        status: Success, Failed or TimedOut
        score: 0-100 (Success only)
        evidence: Typed evidence model (Success only)
        timing_ms: Wall time spent in the unit
        error: Failure description (Failed/TimedOut only)
        error_kind: Machine-readable failure class
        context_id: Execution context the unit ran in, if one was acquired
        persisted: Whether the result was durably stored
        persist_error: Why storing failed, for Success results that were not persisted
    """

    analysis_type: AnalysisType
    status: AnalysisStatus
    score: Optional[float] = None
    evidence: Optional[EvidenceModel] = None
    timing_ms: float = 0.0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    context_id: Optional[str] = None
    persisted: bool = False
    persist_error: Optional[str] = None

    def __post_init__(self):
        if self.status is AnalysisStatus.SUCCESS:
            if not _is_valid_score(self.score):
                raise ValueError(f"Successful {self.analysis_type.value} result needs a 0-100 score, got {self.score!r}")
            if self.evidence is None:
                raise ValueError(f"Successful {self.analysis_type.value} result needs evidence")
            if self.error is not None:
                raise ValueError("Successful results cannot carry an error")
        else:
            if self.score is not None or self.evidence is not None:
                raise ValueError(f"{self.status.value} results cannot carry a score or evidence")
            if not self.error:
                raise ValueError(f"{self.status.value} results need an error description")

    @classmethod
    def failure(
        cls,
        analysis_type: AnalysisType,
        error: str,
        error_kind: ErrorKind,
        context_id: Optional[str] = None,
        timing_ms: float = 0.0,
    ) -> "AnalysisResult":
        """Build a Failed (or TimedOut, for timeout errors) result."""
        status = (
            AnalysisStatus.TIMED_OUT
            if error_kind is ErrorKind.TIMEOUT_EXCEEDED
            else AnalysisStatus.FAILED
        )
        return cls(
            analysis_type=analysis_type,
            status=status,
            error=error,
            error_kind=error_kind,
            context_id=context_id,
            timing_ms=timing_ms,
        )

    @property
    def is_success(self) -> bool:
        return self.status is AnalysisStatus.SUCCESS

    def with_changes(self, **changes) -> "AnalysisResult":
        return replace(self, **changes)

    def evidence_dict(self) -> Optional[Dict[str, Any]]:
        return self.evidence.model_dump() if self.evidence is not None else None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation."""
        data = asdict(self)
        data["analysis_type"] = self.analysis_type.value
        data["status"] = self.status.value
        data["error_kind"] = self.error_kind.value if self.error_kind else None
        data["evidence"] = self.evidence_dict()
        return data


def _is_valid_score(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and 0 <= value <= 100
