"""
Analysis Context

Responsibilities:
- Defines the Analysis Unit contract (load, analyze, validate, persist)
- Implements the five specialized analyzers
- Defines typed result and evidence schemas

Owns: AnalysisResult, evidence models, analyzer vocabularies
Never: Acquires execution contexts or combines scores across analyses
"""

from typing import Dict, Type

from fitscore.contexts.analysis.base_unit import AnalysisUnit, UnitState
from fitscore.contexts.analysis.certification_analyzer import CertificationAnalyzer
from fitscore.contexts.analysis.education_analyzer import EducationAnalyzer
from fitscore.contexts.analysis.experience_analyzer import ExperienceAnalyzer
from fitscore.contexts.analysis.result_schema import (
    EVIDENCE_SCHEMAS,
    AnalysisResult,
    AnalysisStatus,
    AnalysisType,
)
from fitscore.contexts.analysis.semantic_analyzer import SemanticAnalyzer
from fitscore.contexts.analysis.skill_analyzer import SkillAnalyzer

ANALYZERS: Dict[AnalysisType, Type[AnalysisUnit]] = {
    AnalysisType.SKILL: SkillAnalyzer,
    AnalysisType.EXPERIENCE: ExperienceAnalyzer,
    AnalysisType.EDUCATION: EducationAnalyzer,
    AnalysisType.CERTIFICATION: CertificationAnalyzer,
    AnalysisType.SEMANTIC: SemanticAnalyzer,
}


def default_analyzers() -> Dict[AnalysisType, Type[AnalysisUnit]]:
    """Fresh copy of the standard analyzer registry (safe to modify)."""
    return dict(ANALYZERS)


__all__ = [
    "ANALYZERS",
    "EVIDENCE_SCHEMAS",
    "AnalysisResult",
    "AnalysisStatus",
    "AnalysisType",
    "AnalysisUnit",
    "CertificationAnalyzer",
    "EducationAnalyzer",
    "ExperienceAnalyzer",
    "SemanticAnalyzer",
    "SkillAnalyzer",
    "UnitState",
    "default_analyzers",
]
