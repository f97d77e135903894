"""
Education analyzer: highest degree against the job's requirement.

Levels are tiers 0-5 (none, high school, associate, bachelor, master,
doctorate). Meeting the required tier scores 100 (95 when the field of study
is not technical), exceeding it scores 100, and each level of shortfall costs
25 points down to a floor of 25. Jobs without a requirement score 100.
"""

from typing import Any, Dict, Optional, Tuple

from fitscore.contexts.analysis.base_unit import AnalysisUnit, job_text
from fitscore.contexts.analysis.result_schema import AnalysisType
from fitscore.contexts.analysis.taxonomy import (
    TIER_NAMES,
    education_tier,
    education_tier_in_text,
    find_tech_field,
)

SHORTFALL_SCORES = {1: 75.0, 2: 50.0}
MIN_SHORTFALL_SCORE = 25.0
NON_TECH_FIELD_PENALTY = 5.0


def education_score(candidate_tier: int, required_tier: int, field_relevant: bool) -> float:
    if required_tier == 0:
        return 100.0
    if candidate_tier == required_tier:
        return 100.0 if field_relevant else 100.0 - NON_TECH_FIELD_PENALTY
    if candidate_tier > required_tier:
        return 100.0
    return SHORTFALL_SCORES.get(required_tier - candidate_tier, MIN_SHORTFALL_SCORE)


class EducationAnalyzer(AnalysisUnit):
    analysis_type = AnalysisType.EDUCATION

    def analyze(self, resume: Dict[str, Any], job: Dict[str, Any]) -> Dict[str, Any]:
        candidate_tier = self._candidate_tier(resume)
        required_tier = self._required_tier(job)
        field, relevance = self._field_relevance(resume, job)

        if required_tier == 0:
            reason = "No specific education requirement"
        elif candidate_tier == required_tier:
            reason = f"Meets requirement: {TIER_NAMES[candidate_tier]}" + (" in a relevant field" if relevance else "")
        elif candidate_tier > required_tier:
            reason = f"Exceeds requirement: {TIER_NAMES[candidate_tier]} ({TIER_NAMES[required_tier]} required)"
        else:
            gap = required_tier - candidate_tier
            reason = (
                f"Below requirement: {TIER_NAMES[candidate_tier]} "
                f"({TIER_NAMES[required_tier]} required, {gap} level gap)"
            )

        return {
            "score": education_score(candidate_tier, required_tier, relevance > 0),
            "evidence": {
                "candidate_degree": TIER_NAMES[candidate_tier] if candidate_tier else "Unknown",
                "candidate_tier": candidate_tier,
                "required_degree": TIER_NAMES[required_tier] if required_tier else "None Required",
                "required_tier": required_tier,
                "meets_requirement": candidate_tier >= required_tier,
                "field_of_study": field,
                "field_relevance": relevance,
                "score_reason": reason,
            },
        }

    def _candidate_tier(self, resume: Dict[str, Any]) -> int:
        level = resume.get("education_level")
        if isinstance(level, str) and education_tier(level):
            return education_tier(level)

        education = resume.get("education")
        if isinstance(education, str):
            return education_tier(education)
        if isinstance(education, list):
            entries = [e if isinstance(e, str) else " ".join(str(v) for v in e.values()) for e in education if isinstance(e, (str, dict))]
            return max((education_tier(entry) for entry in entries), default=0)

        raw_text = resume.get("raw_text")
        return education_tier_in_text(raw_text) if isinstance(raw_text, str) else 0

    def _required_tier(self, job: Dict[str, Any]) -> int:
        required = job.get("required_education")
        if isinstance(required, str) and required.strip():
            return education_tier(required)

        for field in ("requirements", "description"):
            text = job.get(field)
            if isinstance(text, str):
                tier = education_tier_in_text(text)
                if tier:
                    return tier

        title = (job.get("title") or "").lower()
        if "phd" in title or "doctorate" in title:
            return 5
        return 0

    def _field_relevance(self, resume: Dict[str, Any], job: Dict[str, Any]) -> Tuple[Optional[str], float]:
        """
        Field of study and how relevant it is to the job.

        Returns:
            (field or None, relevance): 0.0 for non-technical or unknown fields,
            1.0 when the job names the exact field, 0.95 when it names the
            broader technical area, 0.9 otherwise
        """
        field = resume.get("field_of_study") if isinstance(resume.get("field_of_study"), str) else None
        if field is None:
            education = resume.get("education")
            text = education if isinstance(education, str) else " ".join(str(e) for e in education or [])
            field = find_tech_field(text)
        if not field:
            return None, 0.0

        tech_area = find_tech_field(field)
        if tech_area is None:
            return field, 0.0

        text = job_text(job).lower()
        if field.lower() in text:
            return field, 1.0
        if tech_area in text:
            return field, 0.95
        return field, 0.9
