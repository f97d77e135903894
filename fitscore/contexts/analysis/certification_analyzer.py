"""
Certification analyzer: required certifications held by the candidate.

With requirements: match ratio * 100, plus 5 points per certification beyond
the required count (at most 15), capped at 100. Without requirements,
holding certifications scores 10-50 depending on how confidently they were
recognized; holding none scores a neutral 50.
"""

from typing import Any, Dict, List

from fitscore.contexts.analysis.base_unit import AnalysisUnit
from fitscore.contexts.analysis.result_schema import AnalysisType
from fitscore.contexts.analysis.taxonomy import (
    CRITICAL_CERTIFICATIONS,
    UNCATALOGED_CONFIDENCE,
    CertificationMatch,
    certifications_in_text,
    match_certification,
)

EXTRA_CERT_BONUS = 5
MAX_EXTRA_CERT_BONUS = 15
NO_REQUIREMENT_BASE = 30
NO_REQUIREMENT_RANGE = (10, 50)
NO_CERTIFICATIONS_SCORE = 50.0


def _collect(listed, *texts) -> List[CertificationMatch]:
    """Certifications from an explicit list plus free-text mentions, deduplicated by name."""
    found: Dict[str, CertificationMatch] = {}
    if isinstance(listed, str):
        listed = [part for part in listed.replace(";", ",").split(",")]
    for name in listed or []:
        if isinstance(name, str):
            match = match_certification(name)
            if match is not None:
                found.setdefault(match.name.lower(), match)
    for text in texts:
        if isinstance(text, str):
            for match in certifications_in_text(text):
                found.setdefault(match.name.lower(), match)
    return sorted(found.values(), key=lambda match: match.name)


def certification_score(candidate: List[CertificationMatch], required: List[CertificationMatch], matched: int) -> float:
    if required:
        score = matched / len(required) * 100
        extra = len(candidate) - len(required)
        if extra > 0:
            score = min(100.0, score + min(extra * EXTRA_CERT_BONUS, MAX_EXTRA_CERT_BONUS))
        return score
    if candidate:
        average_confidence = sum(c.confidence for c in candidate) / len(candidate)
        boost = round((average_confidence - UNCATALOGED_CONFIDENCE) * 50)
        low, high = NO_REQUIREMENT_RANGE
        return float(max(low, min(high, NO_REQUIREMENT_BASE + boost)))
    return NO_CERTIFICATIONS_SCORE


class CertificationAnalyzer(AnalysisUnit):
    analysis_type = AnalysisType.CERTIFICATION

    def analyze(self, resume: Dict[str, Any], job: Dict[str, Any]) -> Dict[str, Any]:
        candidate = _collect(resume.get("certifications"), resume.get("raw_text"))
        required = _collect(job.get("required_certifications"), job.get("requirements"), job.get("description"))

        held = {c.name.lower() for c in candidate}
        matched = [r.name for r in required if r.name.lower() in held]
        missing = [r.name for r in required if r.name.lower() not in held]

        critical = {name.lower() for name in CRITICAL_CERTIFICATIONS}
        certification_value = (
            round(sum(c.value for c in candidate) / (len(candidate) * 10) * 100) if candidate else 0
        )

        return {
            "score": round(certification_score(candidate, required, len(matched)), 2),
            "evidence": {
                "candidate_certifications": [c.name for c in candidate],
                "required_certifications": [r.name for r in required],
                "matched_certifications": matched,
                "missing_certifications": missing,
                "match_percentage": round(len(matched) / len(required) * 100, 2) if required else 100.0,
                "has_critical_certs": any(name.lower() in critical for name in matched),
                "certification_value": certification_value,
                "score_reason": self._reason(matched, missing),
            },
        }

    def _reason(self, matched: List[str], missing: List[str]) -> str:
        if matched and not missing:
            return f"All required certifications held ({len(matched)})"
        if missing and not matched:
            return f"No required certifications held ({len(missing)} missing)"
        if matched and missing:
            return f"Partial match: {len(matched)} of {len(matched) + len(missing)} required"
        return "No certification requirements"
