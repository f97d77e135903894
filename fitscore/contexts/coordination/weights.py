"""
Weight resolution for composite scoring.

normalize_weights() rescales weights over a subset of analyses so they sum to
1.0; the coordinator uses it to renormalize over the analyses that succeeded.

WeightOptimizer derives weights from a job posting: an industry profile is the
base, a detected role profile replaces it, and a seniority multiplier is
applied last. Profiles live in config/weight_profiles.yaml.

Examples:
    >>> optimizer = WeightOptimizer()
    >>> rec = optimizer.recommend("Senior Backend Engineer", "Build payment APIs for our fintech platform")
    >>> rec.role, rec.seniority, rec.confidence
    ('backend_engineer', 'senior', 1.0)
"""

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional

from fitscore.contexts.analysis.result_schema import AnalysisType
from fitscore.exceptions import InvalidRequest
from fitscore.utils.config import load_weight_profiles

# Checked in order; first match wins
INDUSTRY_PATTERNS = {
    "fintech": re.compile(r"\b(?:fintech|banking|payments?|crypto|blockchain)\b", re.IGNORECASE),
    "healthcare": re.compile(r"\b(?:healthcare|medical|hospital|pharma\w*|clinical)\b", re.IGNORECASE),
    "security": re.compile(r"\b(?:cybersecurity|infosec|penetration|threat)\b", re.IGNORECASE),
    "data_science": re.compile(r"\b(?:data science|machine learning|ml|ai|nlp|computer vision)\b", re.IGNORECASE),
    "enterprise_saas": re.compile(r"\b(?:enterprise|saas|crm|erp)\b", re.IGNORECASE),
    "startup": re.compile(r"\b(?:startup|seed|series [a-e]|venture)\b", re.IGNORECASE),
}

ROLE_PATTERNS = {
    "engineering_manager": re.compile(r"\b(?:engineering manager|tech lead|engineering director|head of engineering)\b", re.IGNORECASE),
    "product_manager": re.compile(r"\b(?:product manager|product owner|product lead)\b", re.IGNORECASE),
    "security_engineer": re.compile(r"\b(?:security engineer|infosec|penetration test\w*)\b", re.IGNORECASE),
    "data_scientist": re.compile(r"\b(?:data scientist|ml engineer|machine learning engineer|data engineer|analytics)\b", re.IGNORECASE),
    "devops_engineer": re.compile(r"\b(?:devops|sre|site reliability|infrastructure|kubernetes|platform engineer)\b", re.IGNORECASE),
    "frontend_engineer": re.compile(r"\b(?:frontend|front-end|react|vue|angular|ui engineer)\b", re.IGNORECASE),
    "backend_engineer": re.compile(r"\b(?:backend|back-end|api|server-side|microservices)\b", re.IGNORECASE),
}

# Checked in order; "mid" when nothing matches
SENIORITY_PATTERNS = {
    "executive": re.compile(r"\b(?:director|vp|vice president|cto|ceo|chief)\b", re.IGNORECASE),
    "senior": re.compile(r"\b(?:senior|sr\.?|lead|principal|staff)\b", re.IGNORECASE),
    "entry": re.compile(r"\b(?:intern|junior|jr\.?|entry|graduate)\b", re.IGNORECASE),
}

BASE_CONFIDENCE = 0.5
INDUSTRY_CONFIDENCE = 0.2
ROLE_CONFIDENCE = 0.2
SENIORITY_CONFIDENCE = 0.1


def coerce_weights(weights: Mapping, registered: Iterable[AnalysisType]) -> Dict[AnalysisType, float]:
    """
    Validate caller-supplied weights and key them by AnalysisType.

    Registered analyses missing from weights get weight 0.

    Raises:
        InvalidRequest: Unknown or unregistered analysis, non-numeric, negative
            or non-finite weight, or weights that sum to zero
    """
    if not isinstance(weights, Mapping):
        raise InvalidRequest(f"weights must be a mapping, got {type(weights).__name__}")

    registered = list(registered)
    coerced = {analysis_type: 0.0 for analysis_type in registered}
    for key, value in weights.items():
        try:
            analysis_type = AnalysisType(key)
        except ValueError:
            raise InvalidRequest(f"Unknown analysis type in weights: {key!r}") from None
        if analysis_type not in coerced:
            raise InvalidRequest(f"No analyzer registered for weighted type '{analysis_type.value}'")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidRequest(f"Weight for '{analysis_type.value}' must be a number, got {value!r}")
        if not math.isfinite(value) or value < 0:
            raise InvalidRequest(f"Weight for '{analysis_type.value}' must be finite and >= 0, got {value}")
        coerced[analysis_type] = float(value)

    if sum(coerced.values()) <= 0:
        raise InvalidRequest("Weights must have a positive total")
    return coerced


def normalize_weights(
    weights: Mapping[AnalysisType, float],
    include: Optional[Iterable[AnalysisType]] = None,
) -> Dict[AnalysisType, float]:
    """
    Rescale weights over the included analyses so they sum to 1.0.

    Args:
        weights: Raw weights (missing analyses count as 0)
        include: Analyses to keep (default: all keys of weights)

    Returns:
        Normalized weights for the included analyses

    Raises:
        ValueError: If the included weights sum to zero
    """
    keys = list(weights) if include is None else list(include)
    subset = {key: float(weights.get(key, 0.0)) for key in keys}
    total = sum(subset.values())
    if total <= 0:
        raise ValueError(f"Weights over {[getattr(k, 'value', k) for k in keys]} sum to zero")
    return {key: value / total for key, value in subset.items()}


@dataclass(frozen=True)
class WeightRecommendation:
    """Weights derived from a job posting, with what was detected."""

    weights: Dict[AnalysisType, float]
    industry: Optional[str]
    role: Optional[str]
    seniority: str
    confidence: float


class WeightOptimizer:
    """
    Derives per-analysis weights from a job's title and description.

    Attributes:
        profiles: {"industry": {...}, "role": {...}, "seniority": {...}}
        default_weights: Base weights when no industry or role is detected
    """

    def __init__(self, profiles: dict = None, default_weights: Mapping[str, float] = None):
        self.profiles = profiles if profiles is not None else load_weight_profiles()
        if default_weights is None:
            default_weights = {t.value: 1.0 for t in AnalysisType}
        self.default_weights = _typed(default_weights)

    def detect_industry(self, description: str) -> Optional[str]:
        for industry, pattern in INDUSTRY_PATTERNS.items():
            if industry in self.profiles["industry"] and pattern.search(description or ""):
                return industry
        return None

    def detect_role(self, title: str, description: str) -> Optional[str]:
        # Title is more specific than the description; try it alone first
        for text in (title or "", f"{title or ''} {description or ''}"):
            for role, pattern in ROLE_PATTERNS.items():
                if role in self.profiles["role"] and pattern.search(text):
                    return role
        return None

    def detect_seniority(self, title: str) -> str:
        for level, pattern in SENIORITY_PATTERNS.items():
            if pattern.search(title or ""):
                return level
        return "mid"

    def recommend(self, title: str, description: str) -> WeightRecommendation:
        """
        Recommend normalized weights for a job.

        Args:
            title: Job title
            description: Job description (and requirements, if available)

        Returns:
            WeightRecommendation with weights summing to 1.0 and a confidence in [0.5, 1.0]
        """
        industry = self.detect_industry(description)
        role = self.detect_role(title, description)
        seniority = self.detect_seniority(title)

        base = dict(self.default_weights)
        if industry:
            base = _typed(self.profiles["industry"][industry])
        if role:
            base = _typed(self.profiles["role"][role])

        multipliers = _typed(self.profiles["seniority"].get(seniority, {}))
        adjusted = {t: w * multipliers.get(t, 1.0) for t, w in base.items()}

        confidence = BASE_CONFIDENCE
        if industry:
            confidence += INDUSTRY_CONFIDENCE
        if role:
            confidence += ROLE_CONFIDENCE
        if seniority != "mid":
            confidence += SENIORITY_CONFIDENCE

        return WeightRecommendation(
            weights=normalize_weights(adjusted, include=list(AnalysisType)),
            industry=industry,
            role=role,
            seniority=seniority,
            confidence=round(min(1.0, confidence), 2),
        )


def _typed(weights: Mapping[str, float]) -> Dict[AnalysisType, float]:
    return {AnalysisType(key): float(value) for key, value in weights.items()}
