"""
Experience analyzer: years of experience against the job's requirement.

Candidate years are taken from, in order: an explicit years_of_experience
field, the employment history, then "N years of experience" phrases in the
resume text. Open-ended roles run to a reference date taken from the records
themselves: the job's posting date when present, otherwise the latest date in
the employment history. The clock is never consulted, so identical inputs
always give identical scores.

Scoring:
- required <= candidate <= required + 5: 100
- candidate > required + 5: 2 points off per extra year, at most 10
- candidate < required: candidate / required * 100
"""

import re
from datetime import date
from typing import Any, Dict, List, Optional

from fitscore.contexts.analysis.base_unit import AnalysisUnit
from fitscore.contexts.analysis.result_schema import AnalysisType

OVERQUALIFIED_MARGIN_YEARS = 5
OVERQUALIFIED_PENALTY_PER_YEAR = 2
OVERQUALIFIED_MAX_PENALTY = 10
DAYS_PER_YEAR = 365.25

SENIORITY_KEYWORDS = ("senior", "lead", "manager", "director", "principal", "architect", "head", "vp")

# Job fields that carry its posting date, in order of preference
JOB_DATE_FIELDS = ("posted_date", "date_posted", "created_at")

CANDIDATE_YEARS_PATTERNS = (
    re.compile(r"(\d{1,2})\s*\+?\s*years?(?:\s+of)?\s+(?:experience|exp)\b", re.IGNORECASE),
    re.compile(r"(?:experience|exp)[:\s]+(\d{1,2})\s*\+?\s*years?", re.IGNORECASE),
    re.compile(r"(\d{1,2})\s*\+?\s*years?\s+(?:professional|relevant|in)\b", re.IGNORECASE),
)
REQUIRED_YEARS_PATTERN = re.compile(r"(\d{1,2})\s*\+?\s*years?", re.IGNORECASE)


def _number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_date(value) -> Optional[date]:
    """Parse "YYYY-MM-DD" or "YYYY-MM" (first of month); None if unparseable."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()[:10]
    if len(text) == 7:
        text = f"{text}-01"
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def reference_date(job: Dict[str, Any], history) -> Optional[date]:
    """Posting date of the job, else the latest start or end date in the history."""
    for field in JOB_DATE_FIELDS:
        posted = parse_date(job.get(field))
        if posted is not None:
            return posted

    dates = [
        parse_date(role.get(key))
        for role in history or []
        if isinstance(role, dict)
        for key in ("start_date", "end_date")
    ]
    return max((d for d in dates if d is not None), default=None)


def history_spans(history, reference: Optional[date]) -> List[float]:
    """Years spent in each role with a valid start date (open roles end at reference)."""
    spans = []
    for role in history or []:
        if not isinstance(role, dict):
            continue
        start = parse_date(role.get("start_date"))
        if start is None:
            continue
        end = parse_date(role.get("end_date")) or reference or start
        spans.append(max(0.0, (end - start).days / DAYS_PER_YEAR))
    return spans


def years_from_text(text: str) -> float:
    """Largest plausible "N years of experience" figure in text (0 if none)."""
    if not text:
        return 0.0
    found = [
        int(match.group(1))
        for pattern in CANDIDATE_YEARS_PATTERNS
        for match in pattern.finditer(text)
        if 0 < int(match.group(1)) < 60
    ]
    return float(max(found, default=0))


def experience_score(candidate: float, required: float) -> float:
    if required <= candidate <= required + OVERQUALIFIED_MARGIN_YEARS:
        return 100.0
    if candidate > required + OVERQUALIFIED_MARGIN_YEARS:
        overage = candidate - (required + OVERQUALIFIED_MARGIN_YEARS)
        penalty = min(OVERQUALIFIED_MAX_PENALTY, overage * OVERQUALIFIED_PENALTY_PER_YEAR)
        return 100.0 - penalty
    return candidate / required * 100


def score_reason(candidate: float, required: float) -> str:
    if candidate == 0 and required == 0:
        return "Entry-level position with no experience requirement"
    if required <= candidate <= required + OVERQUALIFIED_MARGIN_YEARS:
        return f"Meets requirement: {candidate:g} years provided, {required:g} required"
    if candidate > required + OVERQUALIFIED_MARGIN_YEARS:
        return f"Overqualified: {candidate:g} years ({candidate - required:g} above requirement of {required:g})"
    return f"Underqualified: {candidate:g} years ({required - candidate:g} short of {required:g} requirement)"


class ExperienceAnalyzer(AnalysisUnit):
    analysis_type = AnalysisType.EXPERIENCE

    def analyze(self, resume: Dict[str, Any], job: Dict[str, Any]) -> Dict[str, Any]:
        history = resume.get("employment_history") or []
        spans = history_spans(history, reference_date(job, history))

        candidate = self._candidate_years(resume, spans)
        required = self._required_years(job)

        job_count = len(history) if isinstance(history, list) else 0
        average_tenure = round(sum(spans) / job_count, 1) if job_count else 0.0

        return {
            "score": round(experience_score(candidate, required), 2),
            "evidence": {
                "candidate_years": candidate,
                "required_years": required,
                "meets_requirement": candidate >= required,
                "overqualified": candidate > required + OVERQUALIFIED_MARGIN_YEARS,
                "score_reason": score_reason(candidate, required),
                "job_count": job_count,
                "average_tenure_years": average_tenure,
                "career_direction": self._career_direction(history),
                "stability": self._stability(average_tenure),
            },
        }

    def _candidate_years(self, resume: Dict[str, Any], spans: List[float]) -> float:
        explicit = _number(resume.get("years_of_experience"))
        if explicit is not None and explicit > 0:
            return explicit
        if spans:
            return round(sum(spans), 1)
        for field in ("experience", "raw_text"):
            years = years_from_text(resume.get(field) if isinstance(resume.get(field), str) else "")
            if years:
                return years
        return 0.0

    def _required_years(self, job: Dict[str, Any]) -> float:
        explicit = _number(job.get("required_years"))
        if explicit is not None and explicit >= 0:
            return explicit
        for field in ("requirements", "description"):
            text = job.get(field)
            if isinstance(text, str):
                match = REQUIRED_YEARS_PATTERN.search(text)
                if match:
                    return float(match.group(1))
        return 0.0

    def _career_direction(self, history) -> str:
        titles = [role.get("title", "") for role in history or [] if isinstance(role, dict) and role.get("title")]
        if not titles:
            return "Unknown"
        senior = any(keyword in title.lower() for title in titles for keyword in SENIORITY_KEYWORDS)
        return "Upward" if senior else "Lateral"

    def _stability(self, average_tenure: float) -> str:
        if average_tenure >= 3:
            return "Stable"
        if average_tenure >= 1.5:
            return "Moderate"
        if average_tenure > 0:
            return "High Job Turnover"
        return "Unknown"
