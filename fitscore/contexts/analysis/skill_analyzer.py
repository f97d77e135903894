"""
Skill analyzer: technical skill coverage of the job's requirements.

Required skills come from the job's explicit list (required_skills/skills) or,
failing that, from the taxonomy terms found in the job text. Candidate skills
combine the resume's skill list with taxonomy terms found in its text.
Required skills missing verbatim are matched by spelling similarity.

Score = matched / required * 100 (0 when the job names no skills).
"""

from typing import Any, Dict, List

from fitscore.contexts.analysis.base_unit import AnalysisUnit, job_text, resume_text
from fitscore.contexts.analysis.result_schema import AnalysisType
from fitscore.contexts.analysis.taxonomy import canonical_skill, closest_skill, extract_skills


def _listed_skills(values) -> List[str]:
    """Canonicalize an explicit skill list, keeping unknown skills as written."""
    if isinstance(values, str):
        values = [part for part in values.replace(";", ",").split(",")]
    skills = set()
    for value in values or []:
        if not isinstance(value, str) or not value.strip():
            continue
        skills.add(canonical_skill(value) or value.strip())
    return sorted(skills)


class SkillAnalyzer(AnalysisUnit):
    analysis_type = AnalysisType.SKILL

    def analyze(self, resume: Dict[str, Any], job: Dict[str, Any]) -> Dict[str, Any]:
        required = _listed_skills(job.get("required_skills") or job.get("skills"))
        if not required:
            required = extract_skills(job_text(job))

        candidate = set(_listed_skills(resume.get("skills")))
        candidate.update(extract_skills(resume_text(resume)))
        candidate_lower = {skill.lower() for skill in candidate}

        matched, missing = [], []
        fuzzy_matches: Dict[str, str] = {}
        for skill in required:
            if skill.lower() in candidate_lower:
                matched.append(skill)
                continue
            similar = closest_skill(skill, candidate)
            if similar is not None:
                matched.append(skill)
                fuzzy_matches[skill] = similar
            else:
                missing.append(skill)

        match_percentage = len(matched) / len(required) * 100 if required else 0.0

        return {
            "score": round(match_percentage, 2),
            "evidence": {
                "matched_skills": matched,
                "missing_skills": missing,
                "matched_count": len(matched),
                "required_count": len(required),
                "match_percentage": round(match_percentage, 2),
                "fuzzy_matches": fuzzy_matches,
            },
        }
