"""Unit tests for the five specialized analyzers (analyze() only)."""

from datetime import date

import pytest

from conftest import JOB, RESUME

from fitscore.contexts.analysis import (
    CertificationAnalyzer,
    EducationAnalyzer,
    ExperienceAnalyzer,
    SemanticAnalyzer,
    SkillAnalyzer,
)
from fitscore.contexts.analysis import experience_analyzer
from fitscore.contexts.analysis.experience_analyzer import (
    experience_score,
    history_spans,
    parse_date,
    reference_date,
)
from fitscore.contexts.analysis.semantic_analyzer import EMBEDDING_DIM, embed_text
from fitscore.exceptions import DataUnavailable


def analyze_and_validate(analyzer, resume, job):
    raw = analyzer.analyze(resume, job)
    return raw, analyzer.validate(raw)


# =============================================================================
# SKILL
# =============================================================================


@pytest.mark.unit
def test_skill_match_against_explicit_requirements():
    raw, result = analyze_and_validate(SkillAnalyzer(), RESUME, JOB)

    evidence = raw["evidence"]
    assert evidence["matched_skills"] == ["Django", "Kubernetes", "PostgreSQL", "Python"]
    assert evidence["missing_skills"] == ["Redis"]
    assert evidence["required_count"] == 5
    assert result.score == 80.0


@pytest.mark.unit
def test_skill_requirements_extracted_from_text():
    job = {"title": "Data Engineer", "description": "We use Python, Spark and Airflow daily."}
    resume = {"skills": ["python", "airflow"]}

    raw = SkillAnalyzer().analyze(resume, job)

    assert raw["evidence"]["matched_skills"] == ["Airflow", "Python"]
    assert raw["evidence"]["missing_skills"] == ["Spark"]
    assert raw["score"] == pytest.approx(66.67)


@pytest.mark.unit
def test_skill_fuzzy_match_of_unlisted_skill():
    job = {"required_skills": ["Snowflake SQL"]}
    resume = {"skills": ["Snowflake SQL."]}

    raw = SkillAnalyzer().analyze(resume, job)

    assert raw["evidence"]["matched_count"] == 1
    assert raw["evidence"]["fuzzy_matches"] == {"Snowflake SQL": "Snowflake SQL."}


@pytest.mark.unit
def test_skill_no_requirements_scores_zero():
    raw, result = analyze_and_validate(SkillAnalyzer(), RESUME, {"title": "Office Manager"})

    assert result.score == 0.0
    assert raw["evidence"]["required_count"] == 0


# =============================================================================
# EXPERIENCE
# =============================================================================


@pytest.mark.unit
def test_experience_meets_requirement():
    raw, result = analyze_and_validate(ExperienceAnalyzer(), RESUME, JOB)

    evidence = raw["evidence"]
    assert result.score == 100.0
    assert evidence["candidate_years"] == 7.0
    assert evidence["required_years"] == 5.0
    assert evidence["meets_requirement"] is True
    assert evidence["job_count"] == 2
    assert evidence["career_direction"] == "Upward"
    assert evidence["stability"] == "Stable"


@pytest.mark.unit
@pytest.mark.parametrize(
    "candidate, required, expected",
    [(5, 5, 100.0), (10, 5, 100.0), (2, 4, 50.0), (11, 5, 98.0), (25, 3, 90.0), (0, 0, 100.0)],
)
def test_experience_score_curve(candidate, required, expected):
    assert experience_score(candidate, required) == pytest.approx(expected)


@pytest.mark.unit
def test_experience_from_history_uses_posted_date():
    resume = {"employment_history": [{"title": "Engineer", "start_date": "2020-06-01"}]}
    job = {"required_years": 3, "posted_date": "2024-06-01"}

    raw = ExperienceAnalyzer().analyze(resume, job)

    assert raw["evidence"]["candidate_years"] == pytest.approx(4.0, abs=0.1)
    assert raw["score"] == 100.0
    assert raw["evidence"]["career_direction"] == "Lateral"


def frozen_date(today):
    class FrozenDate(date):
        @classmethod
        def today(cls):
            return cls(today.year, today.month, today.day)

    return FrozenDate


@pytest.mark.unit
def test_experience_does_not_depend_on_the_clock(monkeypatch):
    resume = {
        "employment_history": [
            {"title": "Engineer", "start_date": "2019-01", "end_date": "2021-01"},
            {"title": "Senior Engineer", "start_date": "2021-02"},
        ]
    }
    job = {"required_years": 3}

    outputs = []
    for today in (date(2025, 1, 1), date(2031, 1, 1)):
        monkeypatch.setattr(experience_analyzer, "date", frozen_date(today))
        outputs.append(ExperienceAnalyzer().analyze(resume, job))

    assert outputs[0] == outputs[1]
    # Open role ends at the latest date in the history
    assert outputs[0]["evidence"]["candidate_years"] == 2.0
    assert outputs[0]["score"] == pytest.approx(66.67)


@pytest.mark.unit
def test_reference_date_prefers_job_dates():
    history = [{"start_date": "2020-01", "end_date": "2022-03"}]

    assert reference_date({"posted_date": "2024-06-01"}, history) == date(2024, 6, 1)
    assert reference_date({"created_at": "2024-05-02T09:30:00"}, history) == date(2024, 5, 2)
    assert reference_date({}, history) == date(2022, 3, 1)
    assert reference_date({}, []) is None


@pytest.mark.unit
def test_experience_from_text_when_no_history():
    resume = {"raw_text": "Analyst with 3 years of experience in reporting."}
    job = {"requirements": "6 years required"}

    raw = ExperienceAnalyzer().analyze(resume, job)

    assert raw["evidence"]["candidate_years"] == 3.0
    assert raw["score"] == 50.0
    assert raw["evidence"]["score_reason"].startswith("Underqualified")


@pytest.mark.unit
def test_history_spans_skip_bad_dates():
    spans = history_spans(
        [{"start_date": "not a date"}, {"start_date": "2020-01", "end_date": "2021-01"}, "junk"],
        parse_date("2024-01-01"),
    )
    assert spans == [pytest.approx(1.0, abs=0.01)]


# =============================================================================
# EDUCATION
# =============================================================================


@pytest.mark.unit
def test_education_meets_requirement_in_relevant_field():
    raw, result = analyze_and_validate(EducationAnalyzer(), RESUME, JOB)

    evidence = raw["evidence"]
    assert result.score == 100.0
    assert evidence["candidate_tier"] == 3
    assert evidence["required_tier"] == 3
    assert evidence["field_of_study"] == "Computer Science"
    assert evidence["field_relevance"] == 1.0


@pytest.mark.unit
def test_education_one_level_short():
    resume = {"education_level": "Bachelor's"}
    job = {"required_education": "Master's degree"}

    raw = EducationAnalyzer().analyze(resume, job)

    assert raw["score"] == 75.0
    assert raw["evidence"]["meets_requirement"] is False


@pytest.mark.unit
def test_education_non_technical_field_penalty():
    resume = {"education_level": "Bachelor", "field_of_study": "Art History"}
    job = {"required_education": "Bachelor's"}

    raw = EducationAnalyzer().analyze(resume, job)

    assert raw["score"] == 95.0
    assert raw["evidence"]["field_relevance"] == 0.0


@pytest.mark.unit
def test_education_scrum_master_is_not_a_degree():
    job = {"requirements": "Experience working with a Scrum Master. Strong communication."}

    raw = EducationAnalyzer().analyze({"education_level": "High School"}, job)

    assert raw["evidence"]["required_tier"] == 0
    assert raw["score"] == 100.0


# =============================================================================
# CERTIFICATION
# =============================================================================


@pytest.mark.unit
def test_certification_required_held_with_extra():
    raw, result = analyze_and_validate(CertificationAnalyzer(), RESUME, JOB)

    evidence = raw["evidence"]
    assert result.score == 100.0
    assert evidence["candidate_certifications"] == ["AWS Solutions Architect", "CKA"]
    assert evidence["matched_certifications"] == ["AWS Solutions Architect"]
    assert evidence["has_critical_certs"] is True
    assert evidence["certification_value"] == 90


@pytest.mark.unit
def test_certification_partial_match():
    resume = {"certifications": ["CISSP"]}
    job = {"required_certifications": ["CISSP", "OSCP"]}

    raw = CertificationAnalyzer().analyze(resume, job)

    assert raw["score"] == 50.0
    assert raw["evidence"]["missing_certifications"] == ["OSCP"]


@pytest.mark.unit
def test_certification_without_requirement():
    assert CertificationAnalyzer().analyze({"certifications": ["PMP"]}, {})["score"] == 42.0
    assert CertificationAnalyzer().analyze({"certifications": ["Acme Widget Certification"]}, {})["score"] == 30.0
    assert CertificationAnalyzer().analyze({}, {})["score"] == 50.0


# =============================================================================
# SEMANTIC
# =============================================================================


@pytest.mark.unit
def test_semantic_scores_in_range():
    raw, result = analyze_and_validate(SemanticAnalyzer(), RESUME, JOB)

    assert 0.0 <= result.score <= 100.0
    assert raw["evidence"]["embedding_dim"] == EMBEDDING_DIM
    assert raw["evidence"]["covered_keywords"]


@pytest.mark.unit
def test_semantic_identical_text_scores_full():
    text = "python django postgresql payment services"
    raw = SemanticAnalyzer().analyze({"raw_text": text}, {"title": text})
    assert raw["score"] == 100.0


@pytest.mark.unit
def test_semantic_is_deterministic():
    first = SemanticAnalyzer().analyze(RESUME, JOB)
    second = SemanticAnalyzer().analyze(dict(RESUME), dict(JOB))
    assert first == second


@pytest.mark.unit
def test_semantic_needs_text():
    with pytest.raises(DataUnavailable):
        SemanticAnalyzer().analyze({}, JOB)


@pytest.mark.unit
def test_embeddings_are_read_only():
    vector = embed_text("python engineer")
    assert vector.shape == (EMBEDDING_DIM,)
    assert not vector.flags.writeable
