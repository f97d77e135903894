"""Unit tests for AnalysisUnit.validate() and AnalysisResult construction rules."""

import math

import pytest

from conftest import SAMPLE_EVIDENCE, ScriptedUnit

from fitscore.contexts.analysis.result_schema import AnalysisResult, AnalysisStatus, AnalysisType
from fitscore.exceptions import ErrorKind, InvalidResult


def skill_unit():
    return ScriptedUnit(AnalysisType.SKILL)


def raw(score, **evidence_changes):
    evidence = {**SAMPLE_EVIDENCE[AnalysisType.SKILL], **evidence_changes}
    return {"score": score, "evidence": evidence}


@pytest.mark.unit
@pytest.mark.parametrize("score", [0, 0.0, 55.5, 100, 100.0])
def test_scores_in_range_accepted(score):
    result = skill_unit().validate(raw(score))

    assert result.status is AnalysisStatus.SUCCESS
    assert result.score == float(score)
    assert isinstance(result.score, float)


@pytest.mark.unit
@pytest.mark.parametrize("score", [101, 100.0001, -1, -0.01, math.nan, math.inf, -math.inf])
def test_out_of_range_scores_rejected_not_clamped(score):
    with pytest.raises(InvalidResult) as exc_info:
        skill_unit().validate(raw(score))
    assert exc_info.value.field == "score"
    assert exc_info.value.kind is ErrorKind.INVALID_RESULT


@pytest.mark.unit
@pytest.mark.parametrize("score", [True, False, "87.5", None, [87.5]])
def test_non_numeric_scores_rejected(score):
    with pytest.raises(InvalidResult, match="numeric"):
        skill_unit().validate(raw(score))


@pytest.mark.unit
def test_missing_score_rejected():
    with pytest.raises(InvalidResult, match="Missing score"):
        skill_unit().validate({"evidence": SAMPLE_EVIDENCE[AnalysisType.SKILL]})


@pytest.mark.unit
def test_non_mapping_output_rejected():
    with pytest.raises(InvalidResult, match="mapping"):
        skill_unit().validate([("score", 50)])


@pytest.mark.unit
def test_renamed_evidence_field_rejected():
    """A drifted field name fails validation instead of flowing through as null."""
    evidence = dict(SAMPLE_EVIDENCE[AnalysisType.SKILL])
    evidence["matchedSkills"] = evidence.pop("matched_skills")

    with pytest.raises(InvalidResult) as exc_info:
        skill_unit().validate({"score": 50, "evidence": evidence})
    assert exc_info.value.field in {"matched_skills", "matchedSkills"}


@pytest.mark.unit
def test_extra_evidence_field_rejected():
    with pytest.raises(InvalidResult):
        skill_unit().validate(raw(50, confidence=0.9))


@pytest.mark.unit
def test_wrongly_typed_evidence_rejected():
    with pytest.raises(InvalidResult) as exc_info:
        skill_unit().validate(raw(50, matched_count="1"))
    assert exc_info.value.field == "matched_count"


@pytest.mark.unit
def test_evidence_of_another_analyzer_rejected():
    with pytest.raises(InvalidResult):
        skill_unit().validate({"score": 50, "evidence": SAMPLE_EVIDENCE[AnalysisType.SEMANTIC]})


@pytest.mark.unit
def test_missing_evidence_rejected():
    with pytest.raises(InvalidResult):
        skill_unit().validate({"score": 50})


@pytest.mark.unit
def test_success_requires_score_and_evidence():
    with pytest.raises(ValueError):
        AnalysisResult(AnalysisType.SKILL, AnalysisStatus.SUCCESS, score=None)


@pytest.mark.unit
def test_failure_cannot_carry_score():
    with pytest.raises(ValueError):
        AnalysisResult(AnalysisType.SKILL, AnalysisStatus.FAILED, score=50.0, error="boom")


@pytest.mark.unit
def test_failure_needs_error_description():
    with pytest.raises(ValueError):
        AnalysisResult(AnalysisType.SKILL, AnalysisStatus.FAILED)


@pytest.mark.unit
def test_timeout_kind_builds_timed_out_result():
    result = AnalysisResult.failure(AnalysisType.SEMANTIC, "too slow", ErrorKind.TIMEOUT_EXCEEDED)
    assert result.status is AnalysisStatus.TIMED_OUT
    assert result.score is None

    result = AnalysisResult.failure(AnalysisType.SEMANTIC, "missing", ErrorKind.DATA_UNAVAILABLE)
    assert result.status is AnalysisStatus.FAILED


@pytest.mark.unit
def test_to_dict_is_json_friendly():
    result = skill_unit().validate(raw(42.0))
    data = result.to_dict()

    assert data["analysis_type"] == "skill"
    assert data["status"] == "Success"
    assert data["evidence"]["matched_skills"] == ["Python"]
