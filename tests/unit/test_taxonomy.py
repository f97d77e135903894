"""Unit tests for the skill, education and certification vocabularies."""

import pytest

from fitscore.contexts.analysis.taxonomy import (
    CATALOG_CONFIDENCE,
    UNCATALOGED_CONFIDENCE,
    canonical_skill,
    certifications_in_text,
    closest_skill,
    education_tier,
    education_tier_in_text,
    extract_skills,
    find_tech_field,
    match_certification,
)


@pytest.mark.unit
def test_extract_skills_with_symbols_and_aliases():
    text = "Experience with C++, C# and Node.js; used k8s in production"
    assert extract_skills(text) == ["C#", "C++", "Kubernetes", "Node.js"]


@pytest.mark.unit
def test_short_skill_names_are_case_sensitive():
    assert "Go" not in extract_skills("ready to go to market")
    assert "Go" in extract_skills("services written in Go")


@pytest.mark.unit
def test_extract_skills_empty():
    assert extract_skills("") == []


@pytest.mark.unit
@pytest.mark.parametrize(
    "name, expected",
    [
        ("python", "Python"),
        ("postgres", "PostgreSQL"),
        ("k8s", "Kubernetes"),
        ("Javascipt", "JavaScript"),
        ("Underwater Basket Weaving", None),
        ("   ", None),
    ],
)
def test_canonical_skill(name, expected):
    assert canonical_skill(name) == expected


@pytest.mark.unit
def test_closest_skill():
    assert closest_skill("Kubernetes", ["Kubernets", "Docker"]) == "Kubernets"
    assert closest_skill("Redis", ["Docker", "AWS"]) is None


@pytest.mark.unit
@pytest.mark.parametrize(
    "text, tier",
    [("MBA", 4), ("B.S. in Physics", 3), ("PhD, Statistics", 5), ("High School Diploma", 1), ("", 0)],
)
def test_education_tier(text, tier):
    assert education_tier(text) == tier


@pytest.mark.unit
def test_education_in_text_needs_an_education_sentence():
    assert education_tier_in_text("Certified Scrum Master with 5 years of experience.") == 0
    assert education_tier_in_text("Strong SQL. Master's degree in Statistics required.") == 4


@pytest.mark.unit
def test_find_tech_field():
    assert find_tech_field("Computer Science") == "computer science"
    assert find_tech_field("Art History") is None


@pytest.mark.unit
def test_match_certification():
    cissp = match_certification("CISSP")
    assert cissp.name == "CISSP" and cissp.confidence == CATALOG_CONFIDENCE

    other = match_certification("Acme Widget Certification")
    assert other.category == "other" and other.confidence == UNCATALOGED_CONFIDENCE

    assert match_certification("AB") is None


@pytest.mark.unit
def test_cka_and_ckad_are_distinct():
    assert match_certification("CKAD").name == "CKAD"
    assert match_certification("CKA").name == "CKA"


@pytest.mark.unit
def test_certifications_in_text_prefers_longest_name():
    found = certifications_in_text("Holds the AWS Solutions Architect certification.")
    assert [c.name for c in found] == ["AWS Solutions Architect"]


@pytest.mark.unit
def test_certifications_in_text_needs_certification_sentence():
    assert certifications_in_text("Worked alongside the CISSP team.") == []
