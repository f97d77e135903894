"""Shared fixtures: temporary stores, redirected event log, scripted analysis units."""

import threading
import time

import pytest

from fitscore.contexts.analysis.base_unit import AnalysisUnit
from fitscore.contexts.analysis.result_schema import AnalysisType
from fitscore.contexts.isolation import ExecutionContextManager, SqliteIsolationProvider
from fitscore.contexts.isolation.context_data_structure import ConnectionDescriptor, IsolationTier
from fitscore.contexts.isolation.providers import IsolationProvider
from fitscore.contexts.storage import SqliteStore
from fitscore.exceptions import IsolationUnavailable
from fitscore.utils import event_logging
from fitscore.utils.config import load_scoring_config

RESUME = {
    "name": "Dana Reyes",
    "summary": "Backend engineer building payment APIs in Python and Go.",
    "skills": ["Python", "Django", "PostgreSQL", "Docker", "Kubernets", "AWS"],
    "years_of_experience": 7,
    "education": [{"degree": "Bachelor of Science", "field": "Computer Science", "school": "State University"}],
    "field_of_study": "Computer Science",
    "certifications": ["AWS Solutions Architect", "CKA"],
    "employment_history": [
        {"title": "Software Engineer", "company": "Ledgerly", "start_date": "2017-03", "end_date": "2020-06"},
        {"title": "Senior Backend Engineer", "company": "Paywise", "start_date": "2020-07"},
    ],
    "raw_text": (
        "Senior backend engineer with 7 years of experience. Built Django and PostgreSQL services "
        "deployed with Docker on AWS. B.S. in Computer Science from State University."
    ),
}

JOB = {
    "title": "Senior Backend Engineer",
    "description": "Join our fintech platform team building payment APIs and microservices.",
    "requirements": (
        "5+ years of experience with Python. Bachelor's degree in Computer Science or related field. "
        "AWS certification preferred."
    ),
    "required_skills": ["Python", "Django", "PostgreSQL", "Kubernetes", "Redis"],
    "required_certifications": ["AWS Solutions Architect"],
    "posted_date": "2024-06-01",
}

# Evidence that passes strict validation, one per analysis type
SAMPLE_EVIDENCE = {
    AnalysisType.SKILL: {
        "matched_skills": ["Python"],
        "missing_skills": [],
        "matched_count": 1,
        "required_count": 1,
        "match_percentage": 100.0,
        "fuzzy_matches": {},
    },
    AnalysisType.EXPERIENCE: {
        "candidate_years": 6.0,
        "required_years": 5.0,
        "meets_requirement": True,
        "overqualified": False,
        "score_reason": "Meets requirement",
        "job_count": 2,
        "average_tenure_years": 3.0,
        "career_direction": "Upward",
        "stability": "Stable",
    },
    AnalysisType.EDUCATION: {
        "candidate_degree": "Bachelor's",
        "candidate_tier": 3,
        "required_degree": "Bachelor's",
        "required_tier": 3,
        "meets_requirement": True,
        "field_of_study": "Computer Science",
        "field_relevance": 1.0,
        "score_reason": "Meets requirement",
    },
    AnalysisType.CERTIFICATION: {
        "candidate_certifications": ["CKA"],
        "required_certifications": ["CKA"],
        "matched_certifications": ["CKA"],
        "missing_certifications": [],
        "match_percentage": 100.0,
        "has_critical_certs": True,
        "certification_value": 90,
        "score_reason": "All required certifications held (1)",
    },
    AnalysisType.SEMANTIC: {
        "similarity": 0.5,
        "top_keywords": ["python"],
        "covered_keywords": ["python"],
        "keyword_coverage": 1.0,
        "embedding_dim": 384,
    },
}


class ScriptedUnit(AnalysisUnit):
    """
    Analysis unit with a canned outcome, run through the real unit lifecycle.

    delay_s blocks inside analyze() (until release is set, if given);
    raises makes analyze() raise; raw replaces the whole analyzer output.
    """

    def __init__(self, analysis_type, score=50.0, delay_s=0.0, raises=None, raw=None, release=None, **kwargs):
        self.analysis_type = analysis_type
        super().__init__(**kwargs)
        self.score = score
        self.delay_s = delay_s
        self.raises = raises
        self.raw = raw
        self.release = release

    def analyze(self, resume, job):
        if self.delay_s:
            if self.release is not None:
                self.release.wait(self.delay_s)
            else:
                time.sleep(self.delay_s)
        if self.raises is not None:
            raise self.raises
        if self.raw is not None:
            return self.raw
        return {"score": self.score, "evidence": SAMPLE_EVIDENCE[self.analysis_type]}


def scripted(analysis_type, **kwargs):
    """Unit factory for Coordinator.register()."""
    return lambda: ScriptedUnit(analysis_type, **kwargs)


def wait_until(predicate, timeout=5.0, interval=0.01):
    """Poll predicate until it holds or timeout passes; returns its last value."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FailingProvider(IsolationProvider):
    """Provider whose tiers fail according to a set of broken tiers."""

    def __init__(self, primary_path, broken=tuple(IsolationTier)):
        self.primary_path = str(primary_path)
        self.broken = set(broken)
        self.reclaimed = []
        self.calls = []
        self.ping_error = None

    def _attempt(self, tier, context_id):
        self.calls.append((tier, context_id))
        if tier in self.broken:
            raise IsolationUnavailable(f"{tier.value} broken")
        return ConnectionDescriptor(self.primary_path, self.primary_path, tier)

    def try_zero_copy_clone(self, context_id):
        return self._attempt(IsolationTier.ZERO_COPY, context_id)

    def try_standard_clone(self, context_id):
        return self._attempt(IsolationTier.STANDARD, context_id)

    def fallback_to_shared(self, context_id):
        return self._attempt(IsolationTier.SHARED, context_id)

    def reclaim(self, connection):
        self.reclaimed.append(connection)

    def ping(self):
        if self.ping_error is not None:
            raise self.ping_error
        return True


@pytest.fixture(autouse=True)
def event_log(tmp_path, monkeypatch):
    """Send lifecycle events to a per-test file."""
    path = tmp_path / "lifecycle_events.log"
    monkeypatch.setattr(event_logging, "LIFECYCLE_EVENTS_FILE", path)
    return path


@pytest.fixture
def fast_config():
    return load_scoring_config(
        overrides={"coordinator": {"task_timeout_s": 2.0, "dynamic_weights": False}}
    )


@pytest.fixture
def store(tmp_path):
    """Primary store seeded with one resume and one job."""
    store = SqliteStore(tmp_path / "primary.sqlite")
    store.init_schema()
    store.put_subject("resume", "resume_001", RESUME)
    store.put_subject("job", "job_042", JOB)
    return store


@pytest.fixture
def provider(store, tmp_path):
    # Reflinks depend on the filesystem; standard and shared behave the same everywhere
    return SqliteIsolationProvider(store.db_path, tmp_path / "clones", enabled_tiers=["standard", "shared"])


@pytest.fixture
def manager(provider, store):
    manager = ExecutionContextManager(provider, ledger=store)
    yield manager
    manager.shutdown()


@pytest.fixture
def release_event():
    """Event that unblocks slow scripted units at teardown."""
    event = threading.Event()
    yield event
    event.set()
