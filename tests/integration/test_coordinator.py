"""Integration tests for Coordinator.score(): dispatch, timeouts, isolation and aggregation."""

import sqlite3
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import RESUME, FailingProvider, ScriptedUnit, scripted, wait_until

from fitscore.contexts.analysis import UnitState
from fitscore.contexts.analysis.result_schema import AnalysisStatus, AnalysisType
from fitscore.contexts.coordination import Coordinator, OverallStatus
from fitscore.contexts.isolation import ExecutionContextManager
from fitscore.contexts.isolation.context_data_structure import ContextStatus, IsolationTier
from fitscore.contexts.storage import SqliteStore
from fitscore.exceptions import CoordinatorError, ErrorKind, InvalidRequest
from fitscore.utils import event_logging
from fitscore.utils.config import load_scoring_config
from fitscore.utils.event_logging import SCORE_COMPLETED, TASK_OUTCOME, get_recent_events

SKILL = AnalysisType.SKILL
CERTIFICATION = AnalysisType.CERTIFICATION

SCORES = {
    AnalysisType.SKILL: 87.5,
    AnalysisType.EXPERIENCE: 92.1,
    AnalysisType.EDUCATION: 65.8,
    AnalysisType.CERTIFICATION: 71.4,
    AnalysisType.SEMANTIC: 76.2,
}
WEIGHTS = {"skill": 0.35, "experience": 0.25, "education": 0.15, "certification": 0.10, "semantic": 0.15}


def make_coordinator(manager, store, config, overrides=None, **kwargs):
    analyzers = {t: scripted(t, score=s) for t, s in SCORES.items()}
    analyzers.update(overrides or {})
    return Coordinator(manager, analyzers=analyzers, store=store, config=config, **kwargs)


@pytest.fixture
def coordinator(manager, store, fast_config):
    return make_coordinator(manager, store, fast_config)


@pytest.fixture
def make_manager(store):
    """Build managers over custom providers; all are shut down at teardown."""
    managers = []

    def build(provider, **kwargs):
        manager = ExecutionContextManager(provider, ledger=store, **kwargs)
        managers.append(manager)
        return manager

    yield build
    for manager in managers:
        manager.shutdown()


class BrokenCompositeStore(SqliteStore):
    def put_composite(self, composite):
        raise sqlite3.OperationalError("disk I/O error")


class GatedStore(SqliteStore):
    """Store whose subject reads wait on a gate, holding a unit in its loading step."""

    def __init__(self, db_path, gate):
        super().__init__(db_path)
        self.gate = gate

    def get_subject(self, kind, subject_id):
        self.gate.wait(30)
        return super().get_subject(kind, subject_id)


# =============================================================================
# HAPPY PATH
# =============================================================================


@pytest.mark.integration
def test_all_analyses_succeed(coordinator, manager, store):
    composite = coordinator.score("resume_001", "job_042", WEIGHTS)

    assert composite.overall_status is OverallStatus.COMPLETE
    assert composite.composite_score == pytest.approx(82.09)
    assert composite.weight_source == "caller"
    assert all(r.status is AnalysisStatus.SUCCESS for r in composite.results.values())

    # Every context released as completed and recorded in the ledger
    for result in composite.results.values():
        assert manager.get(result.context_id).status is ContextStatus.COMPLETED
    stats = store.context_stats("resume_001", "job_042")
    assert len(stats) == 5
    assert {row["context_status"] for row in stats} == {"completed"}


@pytest.mark.integration
def test_each_analysis_gets_its_own_context(coordinator, manager):
    composite = coordinator.score("resume_001", "job_042", WEIGHTS)

    context_ids = [r.context_id for r in composite.results.values()]
    assert len(set(context_ids)) == 5
    for analysis_type, result in composite.results.items():
        context = manager.get(result.context_id)
        assert context.analysis_type is analysis_type
        assert context.run_id == composite.run_id


@pytest.mark.integration
def test_composite_persisted(coordinator, store):
    composite = coordinator.score("resume_001", "job_042", WEIGHTS)

    stored = store.get_composite("resume_001", "job_042")

    assert composite.persisted is True
    assert stored["run_id"] == composite.run_id
    assert stored["composite_score"] == pytest.approx(82.09)
    assert stored["overall_status"] == "Complete"


@pytest.mark.integration
def test_events_emitted_per_task_and_per_run(coordinator):
    composite = coordinator.score("resume_001", "job_042", WEIGHTS)

    outcomes = get_recent_events(n=100, event_type=TASK_OUTCOME, run_id=composite.run_id)
    completed = get_recent_events(n=100, event_type=SCORE_COMPLETED, run_id=composite.run_id)

    assert sorted(e["analysis_type"] for e in outcomes) == sorted(t.value for t in SCORES)
    assert len(completed) == 1
    assert completed[0]["status"] == "Complete"


@pytest.mark.integration
def test_scoring_twice_gives_same_scores(coordinator):
    first = coordinator.score("resume_001", "job_042", WEIGHTS)
    second = coordinator.score("resume_001", "job_042", WEIGHTS)

    assert first.run_id != second.run_id
    assert first.composite_score == second.composite_score
    assert {t: first.score_of(t) for t in SCORES} == {t: second.score_of(t) for t in SCORES}


@pytest.mark.integration
def test_concurrent_runs_are_isolated(coordinator, manager, store):
    store.put_subject("resume", "resume_002", dict(RESUME, name="Sam Okafor"))

    with ThreadPoolExecutor(max_workers=2) as pool:
        first = pool.submit(coordinator.score, "resume_001", "job_042", WEIGHTS)
        second = pool.submit(coordinator.score, "resume_002", "job_042", WEIGHTS)
        first, second = first.result(), second.result()

    first_ids = {r.context_id for r in first.results.values()}
    second_ids = {r.context_id for r in second.results.values()}
    assert first_ids.isdisjoint(second_ids)
    for composite, ids in ((first, first_ids), (second, second_ids)):
        assert composite.overall_status is OverallStatus.COMPLETE
        for context_id in ids:
            context = manager.get(context_id)
            assert context.run_id == composite.run_id
            assert context.subject_refs.resume_id == composite.resume_id


# =============================================================================
# TIMEOUTS
# =============================================================================


@pytest.mark.integration
def test_slow_analysis_times_out(manager, store, fast_config, release_event):
    units = []

    def slow_certification():
        unit = ScriptedUnit(CERTIFICATION, delay_s=30, release=release_event)
        units.append(unit)
        return unit

    coordinator = make_coordinator(
        manager, store, fast_config, {CERTIFICATION: slow_certification}, task_timeout_s=0.5
    )

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)
    certification = composite.results[CERTIFICATION]

    assert composite.overall_status is OverallStatus.PARTIAL
    assert composite.composite_score == pytest.approx(83.28)
    assert certification.status is AnalysisStatus.TIMED_OUT
    assert certification.error_kind is ErrorKind.TIMEOUT_EXCEEDED
    assert CERTIFICATION not in composite.weights_used
    assert composite.processing_time_ms < 5000

    # Context released as failed without waiting for the worker
    context = manager.get(certification.context_id)
    assert context.status is ContextStatus.FAILED
    assert "Timed out" in context.error

    # Once unblocked, the abandoned unit stops without persisting
    release_event.set()
    assert wait_until(lambda: units[0].state is UnitState.DONE)
    stored_types = {row["analysis_type"] for row in store.get_results("resume_001", "job_042")}
    assert "certification" not in stored_types
    assert manager.get(certification.context_id).status is ContextStatus.FAILED


@pytest.mark.integration
def test_abandoned_load_leaves_no_clone_behind(manager, store, fast_config, release_event, tmp_path):
    units = []

    def gated_skill():
        unit = ScriptedUnit(SKILL, store_factory=lambda uri: GatedStore(uri, release_event))
        units.append(unit)
        return unit

    coordinator = make_coordinator(manager, store, fast_config, {SKILL: gated_skill}, task_timeout_s=0.5)

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)
    assert composite.results[SKILL].status is AnalysisStatus.TIMED_OUT

    # The clone was reclaimed on timeout; the late read must not recreate it
    release_event.set()
    assert wait_until(lambda: units[0].state is UnitState.DONE)
    assert list((tmp_path / "clones").glob("*.sqlite")) == []


@pytest.mark.integration
def test_tasks_inside_budget_succeed(manager, store, fast_config):
    slow_enough = {t: scripted(t, score=s, delay_s=0.1) for t, s in SCORES.items()}
    coordinator = make_coordinator(manager, store, fast_config, slow_enough, task_timeout_s=1.0)

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)

    assert composite.overall_status is OverallStatus.COMPLETE


@pytest.mark.integration
def test_timeout_must_be_positive(manager, store, fast_config):
    with pytest.raises(ValueError, match="task_timeout_s"):
        make_coordinator(manager, store, fast_config, task_timeout_s=0)


# =============================================================================
# DEGRADED ANALYSES
# =============================================================================


@pytest.mark.integration
def test_raising_analyzer_becomes_failed_result(manager, store, fast_config):
    coordinator = make_coordinator(
        manager, store, fast_config, {SKILL: scripted(SKILL, raises=RuntimeError("model crashed"))}
    )

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)
    response = composite.to_response()

    assert composite.overall_status is OverallStatus.PARTIAL
    assert response["perTaskStatus"]["skill"] == "Failed"
    assert response["perTaskError"]["skill"]["kind"] == "AnalysisError"
    assert "model crashed" in response["perTaskError"]["skill"]["message"]
    assert response["scores"]["skill"] is None
    assert manager.get(composite.results[SKILL].context_id).status is ContextStatus.FAILED


@pytest.mark.integration
def test_every_analysis_failing_gives_no_composite(manager, store, fast_config):
    failing = {t: scripted(t, raises=ValueError("bad input")) for t in SCORES}
    coordinator = make_coordinator(manager, store, fast_config, failing)

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)

    assert composite.overall_status is OverallStatus.FAILED
    assert composite.composite_score is None
    assert composite.weights_used == {}


@pytest.mark.integration
def test_all_tiers_exhausted(make_manager, store, fast_config):
    provider = FailingProvider(store.db_path)
    coordinator = make_coordinator(make_manager(provider), store, fast_config)

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)
    response = composite.to_response()

    assert composite.overall_status is OverallStatus.FAILED
    assert composite.composite_score is None
    assert {e["kind"] for e in response["perTaskError"].values()} == {"ContextAcquisitionFailure"}
    # Three attempts per task, in tier order
    skill_calls = [tier for tier, context_id in provider.calls if context_id.startswith("ctx_skill")]
    assert skill_calls == [IsolationTier.ZERO_COPY, IsolationTier.STANDARD, IsolationTier.SHARED]


@pytest.mark.integration
def test_falls_back_to_shared_tier(make_manager, store, fast_config):
    provider = FailingProvider(store.db_path, broken=(IsolationTier.ZERO_COPY, IsolationTier.STANDARD))
    manager = make_manager(provider)
    coordinator = make_coordinator(manager, store, fast_config)

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)

    assert composite.overall_status is OverallStatus.COMPLETE
    for result in composite.results.values():
        assert manager.get(result.context_id).isolation_tier is IsolationTier.SHARED
    assert len(provider.reclaimed) == 5


@pytest.mark.integration
def test_context_limit_rejects_extra_tasks(make_manager, provider, store, fast_config):
    manager = make_manager(provider, max_concurrent_contexts=2)
    busy = {t: scripted(t, score=s, delay_s=0.5) for t, s in SCORES.items()}
    coordinator = make_coordinator(manager, store, fast_config, busy)

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)
    kinds = [r.error_kind for r in composite.results.values() if not r.is_success]

    assert composite.overall_status is OverallStatus.PARTIAL
    assert kinds and set(kinds) == {ErrorKind.CONTEXT_ACQUISITION}
    assert len(kinds) <= 3


@pytest.mark.integration
def test_composite_persist_failure_is_flagged(manager, store, fast_config):
    coordinator = make_coordinator(manager, BrokenCompositeStore(store.db_path), fast_config)

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)

    assert composite.overall_status is OverallStatus.COMPLETE
    assert composite.persisted is False
    assert "disk I/O error" in composite.persist_error
    assert composite.to_response()["persisted"] is False


@pytest.mark.integration
def test_unwritable_event_log_does_not_break_scoring(coordinator, manager, tmp_path, monkeypatch):
    # A directory where the event log file should be makes every append fail
    monkeypatch.setattr(event_logging, "LIFECYCLE_EVENTS_FILE", tmp_path)

    composite = coordinator.score("resume_001", "job_042", WEIGHTS)

    assert composite.overall_status is OverallStatus.COMPLETE
    assert composite.composite_score == pytest.approx(82.09)
    assert {c.status for c in manager.list_contexts()} == {ContextStatus.COMPLETED}


# =============================================================================
# WEIGHTS
# =============================================================================


@pytest.mark.integration
def test_default_weights_from_config(coordinator):
    composite = coordinator.score("resume_001", "job_042")

    assert composite.weight_source == "default"
    assert composite.weights_requested[SKILL] == pytest.approx(0.25)
    assert sum(composite.weights_used.values()) == pytest.approx(1.0)


@pytest.mark.integration
def test_dynamic_weights_from_job_posting(manager, store):
    config = load_scoring_config(overrides={"coordinator": {"task_timeout_s": 2.0, "dynamic_weights": True}})
    coordinator = make_coordinator(manager, store, config)

    composite = coordinator.score("resume_001", "job_042")

    assert composite.weight_source == "optimizer"
    assert sum(composite.weights_requested.values()) == pytest.approx(1.0)
    assert max(composite.weights_requested, key=composite.weights_requested.get) is SKILL


@pytest.mark.integration
def test_partial_weights_zero_the_rest(coordinator):
    composite = coordinator.score("resume_001", "job_042", {"skill": 1.0})

    assert composite.overall_status is OverallStatus.COMPLETE
    assert composite.composite_score == pytest.approx(87.5)
    assert composite.weights_used[SKILL] == pytest.approx(1.0)


# =============================================================================
# REJECTED REQUESTS
# =============================================================================


@pytest.mark.integration
@pytest.mark.parametrize(
    "resume_id, job_id",
    [("", "job_042"), ("resume 001", "job_042"), ("resume_001", "x" * 129), ("resume_001", None)],
)
def test_malformed_identifiers_rejected(coordinator, resume_id, job_id):
    with pytest.raises(InvalidRequest):
        coordinator.score(resume_id, job_id)


@pytest.mark.integration
@pytest.mark.parametrize(
    "weights",
    [{"skill": -0.5}, {"skill": "high"}, {"skill": True}, {"skill": float("nan")}, {"charisma": 1.0}, {"skill": 0}],
)
def test_malformed_weights_rejected(coordinator, weights):
    with pytest.raises(InvalidRequest):
        coordinator.score("resume_001", "job_042", weights)


@pytest.mark.integration
def test_weight_for_unregistered_analysis_rejected(coordinator):
    coordinator.unregister(AnalysisType.SEMANTIC)
    with pytest.raises(InvalidRequest, match="semantic"):
        coordinator.score("resume_001", "job_042", {"semantic": 1.0})


@pytest.mark.integration
def test_no_analyzers_registered(manager, store, fast_config):
    coordinator = Coordinator(manager, analyzers={}, store=store, config=fast_config)
    with pytest.raises(CoordinatorError, match="No analyzers"):
        coordinator.score("resume_001", "job_042")


@pytest.mark.integration
def test_rejected_request_creates_no_contexts(coordinator, manager):
    with pytest.raises(InvalidRequest):
        coordinator.score("resume_001", "job_042", {"skill": -1})
    assert manager.list_contexts() == []
