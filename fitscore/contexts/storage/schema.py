"""
SQLite schema for the storage collaborator.

execution_contexts and analysis_results deliberately share column names
(analysis_type, resume_id, job_id, status, created_at). Every query that joins
them must qualify every column with its table alias.
"""

SCHEMA = """
CREATE TABLE IF NOT EXISTS resumes (
    resume_id   TEXT PRIMARY KEY,
    data        TEXT NOT NULL,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS jobs (
    job_id      TEXT PRIMARY KEY,
    data        TEXT NOT NULL,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS execution_contexts (
    context_id      TEXT PRIMARY KEY,
    run_id          TEXT NOT NULL,
    analysis_type   TEXT NOT NULL,
    resume_id       TEXT NOT NULL,
    job_id          TEXT NOT NULL,
    status          TEXT NOT NULL,
    isolation_tier  TEXT,
    created_at      TEXT NOT NULL,
    completed_at    TEXT,
    duration_ms     REAL,
    error           TEXT
);

CREATE TABLE IF NOT EXISTS analysis_results (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    context_id      TEXT NOT NULL,
    analysis_type   TEXT NOT NULL,
    resume_id       TEXT NOT NULL,
    job_id          TEXT NOT NULL,
    status          TEXT NOT NULL,
    score           REAL,
    evidence        TEXT,
    timing_ms       REAL,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS composite_scores (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id              TEXT UNIQUE NOT NULL,
    resume_id           TEXT NOT NULL,
    job_id              TEXT NOT NULL,
    composite_score     REAL,
    overall_status      TEXT NOT NULL,
    weights             TEXT NOT NULL,
    scores              TEXT NOT NULL,
    processing_time_ms  REAL,
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_contexts_status_created ON execution_contexts(status, created_at);
CREATE INDEX IF NOT EXISTS idx_contexts_resume_job ON execution_contexts(resume_id, job_id);
CREATE INDEX IF NOT EXISTS idx_contexts_run ON execution_contexts(run_id);
CREATE INDEX IF NOT EXISTS idx_results_context ON analysis_results(context_id);
CREATE INDEX IF NOT EXISTS idx_results_resume_job ON analysis_results(resume_id, job_id, analysis_type);
CREATE INDEX IF NOT EXISTS idx_composite_resume_job ON composite_scores(resume_id, job_id);
"""

SUBJECT_TABLES = {
    "resume": ("resumes", "resume_id"),
    "job": ("jobs", "job_id"),
}

# Per-analyzer aggregate over contexts and their stored results
ANALYSIS_PERFORMANCE_QUERY = """
SELECT
    ec.analysis_type                                            AS analysis_type,
    COUNT(ec.context_id)                                        AS runs,
    SUM(CASE WHEN ec.status = 'completed' THEN 1 ELSE 0 END)   AS completed,
    SUM(CASE WHEN ec.status = 'failed' THEN 1 ELSE 0 END)      AS failed,
    ROUND(AVG(ar.score), 2)                                     AS avg_score,
    ROUND(AVG(ec.duration_ms), 1)                               AS avg_duration_ms,
    MAX(ec.duration_ms)                                         AS max_duration_ms
FROM execution_contexts AS ec
LEFT JOIN analysis_results AS ar ON ar.context_id = ec.context_id
GROUP BY ec.analysis_type
ORDER BY ec.analysis_type
"""

CONTEXT_STATS_QUERY = """
SELECT
    ec.context_id       AS context_id,
    ec.run_id           AS run_id,
    ec.analysis_type    AS analysis_type,
    ec.status           AS context_status,
    ec.isolation_tier   AS isolation_tier,
    ec.duration_ms      AS duration_ms,
    ec.error            AS error,
    ar.status           AS result_status,
    ar.score            AS score
FROM execution_contexts AS ec
LEFT JOIN analysis_results AS ar ON ar.context_id = ec.context_id
WHERE ec.resume_id = ? AND ec.job_id = ?
ORDER BY ec.created_at DESC, ec.analysis_type
"""

RUN_BREAKDOWN_QUERY = """
SELECT
    cs.run_id           AS run_id,
    cs.composite_score  AS composite_score,
    cs.overall_status   AS overall_status,
    ec.analysis_type    AS analysis_type,
    ec.status           AS context_status,
    ec.isolation_tier   AS isolation_tier,
    ar.score            AS score,
    ar.timing_ms        AS timing_ms
FROM composite_scores AS cs
JOIN execution_contexts AS ec ON ec.run_id = cs.run_id
LEFT JOIN analysis_results AS ar ON ar.context_id = ec.context_id
WHERE cs.run_id = ?
ORDER BY ec.analysis_type
"""
