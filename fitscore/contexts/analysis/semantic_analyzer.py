"""
Semantic analyzer: overall textual similarity of resume and job.

Texts are embedded as hashed bag-of-words vectors (EMBEDDING_DIM components,
md5-seeded so results are stable across processes) and compared by cosine
similarity. Score = (similarity + 1) / 2 * 100. Evidence also reports how many
of the job's most frequent keywords appear in the resume.
"""

import hashlib
import re
from collections import Counter
from functools import lru_cache
from typing import Any, Dict, List

import numpy as np

from fitscore.contexts.analysis.base_unit import AnalysisUnit, job_text, resume_text
from fitscore.contexts.analysis.result_schema import AnalysisType
from fitscore.exceptions import DataUnavailable

EMBEDDING_DIM = 384
MAX_TOKENS = 1000
TOP_WORD_BOOST = 0.5
TOP_WORDS = 50
KEYWORD_COUNT = 20
REPORTED_KEYWORDS = 10

STOPWORDS = frozenset(
    "about also and are been but can for from has have into more our over such than that "
    "the their them then there these they this those through will with within work working "
    "you your".split()
)

_TOKEN_SPLIT = re.compile(r"\W+")
_COMPONENTS = np.arange(EMBEDDING_DIM, dtype=np.int64)


def tokenize(text: str, min_length: int = 3) -> List[str]:
    return [t for t in _TOKEN_SPLIT.split(text.lower()) if len(t) >= min_length and t not in STOPWORDS]


def _word_hash(word: str) -> int:
    return int(hashlib.md5(word.encode("utf-8")).hexdigest()[:8], 16)


@lru_cache(maxsize=256)
def embed_text(text: str) -> np.ndarray:
    """
    Hashed bag-of-words embedding, L2-normalized (read-only array).

    Each word spreads a deterministic pattern in [-0.5, 0.5) across all
    components; the most frequent words get an extra bump in one component.
    """
    words = tokenize(text)[:MAX_TOKENS]
    vector = np.zeros(EMBEDDING_DIM, dtype=np.float64)

    for word in words:
        h = _word_hash(word)
        pattern = ((h + _COMPONENTS * 73) ^ (_COMPONENTS * 193)) & 0xFF
        vector += pattern / 256.0 - 0.5

    counts = Counter(words)
    for word, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_WORDS]:
        vector[_word_hash(word) % EMBEDDING_DIM] += TOP_WORD_BOOST

    norm = np.linalg.norm(vector)
    if norm > 0:
        vector /= norm
    vector.setflags(write=False)
    return vector


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / norm, -1.0, 1.0))


def top_keywords(text: str, n: int = KEYWORD_COUNT) -> List[str]:
    """Most frequent meaningful words (ties broken alphabetically)."""
    counts = Counter(tokenize(text, min_length=4))
    return [word for word, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:n]]


class SemanticAnalyzer(AnalysisUnit):
    analysis_type = AnalysisType.SEMANTIC

    def analyze(self, resume: Dict[str, Any], job: Dict[str, Any]) -> Dict[str, Any]:
        resume_body = resume_text(resume)
        job_body = job_text(job)
        if not resume_body.strip() or not job_body.strip():
            raise DataUnavailable("Insufficient text for semantic analysis", self.analysis_type.value, self._context_id)

        similarity = cosine_similarity(embed_text(resume_body), embed_text(job_body))

        keywords = top_keywords(job_body)
        resume_words = set(tokenize(resume_body, min_length=4))
        covered = [word for word in keywords if word in resume_words]
        coverage = len(covered) / len(keywords) if keywords else 0.0

        return {
            "score": round((similarity + 1) / 2 * 100, 2),
            "evidence": {
                "similarity": round(similarity, 4),
                "top_keywords": keywords[:REPORTED_KEYWORDS],
                "covered_keywords": covered,
                "keyword_coverage": round(coverage, 4),
                "embedding_dim": EMBEDDING_DIM,
            },
        }
