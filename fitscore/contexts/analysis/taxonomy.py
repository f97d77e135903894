"""
Reference vocabularies for the specialized analyzers.

Skill taxonomy and aliases, education levels and technical fields, and the
certification catalog, plus the matching helpers built on them. Matching is
whole-word and case-insensitive unless noted.
"""

import difflib
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

# =============================================================================
# SKILLS
# =============================================================================

SKILL_TAXONOMY = {
    "languages": (
        "Python", "JavaScript", "TypeScript", "Java", "C++", "C#", "Go", "Rust", "PHP", "Ruby",
        "Swift", "Kotlin", "Scala", "R", "MATLAB", "Perl", "Bash", "PowerShell", "Haskell",
        "Elixir", "Julia", "Dart", "SQL",
    ),
    "frontend": (
        "React", "Vue.js", "Angular", "Next.js", "Svelte", "jQuery", "Redux", "HTML", "CSS",
        "SASS", "Tailwind", "Bootstrap", "Webpack", "Vite",
    ),
    "backend": (
        "Node.js", "Express", "Django", "Flask", "FastAPI", "Spring", "Spring Boot", "ASP.NET",
        "Ruby on Rails", "Laravel", "Nest.js", "GraphQL", "REST", "gRPC", "Microservices",
    ),
    "data_stores": (
        "PostgreSQL", "MySQL", "MongoDB", "Redis", "Elasticsearch", "Cassandra", "DynamoDB",
        "SQLite", "Oracle", "SQL Server", "Neo4j", "ClickHouse", "Snowflake", "BigQuery",
    ),
    "cloud_infra": (
        "AWS", "Azure", "Google Cloud", "Docker", "Kubernetes", "Helm", "Terraform",
        "CloudFormation", "Ansible", "Jenkins", "GitHub Actions", "GitLab CI", "CircleCI",
        "Linux", "Nginx", "Serverless", "CI/CD",
    ),
    "data_ml": (
        "Machine Learning", "Deep Learning", "TensorFlow", "PyTorch", "Keras", "Scikit-learn",
        "Pandas", "NumPy", "SciPy", "XGBoost", "Spark", "Hadoop", "Airflow", "Kafka", "NLP",
        "Computer Vision", "Tableau", "Power BI", "Data Science",
    ),
    "practices": (
        "Git", "Agile", "Scrum", "Kanban", "DevOps", "SRE", "TDD", "Prometheus", "Grafana",
        "Datadog", "OAuth", "JWT", "RabbitMQ", "Celery", "pytest", "Jest", "Selenium",
    ),
}

SKILL_ALIASES = {
    "js": "JavaScript",
    "ts": "TypeScript",
    "golang": "Go",
    "nodejs": "Node.js",
    "node": "Node.js",
    "reactjs": "React",
    "react.js": "React",
    "vue": "Vue.js",
    "vuejs": "Vue.js",
    "nextjs": "Next.js",
    "postgres": "PostgreSQL",
    "psql": "PostgreSQL",
    "mongo": "MongoDB",
    "k8s": "Kubernetes",
    "gcp": "Google Cloud",
    "amazon web services": "AWS",
    "sklearn": "Scikit-learn",
    "scikit learn": "Scikit-learn",
    "ml": "Machine Learning",
    "dl": "Deep Learning",
    "apache spark": "Spark",
    "pyspark": "Spark",
    "tf": "TensorFlow",
    "rails": "Ruby on Rails",
    "ci cd": "CI/CD",
}

# Matched with case; too easily confused with ordinary words otherwise
CASE_SENSITIVE_SKILLS = {"Go", "R", "REST", "Spring", "Express", "Swift", "Dart"}

FUZZY_CUTOFF = 0.85

ALL_SKILLS = tuple(skill for group in SKILL_TAXONOMY.values() for skill in group)
_CANONICAL = {skill.lower(): skill for skill in ALL_SKILLS}


def _term_pattern(term: str, case_sensitive: bool = False) -> re.Pattern:
    """Whole-term pattern that tolerates symbols like '+', '#' and '.' inside the term."""
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(rf"(?<![\w+#.]){re.escape(term)}(?![\w+#])", flags)


_SKILL_PATTERNS: List[Tuple[str, re.Pattern]] = [
    (skill, _term_pattern(skill, skill in CASE_SENSITIVE_SKILLS)) for skill in ALL_SKILLS
] + [
    (canonical, _term_pattern(alias))
    for alias, canonical in SKILL_ALIASES.items()
    if len(alias) > 4 or not alias.isalpha()
]


def extract_skills(text: str) -> List[str]:
    """
    Find taxonomy skills mentioned in free text.

    Returns:
        Canonical skill names, sorted, without duplicates
    """
    if not text:
        return []
    return sorted({skill for skill, pattern in _SKILL_PATTERNS if pattern.search(text)})


def canonical_skill(name: str) -> Optional[str]:
    """
    Resolve a listed skill to its canonical name.

    Tries exact taxonomy names, then aliases, then close spellings
    (difflib ratio >= FUZZY_CUTOFF). Returns None for unknown skills.
    """
    key = name.strip().lower()
    if not key:
        return None
    if key in _CANONICAL:
        return _CANONICAL[key]
    if key in SKILL_ALIASES:
        return SKILL_ALIASES[key]
    close = difflib.get_close_matches(key, _CANONICAL.keys(), n=1, cutoff=FUZZY_CUTOFF)
    return _CANONICAL[close[0]] if close else None


def closest_skill(name: str, candidates) -> Optional[str]:
    """Most similar candidate skill name (difflib ratio >= FUZZY_CUTOFF), or None."""
    lowered = {c.lower(): c for c in candidates}
    close = difflib.get_close_matches(name.lower(), sorted(lowered), n=1, cutoff=FUZZY_CUTOFF)
    return lowered[close[0]] if close else None


# =============================================================================
# EDUCATION
# =============================================================================

# Tier 0 means unknown / not required
EDUCATION_LEVELS = {
    "high school diploma": 1,
    "high school": 1,
    "ged": 1,
    "associate degree": 2,
    "associate's": 2,
    "associate": 2,
    "bachelor's": 3,
    "bachelors": 3,
    "bachelor": 3,
    "undergraduate degree": 3,
    "master's": 4,
    "masters": 4,
    "master": 4,
    "mba": 4,
    "doctorate": 5,
    "doctoral": 5,
    "ph.d": 5,
    "phd": 5,
    "professional degree": 5,
}

# Only trusted in dedicated education fields; too ambiguous in free text
DEGREE_ABBREVIATIONS = {
    "b.s.": 3, "b.a.": 3, "bs": 3, "ba": 3, "bsc": 3,
    "m.s.": 4, "m.a.": 4, "ms": 4, "ma": 4, "msc": 4,
    "md": 5,
}

TIER_NAMES = {
    0: "None",
    1: "High School",
    2: "Associate's",
    3: "Bachelor's",
    4: "Master's",
    5: "Doctorate",
}

TECH_FIELDS = (
    "computer science", "computer engineering", "software engineering", "engineering",
    "electrical", "mechanical", "software", "information technology", "information systems",
    "data science", "machine learning", "artificial intelligence", "cybersecurity",
    "mathematics", "statistics", "physics", "systems",
)

_EDUCATION_PATTERNS = [
    (tier, _term_pattern(term)) for term, tier in sorted(EDUCATION_LEVELS.items(), key=lambda kv: -len(kv[0]))
]
_ABBREVIATION_PATTERNS = [(tier, _term_pattern(term)) for term, tier in DEGREE_ABBREVIATIONS.items()]
_FIELD_PATTERNS = [(field, _term_pattern(field)) for field in TECH_FIELDS]


def education_tier(text: str, allow_abbreviations: bool = True) -> int:
    """Highest education tier mentioned in text (0 if none)."""
    if not text:
        return 0
    patterns = _EDUCATION_PATTERNS + (_ABBREVIATION_PATTERNS if allow_abbreviations else [])
    return max((tier for tier, pattern in patterns if pattern.search(text)), default=0)


_EDUCATION_CUE = re.compile(
    r"degree|diploma|universit|college|graduat|studied|phd|ph\.d|doctorate|mba|\bged\b",
    re.IGNORECASE,
)
_SENTENCE_SPLIT = re.compile(r"[.;\n]+(?:\s|$)")


def education_tier_in_text(text: str) -> int:
    """
    Highest education tier in free text, counting only sentences about education.

    Keeps titles like "Scrum Master" from reading as a master's degree.
    """
    if not text:
        return 0
    return max(
        (
            education_tier(sentence, allow_abbreviations=False)
            for sentence in _SENTENCE_SPLIT.split(text)
            if _EDUCATION_CUE.search(sentence)
        ),
        default=0,
    )


def find_tech_field(text: str) -> Optional[str]:
    """First technical field of study mentioned in text (most specific first), or None."""
    if not text:
        return None
    for field, pattern in _FIELD_PATTERNS:
        if pattern.search(text):
            return field
    return None


# =============================================================================
# CERTIFICATIONS
# =============================================================================


@dataclass(frozen=True)
class CertificationInfo:
    """Catalog entry for one certification."""

    name: str
    category: str
    value: int
    vendor: str


CERT_CATALOG = {
    "aws solutions architect": CertificationInfo("AWS Solutions Architect", "cloud", 9, "AWS"),
    "aws developer": CertificationInfo("AWS Developer", "cloud", 8, "AWS"),
    "aws certified": CertificationInfo("AWS Certified", "cloud", 7, "AWS"),
    "azure solutions architect": CertificationInfo("Azure Solutions Architect", "cloud", 9, "Azure"),
    "azure administrator": CertificationInfo("Azure Administrator", "cloud", 8, "Azure"),
    "azure fundamentals": CertificationInfo("Azure Fundamentals", "cloud", 7, "Azure"),
    "gcp professional": CertificationInfo("GCP Professional", "cloud", 8, "GCP"),
    "ckad": CertificationInfo("CKAD", "containers", 9, "CNCF"),
    "cka": CertificationInfo("CKA", "containers", 9, "CNCF"),
    "cissp": CertificationInfo("CISSP", "security", 10, "ISC2"),
    "cism": CertificationInfo("CISM", "security", 10, "ISACA"),
    "oscp": CertificationInfo("OSCP", "security", 9, "Offensive Security"),
    "certified ethical hacker": CertificationInfo("CEH", "security", 8, "EC-Council"),
    "ceh": CertificationInfo("CEH", "security", 8, "EC-Council"),
    "security+": CertificationInfo("Security+", "security", 8, "CompTIA"),
    "network+": CertificationInfo("Network+", "security", 7, "CompTIA"),
    "pmp": CertificationInfo("PMP", "management", 9, "PMI"),
    "certified scrum master": CertificationInfo("Certified Scrum Master", "management", 7, "Scrum Alliance"),
    "csm": CertificationInfo("Certified Scrum Master", "management", 7, "Scrum Alliance"),
    "tensorflow developer": CertificationInfo("TensorFlow Developer", "ml", 8, "Google"),
    "tableau": CertificationInfo("Tableau", "data", 7, "Tableau"),
    "power bi": CertificationInfo("Power BI", "data", 7, "Microsoft"),
}

CRITICAL_CERTIFICATIONS = ("CISSP", "CISM", "OSCP", "PMP", "CKAD", "CKA", "AWS Solutions Architect")

# Confidence for catalog hits vs. unrecognized names taken at face value
CATALOG_CONFIDENCE = 0.95
UNCATALOGED_CONFIDENCE = 0.7
UNCATALOGED_VALUE = 5

_CERT_PATTERNS = [
    (key, _term_pattern(key)) for key in sorted(CERT_CATALOG, key=len, reverse=True)
]

_CERT_CUE = re.compile(r"certif|\bcert\b|\bcredential", re.IGNORECASE)


@dataclass(frozen=True)
class CertificationMatch:
    """A certification recognized in a resume or job."""

    name: str
    category: str
    value: int
    confidence: float


@lru_cache(maxsize=1024)
def match_certification(name: str) -> Optional[CertificationMatch]:
    """
    Resolve a listed certification name against the catalog.

    Unknown names longer than three characters are kept as-is with a lower
    confidence and a mid-range value.
    """
    cleaned = name.strip()
    for key, pattern in _CERT_PATTERNS:
        if pattern.search(cleaned):
            info = CERT_CATALOG[key]
            return CertificationMatch(info.name, info.category, info.value, CATALOG_CONFIDENCE)
    if len(cleaned) > 3:
        return CertificationMatch(cleaned, "other", UNCATALOGED_VALUE, UNCATALOGED_CONFIDENCE)
    return None


def certifications_in_text(text: str) -> List[CertificationMatch]:
    """
    Catalog certifications mentioned in sentences that talk about certification.

    Only catalog entries are recognized in free text.
    """
    if not text:
        return []

    found: Dict[str, CertificationMatch] = {}
    for sentence in _SENTENCE_SPLIT.split(text):
        if not _CERT_CUE.search(sentence):
            continue
        remaining = sentence
        for key, pattern in _CERT_PATTERNS:
            if pattern.search(remaining):
                info = CERT_CATALOG[key]
                found.setdefault(info.name, CertificationMatch(info.name, info.category, info.value, CATALOG_CONFIDENCE))
                # Longer keys win: "aws solutions architect" should not also count as "aws certified"
                remaining = pattern.sub(" ", remaining)
    return sorted(found.values(), key=lambda match: match.name)
