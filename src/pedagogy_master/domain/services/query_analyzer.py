"""Query analysis: decides what a teacher is actually asking for.

Pure keyword / regex classification.  The result selects the prompt
template, the expected response size, and whether the answer is cheap
enough to cache.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from pedagogy_master.domain.curriculum import extract_slo_codes
from pedagogy_master.domain.enums import (
    ComplexityLevel,
    ProviderName,
    QueryIntent,
    QueryType,
    ResponseLength,
)

_STOP_WORDS = frozenset(
    {"what", "is", "the", "how", "do", "i", "can", "you", "a", "an", "to", "for", "in", "on"}
)

# Federal style codes (S8a5) and explicit "SLO B-11-B-27" mentions
_SLO_PATTERNS = (
    re.compile(r"\b([A-Z])(\d{1,2})([a-z])(\d{1,2})\b"),
    re.compile(r"\bSLO[-\s]?([A-Z])[-\s]?(\d{1,2})[-\s]?([a-z])[-\s]?(\d{1,2})\b", re.IGNORECASE),
)

_LOOKUP_RE = re.compile(
    r"what is slo|define slo|tell me about slo|explain slo|slo\s+[a-z0-9-]+\s*\?", re.IGNORECASE
)
_LESSON_PLAN_RE = re.compile(
    r"create.*lesson plan|full lesson|complete lesson|lesson plan for|develop.*lesson|design.*lesson",
    re.IGNORECASE,
)
_TEACHING_RE = re.compile(
    r"how to teach|teaching strategies|activities for|teach this|ways to teach|methods for teaching",
    re.IGNORECASE,
)
_ASSESSMENT_RE = re.compile(
    r"quiz|test|assessment|questions for|mcq|exam|evaluate|worksheet", re.IGNORECASE
)
_DIFFERENTIATION_RE = re.compile(
    r"differentiate|struggling students|below grade|advanced students|scaffold|accommodation|modification",
    re.IGNORECASE,
)
_COMPARISON_RE = re.compile(r"\bcompare\b|\bcontrast\b|\bversus\b|\bvs\.?\s", re.IGNORECASE)
_ANALYSIS_RE = re.compile(r"analy[sz]e|audit|alignment|bloom|gap analysis", re.IGNORECASE)

_GRADE_DIGIT_RE = re.compile(r"(?:grade|class|level|yr|year|gr)\s*(\d{1,2})\b", re.IGNORECASE)
_GRADE_ROMAN_RE = re.compile(
    r"(?:grade|class|level|yr|year|gr)\s*(VIII|VII|VI|IV|IX|V|X)\b", re.IGNORECASE
)
_ROMAN_TO_GRADE = {"IV": "4", "V": "5", "VI": "6", "VII": "7", "VIII": "8", "IX": "9", "X": "10"}

COMMON_TOPICS = (
    "photosynthesis", "energy", "force", "cells", "ecosystem", "matter",
    "water cycle", "weather", "space", "electricity", "human body",
    "plants", "animals", "chemistry", "physics", "biology", "gravity", "dna", "genetics",
)

BLOOM_VERBS: dict[str, tuple[str, ...]] = {
    "Remember": ("define", "list", "what is", "recall", "identify"),
    "Understand": ("explain", "describe", "summarize", "classify"),
    "Apply": ("solve", "apply", "demonstrate", "how to use"),
    "Analyze": ("analyze", "compare", "contrast", "differentiate"),
    "Evaluate": ("evaluate", "justify", "critique", "assess"),
    "Create": ("design", "develop", "create", "synthesize"),
}


@dataclass
class QueryAnalysis:
    query_type: QueryType
    complexity_level: ComplexityLevel
    expected_response_length: ResponseLength
    user_intent: str
    extracted_slo: str | None = None
    keywords: list[str] = field(default_factory=list)


@dataclass
class ParsedQuery:
    raw: str
    slo_codes: list[str] = field(default_factory=list)
    grades: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    bloom_level: str | None = None
    difficulty_preference: str | None = None


@dataclass
class IntentResult:
    intent: QueryIntent
    complexity: int
    suggested_provider: ProviderName
    is_stem: bool
    requires_grounding: bool


def analyze_user_query(query: str) -> QueryAnalysis:
    """Classify a query; the first matching pattern wins."""
    keywords = extract_keywords(query)
    slo = extract_query_slo(query)

    if _LOOKUP_RE.search(query) and slo and len(query.split()) < 15:
        return QueryAnalysis(
            query_type=QueryType.LOOKUP,
            complexity_level=ComplexityLevel.SIMPLE,
            expected_response_length=ResponseLength.SHORT,
            user_intent="User wants brief definition of SLO from curriculum document",
            extracted_slo=slo,
            keywords=keywords,
        )

    if _LESSON_PLAN_RE.search(query):
        return QueryAnalysis(
            query_type=QueryType.LESSON_PLAN,
            complexity_level=ComplexityLevel.COMPLEX,
            expected_response_length=ResponseLength.LONG,
            user_intent="User wants complete structured lesson plan",
            extracted_slo=slo,
            keywords=keywords,
        )

    if _TEACHING_RE.search(query):
        return QueryAnalysis(
            query_type=QueryType.TEACHING,
            complexity_level=ComplexityLevel.MODERATE,
            expected_response_length=ResponseLength.MEDIUM,
            user_intent="User wants specific teaching strategies and activities",
            extracted_slo=slo,
            keywords=keywords,
        )

    if _ASSESSMENT_RE.search(query):
        return QueryAnalysis(
            query_type=QueryType.ASSESSMENT,
            complexity_level=ComplexityLevel.MODERATE,
            expected_response_length=ResponseLength.MEDIUM,
            user_intent="User wants quiz/test questions with answer key",
            extracted_slo=slo,
            keywords=keywords,
        )

    if _DIFFERENTIATION_RE.search(query):
        return QueryAnalysis(
            query_type=QueryType.DIFFERENTIATION,
            complexity_level=ComplexityLevel.MODERATE,
            expected_response_length=ResponseLength.MEDIUM,
            user_intent="User wants differentiation strategies for diverse learners",
            extracted_slo=slo,
            keywords=keywords,
        )

    return QueryAnalysis(
        query_type=QueryType.GENERAL,
        complexity_level=ComplexityLevel.MODERATE,
        expected_response_length=ResponseLength.MEDIUM,
        user_intent="General educational query",
        extracted_slo=slo,
        keywords=keywords,
    )


def extract_query_slo(query: str) -> str | None:
    for pattern in _SLO_PATTERNS:
        match = pattern.search(query)
        if match:
            return match.group(0)
    codes = extract_slo_codes(query)
    return codes[0] if codes else None


def extract_keywords(query: str, *, limit: int = 5) -> list[str]:
    words = query.lower().split()
    return [w for w in words if len(w) > 3 and w not in _STOP_WORDS][:limit]


def parse_user_query(query: str) -> ParsedQuery:
    """Pull structured filters (codes, grades, topics, Bloom level) out of a query."""
    lower = query.lower()

    grades: dict[str, None] = {}
    for match in _GRADE_DIGIT_RE.finditer(query):
        grades.setdefault(match.group(1), None)
    for match in _GRADE_ROMAN_RE.finditer(query):
        grades.setdefault(_ROMAN_TO_GRADE[match.group(1).upper()], None)

    bloom_level = next(
        (level for level, verbs in BLOOM_VERBS.items() if any(v in lower for v in verbs)),
        None,
    )

    difficulty: str | None = None
    if any(w in lower for w in ("struggling", "support", "easy")):
        difficulty = "Low"
    elif any(w in lower for w in ("advanced", "challenge", "gifted")):
        difficulty = "High"

    return ParsedQuery(
        raw=query,
        slo_codes=extract_slo_codes(query),
        grades=list(grades),
        topics=[t for t in COMMON_TOPICS if t in lower],
        bloom_level=bloom_level,
        difficulty_preference=difficulty,
    )


def classify_intent(query: str, analysis: QueryAnalysis | None = None) -> IntentResult:
    """Map a query onto an intent, a 1-3 complexity score, and a provider hint.

    Complexity 3 marks expensive synthesis that should never be served from
    the response cache.
    """
    analysis = analysis or analyze_user_query(query)
    parsed = parse_user_query(query)

    if analysis.query_type == QueryType.LOOKUP:
        intent, complexity = QueryIntent.LOOKUP, 1
    elif analysis.query_type == QueryType.LESSON_PLAN:
        intent, complexity = QueryIntent.CREATION, 3
    elif analysis.query_type in (
        QueryType.TEACHING,
        QueryType.ASSESSMENT,
        QueryType.DIFFERENTIATION,
    ):
        intent, complexity = QueryIntent.CREATION, 2
    elif _COMPARISON_RE.search(query):
        intent, complexity = QueryIntent.COMPARISON, 2
    elif _ANALYSIS_RE.search(query):
        intent, complexity = QueryIntent.ANALYSIS, 2
    else:
        intent, complexity = QueryIntent.GENERAL, 2

    if intent == QueryIntent.LOOKUP:
        provider = ProviderName.GROQ
    elif intent in (QueryIntent.ANALYSIS, QueryIntent.COMPARISON):
        provider = ProviderName.DEEPSEEK
    else:
        provider = ProviderName.GEMINI

    return IntentResult(
        intent=intent,
        complexity=complexity,
        suggested_provider=provider,
        is_stem=bool(parsed.topics),
        requires_grounding=analysis.extracted_slo is not None
        or analysis.query_type != QueryType.GENERAL,
    )
