"""Domain enumerations for the pedagogy AI layer."""

from __future__ import annotations

import enum


class ProviderName(str, enum.Enum):
    """External LLM vendors known to the registry."""

    GEMINI = "gemini"
    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    GROQ = "groq"
    CEREBRAS = "cerebras"
    SAMBANOVA = "sambanova"
    OPENROUTER = "openrouter"
    HYPERBOLIC = "hyperbolic"


class QueryType(str, enum.Enum):
    """What the teacher is asking for, as decided by the query analyzer."""

    LOOKUP = "lookup"
    TEACHING = "teaching"
    LESSON_PLAN = "lesson_plan"
    ASSESSMENT = "assessment"
    DIFFERENTIATION = "differentiation"
    GENERAL = "general"


class ComplexityLevel(str, enum.Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class ResponseLength(str, enum.Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class ToolType(str, enum.Enum):
    """Expert prompt templates a query can be routed to."""

    MASTER_PLAN = "master_plan"
    NEURAL_QUIZ = "neural_quiz"
    FIDELITY_RUBRIC = "fidelity_rubric"
    AUDIT_TAGGER = "audit_tagger"


class QueryIntent(str, enum.Enum):
    LOOKUP = "lookup"
    CREATION = "creation"
    ANALYSIS = "analysis"
    COMPARISON = "comparison"
    GENERAL = "general"


class TaskType(str, enum.Enum):
    """Workload categories used by the usage-aware task router."""

    PDF_PARSE = "pdf_parse"
    CODE_GEN = "code_gen"
    RAG_QUERY = "rag_query"
    SUMMARIZE = "summarize"
    WEB_SEARCH = "web_search"
    EMBEDDING = "embedding"


class ArtifactType(str, enum.Enum):
    """Cached, reusable curriculum artifacts keyed by SLO."""

    LESSON_PLAN = "lesson_plan"
    TEACHING_STRATEGIES = "teaching_strategies"
    ASSESSMENT = "assessment"
