"""Tool router: weighted keyword signals pick the expert prompt template."""

from __future__ import annotations

from dataclasses import dataclass

from pedagogy_master.domain.enums import ToolType

KEYWORD_WEIGHT = 2
PHRASE_WEIGHT = 5

TOOL_SIGNATURES: dict[ToolType, dict[str, tuple[str, ...]]] = {
    ToolType.MASTER_PLAN: {
        "keywords": (
            "lesson", "plan", "teach", "activity", "instruction", "5e", "madeline hunter",
            "ubd", "class", "pedagogy", "curriculum map", "scaffold", "modeling",
            "anticipatory", "hook",
        ),
        "phrases": (
            "how to teach", "create a plan", "lesson for", "instructional sequence",
            "design a class",
        ),
    },
    ToolType.NEURAL_QUIZ: {
        "keywords": (
            "quiz", "test", "question", "assessment", "mcq", "exam", "formative",
            "summative", "check for understanding", "distractor", "answer key", "items",
        ),
        "phrases": (
            "generate questions", "make a quiz", "test items", "evaluate mastery",
            "summative evaluation",
        ),
    },
    ToolType.FIDELITY_RUBRIC: {
        "keywords": (
            "rubric", "scoring", "grading", "criteria", "evaluate", "scale", "descriptor",
            "performance task", "success criteria", "marking", "competency",
        ),
        "phrases": (
            "create a rubric", "grade this", "how to score", "marking guide",
            "analytical rubric",
        ),
    },
    ToolType.AUDIT_TAGGER: {
        "keywords": (
            "analyze", "bloom", "slo", "curriculum", "cognitive", "dok", "standard",
            "alignment", "mapping", "audit", "vertical alignment", "gap analysis",
        ),
        "phrases": (
            "tag this", "align to standards", "check slo", "mapping standards",
            "identify gaps",
        ),
    },
}

TOOL_DISPLAY_NAMES: dict[ToolType, str] = {
    ToolType.MASTER_PLAN: "Instructional Architect",
    ToolType.NEURAL_QUIZ: "Assessment Scientist",
    ToolType.FIDELITY_RUBRIC: "Evaluation Engineer",
    ToolType.AUDIT_TAGGER: "Curriculum Auditor",
}


@dataclass(frozen=True)
class ToolRoute:
    tool: ToolType
    confidence: float
    reasoning: str
    scores: dict[str, int]


def score_tools(query: str) -> dict[ToolType, int]:
    lower = query.lower()
    scores: dict[ToolType, int] = {}
    for tool, signature in TOOL_SIGNATURES.items():
        score = sum(KEYWORD_WEIGHT for kw in signature["keywords"] if kw in lower)
        score += sum(PHRASE_WEIGHT for ph in signature["phrases"] if ph in lower)
        scores[tool] = score
    return scores


def detect_tool_intent(query: str) -> ToolRoute:
    """Route a query to the tool with the strongest signal.

    Ties go to the earlier tool in ``TOOL_SIGNATURES``; a query with no
    signal at all defaults to the lesson planner at confidence 0.5.
    """
    scores = score_tools(query)
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    best_tool, best_score = ranked[0]
    total = sum(scores.values())

    if best_score <= 0:
        best_tool = ToolType.MASTER_PLAN
        confidence = 0.5
    else:
        confidence = best_score / total

    return ToolRoute(
        tool=best_tool,
        confidence=round(confidence, 4),
        reasoning=f'Detected "{best_tool.value}" via {best_score} pedagogical weight signals.',
        scores={t.value: s for t, s in scores.items()},
    )


def get_tool_display_name(tool: ToolType | str | None) -> str:
    if not tool:
        return "Synthesis Engine"
    try:
        return TOOL_DISPLAY_NAMES[ToolType(tool)]
    except ValueError:
        return "Expert Node"
