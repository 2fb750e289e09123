"""Prompt assembly: system instructions, tool templates, and grounded prompts."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pedagogy_master.domain.enums import QueryType, ToolType
from pedagogy_master.domain.services.query_analyzer import IntentResult, QueryAnalysis

DEFAULT_MASTER_PROMPT = """# PEDAGOGY MASTER - SYSTEM INSTRUCTION

## FORMATTING PROTOCOL
- Use hashtags (#) and stars (*) sparingly, for logical separation only.
- Use white space and line breaks for a clean, professional handout look.
- Rubrics and assessments use standard Markdown tables ( | Column | Column | ).
- Avoid nested lists. Keep the structure flat and readable.

## IDENTITY
You are a senior pedagogical architect. You transform curriculum materials into
actionable, research-backed instructional artifacts.

## ADAPTIVE PARAMETERS
- Elementary: Simple language, concrete steps.
- Middle/High: Academic rigor, analytical depth.
- University: Theoretical frameworks, scholarly discourse.

## TASK SPECIFICS
- Lesson Plans: Clear objectives, hook, instruction, practice, and closure.
- Assessments: Balanced cognitive complexity across Bloom's levels.
- Rubrics: Transparent criteria with 4 distinct performance levels."""

CORE_PROMPT = """
IDENTITY: You are the Pedagogy Master AI.
MISSION: Synthesize world-class educational artifacts grounded in global best practices.
RESEARCH BASE: 2020-2026 Educational Research (Hattie, Marzano, Tomlinson).

MATHEMATICS & SCIENTIFIC NOTATION:
- Use LaTeX for ALL mathematical symbols, variables, formulas, and expressions.
- Wrap inline math in $...$ and display math in $$...$$.
- Never use Unicode superscripts such as ² or ³; write $a^2$, $x^3$, $z^{-1}$.
- Chemical formulas are LaTeX as well, e.g. $H_{2}O$, $CO_{2}$.

HEADER STRUCTURE:
- Always start artifacts with:
  PEDAGOGY MASTER | [EXPERT_TITLE]
  DOMAIN: [Subject Domain]
  BENCHMARK: [SLO Code/Benchmark]
  TARGET COGNITIVE LOAD: [Grade Level/Bloom's]

OUTPUT RULES: Professional Markdown, actionable steps, zero conversational filler.
"""

TOOL_PROMPTS: dict[ToolType, str] = {
    ToolType.MASTER_PLAN: """
EXPERT NODE: INSTRUCTIONAL ARCHITECT
LOGIC: Use Madeline Hunter (7-step) or 5E Model based on context.
REQUIREMENTS:
1. Standards Alignment (Strict).
2. Differentiation (Scaffolding/Extension).
3. 21st Century Skills integration.
""",
    ToolType.NEURAL_QUIZ: """
EXPERT NODE: ASSESSMENT SCIENTIST
LOGIC: Focus on validity and reliability.
REQUIREMENTS:
1. Bloom's Taxonomy Distribution (Remember -> Create).
2. High-quality Distractor Analysis (MCQs).
3. Clear Rubric for CRQs/ERQs.
""",
    ToolType.FIDELITY_RUBRIC: """
EXPERT NODE: EVALUATION ENGINEER
LOGIC: Focus on observable student behavior.
REQUIREMENTS:
1. Criteria: Specific, measurable, clear.
2. Levels: Progressing -> Proficient -> Mastery.
""",
    ToolType.AUDIT_TAGGER: """
EXPERT NODE: STANDARDS AUDITOR
LOGIC: Deep SLO analysis.
REQUIREMENTS:
1. Map verbs to Bloom's/Webb's DOK.
2. Identify curriculum gaps.
""",
}

VAULT_EMPTY_MARKER = "[VAULT_EMPTY: Use General Pedagogical Knowledge]"

ARTIFACT_PROMPTS: dict[str, str] = {
    "lesson_plan": (
        "Create a comprehensive, structured lesson plan for Student Learning Objective "
        "(SLO) {slo}. Include hooks, direct instruction, and guided practice."
    ),
    "teaching_strategies": (
        "List 5 high-impact teaching strategies and classroom activities for Student "
        "Learning Objective (SLO) {slo}."
    ),
    "assessment": (
        "Generate a balanced formative assessment (quiz) with 5 questions and an answer "
        "key for Student Learning Objective (SLO) {slo}."
    ),
}

_LESSON_PLAN_INSTRUCTIONS = """
### TOOL: MASTER LESSON SYNTHESIZER
1. STRUCTURE: Use the 5E Instructional Model.
2. PHASE BLOCKS: For each phase (Engage, Explore, Explain, Elaborate, Evaluate) include:
   - Activity: [Detailed instructional strategy]
   - Alignment: [How it connects to the Target SLO]
   - Bloom's Taxonomy: [Specific cognitive level(s)]
3. DIFFERENTIATION: Include specific strategies for Struggling and Advanced learners.
"""

_SLO_TAGGER_INSTRUCTIONS = """
### TOOL: SLO AUDITOR
1. DEEP AUDIT: Scan the input for specific SLO matches in the vault.
2. CONTEXTUAL INFERENCE: Assign Bloom's level based on the entire standard clause.
3. OUTPUT: [CODE] | [BLOOM LEVEL] | [VERBATIM DESCRIPTION].
"""


def get_full_prompt(tool: ToolType, custom_instructions: str | None = None) -> str:
    return f"{CORE_PROMPT}\n\n{TOOL_PROMPTS[tool]}\n\nUSER_OVERRIDE: {custom_instructions or 'None'}"


def format_response_instructions(
    analysis: QueryAnalysis,
    tool_type: str | None = None,
    doc_metadata: Mapping[str, Any] | None = None,
) -> str:
    """Response-shape instructions appended to the system prompt."""
    metadata_block = ""
    if doc_metadata:
        metadata_block = (
            "\n## INSTITUTIONAL CONTEXT:\n"
            f"- AUTHORITY: {doc_metadata.get('authority', 'N/A')}\n"
            f"- SUBJECT: {doc_metadata.get('subject', 'N/A')}\n"
            f"- GRADE: {doc_metadata.get('grade_level', 'N/A')}\n"
        )

    if tool_type:
        return metadata_block + _tool_specific_instructions(tool_type)

    base = (
        f"{metadata_block}\n"
        "USER QUERY ANALYSIS:\n"
        f"- Type: {analysis.query_type.value.upper()}\n"
        f"- Expected Length: {analysis.expected_response_length.value.upper()}\n"
    )
    if analysis.query_type == QueryType.LOOKUP:
        return base + (
            "\nFORMAT: Definition + Brief Pedagogical Application. "
            "Use verbatim quote from vault if found."
        )
    if analysis.query_type == QueryType.TEACHING:
        return base + (
            "\nFORMAT: 3-5 specific teaching strategies with time allocations and resource needs."
        )
    if analysis.query_type == QueryType.LESSON_PLAN:
        return base + _LESSON_PLAN_INSTRUCTIONS
    return base + "\nAddress the query using provided curriculum context."


def _tool_specific_instructions(tool: str) -> str:
    if tool in ("lesson-plan", ToolType.MASTER_PLAN.value):
        return _LESSON_PLAN_INSTRUCTIONS
    if tool in ("slo-tagger", ToolType.AUDIT_TAGGER.value):
        return _SLO_TAGGER_INSTRUCTIONS
    return "\nProceed with pedagogical synthesis."


def build_system_instruction(
    tool: ToolType,
    analysis: QueryAnalysis,
    *,
    custom_system: str | None = None,
    doc_metadata: Mapping[str, Any] | None = None,
) -> str:
    base = custom_system or DEFAULT_MASTER_PROMPT
    return "\n\n".join(
        [
            base,
            get_full_prompt(tool),
            format_response_instructions(analysis, doc_metadata=doc_metadata),
        ]
    )


def build_grounded_prompt(
    query: str,
    intent: IntentResult,
    context_chunks: Sequence[str],
    *,
    adaptive_context: str | None = None,
) -> str:
    """Wrap the user query with the retrieval vault and routing context."""
    grounded = bool(context_chunks)
    vault = "\n---\n".join(context_chunks) if grounded else VAULT_EMPTY_MARKER
    return (
        "\n<CONTEXT>\n"
        f"INTENT: {intent.intent.value} | COMPLEXITY: {intent.complexity}\n"
        f"GROUNDING: {'ACTIVE' if grounded else 'INACTIVE'}\n"
        f"{adaptive_context or ''}\n"
        "</CONTEXT>\n\n"
        "<AUTHORITATIVE_VAULT>\n"
        f"{vault}\n"
        "</AUTHORITATIVE_VAULT>\n\n"
        f'USER_QUERY: "{query}"'
    )


def build_artifact_prompt(content_type: str, slo_code: str) -> str:
    return ARTIFACT_PROMPTS[content_type].format(slo=slo_code)
