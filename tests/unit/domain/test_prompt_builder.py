"""Unit tests for prompt assembly."""

from __future__ import annotations

import pytest

from pedagogy_master.domain.enums import ToolType
from pedagogy_master.domain.services.prompt_builder import (
    DEFAULT_MASTER_PROMPT,
    VAULT_EMPTY_MARKER,
    build_artifact_prompt,
    build_grounded_prompt,
    build_system_instruction,
    format_response_instructions,
    get_full_prompt,
)
from pedagogy_master.domain.services.query_analyzer import analyze_user_query, classify_intent


class TestSystemInstruction:
    def test_default_base_plus_tool_prompt(self) -> None:
        analysis = analyze_user_query("Make a quiz on cells")
        system = build_system_instruction(ToolType.NEURAL_QUIZ, analysis)
        assert system.startswith(DEFAULT_MASTER_PROMPT)
        assert "ASSESSMENT SCIENTIST" in system
        assert "- Type: ASSESSMENT" in system

    def test_custom_system_replaces_base(self) -> None:
        analysis = analyze_user_query("Make a quiz on cells")
        system = build_system_instruction(
            ToolType.NEURAL_QUIZ, analysis, custom_system="You are a strict examiner."
        )
        assert system.startswith("You are a strict examiner.")
        assert DEFAULT_MASTER_PROMPT not in system

    def test_full_prompt_carries_override(self) -> None:
        prompt = get_full_prompt(ToolType.AUDIT_TAGGER, "Keep it brief")
        assert "STANDARDS AUDITOR" in prompt
        assert prompt.endswith("USER_OVERRIDE: Keep it brief")
        assert get_full_prompt(ToolType.AUDIT_TAGGER).endswith("USER_OVERRIDE: None")


class TestResponseInstructions:
    def test_lookup_format(self) -> None:
        analysis = analyze_user_query("What is SLO B-11-B-27?")
        assert "FORMAT: Definition" in format_response_instructions(analysis)

    def test_lesson_plan_uses_5e_blocks(self) -> None:
        analysis = analyze_user_query("Create a lesson plan for photosynthesis")
        assert "MASTER LESSON SYNTHESIZER" in format_response_instructions(analysis)

    def test_document_metadata_block(self) -> None:
        analysis = analyze_user_query("Tell me about cells")
        text = format_response_instructions(
            analysis, doc_metadata={"authority": "FBISE", "subject": "Biology"}
        )
        assert "AUTHORITY: FBISE" in text
        assert "GRADE: N/A" in text

    @pytest.mark.parametrize(
        ("tool", "marker"),
        [
            ("lesson-plan", "MASTER LESSON SYNTHESIZER"),
            ("audit_tagger", "SLO AUDITOR"),
            ("anything", "Proceed with pedagogical synthesis."),
        ],
    )
    def test_tool_specific(self, tool: str, marker: str) -> None:
        analysis = analyze_user_query("Tell me about cells")
        assert marker in format_response_instructions(analysis, tool_type=tool)


class TestGroundedPrompt:
    def test_chunks_are_joined_into_the_vault(self) -> None:
        intent = classify_intent("Explain osmosis")
        prompt = build_grounded_prompt(
            "Explain osmosis", intent, ["chunk one", "chunk two"], adaptive_context="GRADE 9"
        )
        assert "GROUNDING: ACTIVE" in prompt
        assert "chunk one\n---\nchunk two" in prompt
        assert "GRADE 9" in prompt
        assert prompt.endswith('USER_QUERY: "Explain osmosis"')

    def test_empty_vault_marker(self) -> None:
        intent = classify_intent("Explain osmosis")
        prompt = build_grounded_prompt("Explain osmosis", intent, [])
        assert "GROUNDING: INACTIVE" in prompt
        assert VAULT_EMPTY_MARKER in prompt


class TestArtifactPrompt:
    @pytest.mark.parametrize("content_type", ["lesson_plan", "teaching_strategies", "assessment"])
    def test_slo_is_embedded(self, content_type: str) -> None:
        assert "(SLO) B-11-B-27" in build_artifact_prompt(content_type, "B-11-B-27")

    def test_unknown_type(self) -> None:
        with pytest.raises(KeyError):
            build_artifact_prompt("poster", "B-11-B-27")
