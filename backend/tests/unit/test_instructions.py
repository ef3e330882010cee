"""Unit tests for language directives and system prompts."""

import pytest

from chatbridge.infrastructure.llm_providers import (
    build_language_instruction,
    build_system_prompt,
    language_display_name,
)

PERSONA = (
    "You are a fun, friendly, lightly comedic assistant. "
    "Keep responses concise, clear, and helpful."
)


@pytest.mark.parametrize("language", [None, "", "auto"])
def test_auto_language_asks_for_detection(language):
    instruction = build_language_instruction(language)

    assert instruction.startswith("Detect the user's language")
    assert "Indonesian, Malay, or English" in instruction
    assert "avoid literal word-for-word translation" in instruction


def test_english_instruction():
    assert build_language_instruction("english") == (
        "Respond in English. If the user writes in another language, "
        "translate and respond in English."
    )


def test_malay_arabic_names_jawi_script():
    instruction = build_language_instruction("malay-arabic")

    assert "Malay (Jawi script)" in instruction
    assert "Malay written in Jawi script" in instruction


@pytest.mark.parametrize(
    "language, expected",
    [
        ("bahasa-indonesia", "Bahasa Indonesia"),
        ("bahasa-melayu", "Bahasa Melayu"),
        ("malay-arabic", "Malay (Jawi script)"),
        ("french", "French"),
    ],
)
def test_language_display_name(language, expected):
    assert language_display_name(language) == expected


def test_other_language_instruction_uses_display_name():
    instruction = build_language_instruction("bahasa-indonesia")

    assert instruction == (
        "Respond in Bahasa Indonesia. If the user writes in another language, "
        "translate and respond in Bahasa Indonesia."
    )


def test_system_prompt_is_persona_then_language():
    prompt = build_system_prompt(PERSONA, "english")

    assert prompt == f"{PERSONA} {build_language_instruction('english')}"
