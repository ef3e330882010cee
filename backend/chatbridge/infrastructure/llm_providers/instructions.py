"""System instruction construction: persona plus a language directive."""
import re
from typing import Optional

AUTO_LANGUAGE = "auto"

# Candidate languages for automatic detection
DETECTION_CANDIDATES = ("Indonesian", "Malay", "English")

# language id -> (language, script)
SCRIPT_VARIANTS: dict[str, tuple[str, str]] = {
    "malay-arabic": ("Malay", "Jawi"),
}


def language_display_name(language: str) -> str:
    """``bahasa-indonesia`` -> ``Bahasa Indonesia``; script variants get the script."""
    if language in SCRIPT_VARIANTS:
        name, script = SCRIPT_VARIANTS[language]
        return f"{name} ({script} script)"
    return re.sub(r"\b\w", lambda m: m.group().upper(), language.replace("-", " "))


def build_language_instruction(language: Optional[str]) -> str:
    if not language or language == AUTO_LANGUAGE:
        candidates = f"{', '.join(DETECTION_CANDIDATES[:-1])}, or {DETECTION_CANDIDATES[-1]}"
        return (
            f"Detect the user's language (likely {candidates}). "
            "Respond in the detected language. "
            "Preserve nuance and meaning, avoid literal word-for-word translation."
        )

    if language == "english":
        return (
            "Respond in English. If the user writes in another language, "
            "translate and respond in English."
        )

    display = language_display_name(language)
    if language in SCRIPT_VARIANTS:
        name, script = SCRIPT_VARIANTS[language]
        return (
            f"Respond in {display}, that is {name} written in {script} script. "
            f"If the user writes in another language, translate and respond in {display}."
        )

    return (
        f"Respond in {display}. If the user writes in another language, "
        f"translate and respond in {display}."
    )


def build_system_prompt(persona: str, language: Optional[str]) -> str:
    return f"{persona} {build_language_instruction(language)}"
