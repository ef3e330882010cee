from pydantic import BaseModel


class ModelInfo(BaseModel):
    id: str
    name: str
    provider: str
    free: bool = False


class LanguageOption(BaseModel):
    id: str
    name: str


MODEL_CATALOG: list[tuple[str, str]] = [
    ("chatgpt-5.1", "ChatGPT 5.1"),
    ("gpt-4o", "GPT-4o"),
    ("gpt-3.5-turbo", "GPT-3.5 Turbo"),
    ("claude-3-5-sonnet-20240620", "Claude 3.5 Sonnet"),
    ("gemini-1.5-pro", "Gemini 1.5 Pro"),
    ("gemini-1.5-flash", "Gemini 1.5 Flash"),
]

LANGUAGES: list[LanguageOption] = [
    LanguageOption(id="auto", name="Auto-detect"),
    LanguageOption(id="english", name="English"),
    LanguageOption(id="bahasa-indonesia", name="Bahasa Indonesia"),
    LanguageOption(id="bahasa-melayu", name="Bahasa Melayu"),
    LanguageOption(id="malay-arabic", name="Malay (Jawi)"),
]
