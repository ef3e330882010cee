from dataclasses import dataclass
from typing import Iterable, Optional, Union

from ...config import Settings
from ...domain.entities import Chat

SIGN_IN_REQUIRED = "You must be signed in to use this model."


@dataclass(frozen=True)
class AccessGranted:
    effective_model: str


@dataclass(frozen=True)
class AccessDenied:
    effective_model: str
    reason: str = SIGN_IN_REQUIRED


AccessDecision = Union[AccessGranted, AccessDenied]


class AccessPolicy:
    """Decides which model a caller may use and which chats they may touch.

    Guests (no caller id) are limited to the configured free models. Signed-in
    callers may use any model. Decisions depend only on the settings and the
    caller id.
    """

    def __init__(
        self,
        free_models: Iterable[str],
        default_free_model: str,
        default_premium_model: str,
    ):
        self.free_models = frozenset(free_models)
        self.default_free_model = default_free_model
        self.default_premium_model = default_premium_model

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccessPolicy":
        return cls(
            free_models=settings.free_models,
            default_free_model=settings.default_free_model,
            default_premium_model=settings.default_premium_model,
        )

    def is_free(self, model: str) -> bool:
        return model in self.free_models

    def default_model(self, caller_id: Optional[str]) -> str:
        return self.default_premium_model if caller_id else self.default_free_model

    def authorize(self, caller_id: Optional[str], requested_model: Optional[str]) -> AccessDecision:
        model = (requested_model or "").strip() or self.default_model(caller_id)
        if not caller_id and not self.is_free(model):
            return AccessDenied(effective_model=model)
        return AccessGranted(effective_model=model)

    @staticmethod
    def can_access_chat(chat: Chat, caller_id: Optional[str]) -> bool:
        return chat.owner is None or chat.owner == caller_id
