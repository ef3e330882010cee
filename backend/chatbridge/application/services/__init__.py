from .access_policy import AccessPolicy, AccessGranted, AccessDenied, AccessDecision
from .chat_service import ChatService, StreamSession, TitleGenerator, provider_error_text

__all__ = [
    "AccessPolicy",
    "AccessGranted",
    "AccessDenied",
    "AccessDecision",
    "ChatService",
    "StreamSession",
    "TitleGenerator",
    "provider_error_text",
]
