from fastapi import APIRouter, Depends, Header
from fastapi.responses import StreamingResponse
from typing import List, Optional
import logging

from ...domain.entities import (
    Chat,
    ChatMessage,
    ChatIdsRequest,
    GenerateTitleRequest,
    ModelInfo,
    LanguageOption,
    SendMessageRequest,
    SendMessageResponse,
    TitleResponse,
    MODEL_CATALOG,
    LANGUAGES,
    encode_event,
)
from ...config import get_settings, Settings
from ...infrastructure.llm_providers import ProviderRegistry
from ...infrastructure.persistence import (
    PostgresConversationRepository,
    get_session_maker,
)
from ...infrastructure.langgraph import TitleGraph
from ...infrastructure.observability import LoggingSink
from ...application.services import AccessPolicy, ChatService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Dependency injection
_repository = None
_registry = None
_chat_service = None

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_caller_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Caller identity as resolved by the upstream gateway. Absent for guests."""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


def get_repository(settings: Settings = Depends(get_settings)) -> PostgresConversationRepository:
    global _repository
    if _repository is None:
        session_maker = get_session_maker(settings.database_url)
        _repository = PostgresConversationRepository(session_maker)
    return _repository


def get_registry(settings: Settings = Depends(get_settings)) -> ProviderRegistry:
    global _registry
    if _registry is None:
        _registry = ProviderRegistry.from_settings(
            settings, known_models=[model_id for model_id, _ in MODEL_CATALOG]
        )
    return _registry


def get_chat_service(settings: Settings = Depends(get_settings)) -> ChatService:
    global _chat_service
    if _chat_service is None:
        repository = get_repository(settings)
        registry = get_registry(settings)
        policy = AccessPolicy.from_settings(settings)
        sink = LoggingSink()
        _chat_service = ChatService(
            repository=repository,
            registry=registry,
            policy=policy,
            settings=settings,
            title_generator=TitleGraph(repository, registry, policy, settings, sink=sink),
            sink=sink,
        )
    return _chat_service


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


# ==================== Chat Endpoints ====================

@router.post("/chat/stream")
async def chat_stream(
    request: SendMessageRequest,
    caller_id: Optional[str] = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
):
    """Send a message and stream the reply as server-sent events"""
    session = await service.open_session(request, caller_id)

    async def event_generator():
        async for event in service.stream_events(session):
            yield encode_event(event)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@router.post(
    "/chat/message",
    response_model=SendMessageResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def chat_message(
    request: SendMessageRequest,
    caller_id: Optional[str] = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
):
    """Send a message and wait for the full reply"""
    return await service.send_message(request, caller_id)


# ==================== Conversation Endpoints ====================

@router.post("/chats", response_model=Chat, status_code=201)
async def create_chat(
    caller_id: Optional[str] = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
):
    """Start an empty chat owned by the caller"""
    return await service.create_chat(caller_id)


@router.get("/chats", response_model=List[Chat])
async def list_chats(
    limit: int = 50,
    caller_id: Optional[str] = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
):
    """Caller's chats, most recently updated first"""
    return await service.list_chats(caller_id, limit=limit)


@router.post("/chats/by-ids", response_model=List[Chat])
async def get_chats_by_ids(
    request: ChatIdsRequest,
    service: ChatService = Depends(get_chat_service),
):
    """Guest-owned chats whose ids the client kept"""
    return await service.get_guest_chats(request.chat_ids)


@router.get("/chats/{chat_id}/messages", response_model=List[ChatMessage])
async def get_messages(
    chat_id: str,
    caller_id: Optional[str] = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
):
    """Messages of a chat, oldest first"""
    return await service.get_messages(chat_id, caller_id)


@router.post("/chats/{chat_id}/title", response_model=TitleResponse)
async def generate_title(
    chat_id: str,
    request: Optional[GenerateTitleRequest] = None,
    caller_id: Optional[str] = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
):
    """Generate and store a title for the chat"""
    model = request.model if request else None
    title = await service.generate_title(chat_id, caller_id, model=model)
    return TitleResponse(chat_id=chat_id, title=title)


# ==================== Catalog Endpoints ====================

@router.get("/models", response_model=List[ModelInfo])
async def list_models(
    settings: Settings = Depends(get_settings),
    registry: ProviderRegistry = Depends(get_registry),
):
    """Models a client may offer, with their provider family and free flag"""
    policy = AccessPolicy.from_settings(settings)
    return [
        ModelInfo(
            id=model_id,
            name=name,
            provider=registry.resolve(model_id).family.value,
            free=policy.is_free(model_id),
        )
        for model_id, name in MODEL_CATALOG
    ]


@router.get("/languages", response_model=List[LanguageOption])
async def list_languages():
    """Supported response languages"""
    return LANGUAGES
