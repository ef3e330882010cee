from typing import TypedDict, Dict, Any, Optional
import logging

from langgraph.graph import StateGraph, END

from ...config import Settings
from ...domain.entities import Chat, ChatMessage
from ...domain.errors import ProviderError
from ...domain.repositories import ConversationRepository
from ...application.services.access_policy import AccessPolicy
from ..llm_providers import ProviderRegistry
from ..observability import ObservabilitySink, NullSink, start_trace, flush_langfuse

logger = logging.getLogger(__name__)

QUOTE_CHARACTERS = "\"'`“”‘’"


class TitleState(TypedDict):
    """State for the title graph"""
    chat_id: str
    model: str
    caller_id: Optional[str]

    chat: Optional[Chat]
    messages: list[ChatMessage]
    title: Optional[str]
    error: Optional[str]
    saved: bool


class TitleGraph:
    """Generates a short title for a chat from its first messages.

    load_chat -> summarize -> (fallback) -> save_title

    The graph re-checks that the chat exists and that the caller may touch it,
    asks the conversation model's provider for a 3-5 word title and falls back
    to the first message text when the provider gives nothing usable. It never
    raises; callers get the saved title or None.
    """

    def __init__(
        self,
        repository: ConversationRepository,
        registry: ProviderRegistry,
        policy: AccessPolicy,
        settings: Settings,
        sink: Optional[ObservabilitySink] = None,
    ):
        self.repository = repository
        self.registry = registry
        self.policy = policy
        self.settings = settings
        self.sink = sink or NullSink()
        self.graph = None

    def _get_graph(self):
        if self.graph is None:
            self.graph = self._build_graph_workflow().compile()
        return self.graph

    def _build_graph_workflow(self) -> StateGraph:
        workflow = StateGraph(TitleState)

        workflow.add_node("load_chat", self._load_chat)
        workflow.add_node("summarize", self._summarize)
        workflow.add_node("fallback", self._fallback)
        workflow.add_node("save_title", self._save_title)

        workflow.set_entry_point("load_chat")

        workflow.add_conditional_edges(
            "load_chat",
            self._after_load,
            {
                "summarize": "summarize",
                "end": END,
            }
        )
        workflow.add_conditional_edges(
            "summarize",
            self._after_summarize,
            {
                "save_title": "save_title",
                "fallback": "fallback",
            }
        )
        workflow.add_edge("fallback", "save_title")
        workflow.add_edge("save_title", END)

        return workflow

    def _after_load(self, state: TitleState) -> str:
        if state.get("chat") is None:
            return "end"
        return "summarize"

    def _after_summarize(self, state: TitleState) -> str:
        if state.get("title"):
            return "save_title"
        return "fallback"

    async def _load_chat(self, state: TitleState) -> Dict[str, Any]:
        chat = await self.repository.get_chat(state["chat_id"])
        if chat is None:
            self.sink.record("title.skipped", chat_id=state["chat_id"], reason="not_found")
            return {"chat": None, "error": "Chat not found"}
        if not self.policy.can_access_chat(chat, state.get("caller_id")):
            self.sink.record("title.skipped", chat_id=state["chat_id"], reason="unauthorized")
            return {"chat": None, "error": "Unauthorized"}

        messages = await self.repository.list_messages(
            chat.id, limit=self.settings.title_context_messages
        )
        return {"chat": chat, "messages": messages}

    async def _summarize(self, state: TitleState) -> Dict[str, Any]:
        messages = state.get("messages") or []
        if not messages:
            return {"title": None, "error": "No messages"}

        conversation = "\n".join(f"{m.role}: {m.content}" for m in messages)
        prompt = (
            "Generate a short, descriptive title (3-5 words) for this conversation. "
            "Reply with the title only, without quotes.\n\n"
            f"{conversation}"
        )

        trace = start_trace(
            name="chat-title",
            chat_id=state["chat_id"],
            caller_id=state.get("caller_id"),
            metadata={"model": state["model"]},
            tags=["title"],
        )
        try:
            raw = await self.registry.complete(state["model"], prompt, trace=trace)
        except ProviderError as e:
            logger.info("Title generation for chat %s fell back: %s", state["chat_id"], e.message)
            return {"title": None, "error": e.message}
        finally:
            if trace:
                trace.close()
            flush_langfuse()

        title = self.clean_title(raw, self.settings.title_max_length)
        if not title:
            return {"title": None, "error": "Empty title"}
        return {"title": title}

    async def _fallback(self, state: TitleState) -> Dict[str, Any]:
        messages = state.get("messages") or []
        first = messages[0].content if messages else ""
        title = first[:self.settings.title_source_length] or self.settings.default_chat_title
        self.sink.record(
            "title.fallback", chat_id=state["chat_id"], reason=state.get("error")
        )
        return {"title": title}

    async def _save_title(self, state: TitleState) -> Dict[str, Any]:
        updated = await self.repository.update_chat_title(state["chat_id"], state["title"])
        if updated is None:
            return {"saved": False}
        self.sink.record("title.saved", chat_id=state["chat_id"], title=state["title"])
        return {"saved": True}

    @staticmethod
    def clean_title(raw: Optional[str], max_length: int = 100) -> str:
        """Strip whitespace and surrounding quotes, then cap the length."""
        title = (raw or "").strip().strip(QUOTE_CHARACTERS).strip()
        return title[:max_length]

    async def generate_title(
        self, chat_id: str, model: str, caller_id: Optional[str] = None
    ) -> Optional[str]:
        """Run the graph for one chat. Returns the saved title, or None."""
        initial_state: TitleState = {
            "chat_id": chat_id,
            "model": model,
            "caller_id": caller_id,
            "chat": None,
            "messages": [],
            "title": None,
            "error": None,
            "saved": False,
        }

        try:
            graph = self._get_graph()
            final_state = await graph.ainvoke(initial_state)
        except Exception:
            logger.exception("Title generation failed for chat %s", chat_id)
            self.sink.record("title.failed", chat_id=chat_id)
            return None

        if not final_state.get("saved"):
            return None
        return final_state.get("title")
