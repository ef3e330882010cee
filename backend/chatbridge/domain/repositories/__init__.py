from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Optional, Protocol
from ..entities import Chat, ChatMessage


class LLMProviderInterface(Protocol):
    """Interface for LLM providers"""

    @property
    def provider_id(self) -> str:
        ...

    @property
    def name(self) -> str:
        ...

    async def is_available(self) -> bool:
        ...

    def stream_completion(
        self, model: str, system_instruction: str, user_text: str, trace: Optional[Any] = None
    ) -> AsyncIterator[str]:
        ...

    async def complete(self, model: str, prompt: str, trace: Optional[Any] = None) -> str:
        ...


class ConversationRepository(ABC):
    """Interface for chat and message persistence"""

    @abstractmethod
    async def create_chat(self, title: str, owner: Optional[str] = None) -> Chat:
        pass

    @abstractmethod
    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        pass

    @abstractmethod
    async def update_chat_title(self, chat_id: str, title: str) -> Optional[Chat]:
        pass

    @abstractmethod
    async def list_chats(self, owner: str, limit: int = 50) -> list[Chat]:
        """Chats owned by ``owner``, most recently updated first."""
        pass

    @abstractmethod
    async def get_guest_chats(self, chat_ids: list[str]) -> list[Chat]:
        """Guest-owned chats among ``chat_ids``, most recently updated first."""
        pass

    @abstractmethod
    async def create_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> ChatMessage:
        pass

    @abstractmethod
    async def list_messages(self, chat_id: str, limit: Optional[int] = None) -> list[ChatMessage]:
        """Messages oldest first."""
        pass

    @abstractmethod
    async def count_messages(self, chat_id: str) -> int:
        pass
