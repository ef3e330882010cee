"""Domain exceptions raised by the chat pipeline."""


class ChatError(Exception):
    """Base class for failures that reject a request before streaming starts."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(ChatError):
    status_code = 400


class ModelAccessDeniedError(ChatError):
    status_code = 403

    def __init__(self, message: str = "You must be signed in to use this model."):
        super().__init__(message)


class ChatAccessDeniedError(ChatError):
    status_code = 403

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ChatNotFoundError(ChatError):
    status_code = 404

    def __init__(self, message: str = "Chat not found"):
        super().__init__(message)


class ProviderError(Exception):
    """An upstream model call failed. Never retried."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.message = message
        self.provider = provider


class UnsupportedModelError(ProviderError):
    def __init__(self, model: str):
        super().__init__(f"Unsupported model: {model}")
        self.model = model
