from .chat import (
    ChatBadRequestError,
    ChatConfigError,
    ChatProvider,
    ChatRateLimitError,
    ChatServiceError,
    ReplyChunk,
    clean_response,
    get_chat_provider,
)

__all__ = [
    "ChatBadRequestError",
    "ChatConfigError",
    "ChatProvider",
    "ChatRateLimitError",
    "ChatServiceError",
    "ReplyChunk",
    "clean_response",
    "get_chat_provider",
]
