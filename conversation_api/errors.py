"""
Error taxonomy for the conversation API.

Request errors carry the HTTP status and the exact user-facing message.
Provider errors wrap whatever the AI provider raised and tag it with a stable
category, so logs and events never depend on provider exception types.
"""
from typing import Optional


class RequestError(Exception):
    """A rejected request: maps to a 4xx response with a fixed message."""

    status_code = 400
    message = "Bad request"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class MissingAudioError(RequestError):
    message = "No audio file provided"


class MissingConversationIdError(RequestError):
    message = (
        "Conversation ID is required. Please pass it as a query parameter: "
        "/record?conversationId=YOUR_ID"
    )


class ConversationNotFoundError(RequestError):
    status_code = 404
    message = "Conversation not found. Please start a new conversation."


class UnsupportedAudioError(RequestError):
    message = "Only MP3 files are allowed"


class UploadTooLargeError(RequestError):
    status_code = 413
    message = "File too large"


class ProviderErrorCategory:
    """Stable provider error categories."""

    AUTH_FAILED = "provider.auth_failed"
    MISCONFIGURED = "provider.misconfigured"
    NETWORK_ERROR = "provider.network_error"
    RATE_LIMITED = "provider.rate_limited"
    UNKNOWN_ERROR = "provider.unknown_error"


class ProviderError(Exception):
    """Raised by a speech/dialogue collaborator when its provider call fails."""

    stage = "provider"

    def __init__(self, message: str, category: str = ProviderErrorCategory.UNKNOWN_ERROR):
        super().__init__(message)
        self.category = category


class ProviderNotConfiguredError(ProviderError):
    def __init__(self, message: str = "OPENAI_API_KEY is not set"):
        super().__init__(message, category=ProviderErrorCategory.MISCONFIGURED)


class TranscriptionError(ProviderError):
    stage = "stt"


class DialogueError(ProviderError):
    stage = "llm"


class SynthesisError(ProviderError):
    stage = "tts"


class ProviderErrorHandler:
    """Maps raw provider exceptions onto ProviderErrorCategory."""

    @staticmethod
    def classify_error(error: Exception) -> str:
        if isinstance(error, ProviderError):
            return error.category

        status = getattr(error, "status_code", None)
        error_str = str(error).lower()
        error_type = type(error).__name__.lower()

        if status in (401, 403) or "auth" in error_type or "unauthorized" in error_str or "api key" in error_str:
            return ProviderErrorCategory.AUTH_FAILED

        if status == 429 or "ratelimit" in error_type or "rate limit" in error_str:
            return ProviderErrorCategory.RATE_LIMITED

        if (
            "connection" in error_type
            or "timeout" in error_type
            or "network" in error_str
            or "timed out" in error_str
            or "connection" in error_str
        ):
            return ProviderErrorCategory.NETWORK_ERROR

        if "config" in error_str or "misconfigured" in error_str:
            return ProviderErrorCategory.MISCONFIGURED

        return ProviderErrorCategory.UNKNOWN_ERROR

    @staticmethod
    def wrap(error: Exception, error_cls: type) -> ProviderError:
        """Build a stage-specific ProviderError from a raw provider exception."""
        if isinstance(error, error_cls):
            return error
        category = ProviderErrorHandler.classify_error(error)
        return error_cls(str(error) or type(error).__name__, category=category)


def error_message(error: BaseException) -> str:
    """User-visible message for an unexpected error: never a stack trace."""
    return str(error) or "Unknown error occurred"
