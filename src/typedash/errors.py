"""Exception hierarchy for the chat engine.

Model backend failures are classified into user-facing messages here so the
session can surface them without knowing provider-specific error formats.
"""

import json
import re

import httpx

from .config import ERROR_MESSAGE_MAX_LENGTH, ERROR_SENTENCE_MAX_LENGTH


class TypedashError(Exception):
    """Base class for typedash errors."""


class ToolExecutionError(TypedashError):
    """A single tool call failed.

    The message is fed back to the model as the tool's error payload, so it
    carries no prefix.
    """

    def __init__(self, message: str, tool_name: str | None = None):
        super().__init__(message)
        self.tool_name = tool_name


class ConfirmationError(TypedashError):
    """A confirmation was requested while another one is outstanding."""


class SearchBackendError(TypedashError):
    """Base class for search backend failures."""


class ModelBackendError(TypedashError):
    """The language-model round failed.

    ``str(error)`` is the user-facing message.
    """

    def is_retryable(self) -> bool:
        """Override in subclasses to control retry behavior."""
        return False


class ModelRateLimitError(ModelBackendError):
    """Quota or rate limit exceeded (retryable)."""

    def __init__(self) -> None:
        super().__init__("Gemini API rate limit reached. Please wait a moment and try again.")

    def is_retryable(self) -> bool:
        return True


class ModelAuthError(ModelBackendError):
    """API key rejected (non-retryable)."""

    def __init__(self) -> None:
        super().__init__("Invalid Gemini API key. Please check your key in settings.")


class ModelNetworkError(ModelBackendError):
    """Network or connection error (retryable)."""

    def __init__(self) -> None:
        super().__init__("Network error. Please check your internet connection.")

    def is_retryable(self) -> bool:
        return True


_RATE_LIMIT_MARKERS = ("quota", "429", "RESOURCE_EXHAUSTED")
_AUTH_MARKERS = ("API_KEY_INVALID", "401", "PERMISSION_DENIED")
_NETWORK_MARKERS = ("fetch", "network")

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def _embedded_api_message(message: str) -> str | None:
    """Pull ``error.message`` out of a JSON body embedded in an error string."""
    match = _JSON_OBJECT.search(message)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return None


def classify_model_error(exc: BaseException) -> ModelBackendError:
    """Map an arbitrary model-backend exception to a user-facing error.

    Args:
        exc: The exception raised while talking to the model

    Returns:
        A ModelBackendError (or subclass) whose message is safe to show
    """
    if isinstance(exc, ModelBackendError):
        return exc
    if isinstance(exc, (ConnectionError, httpx.TransportError)):
        return ModelNetworkError()

    message = str(exc)
    if not message:
        return ModelBackendError("An unknown error occurred")

    api_message = _embedded_api_message(message)
    if api_message is not None:
        if any(marker in api_message for marker in _RATE_LIMIT_MARKERS):
            return ModelRateLimitError()
        if any(marker in api_message for marker in _AUTH_MARKERS):
            return ModelAuthError()
        first_sentence = api_message.split(".")[0]
        if len(first_sentence) > ERROR_SENTENCE_MAX_LENGTH:
            first_sentence = first_sentence[:ERROR_SENTENCE_MAX_LENGTH] + "..."
        return ModelBackendError(first_sentence)

    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return ModelRateLimitError()
    if any(marker in message for marker in _AUTH_MARKERS):
        return ModelAuthError()
    if any(marker in message.lower() for marker in _NETWORK_MARKERS):
        return ModelNetworkError()

    if len(message) > ERROR_MESSAGE_MAX_LENGTH:
        message = message[:ERROR_MESSAGE_MAX_LENGTH] + "..."
    return ModelBackendError(message)
