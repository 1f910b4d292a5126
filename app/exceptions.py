"""Application exception hierarchy."""

from enum import StrEnum

# Default user-facing messages (Slovak)
_DEFAULT_USER_MSG = "Nastala chyba. Skúste to prosím znova."
_VALIDATION_MSG = "Neplatné vstupné údaje"
_MODEL_OVERLOADED_MSG = "AI je momentálne preťažená. Prosím skúste to o chvíľu."
_MODEL_FAILED_MSG = "Generovanie zlyhalo. Skúste to prosím znova."
_DECODE_MSG = "AI vrátila odpoveď v nesprávnom formáte. Skúste to prosím znova."
_STORE_MSG = "Chyba databázy"
_RATE_LIMIT_MSG = "Prekročili ste limit požiadaviek. Počkajte chvíľu."
_CONVERSATION_BUSY_MSG = "Konverzácia práve spracúva inú správu. Počkajte na odpoveď."


class AppError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "Internal error",
        user_message: str = _DEFAULT_USER_MSG,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_message = user_message


class InputValidationError(AppError):
    """Raised when a request body is missing required fields or is malformed."""

    def __init__(
        self,
        message: str = "Invalid input",
        user_message: str | None = None,
    ) -> None:
        super().__init__(message=message, user_message=user_message or message or _VALIDATION_MSG)


class PromptError(AppError):
    """Raised when a prompt template is missing or lacks required variables."""

    def __init__(
        self,
        message: str = "Prompt rendering failed",
        user_message: str = _DEFAULT_USER_MSG,
    ) -> None:
        super().__init__(message=message, user_message=user_message)


class ModelError(AppError):
    """Base for generative-model call failures."""

    def __init__(
        self,
        message: str = "Model call failed",
        user_message: str = _MODEL_FAILED_MSG,
    ) -> None:
        super().__init__(message=message, user_message=user_message)


class ModelOverloadedError(ModelError):
    """Provider is rate limiting or overloaded. Never retried internally."""

    def __init__(
        self,
        message: str = "Model provider overloaded",
        user_message: str = _MODEL_OVERLOADED_MSG,
    ) -> None:
        super().__init__(message=message, user_message=user_message)


class ModelFailedError(ModelError):
    """Any other provider failure: network, timeout, empty response, API error."""


class DecodeErrorKind(StrEnum):
    NO_JSON_FOUND = "no_json_found"
    INVALID_JSON = "invalid_json"
    SCHEMA_MISMATCH = "schema_mismatch"


class DecodeError(AppError):
    """Raised when a model response cannot be coerced into the expected JSON shape."""

    def __init__(
        self,
        kind: DecodeErrorKind,
        message: str = "Failed to decode model output",
        user_message: str = _DECODE_MSG,
    ) -> None:
        super().__init__(message=f"{kind.value}: {message}", user_message=user_message)
        self.kind = kind


class StoreError(AppError):
    """Raised when the data store rejects or fails an operation."""

    def __init__(
        self,
        message: str = "Data store operation failed",
        user_message: str = _STORE_MSG,
    ) -> None:
        super().__init__(message=message, user_message=user_message)


class RateLimitError(AppError):
    """Raised when a user exceeds the per-action request limit."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        user_message: str = _RATE_LIMIT_MSG,
        retry_after_seconds: int = 0,
    ) -> None:
        super().__init__(message=message, user_message=user_message)
        self.retry_after_seconds = retry_after_seconds


class ConversationBusyError(AppError):
    """Raised when another request is already writing to the same conversation."""

    def __init__(
        self,
        message: str = "Conversation is locked by another request",
        user_message: str = _CONVERSATION_BUSY_MSG,
    ) -> None:
        super().__init__(message=message, user_message=user_message)
