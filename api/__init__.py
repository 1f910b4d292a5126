"""HTTP API endpoints (aiohttp.web): AI features and health."""

import json
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any

import sentry_sdk
import structlog
from aiohttp import web
from pydantic import BaseModel, ValidationError

from app.exceptions import (
    AppError,
    ConversationBusyError,
    InputValidationError,
    ModelOverloadedError,
    RateLimitError,
)

log = structlog.get_logger()

OVERLOAD_RETRY_AFTER = 30

_Handler = Callable[..., Coroutine[Any, Any, web.Response]]


def error_response(message: str, status: int, **extra: Any) -> web.Response:
    headers = extra.pop("headers", None)
    return web.json_response({"error": message, **extra}, status=status, headers=headers)


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(part) for part in err["loc"]) or "body"
    if err["type"] == "missing":
        return f"Chýba povinné pole: {field}"
    return f"Neplatná hodnota poľa {field}: {err['msg']}"


def ai_endpoint(body_model: type[BaseModel]) -> Callable[[_Handler], _Handler]:
    """Decorator: parse and validate the JSON body, map typed errors to HTTP.

    The wrapped handler receives the validated ``body_model`` instance.
    This is the only place where application errors become status codes.
    """

    def decorator(handler: _Handler) -> _Handler:
        @wraps(handler)
        async def wrapper(request: web.Request) -> web.Response:
            try:
                raw = await request.json()
            except (json.JSONDecodeError, UnicodeDecodeError):
                return error_response("Telo požiadavky musí byť platný JSON", 400)
            if not isinstance(raw, dict):
                return error_response("Telo požiadavky musí byť JSON objekt", 400)

            try:
                body = body_model.model_validate(raw)
            except ValidationError as exc:
                log.info("request_validation_failed", path=request.path, errors=exc.error_count())
                return error_response(_validation_message(exc), 400)

            try:
                return await handler(request, body)
            except InputValidationError as exc:
                return error_response(exc.user_message, 400)
            except RateLimitError as exc:
                return error_response(
                    exc.user_message,
                    429,
                    headers={"Retry-After": str(max(exc.retry_after_seconds, 1))},
                )
            except ConversationBusyError as exc:
                return error_response(exc.user_message, 409)
            except ModelOverloadedError as exc:
                return error_response(
                    exc.user_message,
                    503,
                    code="ai_overloaded",
                    headers={"Retry-After": str(OVERLOAD_RETRY_AFTER)},
                )
            except AppError as exc:
                log.warning("request_failed", path=request.path, error=exc.message)
                return error_response(exc.user_message, 500)
            except Exception as exc:
                log.exception("unhandled_error", path=request.path)
                sentry_sdk.capture_exception(exc)
                return error_response("Nastala chyba. Skúste to prosím znova.", 500)

        return wrapper

    return decorator
