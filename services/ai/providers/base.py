"""Provider-neutral model client contract and shared helpers.

Every provider turns its SDK's failures into exactly two outcomes:
``ModelOverloadedError`` (rate limiting / overload, safe to surface as 503)
or ``ModelFailedError`` (everything else). Providers never retry, never log
usage, never persist.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import ipaddress
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Literal
from urllib.parse import urlsplit

import httpx
import structlog

from app.exceptions import InputValidationError, ModelError, ModelFailedError, ModelOverloadedError

log = structlog.get_logger()

# Status codes meaning "provider overloaded / rate limited"
_OVERLOAD_STATUSES = frozenset({429, 503, 529})

_OVERLOAD_MARKERS = (
    "overloaded",
    "rate_limit",
    "rate limit",
    "resource_exhausted",
    "too many requests",
    "preťažen",
)

_DATA_URI_RE = re.compile(r"^data:image/(\w+);base64,", re.IGNORECASE)

# Image URLs are fetched server-side (Gemini), so they must not reach internal hosts
_BLOCKED_HOSTNAMES = ("localhost", "metadata.google.internal")
_BLOCKED_HOST_SUFFIXES = (".localhost", ".local", ".internal", ".lan")

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024

ChatRole = Literal["user", "model"]


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters for a single call."""

    temperature: float = 0.7
    max_output_tokens: int = 2048
    top_p: float = 0.95
    top_k: int | None = 40

    def merged(
        self,
        *,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
    ) -> GenerationConfig:
        """Copy with the given non-None overrides applied."""
        overrides = {
            k: v
            for k, v in {
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
                "top_p": top_p,
                "top_k": top_k,
            }.items()
            if v is not None
        }
        return replace(self, **overrides)


@dataclass(frozen=True)
class ChatTurn:
    role: ChatRole
    text: str


@dataclass(frozen=True)
class Completion:
    """Raw text returned by a provider plus token accounting."""

    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class ImageSource:
    """Image reference for multimodal calls: either a URL or inline bytes."""

    url: str | None = None
    data: bytes | None = None
    media_type: str = "image/jpeg"

    @property
    def base64_data(self) -> str:
        return base64.b64encode(self.data or b"").decode("ascii")

    @property
    def data_uri(self) -> str:
        if self.url:
            return self.url
        return f"data:{self.media_type};base64,{self.base64_data}"


def check_image_url(url: str, allowed_hosts: frozenset[str] = frozenset()) -> None:
    """Raise ValueError unless ``url`` is https on a public host.

    With ``allowed_hosts`` set, only those hosts pass. Without it, IP literals
    must be globally routable and names must not be local ones. Names that
    resolve to private addresses are only stopped by the allowlist.
    """
    parts = urlsplit(url)
    host = (parts.hostname or "").lower().rstrip(".")
    if parts.scheme != "https" or not host:
        msg = "Image URL must use https"
        raise ValueError(msg)
    if allowed_hosts:
        if host not in allowed_hosts:
            msg = f"Image host {host} is not allowed"
            raise ValueError(msg)
        return
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None
    if address is not None:
        if not address.is_global:
            msg = f"Image host {host} is not a public address"
            raise ValueError(msg)
        return
    # Real TLDs start with a letter; anything else is a numeric or encoded IP form
    if host in _BLOCKED_HOSTNAMES or host.endswith(_BLOCKED_HOST_SUFFIXES) or not host.rsplit(".", 1)[-1][:1].isalpha():
        msg = f"Image host {host} is not a public host"
        raise ValueError(msg)


def parse_image_data(image: str, allowed_hosts: frozenset[str] = frozenset()) -> ImageSource:
    """Detect whether ``image`` is an https URL, a data URI, or bare base64.

    Bare base64 without a data-URI prefix is assumed to be JPEG.
    Raises ValueError when the payload is neither a permitted URL nor valid base64.
    """
    image = image.strip()
    if image.lower().startswith(("http://", "https://")):
        check_image_url(image, allowed_hosts)
        return ImageSource(url=image)

    media_type = "image/jpeg"
    match = _DATA_URI_RE.match(image)
    if match:
        fmt = match.group(1).lower()
        media_type = f"image/{'jpeg' if fmt == 'jpg' else fmt}"
        image = image[match.end():]

    try:
        data = base64.b64decode(image, validate=True)
    except (binascii.Error, ValueError) as exc:
        msg = "Image must be an http(s) URL or base64 data"
        raise ValueError(msg) from exc
    if not data:
        msg = "Image data is empty"
        raise ValueError(msg)
    return ImageSource(data=data, media_type=media_type)


async def download_image(
    http: httpx.AsyncClient,
    url: str,
    *,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    fallback_media_type: str = "image/jpeg",
) -> ImageSource:
    """Fetch ``url`` into inline bytes, streaming and stopping at ``max_bytes``.

    Every failure here is a problem with the caller's image, not with the
    model, so it surfaces as InputValidationError. Redirects are not followed.
    """
    try:
        async with http.stream("GET", url, follow_redirects=False) as resp:
            if resp.status_code != 200:
                raise InputValidationError(
                    message=f"Image download returned HTTP {resp.status_code}: {url}",
                    user_message="Obrázok sa nepodarilo stiahnuť",
                )
            media_type = resp.headers.get("content-type", "").split(";")[0].strip().lower()
            if media_type and not media_type.startswith("image/"):
                raise InputValidationError(
                    message=f"Image URL served {media_type}: {url}",
                    user_message="Odkaz nevedie na obrázok",
                )
            body = bytearray()
            async for chunk in resp.aiter_bytes():
                body.extend(chunk)
                if len(body) > max_bytes:
                    raise InputValidationError(
                        message=f"Image larger than {max_bytes} bytes: {url}",
                        user_message="Obrázok je príliš veľký",
                    )
    except httpx.HTTPError as exc:
        raise InputValidationError(
            message=f"Image download failed: {exc}",
            user_message="Obrázok sa nepodarilo stiahnuť",
        ) from exc
    if not body:
        raise InputValidationError(message=f"Image URL returned no data: {url}", user_message="Obrázok je prázdny")
    return ImageSource(data=bytes(body), media_type=media_type or fallback_media_type)


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def classify_provider_error(exc: BaseException) -> ModelError:
    """Map any provider exception onto the two-outcome model error taxonomy."""
    if isinstance(exc, ModelError):
        return exc
    status = _status_of(exc)
    text = str(exc).lower()
    if status in _OVERLOAD_STATUSES or any(marker in text for marker in _OVERLOAD_MARKERS):
        return ModelOverloadedError(message=f"Provider overloaded: {str(exc)[:200]}")
    return ModelFailedError(message=f"Provider error: {str(exc)[:200]}")


class ModelProvider(ABC):
    """Asynchronous text/chat/image completion against one provider."""

    name: str = "provider"

    def __init__(
        self,
        *,
        model: str,
        defaults: GenerationConfig | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.defaults = defaults or GenerationConfig()
        self._request_timeout = request_timeout

    async def complete(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        *,
        system: str | None = None,
    ) -> Completion:
        """Single-turn completion."""
        cfg = config or self.defaults
        return await self._guarded(lambda: self._complete(prompt, cfg, system))

    async def chat(
        self,
        history: list[ChatTurn],
        new_message: str,
        config: GenerationConfig | None = None,
        *,
        system: str | None = None,
    ) -> Completion:
        """Multi-turn completion. ``history`` must start with a user turn."""
        cfg = config or self.defaults
        return await self._guarded(lambda: self._chat(history, new_message, cfg, system))

    async def complete_with_image(
        self,
        image: ImageSource,
        prompt: str,
        config: GenerationConfig | None = None,
    ) -> Completion:
        """Completion over one image plus an instruction."""
        cfg = config or self.defaults
        return await self._guarded(lambda: self._complete_with_image(image, prompt, cfg))

    async def _guarded(self, call: Callable[[], Awaitable[Completion]]) -> Completion:
        try:
            async with asyncio.timeout(self._request_timeout):
                completion = await call()
        except TimeoutError as exc:
            raise ModelFailedError(
                message=f"{self.name} request timed out after {self._request_timeout}s",
            ) from exc
        except InputValidationError:
            # Bad caller input (e.g. an unreachable image URL) is not a model outcome
            raise
        except Exception as exc:
            error = classify_provider_error(exc)
            log.warning(
                "model_call_failed",
                provider=self.name,
                model=self.model,
                error_kind="overloaded" if isinstance(error, ModelOverloadedError) else "failed",
                error=str(exc)[:200],
            )
            if error is exc:
                raise
            raise error from exc

        if not completion.text.strip():
            raise ModelFailedError(message=f"{self.name} returned an empty response")
        return completion

    @abstractmethod
    async def _complete(self, prompt: str, config: GenerationConfig, system: str | None) -> Completion: ...

    @abstractmethod
    async def _chat(
        self,
        history: list[ChatTurn],
        new_message: str,
        config: GenerationConfig,
        system: str | None,
    ) -> Completion: ...

    @abstractmethod
    async def _complete_with_image(
        self,
        image: ImageSource,
        prompt: str,
        config: GenerationConfig,
    ) -> Completion: ...
