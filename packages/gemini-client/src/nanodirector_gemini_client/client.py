"""Gemini API client wrapper for Nano Director."""

import functools
import hashlib
import json
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from google import genai
from google.genai import types
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from nanodirector_core_schemas import ProviderError, ProviderErrorKind, Session

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

TextCall = Callable[..., Awaitable[str]]


class ResponseCache:
    """Bounded LRU map of request keys to response text.

    With a ``path`` the entries are mirrored to a JSON file so a restarted
    process can reuse them.
    """

    def __init__(self, max_size: int = 100, path: Optional[Path] = None):
        self.max_size = max_size
        self.path = path
        self._entries: OrderedDict[str, str] = OrderedDict()
        if path is not None:
            self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable response cache %s", self.path)
            return
        if isinstance(data, dict):
            items = [(k, v) for k, v in data.items() if isinstance(v, str)]
            self._entries = OrderedDict(items[-self.max_size :])

    def _flush(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            tmp.write_text(json.dumps(self._entries), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.warning("Could not write response cache %s: %s", self.path, e)

    def get(self, key: str) -> Optional[str]:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def put(self, key: str, value: str) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
        if self.path is not None:
            self._flush()

    def clear(self) -> None:
        self._entries.clear()
        if self.path is not None and self.path.exists():
            self.path.unlink()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _key_part(value: Any) -> str:
    if isinstance(value, bytes):
        return f"bytes:{hashlib.sha1(value).hexdigest()}"
    if isinstance(value, type) and issubclass(value, BaseModel):
        return f"schema:{json.dumps(value.model_json_schema(), sort_keys=True)}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_key_part(item) for item in value) + "]"
    return repr(value)


def request_key(name: str, *args, **kwargs) -> str:
    """Stable hash of a call: method name, model and arguments (image bytes by digest)."""
    parts = [name, *(_key_part(arg) for arg in args)]
    parts.extend(f"{k}={_key_part(v)}" for k, v in sorted(kwargs.items()))
    return hashlib.sha256("|".join(parts).encode()).hexdigest()


def cached(func: TextCall) -> TextCall:
    """Serve a text-returning call from ``self.cache``.

    Callers pass ``overwrite_cache=True`` to force a fresh request; the
    fresh response still replaces the cached one.
    """

    @functools.wraps(func)
    async def wrapper(self, *args, overwrite_cache: bool = False, **kwargs) -> str:
        key = request_key(func.__name__, self.model, *args, **kwargs)
        if not overwrite_cache:
            hit = self.cache.get(key)
            if hit is not None:
                logger.debug("Cache hit for %s", func.__name__)
                return hit

        text = await func(self, *args, **kwargs)
        if text:
            self.cache.put(key, text)
        return text

    return wrapper


def guess_mime_type(data: bytes) -> str:
    """Guess an image MIME type from its magic bytes."""
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def _check_finish(candidate, what: str) -> None:
    reason = str(getattr(candidate, "finish_reason", "") or "")
    if "SAFETY" in reason or "PROHIBITED" in reason:
        raise ProviderError(
            f"Gemini blocked the {what} ({reason}). Try softening the story idea.",
            kind=ProviderErrorKind.CONTENT_FILTERED,
        )


def _strip_to_json(text: str) -> str:
    text = text.replace("```json", "").replace("```", "").strip()
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


class GeminiClient:
    """Wrapper for Google Gemini API.

    Text and JSON responses are cached by request; images never are, so
    repeated candidate requests stay independent draws.
    """

    DEFAULT_MODEL = "gemini-3-flash-preview"
    IMAGE_MODEL = "gemini-3-pro-image-preview"

    def __init__(
        self,
        session: Session,
        model: Optional[str] = None,
        image_model: Optional[str] = None,
        cache_size: int = 100,
        cache_dir: Optional[Path] = None,
    ):
        """Initialize Gemini client.

        Args:
            session: Session holding the API key (read on each call)
            model: Model for text and JSON generation
            image_model: Model for image generation and remastering
            cache_size: Maximum number of cached responses
            cache_dir: Directory for a persistent cache file (None for memory-only)
        """
        self.session = session
        self.model = model or self.DEFAULT_MODEL
        self.image_model = image_model or self.IMAGE_MODEL
        self.cache = ResponseCache(
            max_size=cache_size,
            path=cache_dir / "responses.json" if cache_dir else None,
        )

        self._client: Optional[genai.Client] = None
        self._client_key: Optional[str] = None

    @classmethod
    def from_session(
        cls,
        session: Session,
        model: Optional[str] = None,
        image_model: Optional[str] = None,
        cache_dir: Optional[Path] = None,
    ) -> "GeminiClient":
        """Build a client bound to ``session``."""
        return cls(session, model=model, image_model=image_model, cache_dir=cache_dir)

    @property
    def client(self) -> genai.Client:
        """The underlying SDK client, rebuilt when the session key changes.

        Raises:
            ProviderError: If the session has no API key
        """
        api_key = self.session.api_key
        if not api_key:
            raise ProviderError(
                "GOOGLE_API_KEY is not set. Get one at https://aistudio.google.com/apikey",
                kind=ProviderErrorKind.PERMISSION_DENIED,
            )
        if self._client is None or self._client_key != api_key:
            self._client = genai.Client(api_key=api_key)
            self._client_key = api_key
        return self._client

    @staticmethod
    def _contents(prompt: str, images: Optional[list[bytes]], images_first: bool) -> list[Any]:
        parts = [
            types.Part.from_bytes(data=data, mime_type=guess_mime_type(data))
            for data in images or []
            if data
        ]
        return [*parts, prompt] if images_first else [prompt, *parts]

    @cached
    async def generate_text(
        self,
        prompt: str,
        images: Optional[list[bytes]] = None,
        temperature: float = 0.7,
    ) -> str:
        """Generate a text response, optionally grounded on images.

        Args:
            prompt: User prompt
            images: Image bytes sent ahead of the prompt (e.g. a panel to describe)
            temperature: Sampling temperature

        Returns:
            Generated text ("" when the model returned none)
        """
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=self._contents(prompt, images, images_first=True),
            config=types.GenerateContentConfig(temperature=temperature),
        )
        if response.candidates:
            _check_finish(response.candidates[0], "response")
        return response.text or ""

    @cached
    async def _json_text(
        self,
        prompt: str,
        response_schema: Type[BaseModel],
        images: Optional[list[bytes]] = None,
        temperature: float = 0.7,
    ) -> str:
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=self._contents(prompt, images, images_first=False),
            config=types.GenerateContentConfig(
                temperature=temperature,
                response_mime_type="application/json",
                response_schema=response_schema,
            ),
        )
        if not response.candidates:
            raise ProviderError(
                "Gemini returned no candidates", kind=ProviderErrorKind.MALFORMED_OUTPUT
            )
        _check_finish(response.candidates[0], "response")
        return _strip_to_json(response.text or "")

    async def generate_structured(
        self,
        prompt: str,
        response_schema: Type[T],
        images: Optional[list[bytes]] = None,
        temperature: float = 0.7,
        overwrite_cache: bool = False,
    ) -> T:
        """Generate JSON output and validate it against a pydantic model.

        Args:
            prompt: User prompt
            response_schema: Pydantic model class for the response
            images: Image bytes sent after the prompt
            temperature: Sampling temperature
            overwrite_cache: If True, bypass the cache

        Raises:
            ProviderError: If the response is empty or does not match the schema
        """
        text = await self._json_text(
            prompt,
            response_schema,
            images=images,
            temperature=temperature,
            overwrite_cache=overwrite_cache,
        )
        if not text:
            raise ProviderError("Gemini returned empty text", kind=ProviderErrorKind.MALFORMED_OUTPUT)
        try:
            return response_schema.model_validate_json(text)
        except PydanticValidationError as e:
            preview = text[:200] + "..." if len(text) > 200 else text
            raise ProviderError(
                f"Response is not a valid {response_schema.__name__}: {preview}",
                kind=ProviderErrorKind.MALFORMED_OUTPUT,
            ) from e

    async def generate_image(
        self,
        prompt: str,
        images: Optional[list[bytes]] = None,
        aspect_ratio: str = "1:1",
        resolution: str = "2K",
    ) -> bytes:
        """Generate one image.

        Args:
            prompt: Image generation prompt
            images: Input images sent ahead of the prompt (e.g. a panel to remaster)
            aspect_ratio: Aspect ratio accepted by the model (1:1, 3:4, 4:3, 9:16, 16:9)
            resolution: Image size (1K, 2K, 4K)

        Raises:
            ProviderError: If the image was blocked or the response holds no image
        """
        response = await self.client.aio.models.generate_content(
            model=self.image_model,
            contents=self._contents(prompt, images, images_first=True),
            config=types.GenerateContentConfig(
                response_modalities=["IMAGE", "TEXT"],
                image_config=types.ImageConfig(aspect_ratio=aspect_ratio, image_size=resolution),
            ),
        )
        if not response.candidates:
            raise ProviderError("No image generated", kind=ProviderErrorKind.MALFORMED_OUTPUT)

        candidate = response.candidates[0]
        _check_finish(candidate, "image")

        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            logger.debug(
                "Image call used %s tokens (%s, %s)",
                getattr(usage, "total_token_count", None),
                aspect_ratio,
                resolution,
            )

        parts = candidate.content.parts if candidate.content else None
        for part in parts or []:
            if part.inline_data is not None and part.inline_data.data:
                return part.inline_data.data

        raise ProviderError("No image generated in response", kind=ProviderErrorKind.MALFORMED_OUTPUT)
