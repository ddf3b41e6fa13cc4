"""Generator clients: the single external call behind every decade image.

A generator client turns ``(source image, prompt)`` into one styled image.
The rest of the system treats it as a black box with one coroutine::

    async def generate(source_image: str, prompt: str) -> str

Both arguments and the return value use ``data:`` URLs.  A client signals
failure by raising; :class:`~pastforward.core.errors.GenerationFailure` is
preferred but the scheduler records any exception as a per-decade error.

Backends
--------
- :class:`GeminiGeneratorClient` calls the Gemini image model through the
  google-genai async client.  Server-side (5xx) errors are retried with
  exponential backoff; everything else fails immediately.
- :class:`DryRunGeneratorClient` never touches the network.  It tints the
  uploaded photo with a colour derived from the prompt, which is enough to
  exercise the whole pipeline offline and in tests.

Use :func:`build_generator_client` to construct the backend selected in
:class:`~pastforward.core.config.PastForwardConfig`.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Sequence
from typing import Any, Protocol

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from PIL import Image, ImageDraw, ImageFont

from .config import PastForwardConfig
from .errors import GenerationFailure
from .images import encode_png, open_image, parse_data_url, to_data_url

logger = logging.getLogger(__name__)


class GeneratorClient(Protocol):
    """Structural type shared by all generator backends."""

    name: str

    async def generate(self, source_image: str, prompt: str) -> str:
        ...


# ---------------------------------------------------------------------------
# Gemini backend.
# ---------------------------------------------------------------------------


class GeminiGeneratorClient:
    """Image-to-image generation with a Gemini image model.

    The underlying ``genai.Client`` is created lazily on the first call so
    that a server can start (and report configuration errors per request)
    even when no API key is present yet.

    Attributes:
        name: Backend name, ``"gemini"``.
    """

    name = "gemini"

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        client: Any | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            model: Gemini model identifier.
            api_key: Optional API key.  When ``None`` the google-genai client
                reads ``GEMINI_API_KEY`` / ``GOOGLE_API_KEY`` itself.
            max_retries: Retries for server-side errors.
            retry_delay: Delay before the first retry, doubled per attempt.
            client: Pre-built ``genai.Client`` (used by tests).
        """
        self._model = model
        self._api_key = api_key
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                self._client = genai.Client(api_key=self._api_key)
            except ValueError as exc:
                raise GenerationFailure(
                    "Gemini is not configured. Set PASTFORWARD_GEMINI_API_KEY or GEMINI_API_KEY."
                ) from exc
            logger.info("Created Gemini client for model '%s'.", self._model)
        return self._client

    async def generate(self, source_image: str, prompt: str) -> str:
        """Generate one styled image from ``source_image``.

        Args:
            source_image: Uploaded photo as a data URL.
            prompt: Decade prompt text.

        Returns:
            The first image returned by the model, as a data URL.

        Raises:
            GenerationFailure: If the request fails, retries are exhausted,
                or the model answers without an image.
        """
        source = parse_data_url(source_image)
        contents = [
            types.Part(inline_data=types.Blob(data=source.data, mime_type=source.mime_type)),
            types.Part(text=prompt),
        ]
        content_config = types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"])
        client = self._get_client()

        attempt = 0
        while True:
            try:
                response = await client.aio.models.generate_content(
                    model=self._model,
                    contents=contents,
                    config=content_config,
                )
                break
            except genai_errors.ServerError as exc:
                if attempt >= self._max_retries:
                    raise GenerationFailure(
                        f"The image service is unavailable after {attempt + 1} attempts: "
                        f"{exc.message or exc}"
                    ) from exc
                delay = self._retry_delay * (2**attempt)
                attempt += 1
                logger.warning(
                    "Gemini server error (%s); retry %d/%d in %.1fs.",
                    exc.code,
                    attempt,
                    self._max_retries,
                    delay,
                )
                await asyncio.sleep(delay)
            except genai_errors.APIError as exc:
                raise GenerationFailure(exc.message or str(exc)) from exc

        return _extract_image(response)


def _extract_image(response: Any) -> str:
    """Return the first inline image of a Gemini response as a data URL."""
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback else None
    if block_reason:
        raise GenerationFailure(f"The request was blocked by the image service ({block_reason}).")

    texts: list[str] = []
    for part in _iter_parts(getattr(response, "candidates", None) or []):
        inline_data = getattr(part, "inline_data", None)
        data = getattr(inline_data, "data", None) if inline_data else None
        if isinstance(data, (bytes, bytearray)) and data:
            mime_type = getattr(inline_data, "mime_type", None) or "image/png"
            return to_data_url(bytes(data), mime_type)
        text = getattr(part, "text", None)
        if text:
            texts.append(text.strip())

    if texts:
        raise GenerationFailure(
            "The model responded with text instead of an image: " + " ".join(texts)
        )
    raise GenerationFailure("The model returned no image.")


def _iter_parts(candidates: Sequence[Any]):
    for candidate in candidates:
        content = getattr(candidate, "content", None)
        yield from getattr(content, "parts", None) or []


# ---------------------------------------------------------------------------
# Offline dry-run backend.
# ---------------------------------------------------------------------------


class DryRunGeneratorClient:
    """Offline generator that tints the source photo.

    Output is deterministic for a given ``(source_image, prompt)`` pair.

    Attributes:
        name: Backend name, ``"dryrun"``.
        delay: Artificial latency in seconds awaited before each result.
    """

    name = "dryrun"

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay

    async def generate(self, source_image: str, prompt: str) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        return await asyncio.to_thread(_render_dryrun, source_image, prompt)


def _render_dryrun(source_image: str, prompt: str) -> str:
    image = open_image(source_image)
    tint = Image.new("RGB", image.size, _color_from_prompt(prompt))
    styled = Image.blend(image, tint, 0.35)
    draw = ImageDraw.Draw(styled)
    font = ImageFont.load_default()
    draw.text((10, 10), f"dryrun\n{prompt[:60]}", fill=(255, 255, 255), font=font)
    return to_data_url(encode_png(styled), "image/png")


def _color_from_prompt(prompt: str) -> tuple[int, int, int]:
    digest = hashlib.sha256(prompt.encode("utf-8")).digest()
    return digest[0], digest[1], digest[2]


# ---------------------------------------------------------------------------
# Factory.
# ---------------------------------------------------------------------------


def build_generator_client(config: PastForwardConfig) -> GeneratorClient:
    """Construct the generator backend selected by ``config.generator_backend``."""
    if config.generator_backend == "dryrun":
        logger.info("Using offline dry-run generator.")
        return DryRunGeneratorClient()
    logger.info("Using Gemini generator (model=%s).", config.gemini_model)
    return GeminiGeneratorClient(
        config.gemini_model,
        api_key=config.gemini_api_key,
        max_retries=config.generator_max_retries,
        retry_delay=config.generator_retry_delay,
    )
