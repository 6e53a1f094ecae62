# src/llm/vision_service.py — v1
"""Screenshot analysis through a vision-capable LLM.

Two steps, so images are downloaded once per analysis and not once per
retry: ``load_images`` fetches the screenshots, ``complete`` sends them to
the model and turns its answer into an analysis document. Failures are
raised as VisionServiceError.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Sequence

from screenlens.core.models import Screenshot
from screenlens.extraction.image_fetcher import ImageFetcher, ImageFetchError
from screenlens.llm.base_client import BaseLLMClient
from screenlens.llm.errors import create_service_error
from screenlens.llm.models import ImageInput, Message

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """You are a mobile app UI/UX analyst. Study the screenshots \
and describe the app's design.

For every screenshot, note the screen type and purpose, the UI components, \
the design and navigation patterns, and the interactions it suggests.

Across all screenshots, report the recurring design patterns, the user flows, \
the feature set (core, nice-to-have, differentiators), the color palette as \
hex values, typography, overall style, target audience, distinctive strengths \
and improvement opportunities.

Respond with a single JSON object only, using these keys:
"analyzedAt", "screensAnalyzed", "screens", "designPatterns", "userFlows", \
"featureSet", "colorPalette", "typography", "overallStyle", "targetAudience", \
"uniqueSellingPoints", "improvementOpportunities"."""

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def build_instruction(subject_name: str, prompt: str = ANALYSIS_PROMPT) -> str:
    return f"Analyzing app: {subject_name}\n\n{prompt}"


def strip_code_fence(text: str) -> str:
    """Body of the first markdown code block, or the text unchanged."""
    match = _FENCE_RE.search(text)
    return match.group(1) if match else text


def parse_analysis(text: str) -> dict[str, Any]:
    """Parse a model answer into an analysis document.

    Raises:
        VisionServiceError: RESPONSE_PARSE_ERROR for empty or non-JSON text,
            VALIDATION_ERROR when the JSON is not an object.
    """
    if not text.strip():
        raise create_service_error("RESPONSE_PARSE_ERROR", "No text response from vision model")
    try:
        document = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise create_service_error(
            "RESPONSE_PARSE_ERROR", f"Failed to parse JSON response: {e}"
        ) from e
    if not isinstance(document, dict):
        raise create_service_error(
            "VALIDATION_ERROR",
            f"Invalid analysis response: expected an object, got {type(document).__name__}",
        )
    return document


class VisionService:
    """Analyzes screenshot sets with a vision client.

    Args:
        client: Provider adapter.
        fetcher: Image downloader.
        max_tokens: Completion budget per call.
        prompt: Instruction text appended after the subject line.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        fetcher: ImageFetcher,
        max_tokens: int = 8192,
        prompt: str = ANALYSIS_PROMPT,
    ) -> None:
        self._client = client
        self._fetcher = fetcher
        self._max_tokens = max_tokens
        self._prompt = prompt

    @property
    def provider_name(self) -> str:
        return self._client.provider_name

    @property
    def max_screenshots(self) -> int:
        return self._client.max_images_per_request

    async def load_images(self, screenshots: Sequence[Screenshot]) -> list[ImageInput]:
        """Download the screenshots, tolerating partial failures.

        Raises:
            VisionServiceError: VALIDATION_ERROR for an empty or oversized set,
                IMAGE_FETCH_ERROR when no image could be loaded.
        """
        if not screenshots:
            raise create_service_error("VALIDATION_ERROR", "No screenshots provided for analysis")
        if len(screenshots) > self.max_screenshots:
            raise create_service_error(
                "VALIDATION_ERROR",
                f"Too many screenshots: {len(screenshots)} exceeds limit of {self.max_screenshots}",
            )

        outcomes = await asyncio.gather(
            *(self._fetcher.fetch(s.url, source_id=s.id) for s in screenshots),
            return_exceptions=True,
        )

        images: list[ImageInput] = []
        failures: list[str] = []
        for i, (screenshot, outcome) in enumerate(zip(screenshots, outcomes), start=1):
            if isinstance(outcome, ImageInput):
                images.append(outcome)
            elif isinstance(outcome, ImageFetchError):
                failures.append(str(outcome))
                logger.warning(
                    "Failed to fetch image %d/%d (%s): %s",
                    i, len(screenshots), screenshot.id, outcome,
                )
            elif isinstance(outcome, BaseException):
                raise outcome

        if not images:
            raise create_service_error(
                "IMAGE_FETCH_ERROR",
                f"All {len(failures)} screenshots failed to load. "
                f"First error: {failures[0] if failures else 'Unknown'}",
            )
        if failures:
            logger.warning(
                "Proceeding with %d of %d screenshots (%d failed to load)",
                len(images), len(screenshots), len(failures),
            )
        return images

    async def complete(self, subject_name: str, images: list[ImageInput]) -> dict[str, Any]:
        """One model call over already loaded images.

        Raises:
            VisionServiceError: On parse or validation failure. Provider
                exceptions propagate unclassified for the retry executor.
        """
        response = await self._client.complete_with_vision(
            messages=[Message(role="user", content=build_instruction(subject_name, self._prompt))],
            images=images,
            max_tokens=self._max_tokens,
        )
        if response.was_truncated:
            logger.warning(
                "Vision response for %s hit the %d token limit", subject_name, self._max_tokens
            )
        analysis = parse_analysis(response.content)
        analysis["analyzedAt"] = datetime.now(timezone.utc).isoformat()
        analysis["screensAnalyzed"] = len(images)
        logger.info(
            "Analyzed %s: %d screenshots, %d tokens, %dms",
            subject_name, len(images), response.total_tokens, response.latency_ms,
        )
        return analysis

    async def analyze(
        self, subject_name: str, screenshots: Sequence[Screenshot]
    ) -> dict[str, Any]:
        """Load and analyze in one go (no retries)."""
        images = await self.load_images(screenshots)
        return await self.complete(subject_name, images)
