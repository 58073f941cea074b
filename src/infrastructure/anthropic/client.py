"""
Anthropic Claude API client wrapper.

This module provides a thin wrapper around the Anthropic SDK that:
1. Implements our VisionModelClient protocol
2. Handles API-specific details (base64 encoding, message format)
3. Provides consistent error handling
4. Enables easy mocking for tests

The wrapper is intentionally thin. It sends one photo and a prompt and
hands back the text; it knows nothing about physiognomy.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional

import anthropic
from anthropic import APIError, RateLimitError

from src.core.scan.reader import AnalysisError, VisionModelClient


logger = logging.getLogger(__name__)


class AnthropicClientError(AnalysisError):
    """Raised when API calls fail."""
    pass


class RateLimitExceeded(AnthropicClientError):
    """Raised when we hit rate limits."""
    pass


@dataclass
class AnthropicConfig:
    """
    Configuration for the Anthropic client.

    Validated at construction so a bad value fails at startup, not on
    the first scan.
    """
    api_key: str
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 2048  # the reading is a short JSON object
    temperature: float = 0.7

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("API key is required")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if not 0 <= self.temperature <= 1:
            raise ValueError("temperature must be between 0 and 1")


class AnthropicVisionClient(VisionModelClient):
    """
    Implementation of VisionModelClient using Claude.

    Uses the async SDK client so a model call can run alongside the
    photo upload within one request.
    """

    def __init__(
        self,
        config: AnthropicConfig,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ) -> None:
        self._config = config
        self._client = client or anthropic.AsyncAnthropic(api_key=config.api_key)

    async def analyze_image(
        self,
        image: bytes,
        system_prompt: str,
        user_prompt: str,
        media_type: str = "image/jpeg",
    ) -> str:
        """
        Send one image to Claude for analysis.

        The image is base64 encoded and sent ahead of the text prompt in
        the user message.
        """
        if not image:
            raise ValueError("An image is required")

        content = self._build_image_content(image, user_prompt, media_type)

        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system=system_prompt,
                messages=[
                    {"role": "user", "content": content}
                ],
            )

            return self._extract_text_response(response)

        except RateLimitError as e:
            logger.warning("Rate limit hit", extra={"error": str(e)})
            raise RateLimitExceeded("API rate limit exceeded. Please try again later.")
        except APIError as e:
            logger.error(
                "API error",
                extra={"error": str(e), "status": getattr(e, "status_code", None)}
            )
            raise AnthropicClientError(f"API error: {e.message}")

    def _build_image_content(
        self,
        image: bytes,
        text_prompt: str,
        media_type: str,
    ) -> list[dict]:
        """
        Build the content array for a single-image request.

        Claude expects:
        [
            {"type": "image", "source": {"type": "base64", "media_type": "image/jpeg", "data": "..."}},
            {"type": "text", "text": "..."}
        ]
        """
        return [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": base64.b64encode(image).decode("utf-8"),
                }
            },
            {
                "type": "text",
                "text": text_prompt,
            },
        ]

    def _extract_text_response(self, response) -> str:
        """Extract text content from API response."""
        if not response.content:
            return ""

        # Response content is a list of blocks
        text_blocks = [
            block.text
            for block in response.content
            if hasattr(block, 'text')
        ]

        return "\n".join(text_blocks)

