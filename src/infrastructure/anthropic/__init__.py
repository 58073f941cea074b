"""
Anthropic Claude API client wrapper.

Implements the VisionModelClient protocol from core.scan.reader.
"""

from .client import (
    AnthropicClientError,
    AnthropicConfig,
    AnthropicVisionClient,
    RateLimitExceeded,
)

__all__ = [
    "AnthropicClientError",
    "AnthropicConfig",
    "AnthropicVisionClient",
    "RateLimitExceeded",
]
