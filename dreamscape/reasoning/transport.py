"""
Reasoning service transports.

The queue only depends on the chat-completion response shape:

    {"choices": [{"message": {"content": "..."}}],
     "usage": {"prompt_tokens": n, "completion_tokens": n, "total_tokens": n}}
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger
from openai import AsyncOpenAI, OpenAIError

from dreamscape.core.errors import TransportError


CHAT_COMPLETIONS = "chat/completions"


@dataclass
class TransportConfig:
    """Reasoning endpoint settings."""
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 0


class ReasoningTransport(ABC):
    """Sends one request to the reasoning endpoint."""

    @abstractmethod
    async def send(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Dispatch a request.

        Args:
            endpoint: Endpoint identifier, e.g. "chat/completions"
            params: Request body

        Returns:
            Decoded JSON response
        """

    async def close(self):
        pass


class OpenAITransport(ReasoningTransport):
    """
    Transport for any OpenAI-compatible HTTP endpoint.

    Retries are left to the queue's callers; the SDK's own retry loop is
    disabled by default so one hung request cannot multiply.
    """

    def __init__(self, config: Optional[TransportConfig] = None):
        self.config = config or TransportConfig()
        api_key = self.config.api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise TransportError("No API key configured for the reasoning endpoint")

        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
        )
        logger.info(f"✅ Reasoning transport ready ({self.config.base_url or 'default endpoint'})")

    async def send(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            if endpoint != CHAT_COMPLETIONS:
                raise TransportError(f"Unsupported endpoint '{endpoint}'")
            response = await self._client.chat.completions.create(**params)
        except OpenAIError as e:
            raise TransportError(f"{endpoint} request failed: {e}") from e

        return response.model_dump()

    async def close(self):
        await self._client.close()
