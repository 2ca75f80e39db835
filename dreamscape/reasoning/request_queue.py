"""
Serialized request queue for the reasoning service.

One worker drains requests in FIFO order and waits a fixed delay after
each dispatch; that delay is the rate limit. A failure rejects only the
request that failed.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from loguru import logger

from dreamscape.core.contracts import QueuedRequest
from dreamscape.core.errors import TransportError
from dreamscape.reasoning.prompts import DEFAULT_SYSTEM_MESSAGE
from dreamscape.reasoning.response_cache import ResponseCache
from dreamscape.reasoning.simulation import simulate_response
from dreamscape.reasoning.transport import CHAT_COMPLETIONS, ReasoningTransport
from dreamscape.reasoning.usage import UsageTracker


@dataclass
class QueueConfig:
    """Request pacing and simulation settings."""
    request_delay: float = 0.5
    request_timeout: float = 30.0
    simulate: bool = False
    simulated_latency: float = 0.5
    cache_enabled: bool = True
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 500
    max_tokens_per_day: int = 100_000
    max_requests_per_minute: int = 20
    warning_threshold: float = 0.8


def make_cache_key(prompt: str, model: str, temperature: float, max_tokens: int) -> str:
    """Cache key: prompt plus the sampling parameters that shape the answer."""
    options = json.dumps(
        {"model": model, "temperature": temperature, "max_tokens": max_tokens},
        sort_keys=True,
    )
    return f"{prompt}|{options}"


class RequestQueue:
    """
    FIFO queue in front of the reasoning transport.

    Guarantees:
    - Dispatch order equals enqueue order
    - At most one request in flight
    - Cache hits never consume a slot or usage
    - Simulated and live responses populate cache and usage identically
    """

    def __init__(
        self,
        transport: Optional[ReasoningTransport] = None,
        cache: Optional[ResponseCache] = None,
        config: Optional[QueueConfig] = None,
        usage: Optional[UsageTracker] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the queue.

        Args:
            transport: Live transport (required unless simulating)
            cache: Response cache, or None to disable caching
            config: Queue settings
            usage: Usage tracker (created from config if omitted)
            sleep: Awaitable delay function
            clock: Time source in seconds
        """
        self.config = config or QueueConfig()
        self._transport = transport
        self._cache = cache
        self._sleep = sleep
        self._clock = clock
        self.usage = usage or UsageTracker(
            max_tokens_per_day=self.config.max_tokens_per_day,
            max_requests_per_minute=self.config.max_requests_per_minute,
            warning_threshold=self.config.warning_threshold,
            clock=clock,
        )

        self._pending: Deque[QueuedRequest] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._sequence = 0
        self._closed = False

        if transport is None and not self.config.simulate:
            logger.warning("No reasoning transport configured - switching to simulated responses")
            self.config.simulate = True

    @property
    def simulate(self) -> bool:
        return self.config.simulate

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def cache(self) -> Optional[ResponseCache]:
        return self._cache

    async def enqueue(self, endpoint: str, params: Dict[str, Any], cache_key: Optional[str] = None) -> Dict[str, Any]:
        """
        Submit a request and wait for its response.

        Args:
            endpoint: Endpoint identifier
            params: Request body
            cache_key: Key to look up / store the response under

        Returns:
            Response dict

        Raises:
            ReasoningError: If dispatch failed or timed out
        """
        if self._closed:
            raise TransportError("Request queue is closed")

        if cache_key and self._cache is not None and self.config.cache_enabled:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug("Reasoning cache hit")
                return cached

        future = asyncio.get_running_loop().create_future()
        self._pending.append(QueuedRequest(endpoint, params, cache_key, future))
        self._ensure_worker()
        return await future

    async def complete(
        self,
        prompt: str,
        system_message: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Chat completion for a single user prompt, cached by prompt and options."""
        model = model or self.config.model
        temperature = self.config.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.config.max_tokens
        params = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_message or DEFAULT_SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        key = make_cache_key(prompt, model, temperature, max_tokens)
        return await self.enqueue(CHAT_COMPLETIONS, params, key)

    async def drain(self):
        """Wait until every queued request has been dispatched."""
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    async def close(self):
        """Reject pending requests and stop the worker."""
        self._closed = True
        while self._pending:
            request = self._pending.popleft()
            if not request.future.done():
                request.future.set_exception(TransportError("Request queue closed"))
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        if self._transport is not None:
            await self._transport.close()
        logger.info("Request queue closed")

    def stats(self) -> Dict[str, Any]:
        stats = {"pending": self.pending, "simulate": self.simulate, "usage": self.usage.stats()}
        if self._cache is not None:
            stats["cache"] = self._cache.stats()
        return stats

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _ensure_worker(self):
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        while self._pending:
            request = self._pending.popleft()
            if request.future.done():
                continue

            try:
                response = await asyncio.wait_for(
                    self._dispatch(request), timeout=self.config.request_timeout
                )
            except asyncio.TimeoutError:
                logger.error(f"Reasoning request to {request.endpoint} timed out")
                self._reject(request, TransportError(
                    f"{request.endpoint} timed out after {self.config.request_timeout}s"
                ))
            except asyncio.CancelledError:
                self._reject(request, TransportError("Request cancelled"))
                raise
            except Exception as e:
                logger.error(f"Reasoning request to {request.endpoint} failed: {e}")
                self._reject(request, e)
            else:
                self.usage.track(response.get("usage"))
                if request.cache_key and self._cache is not None and self.config.cache_enabled:
                    self._cache.set(request.cache_key, response)
                if not request.future.done():
                    request.future.set_result(response)

            await self._sleep(self.config.request_delay)

    async def _dispatch(self, request: QueuedRequest) -> Dict[str, Any]:
        self._sequence += 1
        if self.config.simulate:
            await self._sleep(self.config.simulated_latency)
            return simulate_response(
                request.endpoint, request.params, self._sequence, int(self._clock())
            )
        return await self._transport.send(request.endpoint, request.params)

    @staticmethod
    def _reject(request: QueuedRequest, error: BaseException):
        if not request.future.done():
            request.future.set_exception(error)
