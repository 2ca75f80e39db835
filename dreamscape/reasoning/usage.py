"""
Token and request accounting for the reasoning service.
"""

from __future__ import annotations

import time
from collections import deque
from datetime import date, datetime
from typing import Any, Callable, Deque, Dict, Optional

from loguru import logger


class UsageTracker:
    """
    Tracks token usage against a daily budget.

    Crossing the warning threshold is logged once per day; exceeding the
    per-minute request ceiling is logged on every offending request.
    """

    def __init__(
        self,
        max_tokens_per_day: int = 100_000,
        max_requests_per_minute: int = 20,
        warning_threshold: float = 0.8,
        clock: Callable[[], float] = time.time,
    ):
        self.max_tokens_per_day = max_tokens_per_day
        self.max_requests_per_minute = max_requests_per_minute
        self.warning_threshold = warning_threshold
        self._clock = clock

        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.total_tokens = 0
        self.request_count = 0

        self._day: Optional[date] = None
        self._tokens_today = 0
        self._warned_today = False
        self._recent_requests: Deque[float] = deque()

    def track(self, usage: Optional[Dict[str, Any]]):
        """Record one completed request and its usage block."""
        now = self._clock()
        self._roll_day(now)

        usage = usage or {}
        prompt = int(usage.get("prompt_tokens") or 0)
        completion = int(usage.get("completion_tokens") or 0)
        total = int(usage.get("total_tokens") or (prompt + completion))

        self.prompt_tokens += prompt
        self.completion_tokens += completion
        self.total_tokens += total
        self.request_count += 1
        self._tokens_today += total

        self._recent_requests.append(now)
        while self._recent_requests and now - self._recent_requests[0] > 60.0:
            self._recent_requests.popleft()
        if len(self._recent_requests) > self.max_requests_per_minute:
            logger.warning(
                f"Reasoning request rate {len(self._recent_requests)}/min "
                f"exceeds limit of {self.max_requests_per_minute}"
            )

        if not self._warned_today and self.budget_used >= self.warning_threshold:
            self._warned_today = True
            logger.warning(
                f"⚠️ Daily token budget {self.budget_used:.0%} used "
                f"({self._tokens_today}/{self.max_tokens_per_day})"
            )

    @property
    def budget_used(self) -> float:
        if self.max_tokens_per_day <= 0:
            return 0.0
        return self._tokens_today / self.max_tokens_per_day

    @property
    def over_budget(self) -> bool:
        return self._tokens_today >= self.max_tokens_per_day

    def stats(self) -> Dict[str, Any]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "request_count": self.request_count,
            "tokens_today": self._tokens_today,
            "budget_used": self.budget_used,
        }

    def reset(self):
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.total_tokens = 0
        self.request_count = 0
        self._tokens_today = 0
        self._warned_today = False
        self._recent_requests.clear()

    def _roll_day(self, now: float):
        today = datetime.fromtimestamp(now).date()
        if today != self._day:
            self._day = today
            self._tokens_today = 0
            self._warned_today = False
