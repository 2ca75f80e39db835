"""
Typed publish/subscribe for orchestrator notifications.

Each listener call is isolated: a listener that raises is logged and
the remaining listeners still run.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from dreamscape.core.contracts import (
    AdaptationRecord,
    Mode,
    QuantumEvent,
    TelemetrySnapshot,
)


class EventKind(Enum):
    """Enumerated notification categories."""
    MODE_CHANGED = "mode_changed"
    ADAPTATION_OCCURRED = "adaptation_occurred"
    QUANTUM_EVENT_FIRED = "quantum_event_fired"


@dataclass(frozen=True)
class ModeChanged:
    previous: Optional[str]
    current: str
    mode: Mode


@dataclass(frozen=True)
class AdaptationOccurred:
    record: AdaptationRecord
    snapshot: TelemetrySnapshot


@dataclass(frozen=True)
class QuantumEventFired:
    event: QuantumEvent


Listener = Callable[[Any], None]


class EventBus:
    """Listener registry keyed by EventKind."""

    def __init__(self):
        self._listeners: Dict[EventKind, List[Listener]] = defaultdict(list)

    def subscribe(self, kind: EventKind, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable that removes the listener again
        """
        self._listeners[kind].append(listener)

        def unsubscribe():
            if listener in self._listeners[kind]:
                self._listeners[kind].remove(listener)

        return unsubscribe

    def publish(self, kind: EventKind, payload: Any) -> int:
        """
        Deliver a payload to every listener of a kind.

        Returns:
            Number of listeners that completed without raising
        """
        delivered = 0
        for listener in list(self._listeners[kind]):
            try:
                listener(payload)
                delivered += 1
            except Exception:
                logger.exception(f"Listener for {kind.value} failed")
        return delivered

    def listener_count(self, kind: EventKind) -> int:
        return len(self._listeners[kind])

    def clear(self):
        self._listeners.clear()
