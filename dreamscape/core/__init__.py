"""
Core types shared by every Dreamscape component.

Responsibilities:
- Data contracts passed between analyzer, decision engine and orchestrator
- Error hierarchy
- Typed event bus for orchestrator notifications
- Scheduler abstraction (asyncio-backed and manually advanced)
- Fractal, mood and sound vocabulary
"""

from .contracts import (
    Analysis,
    Decision,
    InteractionEvent,
    Mode,
    OrchestratorState,
    Provenance,
    QuantumEvent,
    TelemetrySnapshot,
)
from .errors import DreamscapeError, ReasoningError, UnknownModeError
from .events import EventBus, EventKind
from .timers import AsyncioScheduler, ManualScheduler, Scheduler, TimerHandle
