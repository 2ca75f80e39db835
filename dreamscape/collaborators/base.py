"""
Base classes for external collaborators.

The orchestration core only talks to rendering, audio, input and UI
through these narrow interfaces.

To add a new collaborator:
1. Inherit from the matching base class
2. Implement the abstract methods
3. Pass the instance to build_session() or Orchestrator()
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict

from dreamscape.core.contracts import InteractionEvent


Unsubscribe = Callable[[], None]


def _noop():
    pass


class VisualCollaborator(ABC):
    """Fractal renderer seen from the orchestrator."""

    @abstractmethod
    def get_state(self) -> Dict[str, Any]:
        """Current state.

        Returns:
            Dict with at least "type" and "parameters"
        """
        pass

    @abstractmethod
    def set_fractal_type(self, name: str) -> bool:
        """Switch fractal type immediately.

        Returns:
            True if the type is known and was applied
        """
        pass

    @abstractmethod
    def set_parameters(self, partial: Dict[str, Any]) -> None:
        """Apply parameters immediately."""
        pass

    @abstractmethod
    async def transition_parameters(self, partial: Dict[str, Any], duration: float) -> None:
        """Interpolate parameters to new values over duration seconds."""
        pass

    def subscribe_state(self, listener: Callable[[Dict[str, Any]], None]) -> Unsubscribe:
        """Register for state changes (type, parameters, performance).

        Renderers that cannot push changes keep this default and are only
        read through get_state().
        """
        return _noop


class AudioCollaborator(ABC):
    """Audio engine seen from the orchestrator."""

    @abstractmethod
    def get_state(self) -> Dict[str, Any]:
        """Current state.

        Returns:
            Dict with "parameters" and "analysis"
        """
        pass

    @abstractmethod
    def set_parameters(self, partial: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def transition_parameters(self, partial: Dict[str, Any], duration: float) -> None:
        pass

    @abstractmethod
    def subscribe_beats(self, listener: Callable[[float], None]) -> Unsubscribe:
        """Register for beat notifications carrying an energy value."""
        pass

    def subscribe_state(self, listener: Callable[[Dict[str, Any]], None]) -> Unsubscribe:
        """Register for state changes (parameters, analysis)."""
        return _noop


class InputCollaborator(ABC):
    """Source of InteractionEvents."""

    @abstractmethod
    def subscribe(self, listener: Callable[[InteractionEvent], None]) -> Unsubscribe:
        pass


class UICollaborator(ABC):
    """User-facing prompts and highlights."""

    @abstractmethod
    def show_prompt(self, text: str) -> None:
        pass

    @abstractmethod
    def highlight_element(self, element_id: str) -> None:
        pass
