"""
Mode catalog.

Each mode bundles a visual preset, an audio preset and the adaptation
period used while it is active. The catalog is read-only at runtime.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from dreamscape.core.contracts import Mode
from dreamscape.core.errors import UnknownModeError


DEFAULT_MODES: Dict[str, Mode] = {
    "contemplative": Mode(
        name="contemplative",
        visual_preset={"type": "mandelbrot", "zoom": 1.5, "iterations": 200},
        audio_preset={"tempo": 0, "binauralBeat": 7.83, "baseFrequency": 432},
        adaptation_period=45.0,
    ),
    "exploratory": Mode(
        name="exploratory",
        visual_preset={"type": "julia", "zoom": 2.0, "iterations": 150},
        audio_preset={"tempo": 60, "binauralBeat": 10, "baseFrequency": 528},
        adaptation_period=30.0,
    ),
    "energetic": Mode(
        name="energetic",
        visual_preset={"type": "mandelbulb", "zoom": 1.0, "iterations": 100},
        audio_preset={"tempo": 90, "binauralBeat": 15, "baseFrequency": 639},
        adaptation_period=20.0,
    ),
    "quantum": Mode(
        name="quantum",
        visual_preset={"type": "hyperbolic", "zoom": 1.0, "iterations": 120},
        audio_preset={"tempo": 72, "binauralBeat": 12, "baseFrequency": 396},
        adaptation_period=25.0,
    ),
}


def mode_from_dict(name: str, data: Mapping[str, Any]) -> Mode:
    """Build a Mode from a settings mapping."""
    return Mode(
        name=name,
        visual_preset=dict(data.get("visual") or data.get("visual_preset") or {}),
        audio_preset=dict(data.get("audio") or data.get("audio_preset") or {}),
        adaptation_period=float(data.get("adaptation_period", 30.0)),
    )


class ModeCatalog:
    """Immutable name -> Mode lookup."""

    def __init__(self, modes: Optional[Iterable[Mode]] = None):
        source = list(modes) if modes is not None else list(DEFAULT_MODES.values())
        self._modes = MappingProxyType({mode.name: mode for mode in source})

    @classmethod
    def with_extra(cls, extra: Optional[Mapping[str, Mapping[str, Any]]] = None) -> "ModeCatalog":
        """Default catalog extended (or overridden) by settings entries."""
        modes = dict(DEFAULT_MODES)
        for name, data in (extra or {}).items():
            modes[name] = mode_from_dict(name, data)
        return cls(modes.values())

    def get(self, name: str) -> Mode:
        try:
            return self._modes[name]
        except KeyError:
            raise UnknownModeError(name, self._modes) from None

    def __contains__(self, name: object) -> bool:
        return name in self._modes

    def __iter__(self):
        return iter(self._modes.values())

    def __len__(self) -> int:
        return len(self._modes)

    @property
    def names(self):
        return list(self._modes)
