"""
Configuration module for Dreamscape.

Collects the per-component dataclass configs into one DreamscapeConfig,
applies a named preset, then layers YAML settings and environment
variables on top.

To add a new preset:
1. Add an entry to PRESETS with per-section overrides
2. Select it with --preset or the `preset` key in settings.yaml
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger

from dreamscape.analysis.state_analyzer import AnalyzerConfig
from dreamscape.decision.decision_engine import DecisionConfig
from dreamscape.pipeline.orchestrator import OrchestratorConfig
from dreamscape.reasoning.request_queue import QueueConfig
from dreamscape.reasoning.response_cache import CacheConfig
from dreamscape.reasoning.transport import TransportConfig


DEFAULT_CONFIG_PATH = Path("config/settings.yaml")

# === SESSION PRESETS ===
# Section -> field overrides, applied before YAML settings
PRESETS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "default": {},
    "demo": {
        "orchestrator": {
            "adaptation_period": 10.0,
            "initial_adaptation_delay": 2.0,
            "quantum_randomness": 0.6,
        },
        "analyzer": {"idle_time": 15.0},
        "decision": {"interaction_gap": 8.0},
        "queue": {"simulate": True, "simulated_latency": 0.2},
    },
    "offline": {
        "queue": {"simulate": True},
        "decision": {"use_ai": True},
    },
    "rules_only": {
        "decision": {"use_ai": False},
    },
}

ACTIVE_PRESET = "default"


@dataclass
class LoggingConfig:
    """Log sink settings."""
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DreamscapeConfig:
    """Top-level configuration.

    Attributes:
        preset: Preset name applied in __post_init__
        analyzer: StateAnalyzer thresholds
        decision: DecisionEngine thresholds and AI request settings
        orchestrator: Loop cadence and levels
        queue: RequestQueue pacing and simulation
        cache: ResponseCache capacity, TTL and persistence
        transport: Reasoning endpoint credentials
        logging: Log sinks
    """
    preset: str = ACTIVE_PRESET
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    decision: DecisionConfig = field(default_factory=DecisionConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        """Apply preset settings."""
        if self.preset not in PRESETS:
            available = ", ".join(PRESETS)
            raise ValueError(f"Unknown preset '{self.preset}'. Available: {available}")
        self.update(PRESETS[self.preset])

    def update(self, overrides: Dict[str, Any]):
        """Merge a {section: {field: value}} mapping into the config.

        Unknown sections or fields are logged and skipped.
        """
        for section_name, values in (overrides or {}).items():
            section = getattr(self, section_name, None)
            if not is_dataclass(section):
                logger.warning(f"Ignoring unknown config section '{section_name}'")
                continue
            if not isinstance(values, dict):
                logger.warning(f"Config section '{section_name}' must be a mapping")
                continue
            known = {f.name for f in fields(section)}
            for key, value in values.items():
                if key not in known:
                    logger.warning(f"Ignoring unknown setting {section_name}.{key}")
                    continue
                setattr(section, key, value)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def apply_environment(config: DreamscapeConfig) -> DreamscapeConfig:
    """Pull credentials and switches from the environment (.env aware)."""
    load_dotenv()

    api_key = os.environ.get("OPENAI_API_KEY")
    if api_key:
        config.transport.api_key = api_key
    base_url = os.environ.get("DREAMSCAPE_BASE_URL")
    if base_url:
        config.transport.base_url = base_url
    model = os.environ.get("DREAMSCAPE_MODEL")
    if model:
        config.decision.model = model
    simulate = os.environ.get("DREAMSCAPE_SIMULATE")
    if simulate is not None:
        config.queue.simulate = _env_flag(simulate)

    if not config.transport.api_key and not config.queue.simulate:
        logger.warning("No OPENAI_API_KEY set - reasoning requests will use simulated responses")
        config.queue.simulate = True

    return config


def load_config(
    path: Optional[Path] = None,
    preset: Optional[str] = None,
    use_environment: bool = True,
) -> DreamscapeConfig:
    """Load configuration from YAML, presets and environment.

    Args:
        path: YAML settings file (missing file means defaults)
        preset: Preset name, overriding the one in the file
        use_environment: Whether to read .env / environment variables

    Returns:
        DreamscapeConfig with all settings
    """
    path = Path(path) if path else DEFAULT_CONFIG_PATH
    raw: Dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        logger.info(f"Loaded config from {path}")
    else:
        logger.debug(f"Config file {path} not found, using defaults")

    chosen = preset or raw.pop("preset", ACTIVE_PRESET)
    raw.pop("preset", None)
    config = DreamscapeConfig(preset=chosen)
    config.update(raw)

    if use_environment:
        apply_environment(config)
    return config
