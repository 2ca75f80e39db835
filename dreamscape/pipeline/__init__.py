"""
Adaptation pipeline.

Cycle order:
1. Snapshot telemetry
2. Analyze user state
3. Decide on changes
4. Apply sub-changes concurrently
5. Record and notify
"""

from .modes import DEFAULT_MODES, ModeCatalog
from .orchestrator import Orchestrator, OrchestratorConfig
from .quantum import QuantumEventGenerator
