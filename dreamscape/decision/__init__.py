"""
Adaptation decisions.

Responsibilities:
- Ask the reasoning service for a change set
- Fall back to deterministic rules when it is unavailable or wrong
- Suggest mode switches from engagement and interaction pattern
"""

from .decision_engine import DecisionConfig, DecisionEngine
