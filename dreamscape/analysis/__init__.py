"""
User state analysis.

Responsibilities:
- Engagement level, trend and attention estimation
- Interaction pattern classification and spatial hotspots
- Audio/visual coherence assessment
- Issue detection and adaptation recommendations
"""

from .state_analyzer import AnalyzerConfig, StateAnalyzer
