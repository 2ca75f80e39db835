"""
Collaborator interfaces and headless implementations.

Responsibilities:
- Visual, audio, input and UI contracts the orchestrator drives
- Eased parameter transitions
- In-memory engines for the CLI runner and tests
"""

from .base import AudioCollaborator, InputCollaborator, UICollaborator, VisualCollaborator
from .headless import HeadlessAudioEngine, HeadlessVisualEngine, InputHub, LogUI
