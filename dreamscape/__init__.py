"""
Dreamscape Adaptation Engine

An adaptive orchestration layer for an interactive fractal and ambient
audio experience. Watches how a user engages, decides how the experience
should evolve and applies those changes smoothly, with rare "quantum"
perturbations layered on top.

Priorities (in order):
1. Never stall the experience: every failure degrades to a safe default
2. Smooth, reversible changes (no abrupt jumps)
3. Explainable decisions (each change carries its rationale and source)
4. Reasoning-service use that is cached, queued and optional
"""

__version__ = "0.1.0"
__author__ = "Dreamscape Team"
