"""
Tone enumeration.

Closed set. Descriptors and prompt fragments live in catalog.tones.
"""

from __future__ import annotations

from enum import Enum


class Tone(str, Enum):
    """Style selector controlling emoji density and register."""

    GENERAL = "General"
    ANIMATED = "Animated"
    FORMAL = "Formal"
    WITTY = "Witty"
    ROMANTIC = "Romantic"
