"""
Tone catalog.

Static, process-lifetime descriptors for every Tone. The instruction
fragment is the only part that reaches the text service; label, icon
and description are presentation hints for the UI.

Rules:
- Exactly one descriptor per Tone value.
- Fragments are non-empty and pairwise distinct.
- No state, no side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from orchestrator.enums.tone import Tone


@dataclass(frozen=True)
class ToneDescriptor:
    """Immutable tone metadata plus its steering fragment."""
    id: Tone
    label: str
    icon_hint: str
    description: str
    instruction_fragment: str


_DESCRIPTORS: Mapping[Tone, ToneDescriptor] = MappingProxyType({
    Tone.GENERAL: ToneDescriptor(
        id=Tone.GENERAL,
        label="General",
        icon_hint="fa-scale-balanced",
        description="Balanced & Natural",
        instruction_fragment=(
            "Use a balanced amount of emojis. Place them naturally at end of "
            "sentences or to emphasize key words."
        ),
    ),
    Tone.ANIMATED: ToneDescriptor(
        id=Tone.ANIMATED,
        label="Animated",
        icon_hint="fa-face-grin-stars",
        description="Fun & Energetic",
        instruction_fragment=(
            "Use many emojis! Be enthusiastic, colorful, and fun. Use multiple "
            "emojis in a row if it fits the vibe."
        ),
    ),
    Tone.FORMAL: ToneDescriptor(
        id=Tone.FORMAL,
        label="Formal",
        icon_hint="fa-user-tie",
        description="Professional & Subtle",
        instruction_fragment=(
            "Use very few, subtle emojis. Stick to neutral faces or objects. "
            "Keep the text professional."
        ),
    ),
    Tone.WITTY: ToneDescriptor(
        id=Tone.WITTY,
        label="Funny",
        icon_hint="fa-masks-theater",
        description="Clever & Funny",
        instruction_fragment=(
            "Use clever, ironic, or funny emojis. The tone should be sharp "
            "and humorous."
        ),
    ),
    Tone.ROMANTIC: ToneDescriptor(
        id=Tone.ROMANTIC,
        label="Romantic",
        icon_hint="fa-heart",
        description="Warm & Loving",
        instruction_fragment=(
            "Use hearts, flowers, and affectionate emojis. The tone should be "
            "warm and loving."
        ),
    ),
})


def describe(tone: Tone) -> ToneDescriptor:
    """
    Return the descriptor for a tone.

    Raises:
        ValueError: tone is not a member of the closed Tone set.
    """
    try:
        return _DESCRIPTORS[Tone(tone)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unknown tone: {tone!r}") from exc


def instruction_fragment(tone: Tone) -> str:
    """Tone-specific steering text for the system instruction."""
    return describe(tone).instruction_fragment


def all_descriptors() -> tuple[ToneDescriptor, ...]:
    """Descriptors in Tone declaration order."""
    return tuple(_DESCRIPTORS[t] for t in Tone)
