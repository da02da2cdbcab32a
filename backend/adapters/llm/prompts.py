"""
System instruction construction.

The instruction is: role preamble + tone fragment + invariant
constraints. Wording changes here must bump SYSTEM_PROMPT_VERSION.
"""

from __future__ import annotations

from catalog.tones import instruction_fragment
from orchestrator.enums.tone import Tone

ROLE_PREAMBLE: str = (
    'You are an AI assistant for "EmojiHub".\n'
    "TASK: Rewrite the user's text by inserting appropriate emojis based on "
    "the selected TONE."
)

CONSTRAINTS: tuple[str, ...] = (
    "STRICTLY MAINTAIN the original language of the user's text. If the input "
    "is Portuguese, the output MUST be Portuguese. Do not translate.",
    "Do not change the core meaning of the text.",
    'Do not output any conversational filler (e.g., "Here is the text", '
    '"Sure"). Output ONLY the rewritten text.',
    "Formatting: Use line breaks where appropriate to make it readable.",
)


def build_system_instruction(tone: Tone) -> str:
    guidelines = (instruction_fragment(tone),) + CONSTRAINTS
    numbered = "\n".join(
        f"{i}. {line}" for i, line in enumerate(guidelines, start=1)
    )
    return (
        f"{ROLE_PREAMBLE}\n\n"
        f"TONE: {Tone(tone).value}\n\n"
        f"GUIDELINES:\n{numbered}\n"
    )
