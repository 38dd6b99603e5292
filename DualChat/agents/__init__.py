"""
Persona prompts for DualChat.
"""

from .prompts import (
    NOTEPAD_INSTRUCTIONS,
    AI_DRIVEN_INSTRUCTION,
    IMAGE_NOTE,
    logical_system_prompt,
    creative_system_prompt,
    system_prompt_for,
    partner_signal_addendum,
    format_transcript,
    initial_prompt,
    reply_prompt,
    synthesis_prompt,
)

__all__ = [
    "NOTEPAD_INSTRUCTIONS",
    "AI_DRIVEN_INSTRUCTION",
    "IMAGE_NOTE",
    "logical_system_prompt",
    "creative_system_prompt",
    "system_prompt_for",
    "partner_signal_addendum",
    "format_transcript",
    "initial_prompt",
    "reply_prompt",
    "synthesis_prompt",
]
