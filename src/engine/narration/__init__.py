"""Narration: the text that accompanies each turn.

NarrationClient asks an Ollama-compatible chat endpoint for a short
paragraph; FallbackNarrator supplies scripted lines when the model is
switched off.  Narration never changes the simulation.
"""

from .client import (
    FALLBACK_NARRATION,
    NarrationClient,
    NarrationContext,
    build_prompt,
    parse_narration,
)
from .fallback import FallbackNarrator

__all__ = [
    "FALLBACK_NARRATION",
    "FallbackNarrator",
    "NarrationClient",
    "NarrationContext",
    "build_prompt",
    "parse_narration",
]
