"""Scripted narrator used when model narration is switched off.

Lines are picked from pools keyed on the evacuation status first, then on
the displayed alert level, so the text always matches what the simulation
shows.  The previous turn's narration travels in the context, so the same
line is never produced twice in a row and the narrator itself holds no
session state.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .client import NarrationContext


# -- Line pools ----------------------------------------------------------------

_CALM_LINES = [
    "The sky is heavy and grey. Somewhere down the street a shutter rattles.",
    "Rain taps on the window. The television murmurs about the typhoon's track.",
    "The wind picks up in short gusts, then falls quiet again.",
    "Neighbours are carrying plant pots indoors. The air smells of wet asphalt.",
]

_ADVISORY_LINES = [
    "An advisory scrolls across the bottom of the TV screen. The rain is steady now.",
    "Gutters are starting to overflow. The wind hums in the power lines.",
    "The radio repeats the advisory for your area between weather reports.",
]

_WARNING_LINES = [
    "Rain hammers the roof. Water is pooling in the road outside.",
    "A gust shakes the whole house. The lights flicker once and hold.",
    "The river's roar carries over the wind. A warning is in force for your area.",
    "Sirens pass in the distance. The drains can no longer keep up.",
]

_SPECIAL_LINES = [
    "The storm is at full strength. Every window shudders with each gust.",
    "Water is rushing down the street like a river. This is no ordinary storm.",
    "An emergency warning blares from every phone in the house.",
]

_EN_ROUTE_LINES = [
    "You lean into the rain and keep moving. The shelter cannot be far now.",
    "Torchlight bobs ahead of you on the flooded pavement.",
    "Wind tears at your umbrella. You hold the family close and keep walking.",
]

_ARRIVED_LINES = [
    "The gymnasium is crowded but dry. Someone hands you a blanket.",
    "At the shelter, families sit in small groups listening to the radio.",
    "Outside the storm roars on, but the shelter walls hold firm.",
]

_POOLS_BY_LEVEL = {
    "none": _CALM_LINES,
    "advisory": _ADVISORY_LINES,
    "warning": _WARNING_LINES,
    "special": _SPECIAL_LINES,
}


class FallbackNarrator:
    """Generates context-aware scripted narration."""

    def narrate(self, ctx: NarrationContext, rng: Optional[random.Random] = None) -> str:
        rng = rng or random.Random()
        pool = self._pool_for(ctx)
        candidates = [line for line in pool if line != ctx.previous_narration] or pool
        return rng.choice(candidates)

    def _pool_for(self, ctx: NarrationContext) -> list[str]:
        if ctx.evacuation_status == "en_route":
            return _EN_ROUTE_LINES
        if ctx.evacuation_status == "arrived":
            return _ARRIVED_LINES
        return _POOLS_BY_LEVEL.get(ctx.alert_level, _CALM_LINES)
