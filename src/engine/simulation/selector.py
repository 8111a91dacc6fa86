"""ChoiceSelector: which four actions the player sees this turn.

Selection policy per phase turn:

  turn 1: shuffle the five active categories (info, communication,
          supplies, home_hardening, evacuation), draw one choice from each
          in turn until four are offered, defer the one left over
  turn 2: the deferred category + exactly one waiting choice, backfilled
          from unused active categories
  turn 3: one waiting choice, backfilled from unused active categories

Before any of that, triggered choices (gated on flags that are now set)
are inserted first, as long as they leave room for the categories the
turn reserves (turns 2 and 3); on turn 1 a triggered choice simply takes
its category's place among the four.  A category never supplies two
choices in the same turn, and ids already in ``selected_choice_ids`` are
never offered again.

Within a category the draw is weighted: P(i) = weight(i) / sum(weights).
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional, Sequence

from .catalog import (
    ACTIVE_CATEGORIES,
    FALLBACK_CHOICES,
    WAITING_CATEGORY,
    Choice,
    ChoiceCatalog,
)
from .determinism import weighted_order, weighted_pick
from .phases import PHASES, Phase
from .state import GameState

logger = logging.getLogger("engine.selector")

OFFER_SIZE = 4


def _weight(choice: Choice) -> float:
    return choice.weight


@dataclass(frozen=True)
class Offer:
    choices: tuple[Choice, ...]
    deferred_category: Optional[str] = None
    fallback: bool = False

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(c.id for c in self.choices)


class ChoiceSelector:
    """Filters the catalog against a state and samples the turn's offer."""

    def __init__(
        self,
        catalog: ChoiceCatalog,
        offer_size: int = OFFER_SIZE,
        phases: Sequence[Phase] = PHASES,
    ) -> None:
        self.catalog = catalog
        self.offer_size = offer_size
        self.phases = tuple(phases)

    def filter_available(self, state: GameState) -> list[Choice]:
        """Every unconsumed catalog entry whose predicate matches *state*."""
        if not 0 <= state.current_phase < len(self.phases):
            return []
        phase = self.phases[state.current_phase]
        consumed = set(state.selected_choice_ids)
        return [
            c for c in self.catalog.choices
            if c.id not in consumed and c.is_available(state, phase.id)
        ]

    def select_for_turn(
        self,
        available: Sequence[Choice],
        turn_in_phase: int,
        state: GameState,
        rng: random.Random,
    ) -> Offer:
        if not available:
            logger.warning("No eligible choices; offering fallback set")
            return Offer(choices=FALLBACK_CHOICES, fallback=True)

        picked: list[Choice] = []
        used: set[str] = set()

        def pool(category: str) -> list[Choice]:
            return [c for c in available if c.category == category and c not in picked]

        def take(choice: Choice) -> None:
            picked.append(choice)
            used.add(choice.category)

        def draw(category: str) -> None:
            choice = weighted_pick(pool(category), rng, _weight)
            if choice is not None:
                take(choice)

        if turn_in_phase <= 1:
            # Any four of the five active categories, in shuffled order
            order = list(ACTIVE_CATEGORIES)
            rng.shuffle(order)
            required = order
            reserved: list[str] = []
        elif turn_in_phase == 2:
            pending = state.deferred_category or rng.choice(ACTIVE_CATEGORIES)
            required = [pending, WAITING_CATEGORY]
            reserved = required
        else:
            required = [WAITING_CATEGORY]
            reserved = required

        # Triggered choices go first, without crowding out reserved categories
        triggered = [c for c in available if c.is_triggered]
        for choice in weighted_order(triggered, rng, _weight):
            if len(picked) >= self.offer_size:
                break
            if choice.category in used:
                continue
            still_needed = [
                cat for cat in reserved
                if cat not in used and cat != choice.category and pool(cat)
            ]
            if len(picked) + 1 + len(still_needed) > self.offer_size:
                continue
            take(choice)

        for category in required:
            if len(picked) >= self.offer_size:
                break
            if category not in used:
                draw(category)

        deferred: Optional[str] = None
        if turn_in_phase <= 1:
            leftover = [cat for cat in required if cat not in used]
            deferred = leftover[0] if leftover else None

        # Backfill from active categories not yet used; the deferred one last
        backfill = [cat for cat in ACTIVE_CATEGORIES if cat not in used and cat != deferred]
        rng.shuffle(backfill)
        if deferred is not None and deferred not in used:
            backfill.append(deferred)
        for category in backfill:
            if len(picked) >= self.offer_size:
                break
            draw(category)

        # Catalog running dry: a waiting choice is better than a short offer
        if len(picked) < self.offer_size and WAITING_CATEGORY not in used:
            draw(WAITING_CATEGORY)

        if len(picked) < self.offer_size:
            logger.debug(f"Short offer: {len(picked)} choices available")

        return Offer(choices=tuple(picked), deferred_category=deferred)

    def offer(self, state: GameState, rng: random.Random) -> Offer:
        """filter_available + select_for_turn for the state's current turn."""
        return self.select_for_turn(
            self.filter_available(state), state.turn_in_phase, state, rng
        )
