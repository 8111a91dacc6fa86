"""EvacuationTracker: a multi-turn journey to the shelter.

States:  none -> en_route -> arrived | aborted

``aborted`` ends the current attempt; a new departure may start again
from it.  Departure stamps ``start_turn`` and resets ``turns_required``
to the baseline of 2.  Each preparatory flag (route confirmed, neighbours
rallied) takes one turn off, floored at 1, the first time it is seen
during an attempt, whether it was set before departure or on the way.
``prep_applied`` records which flags have been counted.  Two one-shot
delay events can each add a turn the first time they fire during the
journey:

  - rescue: the ``rescue_requested`` flag is observed while en route
  - detour: a flooded road forces a detour, ``DETOUR_PROBABILITY`` per
    journey turn until it has fired once

The journey completes on the turn where ``turns_elapsed >=
turns_required``.
"""

from __future__ import annotations

import logging
import random
from dataclasses import replace

from .determinism import chance
from .state import BASE_TURNS_REQUIRED, EvacuationState, JournalEntry

logger = logging.getLogger("engine.evacuation")

DETOUR_PROBABILITY = 0.3

ROUTE_CONFIRMED_FLAG = "route_confirmed"
NEIGHBORS_RALLIED_FLAG = "neighbors_rallied"
RESCUE_FLAG = "rescue_requested"
VEHICLE_FLAG = "use_car"

PREP_FLAGS = (ROUTE_CONFIRMED_FLAG, NEIGHBORS_RALLIED_FLAG)

VEHICLE_HAZARD = "vehicle_flood_risk"
DETOUR_HAZARD = "flooded_road"

_PREP_LINES = {
    ROUTE_CONFIRMED_FLAG: "You know a safer way round; the route is shorter than feared.",
    NEIGHBORS_RALLIED_FLAG: "The neighbours join the group and help carry the bags.",
}

_JOURNEY_LINES = (
    "Rain needles through the torch beam as the group sets off.",
    "Gutters roar beside the road; every step is slow.",
    "A loose sign bangs somewhere in the dark.",
    "Water has pooled knee-deep at the underpass.",
    "The shelter lights are visible at the end of the street.",
)


class EvacuationTracker:
    """Pure transitions over EvacuationState."""

    def __init__(self, detour_probability: float = DETOUR_PROBABILITY) -> None:
        self.detour_probability = detour_probability

    def begin(
        self,
        evac: EvacuationState,
        turn: int,
        flags: frozenset[str] = frozenset(),
    ) -> EvacuationState:
        """Depart for the shelter.  No-op when already en route or arrived."""
        if evac.status in ("en_route", "arrived"):
            return evac
        applied = frozenset(f for f in PREP_FLAGS if f in flags)
        required = max(1, BASE_TURNS_REQUIRED - len(applied))
        logger.info(f"Evacuation started on turn {turn} ({required} turns to shelter)")
        return replace(
            evac,
            status="en_route",
            start_turn=turn,
            turns_elapsed=0,
            turns_required=required,
            rescue_delay=False,
            detour_delay=False,
            prep_applied=applied,
            journey_log=evac.journey_log + (
                JournalEntry(turn, f"Set out for {evac.shelter_name or 'the shelter'}."),
            ),
        )

    def abort(self, evac: EvacuationState, turn: int, reason: str = "conditions worsened") -> EvacuationState:
        """Give up the current attempt.  Only meaningful while en route."""
        if evac.status != "en_route":
            return evac
        logger.info(f"Evacuation aborted on turn {turn}: {reason}")
        return replace(
            evac,
            status="aborted",
            hazards=evac.hazards | {reason},
            journey_log=evac.journey_log + (JournalEntry(turn, f"Turned back: {reason}."),),
        )

    def step(
        self,
        evac: EvacuationState,
        turn: int,
        flags: frozenset[str],
        has_elderly: bool,
        rng: random.Random,
    ) -> EvacuationState:
        """Advance an in-progress journey by one turn."""
        if evac.status != "en_route":
            return evac

        hazards = set(evac.hazards)
        log = list(evac.journey_log)
        required = evac.turns_required
        rescue_delay = evac.rescue_delay
        detour_delay = evac.detour_delay
        applied = set(evac.prep_applied)

        for flag in PREP_FLAGS:
            if flag in flags and flag not in applied:
                applied.add(flag)
                required = max(1, required - 1)
                log.append(JournalEntry(turn, _PREP_LINES[flag]))

        if VEHICLE_FLAG in flags and not has_elderly:
            hazards.add(VEHICLE_HAZARD)

        if not rescue_delay and RESCUE_FLAG in flags:
            rescue_delay = True
            required += 1
            log.append(JournalEntry(turn, "Stopped to help a neighbour trapped by water."))

        if not detour_delay and chance(rng, self.detour_probability):
            detour_delay = True
            required += 1
            hazards.add(DETOUR_HAZARD)
            log.append(JournalEntry(turn, "The usual road is flooded; taking the long way round."))

        elapsed = max(0, turn - evac.start_turn)
        status = "en_route"
        if elapsed >= required:
            status = "arrived"
            log.append(JournalEntry(turn, f"Arrived at {evac.shelter_name or 'the shelter'}."))
            logger.info(f"Evacuation arrived on turn {turn} after {elapsed} turns")
        elif elapsed > 0:
            log.append(JournalEntry(turn, _JOURNEY_LINES[(elapsed - 1) % len(_JOURNEY_LINES)]))

        return replace(
            evac,
            status=status,
            turns_elapsed=elapsed,
            turns_required=required,
            hazards=frozenset(hazards),
            journey_log=tuple(log),
            rescue_delay=rescue_delay,
            detour_delay=detour_delay,
            prep_applied=frozenset(applied),
        )
