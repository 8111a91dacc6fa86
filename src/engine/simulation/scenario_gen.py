"""ScenarioGenerator: the randomized household at the start of a session.

Rolls, in order:
  - house: 2 floors 60%, otherwise 1 floor 85% / 3 floors 15%; one of five areas
  - time of day: evening / night / late night (night weighted double)
  - family: the player, then spouse 55% (home 80%, otherwise away),
    school-age child 60%, an elder 40%, a pet 30%
  - with three or more people, 25% that one non-player member's
    whereabouts are unknown
  - shelter: one of three municipal shelters
  - car available 70%
  - storm track: the typhoon curves offshore 30% of the time

All rolls come from the injected generator, so a seeded generator yields
the same household every time.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from .state import HOUSE_AREAS, House, RosterEntry, Scenario

logger = logging.getLogger("engine.scenario_gen")

_TIMES_OF_DAY = ("evening", "night", "night", "late_night")

_SHELTERS = (
    "First Elementary School gymnasium",
    "Civic Community Center",
    "District Disaster Prevention Plaza",
)

_ELDERS = ("Mother (needs care)", "Grandfather")
_PETS = ("Small dog", "Cat")

PLAYER_NAME = "You"

GLANCING_PROBABILITY = 0.3


class ScenarioGenerator:
    """Generates the initial world for a session."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def generate(self) -> Scenario:
        rng = self._rng

        roll = rng.random()
        if roll < 0.6:
            floors = 2
        else:
            floors = 1 if rng.random() < 0.85 else 3
        house = House(floors=floors, area=rng.choice(HOUSE_AREAS))

        time_of_day = rng.choice(_TIMES_OF_DAY)

        family: list[RosterEntry] = [RosterEntry(PLAYER_NAME, "player", "home")]
        if rng.random() < 0.55:
            family.append(RosterEntry("Spouse", "spouse", "home" if rng.random() < 0.8 else "away"))
        if rng.random() < 0.6:
            family.append(RosterEntry("School-age child", "child", "home"))
        if rng.random() < 0.4:
            family.append(RosterEntry(rng.choice(_ELDERS), "elder", "home"))
        if rng.random() < 0.3:
            family.append(RosterEntry(rng.choice(_PETS), "pet", "home"))

        if len(family) >= 3 and rng.random() < 0.25:
            idx = rng.randrange(len(family))
            if family[idx].role != "player":
                member = family[idx]
                family[idx] = RosterEntry(member.name, member.role, "unknown")

        scenario = Scenario(
            house=house,
            time_of_day=time_of_day,
            family=tuple(family),
            shelter_name=rng.choice(_SHELTERS),
            car_available=rng.random() < 0.7,
            storm_track="glancing" if rng.random() < GLANCING_PROBABILITY else "direct",
        )
        logger.debug(
            f"Scenario: {floors}F {house.area}, {time_of_day}, "
            f"{len(family)} people, shelter={scenario.shelter_name}, "
            f"track={scenario.storm_track}"
        )
        return scenario
