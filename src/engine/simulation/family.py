"""FamilyTracker: where every household member is, turn by turn.

Locations: home, away, unknown, en_route, arrived, disaster

Members who are ``away`` or ``unknown`` count down a return ETA:

  - away:    2-4 turns, assigned the first turn the member lacks one
  - unknown: 3-6 turns

The countdown runs once per turn (the assignment turn included) for
members not on a split plan.  At zero the member either diverts to a
nearby shelter (``arrived`` + ``near_shelter`` split plan, permanently
out of the countdown) when any evacuation info, warning or special is
out, or comes back ``home``.  The ETA is then removed, so a member leaves
the countdown exactly once.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field, replace
from typing import Iterable

from .state import FamilyMember

logger = logging.getLogger("engine.family")

AWAY_ETA_RANGE = (2, 4)
UNKNOWN_ETA_RANGE = (3, 6)

NEAR_SHELTER = "near_shelter"

COUNTDOWN_LOCATIONS = ("away", "unknown")
SNAP_TO_SHELTER = ("home", "en_route", "away")

# Words that mark an action as reaching out to someone
_CONTACT_INTENT = re.compile(
    r"\b(call|calls|calling|phone|text|message|contact|reach|check(?:s|ing)? on|"
    r"confirm|whereabouts|safe(?:ty)?)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class FamilySnapshot:
    """The family slice of GameState that the tracker works on."""

    members: tuple[FamilyMember, ...]
    etas: dict[str, int] = field(default_factory=dict)
    split_plans: dict[str, str] = field(default_factory=dict)


def _relocate(
    members: Iterable[FamilyMember],
    from_locations: tuple[str, ...],
    to_location: str,
) -> tuple[FamilyMember, ...]:
    return tuple(
        replace(m, location=to_location) if m.location in from_locations else m
        for m in members
    )


def _named_in(name: str, text: str) -> bool:
    """Whole-word, case-insensitive match of a member name in free text."""
    return re.search(rf"(?<!\w){re.escape(name)}(?!\w)", text, re.IGNORECASE) is not None


def has_contact_intent(text: str) -> bool:
    return bool(_CONTACT_INTENT.search(text or ""))


class FamilyTracker:
    """Pure transitions over FamilySnapshot."""

    def __init__(
        self,
        away_range: tuple[int, int] = AWAY_ETA_RANGE,
        unknown_range: tuple[int, int] = UNKNOWN_ETA_RANGE,
    ) -> None:
        self.away_range = away_range
        self.unknown_range = unknown_range

    def step(
        self,
        family: FamilySnapshot,
        hazards_active: bool,
        rng: random.Random,
    ) -> FamilySnapshot:
        """Assign missing ETAs, count down, resolve arrivals.

        Args:
            hazards_active: evacuation info other than none, or any warning
                or special alert in effect.
        """
        etas = dict(family.etas)
        splits = dict(family.split_plans)
        members = list(family.members)

        for i, member in enumerate(members):
            if member.location not in COUNTDOWN_LOCATIONS:
                continue
            if splits.get(member.name) == NEAR_SHELTER:
                continue
            if member.name not in etas:
                low, high = self.away_range if member.location == "away" else self.unknown_range
                etas[member.name] = rng.randint(low, high)
                logger.debug(f"{member.name} ETA assigned: {etas[member.name]} turns")

            if etas[member.name] > 0:
                etas[member.name] -= 1

            if etas[member.name] == 0:
                del etas[member.name]
                if hazards_active:
                    members[i] = replace(member, location="arrived")
                    splits[member.name] = NEAR_SHELTER
                    logger.info(f"{member.name} diverted to a nearby shelter")
                else:
                    members[i] = replace(member, location="home")
                    logger.info(f"{member.name} made it home")

        return FamilySnapshot(members=tuple(members), etas=etas, split_plans=splits)

    def register_contact(self, family: FamilySnapshot, action_text: str) -> FamilySnapshot:
        """Mark members named in *action_text* as contacted.

        Needs both the member's name and a contact/status-check intent in
        the text.  A contacted ``unknown`` member becomes ``away``.
        """
        if not has_contact_intent(action_text):
            return family
        named = {
            m.name for m in family.members
            if m.role != "player" and _named_in(m.name, action_text)
        }
        return self._contact(family, named)

    def contact_all(self, family: FamilySnapshot) -> FamilySnapshot:
        """Reach every non-player member at once (group message, phone tree)."""
        return self._contact(family, {m.name for m in family.members if m.role != "player"})

    def _contact(self, family: FamilySnapshot, names: set[str]) -> FamilySnapshot:
        if not names:
            return family
        members = []
        for m in family.members:
            if m.name in names:
                location = "away" if m.location == "unknown" else m.location
                m = replace(m, contacted=True, location=location)
            members.append(m)
        return replace(family, members=tuple(members))

    def on_departure(self, family: FamilySnapshot) -> FamilySnapshot:
        """Everyone at home leaves with the player."""
        return replace(family, members=_relocate(family.members, ("home",), "en_route"))

    def on_arrival(self, family: FamilySnapshot) -> FamilySnapshot:
        """The journey ended: home/en_route/away members are at the shelter."""
        members = _relocate(family.members, SNAP_TO_SHELTER, "arrived")
        etas = {
            name: eta for name, eta in family.etas.items()
            if any(m.name == name and m.location in COUNTDOWN_LOCATIONS for m in members)
        }
        return replace(family, members=members, etas=etas)

    def on_new_phase(self, family: FamilySnapshot) -> FamilySnapshot:
        """Contact is assumed re-established by the start of a new phase."""
        members = _relocate(family.members, ("unknown",), "home")
        etas = {
            name: eta for name, eta in family.etas.items()
            if any(m.name == name and m.location in COUNTDOWN_LOCATIONS for m in members)
        }
        return replace(family, members=members, etas=etas)

    def on_disaster(self, family: FamilySnapshot) -> FamilySnapshot:
        members = tuple(replace(m, location="disaster") for m in family.members)
        return FamilySnapshot(members=members, etas={}, split_plans=dict(family.split_plans))
