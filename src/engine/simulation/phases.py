"""Phase table: the four story stages counting down to landfall.

Each phase lasts ``TURNS_PER_PHASE`` turns and carries an alert policy:
the level the weather service would like each hazard series to sit at
while the phase is active.  A policy entry is either a fixed level or a
tuple of candidate levels, one of which is drawn each turn.  Series
missing from a policy are requested at ``none``.

Every phase has one policy per storm track.  On a ``direct`` track the
storm comes ashore and alerts climb to the peak.  On a ``glancing`` track
it curves offshore after the outer bands; the later phases request
nothing and the alerts lapse, which lets the calm streak build and the
session end as "typhoon passed".

The AlertLadder decides what actually gets displayed; a policy is only
the request.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Union

PolicyLevel = Union[str, tuple[str, ...]]

TURNS_PER_PHASE = 3


@dataclass(frozen=True)
class Phase:
    """One fixed story stage."""

    id: str
    name: str
    hours_to_landfall: int
    alert_policy: dict[str, PolicyLevel] = field(default_factory=dict)
    turns_in_phase: int = TURNS_PER_PHASE
    glancing_policy: dict[str, PolicyLevel] = field(default_factory=dict)

    def policy_for(self, storm_track: str) -> dict[str, PolicyLevel]:
        if storm_track == "glancing":
            return self.glancing_policy
        return self.alert_policy


PHASES: tuple[Phase, ...] = (
    Phase(
        "approach", "Typhoon approaching", 48,
        alert_policy={
            "rain": "advisory",
            "wind": ("none", "advisory"),
            "wave": ("none", "advisory"),
        },
        glancing_policy={
            "rain": "advisory",
            "wind": ("none", "advisory"),
        },
    ),
    Phase(
        "outer_bands", "Outer rain bands", 24,
        alert_policy={
            "rain": "warning",
            "wind": ("advisory", "warning"),
            "flood": "advisory",
            "wave": "advisory",
            "tide": ("none", "advisory"),
        },
        glancing_policy={
            "rain": "advisory",
            "wind": "advisory",
        },
    ),
    Phase(
        "landfall_imminent", "Landfall imminent", 12,
        alert_policy={
            "rain": "warning",
            "wind": "warning",
            "flood": "warning",
            "wave": "warning",
            "tide": ("advisory", "warning"),
        },
    ),
    Phase(
        "peak", "Storm at peak", 0,
        alert_policy={
            "rain": ("warning", "special", "special"),
            "wind": ("warning", "special"),
            "flood": "warning",
            "wave": "warning",
            "tide": ("warning", "special"),
        },
    ),
)

ENDED_PHASE_ID = "ended"
ENDED_PHASE_NAME = "Storm has passed"


def requested_levels(phase: Phase, rng: random.Random, storm_track: str = "direct") -> dict[str, str]:
    """Resolve the phase policy into one requested level per series."""
    from .state import HAZARD_SERIES

    policy = phase.policy_for(storm_track)
    requested: dict[str, str] = {}
    for series in HAZARD_SERIES:
        entry = policy.get(series, "none")
        if isinstance(entry, tuple):
            requested[series] = rng.choice(entry)
        else:
            requested[series] = entry
    return requested
