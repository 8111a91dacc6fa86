"""AlertLadder: per-series hazard escalation with minimum-hold hysteresis.

Architecture
------------
Each hazard series (rain, wind, flood, wave, tide) sits on a discrete
ladder:  none -> advisory -> warning -> special

flood and wave top out at warning.  Every turn the active phase requests
a level per series (see ``phases.requested_levels``).  The ladder applies
the request with hysteresis:

  - Escalation is immediate and starts a ``HOLD_TURNS`` hold.
  - While a hold is running, a lower request is ignored and the held
    level is re-asserted; the hold counts down by one.
  - A request at the same level also consumes a hold turn.
  - Once the hold reaches zero the series follows the request.

A series therefore reported at rank R on turn T cannot report below R on
T+1 or T+2.  Because levels are stored as one set per level and a series
is removed from every set before being re-added, a series never shows
two levels at once.

The derived action level follows the official guidance ladder:

  none -> elder_evacuation_advisory -> evacuation_order -> emergency_safety_order

  - any warning                                   -> elder_evacuation_advisory
  - tide warning/special, or landslide risk       -> evacuation_order
  - any special other than tide                   -> emergency_safety_order

and is subject to the same hold rule on downgrade.

Coupling: a rain warning and a flood warning active together for
``LANDSLIDE_STREAK`` consecutive turns raises the landslide-risk flag,
which feeds the action level until the pair lapses.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from .state import ACTION_LEVELS, ALERT_LEVELS, HAZARD_SERIES, AlertState

logger = logging.getLogger("engine.alerts")

HOLD_TURNS = 2
LANDSLIDE_STREAK = 2

# Highest level each series can reach
SERIES_CEILING: dict[str, str] = {
    "rain": "special",
    "wind": "special",
    "flood": "warning",
    "wave": "warning",
    "tide": "special",
}

LANDSLIDE_FLAG = "landslide_warning_info"


def level_rank(level: str) -> int:
    return ALERT_LEVELS.index(level) if level in ALERT_LEVELS else 0


def action_rank(level: str) -> int:
    return ACTION_LEVELS.index(level) if level in ACTION_LEVELS else 0


def _clamp_to_ceiling(series: str, level: str) -> str:
    ceiling = SERIES_CEILING.get(series, "special")
    if level_rank(level) > level_rank(ceiling):
        return ceiling
    return level


def target_action_level(alerts: AlertState, landslide_flag: bool = False) -> str:
    """Action level implied by the active alerts (before holds)."""
    if any(s != "tide" for s in alerts.special):
        return "emergency_safety_order"
    if "tide" in alerts.warning or "tide" in alerts.special:
        return "evacuation_order"
    if alerts.landslide or landslide_flag:
        return "evacuation_order"
    if alerts.warning:
        return "elder_evacuation_advisory"
    return "none"


class AlertLadder:
    """Applies phase requests to an AlertState, one turn at a time."""

    def __init__(self, hold_turns: int = HOLD_TURNS) -> None:
        self.hold_turns = hold_turns

    def step(
        self,
        alerts: AlertState,
        requested: dict[str, str],
        landslide_flag: bool = False,
    ) -> AlertState:
        """Return the next AlertState.

        Args:
            alerts: current state.
            requested: series -> requested level; missing series request none.
            landslide_flag: an externally issued landslide warning (state
                flag) that forces at least evacuation_order.
        """
        levels: dict[str, str] = {}
        holds: dict[str, int] = {}

        for series in HAZARD_SERIES:
            want = _clamp_to_ceiling(series, requested.get(series, "none"))
            current = alerts.rank_of(series)
            new_rank, new_hold = self._transition(
                current, level_rank(want), alerts.holds.get(series, 0)
            )
            levels[series] = ALERT_LEVELS[new_rank]
            if new_hold > 0:
                holds[series] = new_hold
            if new_rank != current:
                logger.debug(
                    f"{series}: {ALERT_LEVELS[current]} -> {ALERT_LEVELS[new_rank]} "
                    f"(requested {want}, hold {new_hold})"
                )

        stepped = AlertState(
            advisory=frozenset(s for s, lv in levels.items() if lv == "advisory"),
            warning=frozenset(s for s, lv in levels.items() if lv == "warning"),
            special=frozenset(s for s, lv in levels.items() if lv == "special"),
            holds=holds,
            action_level=alerts.action_level,
            action_hold=alerts.action_hold,
        )

        # Rain + flood warning coupling
        streak = alerts.rain_flood_streak
        if "rain" in stepped.warning and "flood" in stepped.warning:
            streak += 1
        else:
            streak = 0
        stepped = replace(
            stepped,
            rain_flood_streak=streak,
            landslide=streak >= LANDSLIDE_STREAK,
        )

        return self._step_action_level(stepped, landslide_flag)

    def _transition(self, current: int, requested: int, hold: int) -> tuple[int, int]:
        """One step of the hold rule on integer ranks -> (rank, hold)."""
        if requested > current:
            return requested, self.hold_turns
        if hold > 0 and requested <= current:
            return current, hold - 1
        return requested, 0

    def _step_action_level(self, alerts: AlertState, landslide_flag: bool) -> AlertState:
        target = target_action_level(alerts, landslide_flag)
        new_rank, new_hold = self._transition(
            action_rank(alerts.action_level), action_rank(target), alerts.action_hold
        )
        level = ACTION_LEVELS[new_rank]
        if level != alerts.action_level:
            logger.info(f"Action level: {alerts.action_level} -> {level}")
        return replace(alerts, action_level=level, action_hold=new_hold)
