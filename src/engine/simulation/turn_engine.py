"""TurnEngine: one submitted choice in, one new GameState out.

Architecture
------------
``advance(state, choice_id, rng)`` is a pure function of its inputs.  It
runs a fixed pipeline of sub-transitions, each taking and returning an
immutable snapshot:

  1. resolve   look up the choice (unknown id -> UnknownChoiceError, before
               anything changes); apply score delta, flags, items, custom
               effect; contact detection; chime keyword scan
  2. alerts    AlertLadder with the active phase's alert policy
  3. movement  EvacuationTracker, then FamilyTracker
  4. disaster  probability gates; a hit ends the game with safety zeroed
  5. calm      calm-streak bookkeeping; five calm turns after MIN_TURNS
               ends the game as ``typhoon_passed``
  6. clock     advance turn_in_phase / total_turns; past the phase
               allotment move to the next phase (unknown members -> home);
               running out of phases ends the game as ``storm_passed``,
               hitting MAX_TURNS as ``time_limit``

When the game is still running the ChoiceSelector then computes the next
offer, which is recorded on the state so the caller can display it.

Session state machine:

  ongoing -> clearing (calm streak building) -> ended
  ongoing -> ended (disaster | phases exhausted)

Randomness only ever comes from the ``rng`` argument.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Sequence

from .alerts import LANDSLIDE_FLAG, AlertLadder
from .catalog import Choice, ChoiceCatalog
from .determinism import chance
from .errors import GameOverError, UnknownChoiceError
from .evacuation import EvacuationTracker
from .family import FamilySnapshot, FamilyTracker
from .phases import PHASES, Phase, requested_levels
from .report import build_final_report
from .scoring import ScoreEngine
from .selector import ChoiceSelector, Offer
from .state import GameState, Scenario, StoryEntry

logger = logging.getLogger("engine.turn_engine")

MIN_TURNS = 5
CALM_TURNS_TO_END = 5
MAX_TURNS = 12

# Disaster gates (probability per turn while the condition holds)
DISASTER_EVACUATING_PROBABILITY = 0.3
DISASTER_GROUND_FLOOR_PROBABILITY = 0.4
DISASTER_SLOPE_PROBABILITY = 0.3

EMERGENCY_LEVEL = "emergency_safety_order"
SHELTERING_STATUSES = ("none", "aborted")

ALERT_RECEIVED_FLAG = "alert_received"
CHIME_KEYWORDS = (
    "chime",
    "area mail",
    "emergency alert",
    "alert tone",
    "notification sound",
)
# Japanese has no word boundaries; these match as plain substrings.
CHIME_KEYWORDS_JA = (
    "チャイム",
    "ピロン",
    "エリアメール",
    "警報音",
    "通知音",
)

_CHIME_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(k) for k in CHIME_KEYWORDS) + r")s?\b", re.IGNORECASE
)

NO_ACTION_TEXT = "(no action)"


def mentions_chime(text: str) -> bool:
    """Does free text describe the phone's emergency-alert chime?

    The only place the engine looks at free text content; swap this for a
    structured signal when the narration service can provide one.
    """
    text = text or ""
    if _CHIME_PATTERN.search(text):
        return True
    return any(k in text for k in CHIME_KEYWORDS_JA)


@dataclass(frozen=True)
class TurnResult:
    state: GameState
    offer: Offer
    choice: Optional[Choice] = None

    @property
    def final_report(self) -> Optional[dict[str, Any]]:
        return self.state.final_report


class TurnEngine:
    """Composes the sub-trackers into the per-turn state transition."""

    def __init__(
        self,
        catalog: ChoiceCatalog,
        phases: Sequence[Phase] = PHASES,
        ladder: Optional[AlertLadder] = None,
        evacuation: Optional[EvacuationTracker] = None,
        family: Optional[FamilyTracker] = None,
        scorer: Optional[ScoreEngine] = None,
        selector: Optional[ChoiceSelector] = None,
        max_turns: int = MAX_TURNS,
    ) -> None:
        self.catalog = catalog
        self.phases = tuple(phases)
        self.ladder = ladder or AlertLadder()
        self.evacuation = evacuation or EvacuationTracker()
        self.family = family or FamilyTracker()
        self.scorer = scorer or ScoreEngine()
        self.selector = selector or ChoiceSelector(catalog, phases=self.phases)
        self.max_turns = max_turns
        self._custom_effects: dict[str, Callable[[GameState, int], GameState]] = {
            "start_evacuation": self._effect_start_evacuation,
            "abort_evacuation": self._effect_abort_evacuation,
            "move_upstairs": self._effect_move_upstairs,
            "move_downstairs": self._effect_move_downstairs,
            "contact_family": self._effect_contact_family,
        }

    # -- Public interface -------------------------------------------------------

    def start(self, scenario: Scenario, rng: random.Random) -> TurnResult:
        """Fresh session state plus the opening offer."""
        state = GameState.new(scenario)
        offer = self._offer(state, rng)
        state = replace(
            state,
            offered_choice_ids=offer.ids,
            deferred_category=offer.deferred_category,
        )
        logger.info(
            f"Session started: {len(scenario.family)} people, "
            f"{scenario.house.floors}F {scenario.house.area}"
        )
        return TurnResult(state=state, offer=offer)

    def resolve_choice(self, choice_id: Optional[str]) -> Optional[Choice]:
        if choice_id is None:
            return None
        choice = self.catalog.get(choice_id)
        if choice is None:
            raise UnknownChoiceError(choice_id)
        return choice

    def advance(
        self,
        state: GameState,
        choice_id: Optional[str],
        rng: random.Random,
    ) -> TurnResult:
        """Play one turn.  Raises before touching state on bad input."""
        if state.game_ended:
            raise GameOverError("The game has already ended")
        choice = self.resolve_choice(choice_id)
        turn = state.turn

        s = self._apply_choice(state, choice, turn)
        s = self._update_alerts(s, rng)
        s = self._update_movement(s, turn, rng)
        s, ending = self._disaster_gate(s, rng)
        if ending is None:
            s, ending = self._calm_check(s, turn)
        s = self._advance_clock(s, ended=ending is not None)
        if ending is None and self._phase(s.current_phase) is None:
            ending = "storm_passed"
        if ending is None and s.total_turns >= self.max_turns:
            ending = "time_limit"

        if ending is not None:
            s = replace(s, game_ended=True, offered_choice_ids=(), deferred_category=None)
            s = replace(s, final_report=build_final_report(s, ending, self.scorer))
            logger.info(f"Game ended on turn {turn}: {ending}")
            return TurnResult(state=s, offer=Offer(choices=()), choice=choice)

        offer = self._offer(s, rng)
        s = replace(s, offered_choice_ids=offer.ids, deferred_category=offer.deferred_category)
        return TurnResult(state=s, offer=offer, choice=choice)

    def attach_narration(self, state: GameState, narration: str) -> GameState:
        """Record narration on the latest story entry.

        Narration is advisory text: it never changes the simulation except
        through ``mentions_chime``.  An ended game's report is rebuilt so
        it can quote the final narration.
        """
        if state.story:
            last = replace(state.story[-1], narration=narration)
            state = replace(state, story=state.story[:-1] + (last,))
        if mentions_chime(narration) and ALERT_RECEIVED_FLAG not in state.flags:
            state = replace(state, flags=state.flags | {ALERT_RECEIVED_FLAG})
        if state.game_ended and state.final_report:
            ending = state.final_report.get("ending_type", "storm_passed")
            state = replace(state, final_report=build_final_report(state, ending, self.scorer))
        return state

    def phase_for(self, state: GameState) -> Optional[Phase]:
        return self._phase(state.current_phase)

    # -- Pipeline steps ---------------------------------------------------------

    def _phase(self, index: int) -> Optional[Phase]:
        if 0 <= index < len(self.phases):
            return self.phases[index]
        return None

    def _offer(self, state: GameState, rng: random.Random) -> Offer:
        phase = self._phase(state.current_phase)
        if phase is None:
            return Offer(choices=())
        return self.selector.offer(state, rng)

    def _apply_choice(self, state: GameState, choice: Optional[Choice], turn: int) -> GameState:
        if choice is None:
            return replace(state, story=state.story + (StoryEntry(turn, NO_ACTION_TEXT),))

        effects = choice.effects
        s = replace(
            state,
            scores=self.scorer.apply(state.scores, effects.score_delta),
            flags=state.flags | set(effects.set_flags),
            items=state.items | set(effects.add_items),
            selected_choice_ids=state.selected_choice_ids + (choice.id,),
            story=state.story + (StoryEntry(turn, choice.text),),
        )

        if effects.custom_effect:
            handler = self._custom_effects.get(effects.custom_effect)
            if handler is None:
                logger.warning(f"Choice {choice.id}: unknown custom effect {effects.custom_effect}")
            else:
                s = handler(s, turn)

        family = self.family.register_contact(_family_of(s), choice.text)
        s = _with_family(s, family)

        if mentions_chime(choice.text) and ALERT_RECEIVED_FLAG not in s.flags:
            s = replace(s, flags=s.flags | {ALERT_RECEIVED_FLAG})

        floors = s.scenario.house.floors
        return replace(s, current_floor=min(max(s.current_floor, 1), floors))

    def _update_alerts(self, state: GameState, rng: random.Random) -> GameState:
        phase = self._phase(state.current_phase)
        requested = (
            requested_levels(phase, rng, state.scenario.storm_track) if phase is not None else {}
        )
        alerts = self.ladder.step(state.alerts, requested, LANDSLIDE_FLAG in state.flags)
        return replace(state, alerts=alerts)

    def _update_movement(self, state: GameState, turn: int, rng: random.Random) -> GameState:
        before = state.evacuation.status
        evac = self.evacuation.step(
            state.evacuation, turn, state.flags, state.scenario.has_elderly, rng
        )
        s = replace(state, evacuation=evac)
        if before == "en_route" and evac.status == "arrived":
            s = _with_family(s, self.family.on_arrival(_family_of(s)))

        alerts = s.alerts
        hazards_active = (
            alerts.action_level != "none" or bool(alerts.warning) or bool(alerts.special)
        )
        family = self.family.step(_family_of(s), hazards_active, rng)
        return _with_family(s, family)

    def _disaster_gate(self, state: GameState, rng: random.Random) -> tuple[GameState, Optional[str]]:
        alerts = state.alerts
        evac_status = state.evacuation.status
        emergency = alerts.action_level == EMERGENCY_LEVEL
        sheltering = evac_status in SHELTERING_STATUSES

        hit = None
        if emergency and evac_status == "en_route":
            if chance(rng, DISASTER_EVACUATING_PROBABILITY):
                hit = "caught outside during an emergency safety order"
        if hit is None and emergency and sheltering and state.current_floor <= 1:
            if chance(rng, DISASTER_GROUND_FLOOR_PROBABILITY):
                hit = "ground floor flooded during an emergency safety order"
        landslide = alerts.landslide or LANDSLIDE_FLAG in state.flags
        if hit is None and landslide and sheltering and state.scenario.house.area == "slope":
            if chance(rng, DISASTER_SLOPE_PROBABILITY):
                hit = "landslide struck the house"

        if hit is None:
            return state, None

        logger.warning(f"Disaster on turn {state.turn}: {hit}")
        family = self.family.on_disaster(_family_of(state))
        s = _with_family(state, family)
        return replace(s, disaster_occurred=True, flags=s.flags | {"disaster"}), "disaster"

    def _calm_check(self, state: GameState, turn: int) -> tuple[GameState, Optional[str]]:
        alerts = state.alerts
        calm = (
            not alerts.any_active
            and alerts.action_level == "none"
            and state.evacuation.status != "en_route"
        )
        streak = state.calm_streak + 1 if calm else 0
        s = replace(state, calm_streak=streak)
        if streak >= CALM_TURNS_TO_END and turn >= MIN_TURNS:
            return s, "typhoon_passed"
        return s, None

    def _advance_clock(self, state: GameState, ended: bool) -> GameState:
        total = state.total_turns + 1
        turn_in_phase = state.turn_in_phase + 1
        phase_index = state.current_phase
        if ended:
            return replace(state, total_turns=total)

        phase = self._phase(phase_index)
        allotment = phase.turns_in_phase if phase is not None else 3
        s = state
        if turn_in_phase > allotment:
            phase_index += 1
            turn_in_phase = 1
            s = _with_family(s, self.family.on_new_phase(_family_of(s)))
            logger.info(f"Entering phase {phase_index + 1}")
        return replace(
            s,
            total_turns=total,
            turn_in_phase=turn_in_phase,
            current_phase=phase_index,
        )

    # -- Custom effects ---------------------------------------------------------

    def _effect_start_evacuation(self, state: GameState, turn: int) -> GameState:
        if state.evacuation.status in ("en_route", "arrived"):
            return state
        evac = self.evacuation.begin(state.evacuation, turn, state.flags)
        s = replace(state, evacuation=evac, current_floor=1)
        return _with_family(s, self.family.on_departure(_family_of(s)))

    def _effect_abort_evacuation(self, state: GameState, turn: int) -> GameState:
        return replace(state, evacuation=self.evacuation.abort(state.evacuation, turn))

    def _effect_move_upstairs(self, state: GameState, turn: int) -> GameState:
        top = state.scenario.house.floors
        return replace(state, current_floor=top, flags=state.flags | {"vertical_evacuation"})

    def _effect_move_downstairs(self, state: GameState, turn: int) -> GameState:
        return replace(state, current_floor=1)

    def _effect_contact_family(self, state: GameState, turn: int) -> GameState:
        return _with_family(state, self.family.contact_all(_family_of(state)))


def _family_of(state: GameState) -> FamilySnapshot:
    return FamilySnapshot(members=state.members, etas=state.etas, split_plans=state.split_plans)


def _with_family(state: GameState, family: FamilySnapshot) -> GameState:
    return replace(
        state,
        members=family.members,
        etas=dict(family.etas),
        split_plans=dict(family.split_plans),
    )
