"""Final report: the after-action summary shown when a session ends.

Ending types:
  - ``disaster``: a disaster gate fired; the safety outcome is zero
  - ``typhoon_passed``: five calm turns in a row after the minimum length
  - ``storm_passed``: the phase clock ran out
  - ``time_limit``: the hard turn cap was reached

The safety score for the non-disaster endings is the share of household
members whose whereabouts are known.  The weighted total and rank are
computed from the frozen ScoreSet and nothing else.
"""

from __future__ import annotations

from typing import Any

from .scoring import ScoreEngine
from .state import GameState

_SUMMARIES = {
    "disaster": "The storm caught the household at the worst moment. Not everyone came through unharmed.",
    "typhoon_passed": "The typhoon moved on and the wind and rain eased. Your decisions kept the family safe.",
    "storm_passed": "Dawn comes grey and quiet. The storm has passed over the town.",
    "time_limit": "The long night is finally over.",
}

_HEADLINES = {
    "disaster": "Caught in the storm",
    "typhoon_passed": "Through the stormy night",
    "storm_passed": "Through the stormy night",
    "time_limit": "Through the stormy night",
}


def safety_score(state: GameState) -> int:
    """round(100 * known members / total members)."""
    total = len(state.members) or 1
    known = sum(1 for m in state.members if m.location != "unknown")
    return round(100 * known / total)


def _evacuation_line(state: GameState) -> str:
    evac = state.evacuation
    shelter = evac.shelter_name or "the shelter"
    if evac.status == "arrived":
        return f"Reached {shelter} after {evac.turns_elapsed} turns on the road."
    if evac.status == "aborted":
        reasons = ", ".join(sorted(evac.hazards)) or "conditions worsened"
        return f"Evacuation abandoned: {reasons}."
    if evac.status == "en_route":
        return f"Still on the way to {shelter} when it ended."
    return "Sheltered at home for the whole storm."


def _advice(state: GameState) -> list[str]:
    advice = []
    if state.current_floor == 1 and state.scenario.house.floors > 1:
        advice.append("In flood-prone areas, move upstairs early or plan the route out before water rises.")
    else:
        advice.append("Make sure everyone knows where the torch and the radio are kept.")
    if "emergency_bag" in state.items or "power_bank" in state.items:
        advice.append("Keep power banks charged and stored in more than one place.")
    else:
        advice.append("A charged power bank and a packed go-bag make every decision easier.")
    if state.alerts.landslide or state.scenario.house.area == "slope":
        advice.append("Muddy spring water, creaking trees or rumbling ground are landslide signs: get away from the slope.")
    else:
        advice.append("Share landslide warning signs with family who live near hillsides.")
    return advice


def build_final_report(state: GameState, ending_type: str, scorer: ScoreEngine | None = None) -> dict[str, Any]:
    scorer = scorer or ScoreEngine()
    total = scorer.final_score(state.scores)
    safety = 0 if ending_type == "disaster" else safety_score(state)

    first = [f"T{s.turn}: {s.narration or s.action}" for s in state.story[:3]]
    last = [f"T{s.turn}: {s.narration or s.action}" for s in state.story[3:][-2:]]
    bullets = first + (["..."] if last else []) + last
    bullets.append(_evacuation_line(state))
    bullets.extend(f"T{j.turn}: {j.text}" for j in state.evacuation.journey_log[-3:])

    return {
        "ending_type": ending_type,
        "headline": _HEADLINES.get(ending_type, "Through the stormy night"),
        "summary": _SUMMARIES.get(ending_type, ""),
        "summary_bullets": bullets,
        "scores": state.scores.as_dict(),
        "total_score": total,
        "rank": scorer.rank(total),
        "safety_score": safety,
        "advice": _advice(state),
        "turn_ended": state.total_turns,
    }
