"""Game API: new scenario, opening offer, play a turn, catalog status.

The server holds no session: every request carries the full GameState it
wants to advance, and every response returns the next one.
"""

from __future__ import annotations

import random
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from engine.narration import NarrationClient, NarrationContext
from engine.simulation.determinism import derive_rng, make_rng
from engine.simulation.errors import GameOverError, StateFormatError, UnknownChoiceError
from engine.simulation.phases import ENDED_PHASE_ID, ENDED_PHASE_NAME
from engine.simulation.scenario_gen import ScenarioGenerator
from engine.simulation.state import GameState
from engine.simulation.turn_engine import NO_ACTION_TEXT, TurnEngine

router = APIRouter(prefix="/api", tags=["game"])

OPENING_ACTION = "A typhoon is forecast to reach the area within two days"


class StartRequest(BaseModel):
    scenario: dict[str, Any]


class TurnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    state: dict[str, Any]
    selected_choice_id: Optional[str] = Field(default=None, alias="selectedChoiceId")


def _get_engine(request: Request) -> TurnEngine:
    engine = getattr(request.app.state, "turn_engine", None)
    if engine is None:
        raise HTTPException(503, "Turn engine not available")
    return engine


def _get_narrator(request: Request) -> NarrationClient:
    narrator = getattr(request.app.state, "narrator", None)
    if narrator is None:
        narrator = NarrationClient(enabled=False)
        request.app.state.narrator = narrator
    return narrator


def _request_rng(request: Request, tag: str) -> random.Random:
    """Seeded per request when SIM_SEED is configured, fresh entropy otherwise."""
    seed = getattr(request.app.state, "sim_seed", None)
    if seed is None:
        return make_rng()
    return derive_rng(seed, tag)


def _phase_info(engine: TurnEngine, state: GameState) -> dict[str, Any]:
    phase = engine.phase_for(state)
    return {
        "phaseId": phase.id if phase else ENDED_PHASE_ID,
        "phaseName": phase.name if phase else ENDED_PHASE_NAME,
        "turnInPhase": state.turn_in_phase,
        "totalTurns": state.total_turns,
        "alertLevel": state.alerts.highest_level,
        "actionLevel": state.alerts.action_level,
    }


def _turn_response(
    engine: TurnEngine,
    state: GameState,
    narration: str,
    choices: list[dict[str, str]],
) -> dict[str, Any]:
    return {
        "narration": narration,
        "choices": choices,
        "state": state.to_dict(),
        "phaseInfo": _phase_info(engine, state),
        "finalReport": state.final_report,
    }


@router.get("/new-scenario")
async def new_scenario(request: Request):
    """Generate a randomized household and setting."""
    rng = _request_rng(request, "scenario")
    scenario = ScenarioGenerator(rng).generate()
    return {"scenario": scenario.to_dict()}


@router.post("/start")
async def start_game(body: StartRequest, request: Request):
    """Confirm a scenario and receive the first four choices."""
    engine = _get_engine(request)
    try:
        initial = GameState.from_dict({"scenario": body.scenario})
    except StateFormatError as e:
        raise HTTPException(422, str(e))

    rng = _request_rng(request, "start")
    result = engine.start(initial.scenario, rng)
    phase = engine.phase_for(result.state)
    ctx = NarrationContext.from_state(
        result.state, phase.name if phase else ENDED_PHASE_NAME, OPENING_ACTION
    )
    narration = await _get_narrator(request).narrate(ctx, rng)
    return _turn_response(
        engine, result.state, narration, [c.to_offer() for c in result.offer.choices]
    )


@router.post("/turn")
async def play_turn(body: TurnRequest, request: Request):
    """Submit a choice (or null) for the state's current turn."""
    engine = _get_engine(request)
    try:
        state = GameState.from_dict(body.state)
    except StateFormatError as e:
        raise HTTPException(422, str(e))

    rng = _request_rng(request, f"turn-{state.total_turns}")
    try:
        result = engine.advance(state, body.selected_choice_id, rng)
    except UnknownChoiceError as e:
        logger.info(f"Rejected turn: {e}")
        raise HTTPException(400, str(e))
    except GameOverError as e:
        raise HTTPException(409, str(e))

    played_phase = engine.phase_for(state)
    action_text = result.choice.text if result.choice else NO_ACTION_TEXT
    ctx = NarrationContext.from_state(
        result.state, played_phase.name if played_phase else ENDED_PHASE_NAME, action_text
    )
    narration = await _get_narrator(request).narrate(ctx, rng)
    new_state = engine.attach_narration(result.state, narration)

    if new_state.game_ended:
        report = new_state.final_report or {}
        logger.info(
            f"Game over after {new_state.total_turns} turns: "
            f"{report.get('ending_type')} rank {report.get('rank')}"
        )

    return _turn_response(
        engine, new_state, narration, [c.to_offer() for c in result.offer.choices]
    )


@router.get("/catalog")
async def catalog_status(request: Request):
    """Loaded catalog summary; ``fallback`` is true when the resource was unusable."""
    engine = _get_engine(request)
    catalog = engine.catalog
    return {
        "version": catalog.version,
        "categories": list(catalog.categories),
        "choiceCount": len(catalog),
        "fallback": catalog.fallback,
    }
