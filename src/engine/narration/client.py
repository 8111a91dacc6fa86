"""NarrationClient: async call to an Ollama-compatible chat endpoint.

The prompt only carries the phase, turn number, displayed alert level,
evacuation status and the action the player took.  The model is asked to
answer ``{"narration": "..."}``; anything it sends back is run through
``parse_narration``, which tolerates fenced or embedded JSON.

Every failure mode (connection refused, timeout, HTTP error, body that is
not JSON, JSON without a narration) degrades to ``FALLBACK_NARRATION``.
The turn itself has already been computed by then, so a dead model only
costs flavour text.
"""

from __future__ import annotations

import json
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from engine.simulation.state import GameState

from .fallback import FallbackNarrator

logger = logging.getLogger("engine.narration")

FALLBACK_NARRATION = "The storm grows stronger outside. Stay alert and keep your family safe."

DEFAULT_TIMEOUT = 15.0

_SYSTEM_PROMPT = (
    "You narrate a typhoon-preparedness drama for a family at home. "
    "Write two or three calm, concrete sentences in the second person about "
    "what the player sees and hears after their action. Never invent new "
    "alerts or evacuation orders. Answer only with JSON: "
    '{"narration": "..."}'
)


@dataclass(frozen=True)
class NarrationContext:
    phase_name: str
    turn: int
    alert_level: str
    evacuation_status: str
    action_text: str
    # Not sent to the model; keeps the scripted narrator from repeating itself.
    previous_narration: str = ""

    @classmethod
    def from_state(cls, state: GameState, phase_name: str, action_text: str) -> NarrationContext:
        return cls(
            phase_name=phase_name,
            turn=max(state.total_turns, 1),
            alert_level=state.alerts.highest_level,
            evacuation_status=state.evacuation.status,
            action_text=action_text,
            previous_narration=next((e.narration for e in reversed(state.story) if e.narration), ""),
        )


def build_prompt(ctx: NarrationContext) -> str:
    return (
        f"Phase: {ctx.phase_name}\n"
        f"Turn: {ctx.turn}\n"
        f"Alert level: {ctx.alert_level}\n"
        f"Evacuation status: {ctx.evacuation_status}\n"
        f"Player action: {ctx.action_text}\n"
    )


def parse_narration(raw: str) -> Optional[str]:
    """Pull the narration string out of a model reply.

    Handles the usual LLM quirks:
    - JSON wrapped in markdown code blocks
    - prose around the JSON object
    """
    text = (raw or "").strip()
    if not text:
        return None

    md_match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if md_match:
        text = md_match.group(1).strip()

    data: Any = None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        brace_match = re.search(r"\{.*\}", text, re.DOTALL)
        if brace_match:
            try:
                data = json.loads(brace_match.group())
            except json.JSONDecodeError:
                data = None

    if not isinstance(data, dict):
        return None
    narration = data.get("narration")
    if not isinstance(narration, str) or not narration.strip():
        return None
    return narration.strip()


class NarrationClient:
    """Narrates turns through the model, or the scripted narrator when disabled."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "gemma3:4b",
        timeout: float = DEFAULT_TIMEOUT,
        enabled: bool = True,
        fallback: Optional[FallbackNarrator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.enabled = enabled
        self.fallback = fallback or FallbackNarrator()
        self._transport = transport

    async def narrate(self, ctx: NarrationContext, rng: Optional[random.Random] = None) -> str:
        if not self.enabled:
            return self.fallback.narrate(ctx, rng)

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(ctx)},
            ],
            "format": "json",
            "stream": False,
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(f"{self.host}/api/chat", json=payload)
                resp.raise_for_status()
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.warning(f"Narration request failed: {e}")
                return FALLBACK_NARRATION

        try:
            body = resp.json()
        except ValueError:
            logger.warning("Narration response was not JSON")
            return FALLBACK_NARRATION

        content = ""
        if isinstance(body, dict):
            message = body.get("message") or {}
            if isinstance(message, dict):
                content = str(message.get("content", ""))

        narration = parse_narration(content)
        if narration is None:
            logger.warning(f"Narration reply had no usable text: {content[:80]!r}")
            return FALLBACK_NARRATION
        return narration
