"""Tests for model narration and its fallbacks.

The Ollama endpoint is replaced by an httpx.MockTransport, so no server is
needed.
"""
from __future__ import annotations

import asyncio
import json
import random
from dataclasses import replace

import httpx
import pytest

from engine.narration import (
    FALLBACK_NARRATION,
    FallbackNarrator,
    NarrationClient,
    NarrationContext,
    build_prompt,
    parse_narration,
)
from engine.simulation.state import GameState, House, RosterEntry, Scenario, StoryEntry

pytestmark = pytest.mark.unit


def _ctx(**overrides):
    values = dict(
        phase_name="Landfall imminent",
        turn=7,
        alert_level="warning",
        evacuation_status="none",
        action_text="Stack sandbags across the entrance",
    )
    values.update(overrides)
    return NarrationContext(**values)


def _client(handler, **kwargs):
    return NarrationClient(host="http://ollama.test", transport=httpx.MockTransport(handler), **kwargs)


def _chat_reply(content: str):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": {"role": "assistant", "content": content}})
    return handler


class TestParseNarration:
    def test_plain_json(self):
        assert parse_narration('{"narration": "The wind howls."}') == "The wind howls."

    def test_fenced_json(self):
        raw = 'Here you go:\n```json\n{"narration": "Water rises."}\n```'
        assert parse_narration(raw) == "Water rises."

    def test_embedded_json(self):
        raw = 'Sure! {"narration": "Thunder rolls."} Hope that helps.'
        assert parse_narration(raw) == "Thunder rolls."

    @pytest.mark.parametrize("raw", [
        "",
        "no json at all",
        '{"story": "wrong key"}',
        '{"narration": ""}',
        '{"narration": 42}',
        "[1, 2, 3]",
    ])
    def test_unusable(self, raw):
        assert parse_narration(raw) is None


class TestBuildPrompt:
    def test_carries_turn_context_only(self):
        prompt = build_prompt(_ctx())
        assert "Landfall imminent" in prompt
        assert "Turn: 7" in prompt
        assert "Alert level: warning" in prompt
        assert "Evacuation status: none" in prompt
        assert "Stack sandbags" in prompt

    def test_previous_narration_not_sent(self):
        prompt = build_prompt(_ctx(previous_narration="The wind howls."))
        assert "The wind howls." not in prompt


class TestContextFromState:
    def _state(self, story):
        scenario = Scenario(
            house=House(floors=2, area="residential"),
            time_of_day="night",
            family=(RosterEntry("You", "player", "home"),),
            shelter_name="Civic Community Center",
        )
        return replace(GameState.new(scenario), story=story, total_turns=len(story))

    def test_previous_narration_from_story(self):
        state = self._state((
            StoryEntry(1, "Pack a bag", "Rain taps on the window."),
            StoryEntry(2, "Fill the bath"),
        ))
        ctx = NarrationContext.from_state(state, "Typhoon approaching", "Fill the bath")
        assert ctx.previous_narration == "Rain taps on the window."
        assert ctx.turn == 2

    def test_fresh_session_has_none(self):
        ctx = NarrationContext.from_state(self._state(()), "Typhoon approaching", "Game start")
        assert ctx.previous_narration == ""
        assert ctx.turn == 1


class TestNarrationClient:
    def test_success(self):
        client = _client(_chat_reply('{"narration": "Rain lashes the shutters."}'))
        assert asyncio.run(client.narrate(_ctx())) == "Rain lashes the shutters."

    def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"content": '{"narration": "ok"}'}})

        asyncio.run(_client(handler, model="gemma3:4b").narrate(_ctx()))
        assert seen["url"] == "http://ollama.test/api/chat"
        assert seen["body"]["model"] == "gemma3:4b"
        assert seen["body"]["stream"] is False
        assert seen["body"]["format"] == "json"
        assert "Stack sandbags" in seen["body"]["messages"][-1]["content"]

    def test_server_error_falls_back(self):
        client = _client(lambda request: httpx.Response(500, text="boom"))
        assert asyncio.run(client.narrate(_ctx())) == FALLBACK_NARRATION

    def test_connection_error_falls_back(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert asyncio.run(_client(handler).narrate(_ctx())) == FALLBACK_NARRATION

    def test_timeout_falls_back(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        assert asyncio.run(_client(handler).narrate(_ctx())) == FALLBACK_NARRATION

    def test_invalid_url_falls_back(self):
        def handler(request):
            raise httpx.InvalidURL("Invalid port: 'notaport'")

        assert asyncio.run(_client(handler).narrate(_ctx())) == FALLBACK_NARRATION

    def test_non_json_body_falls_back(self):
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        assert asyncio.run(client.narrate(_ctx())) == FALLBACK_NARRATION

    def test_malformed_content_falls_back(self):
        client = _client(_chat_reply("I cannot narrate that."))
        assert asyncio.run(client.narrate(_ctx())) == FALLBACK_NARRATION

    def test_disabled_uses_scripted_narrator(self):
        def handler(request):
            raise AssertionError("model must not be called when disabled")

        client = _client(handler, enabled=False)
        text = asyncio.run(client.narrate(_ctx(), random.Random(0)))
        assert text
        assert text != FALLBACK_NARRATION


class TestFallbackNarrator:
    def test_en_route_lines(self):
        narrator = FallbackNarrator()
        text = narrator.narrate(_ctx(evacuation_status="en_route"), random.Random(0))
        assert text in {
            "You lean into the rain and keep moving. The shelter cannot be far now.",
            "Torchlight bobs ahead of you on the flooded pavement.",
            "Wind tears at your umbrella. You hold the family close and keep walking.",
        }

    def test_no_immediate_repeat(self):
        narrator = FallbackNarrator()
        rng = random.Random(2)
        lines = [""]
        for _ in range(20):
            lines.append(narrator.narrate(_ctx(alert_level="special", previous_narration=lines[-1]), rng))
        assert all(a != b for a, b in zip(lines, lines[1:]))

    def test_same_seed_same_line_across_sessions(self):
        narrator = FallbackNarrator()
        first = narrator.narrate(_ctx(alert_level="advisory"), random.Random(3))
        narrator.narrate(_ctx(alert_level="warning"), random.Random(8))
        again = narrator.narrate(_ctx(alert_level="advisory"), random.Random(3))
        assert again == first

    def test_shared_client_replays_seeded_narration(self):
        client = NarrationClient(enabled=False)
        a = asyncio.run(client.narrate(_ctx(alert_level="advisory"), random.Random(3)))
        b = asyncio.run(client.narrate(_ctx(alert_level="advisory"), random.Random(3)))
        assert a == b
