"""Tests for the alert ladder: hold rule, coupling, action levels."""

from __future__ import annotations

import pytest

from engine.simulation.alerts import AlertLadder, target_action_level
from engine.simulation.state import AlertState

pytestmark = pytest.mark.unit


def _run(ladder, alerts, requests):
    """Step the ladder once per request dict, collecting each result."""
    out = []
    for req in requests:
        alerts = ladder.step(alerts, req)
        out.append(alerts)
    return out


class TestHoldRule:
    def test_raise_is_immediate(self):
        alerts = AlertLadder().step(AlertState(), {"rain": "warning"})
        assert alerts.level_of("rain") == "warning"
        assert alerts.holds["rain"] == 2

    def test_held_for_two_turns_then_drops(self):
        ladder = AlertLadder()
        alerts = ladder.step(AlertState(), {"rain": "warning"})
        first, second, third = _run(ladder, alerts, [{}, {}, {}])
        assert first.level_of("rain") == "warning"
        assert second.level_of("rain") == "warning"
        assert third.level_of("rain") == "none"

    def test_never_drops_before_hold_expires(self):
        ladder = AlertLadder()
        alerts = ladder.step(AlertState(), {"wind": "special"})
        for alerts in _run(ladder, alerts, [{"wind": "advisory"}, {"wind": "none"}]):
            assert alerts.level_of("wind") == "special"

    def test_raise_during_hold_restarts_hold(self):
        ladder = AlertLadder()
        alerts = ladder.step(AlertState(), {"rain": "advisory"})
        alerts = ladder.step(alerts, {"rain": "none"})
        alerts = ladder.step(alerts, {"rain": "warning"})
        assert alerts.level_of("rain") == "warning"
        assert alerts.holds["rain"] == 2

    def test_steady_request_keeps_level(self):
        ladder = AlertLadder()
        results = _run(ladder, AlertState(), [{"rain": "advisory"}] * 5)
        assert all(a.level_of("rain") == "advisory" for a in results)

    def test_series_in_one_set_only(self):
        ladder = AlertLadder()
        alerts = ladder.step(AlertState(), {"rain": "advisory"})
        alerts = ladder.step(alerts, {"rain": "special"})
        assert "rain" in alerts.special
        assert "rain" not in alerts.advisory
        assert "rain" not in alerts.warning


class TestCeilings:
    def test_flood_and_wave_cap_at_warning(self):
        alerts = AlertLadder().step(AlertState(), {"flood": "special", "wave": "special"})
        assert alerts.level_of("flood") == "warning"
        assert alerts.level_of("wave") == "warning"


class TestLandslideCoupling:
    def test_two_turns_of_rain_and_flood_warning(self):
        ladder = AlertLadder()
        req = {"rain": "warning", "flood": "warning"}
        first, second = _run(ladder, AlertState(), [req, req])
        assert not first.landslide
        assert second.landslide
        assert second.action_level == "evacuation_order"

    def test_streak_resets_when_flood_lapses(self):
        ladder = AlertLadder(hold_turns=0)
        req = {"rain": "warning", "flood": "warning"}
        results = _run(ladder, AlertState(), [req, {"rain": "warning"}, req])
        assert [a.rain_flood_streak for a in results] == [1, 0, 1]
        assert not results[-1].landslide

    def test_external_flag_forces_evacuation_order(self):
        alerts = AlertLadder().step(AlertState(), {}, landslide_flag=True)
        assert alerts.action_level == "evacuation_order"


class TestActionLevel:
    def test_targets(self):
        assert target_action_level(AlertState()) == "none"
        assert target_action_level(AlertState(warning=frozenset({"wind"}))) == "elder_evacuation_advisory"
        assert target_action_level(AlertState(warning=frozenset({"tide"}))) == "evacuation_order"
        assert target_action_level(AlertState(special=frozenset({"tide"}))) == "evacuation_order"
        assert target_action_level(AlertState(special=frozenset({"rain"}))) == "emergency_safety_order"

    def test_emergency_order_from_special(self):
        alerts = AlertLadder().step(AlertState(), {"rain": "special"})
        assert alerts.action_level == "emergency_safety_order"

    def test_action_level_held_like_alerts(self):
        ladder = AlertLadder()
        alerts = ladder.step(AlertState(), {"wind": "warning"})
        assert alerts.action_level == "elder_evacuation_advisory"
        levels = [a.action_level for a in _run(ladder, alerts, [{}, {}, {}])]
        assert levels == ["elder_evacuation_advisory", "elder_evacuation_advisory", "none"]
