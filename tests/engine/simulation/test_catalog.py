"""Tests for loading the choice catalog and availability predicates."""

from __future__ import annotations

import json
from dataclasses import replace

import pytest

from engine.simulation.catalog import (
    CATEGORIES,
    FALLBACK_CHOICES,
    Choice,
    ChoiceCatalog,
    load_catalog,
)
from engine.simulation.phases import PHASES
from engine.simulation.state import EvacuationState

pytestmark = pytest.mark.unit


class TestBundledCatalog:
    def test_loads(self, catalog):
        assert not catalog.fallback
        assert len(catalog) >= 40

    def test_categories_valid(self, catalog):
        assert {c.category for c in catalog.choices} == set(CATEGORIES)

    def test_ids_unique(self, catalog):
        ids = [c.id for c in catalog.choices]
        assert len(ids) == len(set(ids))

    def test_every_phase_has_waiting_choices(self, catalog, make_state):
        state = make_state()
        for phase in PHASES:
            waiting = [
                c for c in catalog.choices
                if c.category == "waiting" and c.is_available(state, phase.id)
            ]
            assert len(waiting) >= 2, phase.id

    def test_custom_effects_known(self, catalog):
        known = {"start_evacuation", "abort_evacuation", "move_upstairs", "move_downstairs", "contact_family"}
        effects = {c.effects.custom_effect for c in catalog.choices if c.effects.custom_effect}
        assert effects <= known


class TestLoadFailures:
    def test_missing_file_gives_fallback(self, tmp_path):
        catalog = load_catalog(tmp_path / "nope.json")
        assert catalog.fallback
        assert len(catalog) == 0

    def test_corrupt_file_gives_fallback(self, tmp_path):
        path = tmp_path / "choices.json"
        path.write_text("{ this is not json", encoding="utf-8")
        assert load_catalog(path).fallback

    def test_wrong_top_level_gives_fallback(self, tmp_path):
        path = tmp_path / "choices.json"
        path.write_text("[]", encoding="utf-8")
        assert load_catalog(path).fallback

    def test_fallback_ids_resolve(self):
        catalog = ChoiceCatalog.empty()
        for choice in FALLBACK_CHOICES:
            assert catalog.get(choice.id) is choice


class TestFromDict:
    def test_bad_entries_skipped(self, tmp_path):
        data = {
            "version": 2,
            "choices": [
                {"id": "ok", "text": "Fine", "category": "info"},
                {"id": "ok", "text": "Duplicate", "category": "info"},
                {"id": "weird", "text": "Bad category", "category": "gossip"},
                {"id": "zero", "text": "Zero weight", "category": "info", "weight": 0},
                {"text": "No id", "category": "info"},
            ],
        }
        path = tmp_path / "choices.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        catalog = load_catalog(path)
        assert [c.id for c in catalog.choices] == ["ok"]
        assert catalog.get("ok").text == "Fine"
        assert catalog.version == 2

    def test_effects_parsed(self):
        choice = Choice.from_dict({
            "id": "pack",
            "text": "Pack",
            "category": "supplies",
            "weight": 2,
            "effects": {"score_delta": {"preparedness": 5}, "add_items": ["emergency_bag"]},
        })
        assert choice.weight == 2.0
        assert choice.effects.score_delta == {"preparedness": 5}
        assert choice.effects.add_items == ("emergency_bag",)
        assert not choice.is_triggered


class TestAvailability:
    def _choice(self, **when):
        return Choice.from_dict({"id": "x", "text": "X", "category": "info", "available_when": when})

    def test_phase_gate(self, make_state):
        choice = self._choice(phases=["peak"])
        assert not choice.is_available(make_state(), "approach")
        assert choice.is_available(make_state(), "peak")

    def test_flag_gate(self, make_state):
        choice = self._choice(require_flags=["route_confirmed"])
        state = make_state()
        assert choice.is_triggered
        assert not choice.is_available(state, "approach")
        assert choice.is_available(replace(state, flags=frozenset({"route_confirmed"})), "approach")

    def test_item_gate(self, make_state):
        choice = self._choice(require_items=["emergency_bag"])
        state = make_state()
        assert not choice.is_available(state, "approach")
        assert choice.is_available(replace(state, items=frozenset({"emergency_bag"})), "approach")

    def test_evacuation_status_gate(self, make_state):
        choice = self._choice(exclude_evac_status=["en_route"])
        state = make_state()
        assert choice.is_available(state, "approach")
        moving = replace(state, evacuation=EvacuationState(status="en_route"))
        assert not choice.is_available(moving, "approach")

    def test_house_floor_gate(self, make_state):
        choice = self._choice(require_house_floors=2)
        assert not choice.is_available(make_state(floors=1), "approach")
        assert choice.is_available(make_state(floors=2), "approach")

    def test_action_level_gate(self, make_state):
        choice = self._choice(alert_levels=["evacuation_order"])
        state = make_state()
        assert not choice.is_available(state, "approach")
        raised = replace(state, alerts=replace(state.alerts, action_level="evacuation_order"))
        assert choice.is_available(raised, "approach")
