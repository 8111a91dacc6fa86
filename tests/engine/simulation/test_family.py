"""Tests for family whereabouts tracking."""

from __future__ import annotations

import random

import pytest

from engine.simulation.family import (
    NEAR_SHELTER,
    FamilySnapshot,
    FamilyTracker,
    has_contact_intent,
)
from engine.simulation.state import FamilyMember

pytestmark = pytest.mark.unit


def _family(*members, etas=None, splits=None):
    return FamilySnapshot(
        members=(FamilyMember("You", "player", "home"),) + tuple(members),
        etas=dict(etas or {}),
        split_plans=dict(splits or {}),
    )


def _loc(family, name):
    return next(m.location for m in family.members if m.name == name)


class TestCountdown:
    def test_away_eta_assigned_and_decremented(self):
        family = _family(FamilyMember("Spouse", "spouse", "away"))
        stepped = FamilyTracker().step(family, False, random.Random(4))
        # assigned 2..4, then counted down once on the same turn
        assert 1 <= stepped.etas["Spouse"] <= 3
        assert _loc(stepped, "Spouse") == "away"

    def test_unknown_eta_range(self):
        family = _family(FamilyMember("Grandfather", "elder", "unknown"))
        for seed in range(30):
            stepped = FamilyTracker().step(family, False, random.Random(seed))
            assert 2 <= stepped.etas["Grandfather"] <= 5

    def test_existing_eta_counts_down(self):
        family = _family(FamilyMember("Spouse", "spouse", "away"), etas={"Spouse": 3})
        stepped = FamilyTracker().step(family, False, random.Random(0))
        assert stepped.etas["Spouse"] == 2

    def test_returns_home_when_calm(self):
        family = _family(FamilyMember("Spouse", "spouse", "away"), etas={"Spouse": 1})
        stepped = FamilyTracker().step(family, False, random.Random(0))
        assert _loc(stepped, "Spouse") == "home"
        assert "Spouse" not in stepped.etas

    def test_diverts_to_shelter_when_hazards_active(self):
        family = _family(FamilyMember("Spouse", "spouse", "away"), etas={"Spouse": 1})
        stepped = FamilyTracker().step(family, True, random.Random(0))
        assert _loc(stepped, "Spouse") == "arrived"
        assert stepped.split_plans["Spouse"] == NEAR_SHELTER

    def test_resolves_exactly_once(self):
        tracker = FamilyTracker(away_range=(1, 1))
        family = _family(FamilyMember("Spouse", "spouse", "away"))
        family = tracker.step(family, True, random.Random(0))
        assert _loc(family, "Spouse") == "arrived"
        again = tracker.step(family, False, random.Random(0))
        assert _loc(again, "Spouse") == "arrived"
        assert "Spouse" not in again.etas

    def test_home_members_untouched(self):
        family = _family(FamilyMember("School-age child", "child", "home"))
        stepped = FamilyTracker().step(family, True, random.Random(0))
        assert stepped.etas == {}
        assert _loc(stepped, "School-age child") == "home"


class TestContact:
    def test_intent_words(self):
        assert has_contact_intent("Call Spouse to confirm where they are")
        assert has_contact_intent("Send a message to everyone")
        assert not has_contact_intent("Tape the windows")

    def test_named_member_contacted(self):
        family = _family(FamilyMember("Spouse", "spouse", "away"))
        out = FamilyTracker().register_contact(family, "Call the spouse to check they are safe")
        spouse = next(m for m in out.members if m.name == "Spouse")
        assert spouse.contacted

    def test_name_without_intent_ignored(self):
        family = _family(FamilyMember("Spouse", "spouse", "away"))
        out = FamilyTracker().register_contact(family, "Spouse tapes the windows")
        assert out is family

    def test_unknown_becomes_away_on_contact(self):
        family = _family(FamilyMember("Grandfather", "elder", "unknown"))
        out = FamilyTracker().register_contact(family, "Phone Grandfather")
        assert _loc(out, "Grandfather") == "away"

    def test_name_inside_another_word_ignored(self):
        family = _family(FamilyMember("Cat", "pet", "unknown"))
        out = FamilyTracker().register_contact(family, "Call the council to locate the nearest shelter")
        assert _loc(out, "Cat") == "unknown"
        assert not any(m.contacted for m in out.members)

    def test_name_with_punctuation_matched(self):
        family = _family(FamilyMember("Mother (needs care)", "elder", "away"))
        out = FamilyTracker().register_contact(family, "Phone Mother (needs care) to check she is safe")
        assert next(m for m in out.members if m.role == "elder").contacted

    def test_contact_all_skips_player(self):
        family = _family(
            FamilyMember("Spouse", "spouse", "home"),
            FamilyMember("Grandfather", "elder", "unknown"),
        )
        out = FamilyTracker().contact_all(family)
        contacted = {m.name for m in out.members if m.contacted}
        assert contacted == {"Spouse", "Grandfather"}
        assert _loc(out, "Grandfather") == "away"


class TestReclassification:
    def test_departure_moves_home_members(self):
        family = _family(
            FamilyMember("Spouse", "spouse", "home"),
            FamilyMember("Grandfather", "elder", "away"),
        )
        out = FamilyTracker().on_departure(family)
        assert _loc(out, "You") == "en_route"
        assert _loc(out, "Spouse") == "en_route"
        assert _loc(out, "Grandfather") == "away"

    def test_arrival_snaps_to_shelter(self):
        family = _family(
            FamilyMember("Spouse", "spouse", "en_route"),
            FamilyMember("Grandfather", "elder", "away"),
            FamilyMember("Cat", "pet", "unknown"),
            etas={"Grandfather": 2, "Cat": 3},
        )
        out = FamilyTracker().on_arrival(family)
        assert _loc(out, "Spouse") == "arrived"
        assert _loc(out, "Grandfather") == "arrived"
        assert _loc(out, "Cat") == "unknown"
        assert out.etas == {"Cat": 3}

    def test_new_phase_resolves_unknown(self):
        family = _family(FamilyMember("Cat", "pet", "unknown"), etas={"Cat": 4})
        out = FamilyTracker().on_new_phase(family)
        assert _loc(out, "Cat") == "home"
        assert out.etas == {}

    def test_disaster_marks_everyone(self):
        family = _family(FamilyMember("Spouse", "spouse", "away"), etas={"Spouse": 2})
        out = FamilyTracker().on_disaster(family)
        assert {m.location for m in out.members} == {"disaster"}
        assert out.etas == {}
