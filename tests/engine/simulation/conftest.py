"""Shared fixtures for the typhoon simulation tests."""

from __future__ import annotations

import pytest

from engine.simulation.catalog import load_catalog
from engine.simulation.state import GameState, House, RosterEntry, Scenario


def build_scenario(
    floors: int = 2,
    area: str = "residential",
    family: tuple[RosterEntry, ...] | None = None,
    shelter_name: str = "Civic Community Center",
    storm_track: str = "direct",
) -> Scenario:
    if family is None:
        family = (
            RosterEntry("You", "player", "home"),
            RosterEntry("Spouse", "spouse", "home"),
            RosterEntry("School-age child", "child", "home"),
        )
    return Scenario(
        house=House(floors=floors, area=area),
        time_of_day="night",
        family=family,
        shelter_name=shelter_name,
        storm_track=storm_track,
    )


@pytest.fixture
def make_scenario():
    return build_scenario


@pytest.fixture
def make_state():
    def _make(**kwargs) -> GameState:
        return GameState.new(build_scenario(**kwargs))
    return _make


@pytest.fixture(scope="session")
def catalog():
    """The bundled choice catalog."""
    return load_catalog()
