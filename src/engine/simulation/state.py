"""Immutable simulation snapshots and their JSON round-trip.

Architecture
------------
The caller holds the whole session and resubmits it every turn, so every
snapshot here is a frozen dataclass with a ``to_dict()`` / ``from_dict()``
pair.  Sub-transitions (alerts, evacuation, family, scoring) take a
snapshot and return a new one via ``dataclasses.replace``; nothing is
mutated in place.  Mapping fields (ETAs, split plans, hold counters) are
plain dicts that are always copied before being changed.

Serialized form uses snake_case keys; sets become sorted lists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .errors import StateFormatError

# -- Vocabulary --------------------------------------------------------------

HAZARD_SERIES = ("rain", "wind", "flood", "wave", "tide")
ALERT_LEVELS = ("none", "advisory", "warning", "special")
ACTION_LEVELS = (
    "none",
    "elder_evacuation_advisory",
    "evacuation_order",
    "emergency_safety_order",
)
LOCATIONS = ("home", "away", "unknown", "en_route", "arrived", "disaster")
EVAC_STATUSES = ("none", "en_route", "arrived", "aborted")
HOUSE_AREAS = ("coastal", "riverside", "residential", "hilltop", "slope")
STORM_TRACKS = ("direct", "glancing")
SCORE_AXES = ("survival", "judgment", "preparedness", "contribution", "culture")

INITIAL_SCORE = 50
BASE_TURNS_REQUIRED = 2


# -- Scenario ----------------------------------------------------------------

@dataclass(frozen=True)
class House:
    floors: int
    area: str

    def to_dict(self) -> dict[str, Any]:
        return {"floors": self.floors, "area": self.area}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> House:
        return cls(floors=max(1, int(data["floors"])), area=str(data["area"]))


@dataclass(frozen=True)
class RosterEntry:
    """One person (or pet) in the household as generated."""

    name: str
    role: str  # player, spouse, child, elder, pet
    location: str = "home"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "role": self.role, "location": self.location}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RosterEntry:
        return cls(
            name=str(data["name"]),
            role=str(data.get("role", "family")),
            location=str(data.get("location", "home")),
        )


@dataclass(frozen=True)
class Scenario:
    """The randomized world.  Generated once per session, never mutated."""

    house: House
    time_of_day: str
    family: tuple[RosterEntry, ...]
    shelter_name: str
    car_available: bool = True
    storm_track: str = "direct"  # direct hit, or passing offshore

    @property
    def has_elderly(self) -> bool:
        return any(m.role == "elder" for m in self.family)

    def to_dict(self) -> dict[str, Any]:
        return {
            "house": self.house.to_dict(),
            "time_of_day": self.time_of_day,
            "family": [m.to_dict() for m in self.family],
            "shelter_name": self.shelter_name,
            "has_elderly": self.has_elderly,
            "car_available": self.car_available,
            "storm_track": self.storm_track,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Scenario:
        try:
            storm_track = str(data.get("storm_track", "direct"))
            if storm_track not in STORM_TRACKS:
                raise ValueError(f"unknown storm track {storm_track!r}")
            return cls(
                house=House.from_dict(data["house"]),
                time_of_day=str(data.get("time_of_day", "night")),
                family=tuple(RosterEntry.from_dict(m) for m in data["family"]),
                shelter_name=str(data.get("shelter_name", "shelter")),
                car_available=bool(data.get("car_available", True)),
                storm_track=storm_track,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StateFormatError(f"Malformed scenario: {e}") from e


# -- Family ------------------------------------------------------------------

@dataclass(frozen=True)
class FamilyMember:
    name: str
    role: str
    location: str
    contacted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role,
            "location": self.location,
            "contacted": self.contacted,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FamilyMember:
        location = str(data.get("location", "unknown"))
        if location not in LOCATIONS:
            raise ValueError(f"unknown location {location!r}")
        return cls(
            name=str(data["name"]),
            role=str(data.get("role", "family")),
            location=location,
            contacted=bool(data.get("contacted", False)),
        )


# -- Alerts ------------------------------------------------------------------

@dataclass(frozen=True)
class AlertState:
    """Active hazard alerts plus the hold counters that govern them.

    ``advisory`` / ``warning`` / ``special`` hold hazard series names; a
    series appears in at most one of them.  ``holds`` maps series to the
    number of turns its current level is still protected from downgrade.
    """

    advisory: frozenset[str] = frozenset()
    warning: frozenset[str] = frozenset()
    special: frozenset[str] = frozenset()
    holds: dict[str, int] = field(default_factory=dict)
    action_level: str = "none"
    action_hold: int = 0
    rain_flood_streak: int = 0
    landslide: bool = False

    def level_of(self, series: str) -> str:
        if series in self.special:
            return "special"
        if series in self.warning:
            return "warning"
        if series in self.advisory:
            return "advisory"
        return "none"

    def rank_of(self, series: str) -> int:
        return ALERT_LEVELS.index(self.level_of(series))

    @property
    def any_active(self) -> bool:
        return bool(self.advisory or self.warning or self.special)

    @property
    def highest_level(self) -> str:
        if self.special:
            return "special"
        if self.warning:
            return "warning"
        if self.advisory:
            return "advisory"
        return "none"

    def to_dict(self) -> dict[str, Any]:
        return {
            "advisory": sorted(self.advisory),
            "warning": sorted(self.warning),
            "special": sorted(self.special),
            "holds": dict(self.holds),
            "action_level": self.action_level,
            "action_hold": self.action_hold,
            "rain_flood_streak": self.rain_flood_streak,
            "landslide": self.landslide,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AlertState:
        action_level = str(data.get("action_level", "none"))
        if action_level not in ACTION_LEVELS:
            raise ValueError(f"unknown action level {action_level!r}")
        return cls(
            advisory=frozenset(data.get("advisory", ())),
            warning=frozenset(data.get("warning", ())),
            special=frozenset(data.get("special", ())),
            holds={str(k): int(v) for k, v in dict(data.get("holds", {})).items()},
            action_level=action_level,
            action_hold=int(data.get("action_hold", 0)),
            rain_flood_streak=int(data.get("rain_flood_streak", 0)),
            landslide=bool(data.get("landslide", False)),
        )


# -- Evacuation --------------------------------------------------------------

@dataclass(frozen=True)
class JournalEntry:
    turn: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"turn": self.turn, "text": self.text}


@dataclass(frozen=True)
class EvacuationState:
    status: str = "none"
    start_turn: int = 0
    turns_elapsed: int = 0
    turns_required: int = BASE_TURNS_REQUIRED
    hazards: frozenset[str] = frozenset()
    journey_log: tuple[JournalEntry, ...] = ()
    shelter_name: str = ""
    rescue_delay: bool = False
    detour_delay: bool = False
    prep_applied: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "start_turn": self.start_turn,
            "turns_elapsed": self.turns_elapsed,
            "turns_required": self.turns_required,
            "hazards": sorted(self.hazards),
            "journey_log": [j.to_dict() for j in self.journey_log],
            "shelter_name": self.shelter_name,
            "rescue_delay": self.rescue_delay,
            "detour_delay": self.detour_delay,
            "prep_applied": sorted(self.prep_applied),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EvacuationState:
        status = str(data.get("status", "none"))
        if status not in EVAC_STATUSES:
            raise ValueError(f"unknown evacuation status {status!r}")
        return cls(
            status=status,
            start_turn=int(data.get("start_turn", 0)),
            turns_elapsed=int(data.get("turns_elapsed", 0)),
            turns_required=max(1, int(data.get("turns_required", BASE_TURNS_REQUIRED))),
            hazards=frozenset(data.get("hazards", ())),
            journey_log=tuple(
                JournalEntry(turn=int(j["turn"]), text=str(j["text"]))
                for j in data.get("journey_log", ())
            ),
            shelter_name=str(data.get("shelter_name", "")),
            rescue_delay=bool(data.get("rescue_delay", False)),
            detour_delay=bool(data.get("detour_delay", False)),
            prep_applied=frozenset(data.get("prep_applied", ())),
        )


# -- Scores ------------------------------------------------------------------

@dataclass(frozen=True)
class ScoreSet:
    survival: int = INITIAL_SCORE
    judgment: int = INITIAL_SCORE
    preparedness: int = INITIAL_SCORE
    contribution: int = INITIAL_SCORE
    culture: int = INITIAL_SCORE

    def as_dict(self) -> dict[str, int]:
        return {axis: getattr(self, axis) for axis in SCORE_AXES}

    to_dict = as_dict

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ScoreSet:
        return cls(**{axis: int(data.get(axis, INITIAL_SCORE)) for axis in SCORE_AXES})


# -- Story -------------------------------------------------------------------

@dataclass(frozen=True)
class StoryEntry:
    turn: int
    action: str
    narration: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"turn": self.turn, "action": self.action, "narration": self.narration}


# -- Root --------------------------------------------------------------------

@dataclass(frozen=True)
class GameState:
    """Root snapshot, serialized every turn."""

    scenario: Scenario
    members: tuple[FamilyMember, ...]
    current_phase: int = 0
    turn_in_phase: int = 1
    total_turns: int = 0
    alerts: AlertState = field(default_factory=AlertState)
    evacuation: EvacuationState = field(default_factory=EvacuationState)
    etas: dict[str, int] = field(default_factory=dict)
    split_plans: dict[str, str] = field(default_factory=dict)
    scores: ScoreSet = field(default_factory=ScoreSet)
    flags: frozenset[str] = frozenset()
    items: frozenset[str] = frozenset()
    calm_streak: int = 0
    current_floor: int = 1
    disaster_occurred: bool = False
    game_ended: bool = False
    selected_choice_ids: tuple[str, ...] = ()
    offered_choice_ids: tuple[str, ...] = ()
    deferred_category: Optional[str] = None
    story: tuple[StoryEntry, ...] = ()
    final_report: Optional[dict[str, Any]] = None

    @classmethod
    def new(cls, scenario: Scenario) -> GameState:
        """Initial state on scenario confirmation."""
        members = tuple(
            FamilyMember(name=m.name, role=m.role, location=m.location)
            for m in scenario.family
        )
        return cls(
            scenario=scenario,
            members=members,
            evacuation=EvacuationState(shelter_name=scenario.shelter_name),
        )

    @property
    def turn(self) -> int:
        """Number of the turn about to be played (1-based)."""
        return self.total_turns + 1

    def member(self, name: str) -> Optional[FamilyMember]:
        for m in self.members:
            if m.name == name:
                return m
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario.to_dict(),
            "members": [m.to_dict() for m in self.members],
            "current_phase": self.current_phase,
            "turn_in_phase": self.turn_in_phase,
            "total_turns": self.total_turns,
            "alerts": self.alerts.to_dict(),
            "evacuation": self.evacuation.to_dict(),
            "etas": dict(self.etas),
            "split_plans": dict(self.split_plans),
            "scores": self.scores.as_dict(),
            "flags": sorted(self.flags),
            "items": sorted(self.items),
            "calm_streak": self.calm_streak,
            "current_floor": self.current_floor,
            "disaster_occurred": self.disaster_occurred,
            "game_ended": self.game_ended,
            "selected_choice_ids": list(self.selected_choice_ids),
            "offered_choice_ids": list(self.offered_choice_ids),
            "deferred_category": self.deferred_category,
            "story": [s.to_dict() for s in self.story],
            "final_report": self.final_report,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GameState:
        """Decode a caller-supplied state.  Raises StateFormatError."""
        if not isinstance(data, Mapping):
            raise StateFormatError("State must be a JSON object")
        try:
            scenario = Scenario.from_dict(data["scenario"])
            members = tuple(FamilyMember.from_dict(m) for m in data.get("members", ()))
            if not members:
                members = GameState.new(scenario).members
            floors = scenario.house.floors
            return cls(
                scenario=scenario,
                members=members,
                current_phase=int(data.get("current_phase", 0)),
                turn_in_phase=int(data.get("turn_in_phase", 1)),
                total_turns=int(data.get("total_turns", 0)),
                alerts=AlertState.from_dict(data.get("alerts", {})),
                evacuation=EvacuationState.from_dict(
                    data.get("evacuation", {"shelter_name": scenario.shelter_name})
                ),
                etas={str(k): max(0, int(v)) for k, v in dict(data.get("etas", {})).items()},
                split_plans={str(k): str(v) for k, v in dict(data.get("split_plans", {})).items()},
                scores=ScoreSet.from_dict(data.get("scores", {})),
                flags=frozenset(str(f) for f in data.get("flags", ())),
                items=frozenset(str(i) for i in data.get("items", ())),
                calm_streak=int(data.get("calm_streak", 0)),
                # Out-of-range floors are clamped, never rejected
                current_floor=min(max(int(data.get("current_floor", 1)), 1), floors),
                disaster_occurred=bool(data.get("disaster_occurred", False)),
                game_ended=bool(data.get("game_ended", False)),
                selected_choice_ids=tuple(str(c) for c in data.get("selected_choice_ids", ())),
                offered_choice_ids=tuple(str(c) for c in data.get("offered_choice_ids", ())),
                deferred_category=data.get("deferred_category"),
                story=tuple(
                    StoryEntry(
                        turn=int(s["turn"]),
                        action=str(s.get("action", "")),
                        narration=str(s.get("narration", "")),
                    )
                    for s in data.get("story", ())
                ),
                final_report=data.get("final_report"),
            )
        except StateFormatError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StateFormatError(f"Malformed game state: {e}") from e
