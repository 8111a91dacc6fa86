"""ChoiceCatalog: the read-only table of player actions.

Architecture
------------
The catalog is a JSON resource loaded once at startup:

  {
    "version": 3,
    "categories": ["info", "communication", ...],
    "choices": [
      {
        "id": "check_radar",
        "text": "Check the radar and river camera feeds",
        "category": "info",
        "weight": 3,
        "available_when": {"phases": ["approach"], "require_flags": [...]},
        "effects": {"score_delta": {"judgment": 2}, "set_flags": [...],
                    "add_items": [...], "custom_effect": "contact_family"}
      }
    ]
  }

Entries with an unknown category, a non-positive weight, or a duplicate
id are skipped with a warning.  A missing or unreadable file never stops
the process: ``load_catalog`` logs once and returns an empty catalog whose
``fallback`` flag is set, and the selector then offers ``FALLBACK_CHOICES``
so the game stays playable.  Fallback choices are always resolvable by id.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from .state import GameState

logger = logging.getLogger("engine.catalog")

ACTIVE_CATEGORIES = ("info", "communication", "supplies", "home_hardening", "evacuation")
WAITING_CATEGORY = "waiting"
CATEGORIES = ACTIVE_CATEGORIES + (WAITING_CATEGORY,)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "choices.json"


@dataclass(frozen=True)
class Availability:
    """Predicate over the world state.  Empty fields match anything."""

    phases: frozenset[str] = frozenset()
    alert_levels: frozenset[str] = frozenset()
    require_items: frozenset[str] = frozenset()
    require_flags: frozenset[str] = frozenset()
    exclude_evac_status: frozenset[str] = frozenset()
    require_house_floors: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Availability:
        return cls(
            phases=frozenset(data.get("phases", ())),
            alert_levels=frozenset(data.get("alert_levels", ())),
            require_items=frozenset(data.get("require_items", ())),
            require_flags=frozenset(data.get("require_flags", ())),
            exclude_evac_status=frozenset(data.get("exclude_evac_status", ())),
            require_house_floors=int(data.get("require_house_floors", 0)),
        )


@dataclass(frozen=True)
class Effects:
    score_delta: dict[str, int] = field(default_factory=dict)
    set_flags: tuple[str, ...] = ()
    add_items: tuple[str, ...] = ()
    custom_effect: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Effects:
        return cls(
            score_delta={str(k): int(v) for k, v in dict(data.get("score_delta", {})).items()},
            set_flags=tuple(data.get("set_flags", ())),
            add_items=tuple(data.get("add_items", ())),
            custom_effect=data.get("custom_effect"),
        )


@dataclass(frozen=True)
class Choice:
    id: str
    text: str
    category: str
    weight: float = 1.0
    available_when: Availability = field(default_factory=Availability)
    effects: Effects = field(default_factory=Effects)

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_triggered(self) -> bool:
        """Gated on flags; offered ahead of generic picks once unlocked."""
        return bool(self.available_when.require_flags)

    def is_available(self, state: GameState, phase_id: str) -> bool:
        cond = self.available_when
        if cond.phases and phase_id not in cond.phases:
            return False
        if cond.alert_levels and state.alerts.action_level not in cond.alert_levels:
            return False
        if not cond.require_items <= state.items:
            return False
        if not cond.require_flags <= state.flags:
            return False
        if state.evacuation.status in cond.exclude_evac_status:
            return False
        if cond.require_house_floors > state.scenario.house.floors:
            return False
        return True

    def to_offer(self) -> dict[str, str]:
        return {"id": self.id, "text": self.text, "category": self.category}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Choice:
        return cls(
            id=str(data["id"]),
            text=str(data["text"]),
            category=str(data["category"]),
            weight=float(data.get("weight", 1.0)),
            available_when=Availability.from_dict(data.get("available_when", {})),
            effects=Effects.from_dict(data.get("effects", {})),
        )


FALLBACK_CHOICES: tuple[Choice, ...] = (
    Choice(
        "fallback_check_news", "Check the news for the latest typhoon bulletin", "info",
        effects=Effects(score_delta={"judgment": 1}),
    ),
    Choice(
        "fallback_call_family", "Call the family to check everyone is safe", "communication",
        effects=Effects(score_delta={"survival": 1}, custom_effect="contact_family"),
    ),
    Choice(
        "fallback_pack_bag", "Pack water, a torch and a radio into an emergency bag", "supplies",
        effects=Effects(score_delta={"preparedness": 1}, add_items=("emergency_bag",)),
    ),
    Choice(
        "fallback_wait", "Stay indoors and keep listening to the storm", WAITING_CATEGORY,
    ),
)


class ChoiceCatalog:
    """Immutable, loaded-once table of choices."""

    def __init__(
        self,
        choices: Iterable[Choice] = (),
        categories: Iterable[str] = CATEGORIES,
        version: int = 0,
        fallback: bool = False,
    ) -> None:
        self._choices: tuple[Choice, ...] = tuple(choices)
        self._by_id: dict[str, Choice] = {c.id: c for c in self._choices}
        for c in FALLBACK_CHOICES:
            self._by_id.setdefault(c.id, c)
        self.categories: tuple[str, ...] = tuple(categories)
        self.version = version
        self.fallback = fallback

    @property
    def choices(self) -> tuple[Choice, ...]:
        return self._choices

    def __len__(self) -> int:
        return len(self._choices)

    def get(self, choice_id: str) -> Optional[Choice]:
        return self._by_id.get(choice_id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChoiceCatalog:
        categories = tuple(data.get("categories", CATEGORIES))
        choices: list[Choice] = []
        seen: set[str] = set()
        for raw in data.get("choices", ()):
            try:
                choice = Choice.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed choice {raw!r}: {e}")
                continue
            if choice.category not in CATEGORIES:
                logger.warning(f"Skipping choice {choice.id}: unknown category {choice.category}")
                continue
            if choice.weight <= 0:
                logger.warning(f"Skipping choice {choice.id}: weight must be positive")
                continue
            if choice.id in seen:
                logger.warning(f"Skipping duplicate choice id {choice.id}")
                continue
            seen.add(choice.id)
            choices.append(choice)
        return cls(choices, categories=categories, version=int(data.get("version", 0)))

    @classmethod
    def empty(cls) -> ChoiceCatalog:
        """Stand-in when the resource is unusable; selector offers fallbacks."""
        return cls((), fallback=True)


def load_catalog(path: str | Path | None = None) -> ChoiceCatalog:
    """Read the catalog resource.  Never raises."""
    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
    try:
        data = json.loads(catalog_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("top level must be an object")
        catalog = ChoiceCatalog.from_dict(data)
    except FileNotFoundError:
        logger.error(f"Choice catalog not found: {catalog_path}; using fallback choices")
        return ChoiceCatalog.empty()
    except (OSError, ValueError, TypeError) as e:
        # json.JSONDecodeError is a ValueError
        logger.error(f"Choice catalog unreadable ({catalog_path}): {e}; using fallback choices")
        return ChoiceCatalog.empty()

    logger.info(f"Loaded {len(catalog)} choices from {catalog_path} (v{catalog.version})")
    return catalog
