"""Domain errors raised by the turn pipeline."""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for errors the HTTP layer maps to client responses."""


class UnknownChoiceError(SimulationError):
    """Raised when a submitted choice id is not in the catalog."""

    def __init__(self, choice_id: str) -> None:
        super().__init__(f"Unknown choice id: {choice_id!r}")
        self.choice_id = choice_id


class StateFormatError(SimulationError):
    """Raised when a round-tripped state payload cannot be decoded."""


class GameOverError(SimulationError):
    """Raised when a turn is submitted for a game that already ended."""
