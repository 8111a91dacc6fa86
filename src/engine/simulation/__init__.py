"""Simulation subsystem: typhoon turn engine, alerts, evacuation, family."""
from .alerts import AlertLadder, target_action_level
from .catalog import Choice, ChoiceCatalog, FALLBACK_CHOICES, load_catalog
from .determinism import chance, derive_rng, make_rng, weighted_pick
from .errors import GameOverError, SimulationError, StateFormatError, UnknownChoiceError
from .evacuation import EvacuationTracker
from .family import FamilySnapshot, FamilyTracker
from .phases import PHASES, Phase
from .report import build_final_report
from .scenario_gen import ScenarioGenerator
from .scoring import ScoreEngine
from .selector import ChoiceSelector, Offer
from .state import GameState, Scenario
from .turn_engine import TurnEngine, TurnResult, mentions_chime
