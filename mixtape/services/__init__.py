"""Core services for profile aggregation, intent parsing and mixtape synthesis."""

from .profile_aggregator import ProfileAggregator
from .intent_parser import IntentParser
from .track_selector import ScoredCandidate, SelectionResult, TrackSelector
from .sequencer import Sequencer
from .mixing_engine import MixingEngine, SynthesisState
from .session_ledger import SessionLedger
from .playlist_exporter import PlaylistExporter
from .mixtape_service import MixtapeService

__all__ = [
    'ProfileAggregator',
    'IntentParser',
    'ScoredCandidate',
    'SelectionResult',
    'TrackSelector',
    'Sequencer',
    'MixingEngine',
    'SynthesisState',
    'SessionLedger',
    'PlaylistExporter',
    'MixtapeService'
]
