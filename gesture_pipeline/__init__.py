"""
Gesture Decision Pipeline

Turns per-frame hand landmarks and template match scores into debounced,
motion-aware gesture events and multi-gesture combo actions, with optional
external arbitration of ambiguous frames.
"""

__version__ = "0.1.0"

from .types import (
    LandmarkFrame,
    FrameSample,
    Candidate,
    GestureEvent,
    ComboEvent,
    LandmarkSourceProto,
    TemplateScorerProto,
    GestureConsumerProto,
)
from .config import load_config, validate_config, Cfg
from .errors import ConfigError, LandmarkSourceError, ArbitrationError, SessionStateError
from .arbitration import ArbitrationGateway, HttpArbitrator
from .processor import GestureProcessor
from .session import GestureSession
from .consumer_mock import MockConsumer

__all__ = [
    "LandmarkFrame",
    "FrameSample",
    "Candidate",
    "GestureEvent",
    "ComboEvent",
    "LandmarkSourceProto",
    "TemplateScorerProto",
    "GestureConsumerProto",
    "load_config",
    "validate_config",
    "Cfg",
    "ConfigError",
    "LandmarkSourceError",
    "ArbitrationError",
    "SessionStateError",
    "ArbitrationGateway",
    "HttpArbitrator",
    "GestureProcessor",
    "GestureSession",
    "MockConsumer",
]
