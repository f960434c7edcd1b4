"""
Configuration management for the gesture decision pipeline.
"""
import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

ARBITRATION_BACKENDS = ("http", "gemini")


@dataclass
class MotionConfig:
    """Hand motion tracking configuration."""
    anchor_index: int = 0
    hand_lost_timeout_ms: int = 500


@dataclass
class ThresholdConfig:
    """Adaptive confidence threshold configuration."""
    adaptive: bool = True
    base: float = 7.5
    floor: float = 6.0
    ceiling: float = 9.0
    high_motion_cutoff: float = 15.0
    low_motion_cutoff: float = 5.0
    raise_step: float = 1.0
    lower_step: float = 0.5
    smoothing: float = 0.9  # weight kept on the previous threshold


@dataclass
class HistoryConfig:
    """Per-gesture confidence history configuration."""
    capacity: int = 10
    min_samples: int = 3
    epsilon: float = 0.01


@dataclass
class ResolverConfig:
    """Candidate resolution configuration."""
    top_k: int = 3
    near_tie_ratio: float = 0.9
    stability_ratio: float = 1.5
    min_swipe_speed: float = 15.0
    directional: Dict[str, int] = field(
        default_factory=lambda: {"swipe_left": -1, "swipe_right": 1}
    )


@dataclass
class DebounceConfig:
    """Event debouncing configuration."""
    dwell_ms: int = 350
    high_performance_dwell_ms: int = 200
    high_performance: bool = False
    absence_reset_ms: int = 500

    @property
    def effective_dwell_ms(self) -> int:
        return self.high_performance_dwell_ms if self.high_performance else self.dwell_ms


@dataclass
class SequencePattern:
    """An ordered run of gestures that maps to a combo action."""
    gestures: List[str]
    action: str


@dataclass
class SequenceConfig:
    """Combo sequence detection configuration."""
    window_ms: int = 3000
    capacity: int = 5
    patterns: List[SequencePattern] = field(default_factory=list)


@dataclass
class ArbitrationConfig:
    """External arbitration configuration."""
    enabled: bool = False
    backend: str = "http"
    url: str = "http://localhost:5000/api/ai/process-gesture"
    timeout_ms: int = 300
    model: str = "gemini-2.5-flash"
    recent_gestures: int = 5


@dataclass
class SessionConfig:
    """Session frame queue configuration."""
    max_pending_frames: int = 4


@dataclass
class Cfg:
    """Main configuration class."""
    motion: MotionConfig = field(default_factory=MotionConfig)
    threshold: ThresholdConfig = field(default_factory=ThresholdConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    debounce: DebounceConfig = field(default_factory=DebounceConfig)
    sequences: SequenceConfig = field(default_factory=SequenceConfig)
    arbitration: ArbitrationConfig = field(default_factory=ArbitrationConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    profile: Optional[str] = None


def load_config(path: Optional[str] = None, profile: Optional[str] = None) -> Cfg:
    """
    Load configuration from YAML file.

    Args:
        path: Path to config file. If None, uses config.default.yaml
        profile: Name of an entry under ``profiles`` whose values override the base document

    Returns:
        Validated configuration object
    """
    if path is None:
        # Use default config file in project root
        project_root = Path(__file__).parent.parent
        path = project_root / "config.default.yaml"

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {config_path}")

    profiles = data.pop('profiles', None) or {}
    if profile is not None:
        if profile not in profiles:
            raise ConfigError(f"Unknown config profile '{profile}' (known: {sorted(profiles)})")
        data = _deep_merge(data, profiles[profile])

    cfg = _dict_to_config(data)
    cfg.profile = profile
    _apply_environment(cfg)
    validate_config(cfg)
    return cfg


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of base with override applied section by section."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _section(data: Dict[str, Any], name: str, cls):
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    try:
        return cls(**section)
    except TypeError as e:
        raise ConfigError(f"Invalid keys in config section '{name}': {e}") from e


def _dict_to_config(data: Dict[str, Any]) -> Cfg:
    """Convert dictionary to configuration object."""
    sequences_data = dict(data.get('sequences') or {})
    try:
        patterns = [
            SequencePattern(gestures=list(p['gestures']), action=str(p['action']))
            for p in sequences_data.pop('patterns', None) or []
        ]
    except (KeyError, TypeError) as e:
        raise ConfigError(f"Invalid sequence pattern: {e}") from e

    sequences = _section({'sequences': sequences_data}, 'sequences', SequenceConfig)
    sequences.patterns = patterns

    return Cfg(
        motion=_section(data, 'motion', MotionConfig),
        threshold=_section(data, 'threshold', ThresholdConfig),
        history=_section(data, 'history', HistoryConfig),
        resolver=_section(data, 'resolver', ResolverConfig),
        debounce=_section(data, 'debounce', DebounceConfig),
        sequences=sequences,
        arbitration=_section(data, 'arbitration', ArbitrationConfig),
        session=_section(data, 'session', SessionConfig),
    )


def _apply_environment(cfg: Cfg) -> None:
    """Let deployment environment override the arbitration endpoint."""
    url = os.getenv("ARBITRATION_URL")
    if url:
        cfg.arbitration.url = url


def validate_config(cfg: Cfg) -> None:
    """
    Check every bound the pipeline relies on.

    Raises:
        ConfigError: on the first violated bound
    """
    t = cfg.threshold
    if t.floor > t.ceiling:
        raise ConfigError(f"threshold.floor ({t.floor}) exceeds threshold.ceiling ({t.ceiling})")
    if not t.floor <= t.base <= t.ceiling:
        raise ConfigError(f"threshold.base ({t.base}) outside [{t.floor}, {t.ceiling}]")
    if t.low_motion_cutoff > t.high_motion_cutoff:
        raise ConfigError("threshold.low_motion_cutoff exceeds threshold.high_motion_cutoff")
    if t.raise_step < 0 or t.lower_step < 0:
        raise ConfigError("threshold steps must be non-negative")
    if not 0.0 <= t.smoothing < 1.0:
        raise ConfigError(f"threshold.smoothing ({t.smoothing}) must be in [0, 1)")

    h = cfg.history
    if h.capacity < 1:
        raise ConfigError("history.capacity must be positive")
    if h.min_samples < 1:
        raise ConfigError("history.min_samples must be positive")
    if h.epsilon <= 0:
        raise ConfigError("history.epsilon must be positive")

    r = cfg.resolver
    if r.top_k < 2:
        raise ConfigError("resolver.top_k must be at least 2")
    if not 0.0 < r.near_tie_ratio <= 1.0:
        raise ConfigError(f"resolver.near_tie_ratio ({r.near_tie_ratio}) must be in (0, 1]")
    if r.stability_ratio < 1.0:
        raise ConfigError(f"resolver.stability_ratio ({r.stability_ratio}) must be >= 1")
    if r.min_swipe_speed < 0:
        raise ConfigError("resolver.min_swipe_speed must be non-negative")
    for name, sign in r.directional.items():
        if sign not in (-1, 1):
            raise ConfigError(f"resolver.directional['{name}'] must be -1 or 1")

    d = cfg.debounce
    if d.dwell_ms <= 0 or d.high_performance_dwell_ms <= 0:
        raise ConfigError("debounce dwell intervals must be positive")
    if d.absence_reset_ms <= 0:
        raise ConfigError("debounce.absence_reset_ms must be positive")

    if cfg.motion.anchor_index < 0:
        raise ConfigError("motion.anchor_index must be non-negative")
    if cfg.motion.hand_lost_timeout_ms <= 0:
        raise ConfigError("motion.hand_lost_timeout_ms must be positive")

    s = cfg.sequences
    if s.window_ms <= 0 or s.capacity < 2:
        raise ConfigError("sequences.window_ms must be positive and sequences.capacity at least 2")
    for pattern in s.patterns:
        if not 2 <= len(pattern.gestures) <= s.capacity:
            raise ConfigError(
                f"Sequence pattern {pattern.gestures} must have between 2 and {s.capacity} gestures"
            )

    a = cfg.arbitration
    if a.backend not in ARBITRATION_BACKENDS:
        raise ConfigError(f"arbitration.backend must be one of {ARBITRATION_BACKENDS}")
    if a.timeout_ms <= 0:
        raise ConfigError("arbitration.timeout_ms must be positive")

    if cfg.session.max_pending_frames < 1:
        raise ConfigError("session.max_pending_frames must be positive")
