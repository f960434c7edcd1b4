"""
Exception types raised by the gesture decision pipeline.
"""


class ConfigError(ValueError):
    """Configuration is missing values or violates a bound."""


class LandmarkSourceError(RuntimeError):
    """The landmark source can no longer deliver frames (device lost, permission revoked)."""


class ArbitrationError(RuntimeError):
    """The arbitration service returned an unusable answer."""


class SessionStateError(RuntimeError):
    """An operation was attempted on a session that is not running."""
