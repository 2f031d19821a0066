# core/errors.py
from __future__ import annotations


class LightSyncError(Exception):
    """Base error for the light sync core."""


class InvalidConfigError(LightSyncError):
    """Raised when a session config cannot be parsed or validated."""


class AcquisitionFailure(LightSyncError):
    """Audio device or file is unavailable or corrupt. Ends the current session only."""


class InsufficientSamples(LightSyncError):
    """A frame is shorter than the analysis needs (internal sizing bug)."""


class PatternFunctionFault(LightSyncError):
    """A pattern raised or produced a malformed light vector."""


class EngineQueryTimeout(LightSyncError):
    """The pattern engine did not answer a state query in time."""
