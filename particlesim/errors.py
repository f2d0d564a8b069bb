"""Exceptions raised by the particle simulation."""
from __future__ import annotations


class ConfigurationError(ValueError):
    """Settings that cannot produce a valid simulation."""


class SimulationStateError(RuntimeError):
    """An engine operation was called in the wrong lifecycle state."""
