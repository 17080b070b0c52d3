"""Top-level package for the phasetracker library."""

# Re-export the public tracker API for convenience.
from .phases import IndexPopulationPhase  # noqa: F401
from .tracker import (  # noqa: F401
    NULL_TRACKER,
    LoggingPhaseTracker,
    NullPhaseTracker,
    PhaseTracker,
    TrackerState,
)
from .utils.errors import PhaseTrackerError, TrackerStoppedError  # noqa: F401

__all__ = [
    "IndexPopulationPhase",
    "LoggingPhaseTracker",
    "NULL_TRACKER",
    "NullPhaseTracker",
    "PhaseTracker",
    "PhaseTrackerError",
    "TrackerState",
    "TrackerStoppedError",
]
