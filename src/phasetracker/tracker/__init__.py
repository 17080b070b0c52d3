"""阶段追踪核心：统计结构与追踪器实现。"""
from .stats import DurationStats, PhaseEntry
from .tracker import (
    MESSAGE_PREFIX,
    NULL_TRACKER,
    LoggingPhaseTracker,
    NullPhaseTracker,
    PhaseTracker,
    TrackerState,
)

__all__ = [
    "DurationStats",
    "LoggingPhaseTracker",
    "MESSAGE_PREFIX",
    "NULL_TRACKER",
    "NullPhaseTracker",
    "PhaseEntry",
    "PhaseTracker",
    "TrackerState",
]
