"""
CoachDesk

Coaching methodology tooling: a tactical pitch zone editor and realtime-synced
rule and methodology lists backed by a hosted relational store.

This package provides both desktop (Tkinter) and web (Flask) interfaces.
"""
from .models import PitchZone, CoachingRule
from .services import ServiceFactory, ZonePitchEditor, ResilientSubscription
from .utils import now_ts, APP_TITLE

__version__ = "1.0.0"

__all__ = [
    "PitchZone", "CoachingRule", "ServiceFactory", "ZonePitchEditor",
    "ResilientSubscription", "now_ts", "APP_TITLE"
]
