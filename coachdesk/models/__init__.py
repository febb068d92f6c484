"""
Models package for CoachDesk.

This package contains the core data models used throughout the application.
"""
from .zone import PitchZone, ZoneRect
from .attributes import (
    AttributesV1, AttributesV2, AttributePayloadError, decode_attributes, parse_attributes
)
from .rows import (
    CoachingRule, MethodologyEntry, PositionalProfile, TrainingSession,
    TrainingRuleToggle, LocalRow
)
from .feed_state import FeedFilter, RetryPolicy, RetryState, SubscriptionState

__all__ = [
    "PitchZone", "ZoneRect", "AttributesV1", "AttributesV2", "AttributePayloadError",
    "decode_attributes", "parse_attributes", "CoachingRule", "MethodologyEntry",
    "PositionalProfile", "TrainingSession", "TrainingRuleToggle", "LocalRow",
    "FeedFilter", "RetryPolicy", "RetryState", "SubscriptionState"
]
