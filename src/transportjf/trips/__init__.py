"""Boarding groups and the trip state machine."""

from transportjf.trips.groups import TripGroupRegistry
from transportjf.trips.lifecycle import IdentifyAction, IdentifyResult, TripLifecycle

__all__ = [
    "IdentifyAction",
    "IdentifyResult",
    "TripGroupRegistry",
    "TripLifecycle",
]
