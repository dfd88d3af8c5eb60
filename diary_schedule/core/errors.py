"""
Domain errors raised by the schedule engine.

Routers translate these into HTTP responses; the engine itself never
imports FastAPI.
"""
from __future__ import annotations


class ScheduleError(Exception):
    """Base class for every error of the schedule engine."""


class ValidationError(ScheduleError):
    """Malformed input to a write (e.g. start time not before end time)."""


class UnknownSlot(ScheduleError):
    """An override references a slot number with no default slot."""

    def __init__(self, slot_number: int):
        super().__init__(f"No default time slot with number {slot_number}")
        self.slot_number = slot_number


class NotFound(ScheduleError):
    """A slot number cannot be resolved for a class."""

    def __init__(self, class_id: int, slot_number: int):
        super().__init__(f"Time slot {slot_number} is not defined (class {class_id})")
        self.class_id = class_id
        self.slot_number = slot_number


class OrphanOverride(ScheduleError):
    """
    A class override whose slot number has no default slot.

    Advisory only: instances are collected and reported by listings,
    never raised.
    """

    def __init__(self, class_id: int, slot_number: int, override_id: int | None = None):
        super().__init__(
            f"Override for slot {slot_number} of class {class_id} has no default slot"
        )
        self.class_id = class_id
        self.slot_number = slot_number
        self.override_id = override_id


class ScheduleUnavailable(ScheduleError):
    """The read pipeline could not assemble a complete schedule."""
