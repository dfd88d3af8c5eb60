"""
Lesson time-slot resolution.

Every school has one set of default slots (lesson number -> start/end).
A class may override the times of individual slot numbers. The merge rule
(override wins, otherwise the default) lives in `merge_slots` and every
read goes through it.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from typing import Iterable

from diary_schedule.core.errors import NotFound, OrphanOverride, UnknownSlot, ValidationError
from diary_schedule.services.collaborators import (
    ClassTimeSlotOverride,
    ScheduleBackend,
    TimeSlotDefault,
)

logger = logging.getLogger(__name__)

_WALL_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


class SlotSource(str, Enum):
    DEFAULT = "default"
    OVERRIDE = "override"


@dataclass(frozen=True)
class EffectiveSlot:
    slot_number: int
    start_time: time
    end_time: time
    source: SlotSource


@dataclass(frozen=True)
class EffectiveSlotListing:
    class_id: int
    slots: list[EffectiveSlot] = field(default_factory=list)
    orphans: list[OrphanOverride] = field(default_factory=list)

    def resolve(self, slot_number: int) -> EffectiveSlot:
        for slot in self.slots:
            if slot.slot_number == slot_number:
                return slot
        raise NotFound(self.class_id, slot_number)


def parse_wall_clock(value: str | time) -> time:
    """Parse `H:MM` / `HH:MM` into a `time`; `time` values pass through."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    match = _WALL_CLOCK_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid wall-clock time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Invalid wall-clock time {value!r}, expected HH:MM")
    return time(hours, minutes)


def format_wall_clock(value: time) -> str:
    return value.strftime("%H:%M")


def validate_interval(start_time: time, end_time: time) -> None:
    if start_time >= end_time:
        raise ValidationError(
            f"Start time {format_wall_clock(start_time)} must be before "
            f"end time {format_wall_clock(end_time)}"
        )


def merge_slots(
    class_id: int,
    defaults: Iterable[TimeSlotDefault],
    overrides: Iterable[ClassTimeSlotOverride],
) -> EffectiveSlotListing:
    """
    Merge school defaults with the overrides of one class.

    The result has exactly one slot per default slot number, ordered by
    slot number. Overrides without a matching default are returned as
    orphans instead of slots.
    """
    by_number = {d.slot_number: d for d in defaults}
    override_by_number = {
        o.slot_number: o for o in overrides if o.class_id == class_id
    }

    slots: list[EffectiveSlot] = []
    for number in sorted(by_number):
        override = override_by_number.get(number)
        if override is not None:
            slots.append(
                EffectiveSlot(number, override.start_time, override.end_time, SlotSource.OVERRIDE)
            )
        else:
            default = by_number[number]
            slots.append(
                EffectiveSlot(number, default.start_time, default.end_time, SlotSource.DEFAULT)
            )

    orphans = [
        OrphanOverride(class_id, number, override.id)
        for number, override in sorted(override_by_number.items())
        if number not in by_number
    ]
    return EffectiveSlotListing(class_id=class_id, slots=slots, orphans=orphans)


class TimeSlotRegistry:
    """Reads and edits the effective time slots of classes.

    There is no cache: every read asks the backend for the current
    defaults and overrides.
    """

    def __init__(self, backend: ScheduleBackend):
        self.backend = backend

    async def snapshot(self, class_id: int) -> EffectiveSlotListing:
        defaults, overrides = await asyncio.gather(
            self.backend.get_default_slots(),
            self.backend.get_class_overrides(class_id),
        )
        listing = merge_slots(class_id, defaults, overrides)
        for orphan in listing.orphans:
            logger.warning("%s", orphan)
        return listing

    async def resolve(self, class_id: int, slot_number: int) -> EffectiveSlot:
        listing = await self.snapshot(class_id)
        return listing.resolve(slot_number)

    async def list_effective(self, class_id: int) -> EffectiveSlotListing:
        return await self.snapshot(class_id)

    async def upsert_override(
        self,
        class_id: int,
        slot_number: int,
        start_time: str | time,
        end_time: str | time,
    ) -> ClassTimeSlotOverride:
        start = parse_wall_clock(start_time)
        end = parse_wall_clock(end_time)
        validate_interval(start, end)

        defaults = await self.backend.get_default_slots()
        if not any(d.slot_number == slot_number for d in defaults):
            raise UnknownSlot(slot_number)

        override = await self.backend.upsert_class_override(class_id, slot_number, start, end)
        logger.info(
            "Class %s slot %s set to %s-%s",
            class_id,
            slot_number,
            format_wall_clock(start),
            format_wall_clock(end),
        )
        return override

    async def delete_override(self, class_id: int, slot_number: int) -> None:
        overrides = await self.backend.get_class_overrides(class_id)
        for override in overrides:
            if override.slot_number == slot_number:
                await self.backend.delete_class_override(override.id)
                logger.info("Class %s slot %s override removed", class_id, slot_number)

    async def reset_all(self, class_id: int) -> None:
        await self.backend.reset_class_overrides(class_id)
        logger.info("Class %s time slots reset to defaults", class_id)
