"""
Records exchanged with the schedule engine and the contract of the
backend that supplies them.

The engine only depends on `ScheduleBackend`; the SQLAlchemy
implementation lives in `sql_backend.py` and tests use in-memory fakes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Protocol

from diary_schedule.core.errors import ValidationError


@dataclass(frozen=True)
class TimeSlotDefault:
    slot_number: int
    start_time: time
    end_time: time


@dataclass(frozen=True)
class ClassTimeSlotOverride:
    id: int
    class_id: int
    slot_number: int
    start_time: time
    end_time: time


@dataclass(frozen=True)
class ScheduleEntry:
    id: int
    class_id: int
    subject_id: int
    teacher_id: int
    schedule_date: date
    slot_number: int
    room: str | None = None
    subgroup_id: int | None = None


@dataclass(frozen=True)
class SubgroupRef:
    id: int
    name: str


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar dates."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValidationError(
                f"Date range start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


class ScheduleBackend(Protocol):
    async def get_default_slots(self) -> list[TimeSlotDefault]: ...

    async def get_class_overrides(self, class_id: int) -> list[ClassTimeSlotOverride]: ...

    async def upsert_class_override(
        self,
        class_id: int,
        slot_number: int,
        start_time: time,
        end_time: time,
    ) -> ClassTimeSlotOverride: ...

    async def delete_class_override(self, override_id: int) -> None: ...

    async def reset_class_overrides(self, class_id: int) -> None: ...

    async def get_schedule_entries(
        self, class_id: int, date_range: DateRange
    ) -> list[ScheduleEntry]: ...

    async def get_subgroup_memberships(self, student_id: int) -> list[int]: ...

    async def get_subgroups_by_class(self, class_id: int) -> list[SubgroupRef]: ...

    async def get_linked_children(self, parent_id: int) -> list[int]: ...

    async def get_student_class_ids(self, student_id: int) -> list[int]: ...
