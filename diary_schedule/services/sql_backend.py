from __future__ import annotations

import asyncio
from datetime import time
from typing import Callable, TypeVar

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from diary_schedule.db import get_session_factory
from diary_schedule.models import (
    ClassTimeSlot,
    ParentStudent,
    Schedule,
    StudentClass,
    StudentSubgroup,
    Subgroup,
    TimeSlot,
)
from diary_schedule.services.collaborators import (
    ClassTimeSlotOverride,
    DateRange,
    ScheduleEntry,
    SubgroupRef,
    TimeSlotDefault,
)

T = TypeVar("T")

# Slot 1 .. 10 of a regular school day
DEFAULT_SLOT_TIMES: list[tuple[int, time, time]] = [
    (1, time(8, 0), time(8, 45)),
    (2, time(9, 0), time(9, 45)),
    (3, time(9, 55), time(10, 40)),
    (4, time(11, 0), time(11, 45)),
    (5, time(12, 0), time(12, 45)),
    (6, time(12, 55), time(13, 40)),
    (7, time(14, 0), time(14, 45)),
    (8, time(15, 15), time(16, 0)),
    (9, time(16, 15), time(17, 0)),
    (10, time(17, 15), time(18, 0)),
]


def ensure_default_slots(db: Session) -> list[TimeSlot]:
    """Seed the default slots if none exist yet and return them ordered."""
    existing = db.query(TimeSlot).order_by(TimeSlot.slot_number).all()
    if existing:
        return existing

    slots = [
        TimeSlot(slot_number=number, start_time=start, end_time=end)
        for number, start, end in DEFAULT_SLOT_TIMES
    ]
    db.add_all(slots)
    db.commit()
    for slot in slots:
        db.refresh(slot)
    return slots


def to_default(row: TimeSlot) -> TimeSlotDefault:
    return TimeSlotDefault(row.slot_number, row.start_time, row.end_time)


def to_override(row: ClassTimeSlot) -> ClassTimeSlotOverride:
    return ClassTimeSlotOverride(
        id=row.id,
        class_id=row.class_id,
        slot_number=row.slot_number,
        start_time=row.start_time,
        end_time=row.end_time,
    )


def to_entry(row: Schedule) -> ScheduleEntry:
    return ScheduleEntry(
        id=row.id,
        class_id=row.class_id,
        subject_id=row.subject_id,
        teacher_id=row.teacher_id,
        schedule_date=row.schedule_date,
        slot_number=row.slot_number,
        room=row.room,
        subgroup_id=row.subgroup_id,
    )


class SqlScheduleBackend:
    """
    `ScheduleBackend` over the service's SQLAlchemy engine.

    Every call opens its own session from `session_factory` and runs in a
    worker thread, so concurrent reads never share a session and a slow
    query never blocks the event loop.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def _run(self, work: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._in_session, work)

    def _in_session(self, work: Callable[[Session], T]) -> T:
        with self.session_factory() as db:
            try:
                return work(db)
            except SQLAlchemyError:
                db.rollback()
                raise

    async def get_default_slots(self) -> list[TimeSlotDefault]:
        def _query(db: Session):
            rows = db.query(TimeSlot).order_by(TimeSlot.slot_number).all()
            return [to_default(r) for r in rows]

        return await self._run(_query)

    async def get_class_overrides(self, class_id: int) -> list[ClassTimeSlotOverride]:
        def _query(db: Session):
            rows = (
                db.query(ClassTimeSlot)
                .filter(ClassTimeSlot.class_id == class_id)
                .order_by(ClassTimeSlot.slot_number)
                .all()
            )
            return [to_override(r) for r in rows]

        return await self._run(_query)

    async def upsert_class_override(
        self,
        class_id: int,
        slot_number: int,
        start_time: time,
        end_time: time,
    ) -> ClassTimeSlotOverride:
        def _upsert(db: Session):
            row = (
                db.query(ClassTimeSlot)
                .filter(
                    ClassTimeSlot.class_id == class_id,
                    ClassTimeSlot.slot_number == slot_number,
                )
                .first()
            )
            if row is None:
                row = ClassTimeSlot(class_id=class_id, slot_number=slot_number)
                db.add(row)
            row.start_time = start_time
            row.end_time = end_time
            db.commit()
            db.refresh(row)
            return to_override(row)

        return await self._run(_upsert)

    async def delete_class_override(self, override_id: int) -> None:
        def _delete(db: Session):
            db.query(ClassTimeSlot).filter(ClassTimeSlot.id == override_id).delete(
                synchronize_session=False
            )
            db.commit()

        await self._run(_delete)

    async def reset_class_overrides(self, class_id: int) -> None:
        # one statement, one commit: all overrides go or none do
        def _reset(db: Session):
            db.query(ClassTimeSlot).filter(ClassTimeSlot.class_id == class_id).delete(
                synchronize_session=False
            )
            db.commit()

        await self._run(_reset)

    async def get_schedule_entries(
        self, class_id: int, date_range: DateRange
    ) -> list[ScheduleEntry]:
        def _query(db: Session):
            rows = (
                db.query(Schedule)
                .filter(
                    Schedule.class_id == class_id,
                    Schedule.schedule_date >= date_range.start,
                    Schedule.schedule_date <= date_range.end,
                )
                .order_by(Schedule.schedule_date, Schedule.slot_number)
                .all()
            )
            return [to_entry(r) for r in rows]

        return await self._run(_query)

    async def get_subgroup_memberships(self, student_id: int) -> list[int]:
        def _query(db: Session):
            rows = (
                db.query(StudentSubgroup.subgroup_id)
                .filter(StudentSubgroup.student_id == student_id)
                .all()
            )
            return [r.subgroup_id for r in rows]

        return await self._run(_query)

    async def get_subgroups_by_class(self, class_id: int) -> list[SubgroupRef]:
        def _query(db: Session):
            rows = (
                db.query(Subgroup)
                .filter(Subgroup.class_id == class_id)
                .order_by(Subgroup.name)
                .all()
            )
            return [SubgroupRef(r.id, r.name) for r in rows]

        return await self._run(_query)

    async def get_linked_children(self, parent_id: int) -> list[int]:
        def _query(db: Session):
            rows = (
                db.query(ParentStudent.student_id)
                .filter(ParentStudent.parent_id == parent_id)
                .all()
            )
            return [r.student_id for r in rows]

        return await self._run(_query)

    async def get_student_class_ids(self, student_id: int) -> list[int]:
        def _query(db: Session):
            rows = (
                db.query(StudentClass.class_id)
                .filter(StudentClass.student_id == student_id)
                .all()
            )
            return [r.class_id for r in rows]

        return await self._run(_query)


def get_backend(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> SqlScheduleBackend:
    return SqlScheduleBackend(session_factory)
