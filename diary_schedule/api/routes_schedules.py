from __future__ import annotations

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from diary_schedule.core.config import settings
from diary_schedule.core.errors import ScheduleUnavailable, ValidationError
from diary_schedule.core.rbac import get_viewer, require_roles
from diary_schedule.db import get_db
from diary_schedule.models import Schedule, Subgroup, TimeSlot
from diary_schedule.services import effects
from diary_schedule.services.collaborators import DateRange
from diary_schedule.services.schedule import (
    DisplayEntry,
    ScheduleResolutionFacade,
    build_display_entry,
)
from diary_schedule.services.sql_backend import SqlScheduleBackend, get_backend, to_entry
from diary_schedule.services.time_slots import TimeSlotRegistry, format_wall_clock
from diary_schedule.services.visibility import Viewer

router = APIRouter(
    prefix="/schedules",
    tags=["schedules"],
)

SCHEDULE_ADMIN_ROLES = ["school_admin"]


# ========= Schemas =========

class ScheduleCreate(BaseModel):
    class_id: int
    subject_id: int
    teacher_id: int
    schedule_date: date
    slot_number: int = Field(..., ge=1)
    room: str | None = Field(None, max_length=50)
    subgroup_id: int | None = None


class ScheduleEntryRead(BaseModel):
    id: int
    class_id: int
    subject_id: int
    teacher_id: int
    schedule_date: date
    day_of_week: int
    slot_number: int
    start_time: str | None = None
    end_time: str | None = None
    slot_source: str | None = None
    time_unresolved: bool = False
    room: str | None = None
    subgroup_id: int | None = None
    subgroup_name: str | None = None


def _to_read_model(entry: DisplayEntry) -> ScheduleEntryRead:
    return ScheduleEntryRead(
        id=entry.id,
        class_id=entry.class_id,
        subject_id=entry.subject_id,
        teacher_id=entry.teacher_id,
        schedule_date=entry.schedule_date,
        day_of_week=entry.day_of_week,
        slot_number=entry.slot_number,
        start_time=format_wall_clock(entry.start_time) if entry.start_time else None,
        end_time=format_wall_clock(entry.end_time) if entry.end_time else None,
        slot_source=entry.slot_source.value if entry.slot_source else None,
        time_unresolved=entry.time_unresolved,
        room=entry.room,
        subgroup_id=entry.subgroup_id,
        subgroup_name=entry.subgroup_name,
    )


# ========= Endpoints =========

@router.get("", response_model=List[ScheduleEntryRead])
async def get_class_schedule(
    class_id: int = Query(...),
    start: date = Query(..., description="First day (inclusive)"),
    end: date = Query(..., description="Last day (inclusive)"),
    backend: SqlScheduleBackend = Depends(get_backend),
    viewer: Viewer = Depends(get_viewer),
):
    try:
        date_range = DateRange(start, end)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    facade = ScheduleResolutionFacade(backend)
    try:
        entries = await facade.get_schedule(class_id, date_range, viewer)
    except ScheduleUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return [_to_read_model(e) for e in entries]


def _insert_entry(db: Session, entry_in: ScheduleCreate, username: str):
    slot = db.query(TimeSlot).filter(TimeSlot.slot_number == entry_in.slot_number).first()
    if not slot:
        raise HTTPException(
            status_code=422,
            detail=f"No default time slot with number {entry_in.slot_number}",
        )

    subgroup_names: dict[int, str] = {}
    if entry_in.subgroup_id is not None:
        subgroup = db.query(Subgroup).filter(Subgroup.id == entry_in.subgroup_id).first()
        if not subgroup or subgroup.class_id != entry_in.class_id:
            raise HTTPException(
                status_code=422,
                detail=f"Subgroup {entry_in.subgroup_id} does not belong to class {entry_in.class_id}",
            )
        subgroup_names[subgroup.id] = subgroup.name

    entry = Schedule(**entry_in.model_dump())
    db.add(entry)
    db.commit()
    db.refresh(entry)

    effects.schedule_entry_changed(
        db,
        username=username,
        event_type=effects.SCHEDULE_ENTRY_CREATED,
        entry_id=entry.id,
        class_id=entry.class_id,
    )
    return to_entry(entry), subgroup_names


@router.post("", response_model=ScheduleEntryRead, status_code=201)
async def create_schedule_entry(
    entry_in: ScheduleCreate,
    db: Session = Depends(get_db),
    backend: SqlScheduleBackend = Depends(get_backend),
    current_user=Depends(require_roles(SCHEDULE_ADMIN_ROLES)),
):
    entry, subgroup_names = await run_in_threadpool(
        _insert_entry,
        db,
        entry_in,
        current_user.get("preferred_username", "unknown"),
    )
    slots = await TimeSlotRegistry(backend).snapshot(entry.class_id)
    return _to_read_model(
        build_display_entry(entry, slots, subgroup_names, settings.SUBGROUP_PLACEHOLDER)
    )


@router.delete("/{entry_id}")
def delete_schedule_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(SCHEDULE_ADMIN_ROLES)),
):
    entry = db.query(Schedule).filter(Schedule.id == entry_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Schedule entry not found")

    class_id = entry.class_id
    db.delete(entry)
    db.commit()

    effects.schedule_entry_changed(
        db,
        username=current_user.get("preferred_username", "unknown"),
        event_type=effects.SCHEDULE_ENTRY_DELETED,
        entry_id=entry_id,
        class_id=class_id,
    )
    return {"detail": "Schedule entry deleted"}
