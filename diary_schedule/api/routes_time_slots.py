from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from diary_schedule.core.errors import NotFound, UnknownSlot, ValidationError
from diary_schedule.core.rbac import require_roles
from diary_schedule.core.security import verify_token
from diary_schedule.db import get_db
from diary_schedule.models import TimeSlot
from diary_schedule.services import effects
from diary_schedule.services.sql_backend import (
    SqlScheduleBackend,
    ensure_default_slots,
    get_backend,
)
from diary_schedule.services.time_slots import (
    EffectiveSlot,
    TimeSlotRegistry,
    format_wall_clock,
    parse_wall_clock,
    validate_interval,
)

router = APIRouter(prefix="", tags=["time-slots"])

SLOT_ADMIN_ROLES = ["school_admin"]


# ========= Schemas =========

class TimeSlotRead(BaseModel):
    slot_number: int
    start_time: str
    end_time: str


class TimeSlotUpdate(BaseModel):
    start_time: str
    end_time: str


class ClassTimeSlotUpsert(BaseModel):
    slot_number: int = Field(..., ge=1)
    start_time: str
    end_time: str


class ClassTimeSlotRead(BaseModel):
    id: int
    class_id: int
    slot_number: int
    start_time: str
    end_time: str


class EffectiveSlotRead(BaseModel):
    slot_number: int
    start_time: str
    end_time: str
    source: str


class OrphanOverrideRead(BaseModel):
    override_id: int | None = None
    slot_number: int
    detail: str


class EffectiveSlotListingRead(BaseModel):
    class_id: int
    slots: List[EffectiveSlotRead]
    orphans: List[OrphanOverrideRead] = []


def _slot_read(slot: TimeSlot) -> TimeSlotRead:
    return TimeSlotRead(
        slot_number=slot.slot_number,
        start_time=format_wall_clock(slot.start_time),
        end_time=format_wall_clock(slot.end_time),
    )


def _effective_read(slot: EffectiveSlot) -> EffectiveSlotRead:
    return EffectiveSlotRead(
        slot_number=slot.slot_number,
        start_time=format_wall_clock(slot.start_time),
        end_time=format_wall_clock(slot.end_time),
        source=slot.source.value,
    )


# ========= Default slots =========

@router.get("/time-slots", response_model=List[TimeSlotRead])
def list_default_slots(
    db: Session = Depends(get_db),
    current_user=Depends(verify_token),
):
    slots = db.query(TimeSlot).order_by(TimeSlot.slot_number).all()
    return [_slot_read(s) for s in slots]


@router.get("/time-slots/defaults", response_model=List[TimeSlotRead])
def initialize_default_slots(
    db: Session = Depends(get_db),
    current_user=Depends(verify_token),
):
    """List the default slots, seeding the standard school day if there are none."""
    return [_slot_read(s) for s in ensure_default_slots(db)]


@router.put("/time-slots/{slot_number}", response_model=TimeSlotRead)
def update_default_slot(
    slot_number: int,
    slot_in: TimeSlotUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(["super_admin"])),
):
    try:
        start = parse_wall_clock(slot_in.start_time)
        end = parse_wall_clock(slot_in.end_time)
        validate_interval(start, end)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    slot = db.query(TimeSlot).filter(TimeSlot.slot_number == slot_number).first()
    if not slot:
        raise HTTPException(status_code=404, detail="Time slot not found")

    slot.start_time = start
    slot.end_time = end
    db.commit()
    db.refresh(slot)
    return _slot_read(slot)


# ========= Class overrides =========

@router.get("/classes/{class_id}/time-slots", response_model=EffectiveSlotListingRead)
async def list_class_time_slots(
    class_id: int,
    backend: SqlScheduleBackend = Depends(get_backend),
    current_user=Depends(verify_token),
):
    listing = await TimeSlotRegistry(backend).list_effective(class_id)
    return EffectiveSlotListingRead(
        class_id=class_id,
        slots=[_effective_read(s) for s in listing.slots],
        orphans=[
            OrphanOverrideRead(
                override_id=o.override_id,
                slot_number=o.slot_number,
                detail=str(o),
            )
            for o in listing.orphans
        ],
    )


@router.get(
    "/classes/{class_id}/time-slots/{slot_number}/effective",
    response_model=EffectiveSlotRead,
)
async def get_effective_time_slot(
    class_id: int,
    slot_number: int,
    backend: SqlScheduleBackend = Depends(get_backend),
    current_user=Depends(verify_token),
):
    try:
        slot = await TimeSlotRegistry(backend).resolve(class_id, slot_number)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _effective_read(slot)


@router.post("/classes/{class_id}/time-slots", response_model=ClassTimeSlotRead)
async def upsert_class_time_slot(
    class_id: int,
    slot_in: ClassTimeSlotUpsert,
    db: Session = Depends(get_db),
    backend: SqlScheduleBackend = Depends(get_backend),
    current_user=Depends(require_roles(SLOT_ADMIN_ROLES)),
):
    registry = TimeSlotRegistry(backend)
    try:
        override = await registry.upsert_override(
            class_id, slot_in.slot_number, slot_in.start_time, slot_in.end_time
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except UnknownSlot as e:
        raise HTTPException(status_code=404, detail=str(e))

    await run_in_threadpool(
        effects.time_slots_changed,
        db,
        username=current_user.get("preferred_username", "unknown"),
        class_id=class_id,
        action="class_time_slot_upserted",
        slot_number=slot_in.slot_number,
    )
    return ClassTimeSlotRead(
        id=override.id,
        class_id=override.class_id,
        slot_number=override.slot_number,
        start_time=format_wall_clock(override.start_time),
        end_time=format_wall_clock(override.end_time),
    )


@router.delete("/classes/{class_id}/time-slots/{slot_number}")
async def delete_class_time_slot(
    class_id: int,
    slot_number: int,
    db: Session = Depends(get_db),
    backend: SqlScheduleBackend = Depends(get_backend),
    current_user=Depends(require_roles(SLOT_ADMIN_ROLES)),
):
    await TimeSlotRegistry(backend).delete_override(class_id, slot_number)
    await run_in_threadpool(
        effects.time_slots_changed,
        db,
        username=current_user.get("preferred_username", "unknown"),
        class_id=class_id,
        action="class_time_slot_deleted",
        slot_number=slot_number,
    )
    return {"detail": "Class time slot override deleted"}


@router.post("/classes/{class_id}/time-slots/reset")
async def reset_class_time_slots(
    class_id: int,
    db: Session = Depends(get_db),
    backend: SqlScheduleBackend = Depends(get_backend),
    current_user=Depends(require_roles(SLOT_ADMIN_ROLES)),
):
    await TimeSlotRegistry(backend).reset_all(class_id)
    await run_in_threadpool(
        effects.time_slots_changed,
        db,
        username=current_user.get("preferred_username", "unknown"),
        class_id=class_id,
        action="class_time_slots_reset",
    )
    return {"detail": "Class time slots reset to defaults"}
