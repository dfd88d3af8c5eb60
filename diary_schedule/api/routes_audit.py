from __future__ import annotations

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from diary_schedule.core.rbac import require_roles
from diary_schedule.db import get_db
from diary_schedule.models import AuditLog

router = APIRouter(
    prefix="/audit-logs",
    tags=["audit"],
)


class AuditLogRead(BaseModel):
    id: int
    username: str
    action: str
    resource_type: str | None
    resource_id: int | None
    details: str | None
    created_at: datetime | None


@router.get("", response_model=List[AuditLogRead])
def list_audit_logs(
    resource_type: str | None = Query(None, description="e.g. class_time_slots or schedule"),
    resource_id: int | None = Query(None, description="Class id for time slots, entry id for lessons"),
    username: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user=Depends(require_roles(["school_admin"])),
):
    """History of time-slot and lesson edits, newest first."""
    query = db.query(AuditLog)
    if resource_type:
        query = query.filter(AuditLog.resource_type == resource_type)
    if resource_id is not None:
        query = query.filter(AuditLog.resource_id == resource_id)
    if username:
        query = query.filter(AuditLog.username == username)

    logs = (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [
        AuditLogRead(
            id=log.id,
            username=log.username,
            action=log.action,
            resource_type=log.resource_type,
            resource_id=log.resource_id,
            details=log.details,
            created_at=log.created_at,
        )
        for log in logs
    ]
