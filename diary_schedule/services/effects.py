"""
Named effects that follow a successful write.

Readers keep no cache, so nothing is invalidated here: each write is
recorded in the audit log and announced on the notifications queue so
that other consumers can refresh their own views.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from diary_schedule.models import AuditLog
from diary_schedule.services import rabbitmq_client

TIME_SLOTS_CHANGED = "class_time_slots_changed"
SCHEDULE_ENTRY_CREATED = "schedule_entry_created"
SCHEDULE_ENTRY_DELETED = "schedule_entry_deleted"


def record_audit(
    db: Session,
    username: str,
    action: str,
    resource_type: str,
    resource_id: int,
    details: str | None = None,
) -> AuditLog:
    log_entry = AuditLog(
        username=username,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
    )
    db.add(log_entry)
    db.commit()
    db.refresh(log_entry)
    return log_entry


def time_slots_changed(
    db: Session,
    username: str,
    class_id: int,
    action: str,
    slot_number: int | None = None,
) -> None:
    details = f"{action} for class {class_id}"
    if slot_number is not None:
        details += f", slot {slot_number}"
    record_audit(db, username, action, "class_time_slots", class_id, details)
    rabbitmq_client.publish_notification_event(
        TIME_SLOTS_CHANGED,
        {
            "class_id": class_id,
            "slot_number": slot_number,
            "action": action,
            "username": username,
        },
    )


def schedule_entry_changed(
    db: Session,
    username: str,
    event_type: str,
    entry_id: int,
    class_id: int,
) -> None:
    record_audit(
        db,
        username,
        event_type,
        "schedule",
        entry_id,
        f"Lesson {entry_id} of class {class_id}",
    )
    rabbitmq_client.publish_notification_event(
        event_type,
        {"class_id": class_id, "entry_id": entry_id, "username": username},
    )
