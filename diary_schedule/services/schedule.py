"""
Display-ready schedule of a class for one viewer.

`ScheduleResolutionFacade.get_schedule` is the only read path used by the
HTTP layer. It either returns the complete schedule or raises
`ScheduleUnavailable`; it never returns a partially resolved one.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, time

from diary_schedule.core.config import settings
from diary_schedule.core.errors import NotFound, ScheduleUnavailable
from diary_schedule.services.calendar import day_of_week
from diary_schedule.services.collaborators import (
    DateRange,
    ScheduleBackend,
    ScheduleEntry,
    SubgroupRef,
)
from diary_schedule.services.time_slots import (
    EffectiveSlotListing,
    SlotSource,
    TimeSlotRegistry,
)
from diary_schedule.services.visibility import (
    Viewer,
    filter_visible,
    restrict_to_subgroups,
    scope_viewer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DisplayEntry:
    id: int
    class_id: int
    subject_id: int
    teacher_id: int
    schedule_date: date
    day_of_week: int
    slot_number: int
    start_time: time | None
    end_time: time | None
    slot_source: SlotSource | None
    time_unresolved: bool
    room: str | None = None
    subgroup_id: int | None = None
    subgroup_name: str | None = None


def build_display_entry(
    entry: ScheduleEntry,
    slots: EffectiveSlotListing,
    subgroup_names: dict[int, str],
    placeholder: str,
) -> DisplayEntry:
    try:
        slot = slots.resolve(entry.slot_number)
    except NotFound:
        slot = None

    subgroup_name = None
    if entry.subgroup_id is not None:
        subgroup_name = subgroup_names.get(entry.subgroup_id, placeholder)

    return DisplayEntry(
        id=entry.id,
        class_id=entry.class_id,
        subject_id=entry.subject_id,
        teacher_id=entry.teacher_id,
        schedule_date=entry.schedule_date,
        day_of_week=day_of_week(entry.schedule_date),
        slot_number=entry.slot_number,
        start_time=slot.start_time if slot else None,
        end_time=slot.end_time if slot else None,
        slot_source=slot.source if slot else None,
        time_unresolved=slot is None,
        room=entry.room,
        subgroup_id=entry.subgroup_id,
        subgroup_name=subgroup_name,
    )


class ScheduleResolutionFacade:
    def __init__(
        self,
        backend: ScheduleBackend,
        *,
        timeout: float | None = None,
        subgroup_placeholder: str | None = None,
    ):
        self.backend = backend
        self.registry = TimeSlotRegistry(backend)
        self.timeout = settings.SCHEDULE_FETCH_TIMEOUT if timeout is None else timeout
        self.subgroup_placeholder = (
            settings.SUBGROUP_PLACEHOLDER if subgroup_placeholder is None else subgroup_placeholder
        )

    async def _fetch(
        self, class_id: int, date_range: DateRange, viewer: Viewer
    ) -> tuple[list[ScheduleEntry], EffectiveSlotListing, list[SubgroupRef], Viewer]:
        entries, slots, subgroups, scoped = await asyncio.gather(
            self.backend.get_schedule_entries(class_id, date_range),
            self.registry.snapshot(class_id),
            self.backend.get_subgroups_by_class(class_id),
            scope_viewer(viewer, self.backend, class_id),
        )
        return entries, slots, subgroups, scoped

    async def get_schedule(
        self, class_id: int, date_range: DateRange, viewer: Viewer
    ) -> list[DisplayEntry]:
        try:
            entries, slots, subgroups, scoped = await asyncio.wait_for(
                self._fetch(class_id, date_range, viewer), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            logger.error("Schedule of class %s timed out after %ss", class_id, self.timeout)
            raise ScheduleUnavailable(f"Schedule of class {class_id} timed out") from exc
        except Exception as exc:
            logger.exception("Schedule of class %s could not be loaded", class_id)
            raise ScheduleUnavailable(f"Schedule of class {class_id} is unavailable") from exc

        subgroup_names = {sg.id: sg.name for sg in subgroups}
        scoped = restrict_to_subgroups(scoped, frozenset(subgroup_names))

        display = [
            build_display_entry(entry, slots, subgroup_names, self.subgroup_placeholder)
            for entry in entries
        ]
        for item in display:
            if item.time_unresolved:
                logger.warning(
                    "Lesson %s of class %s uses undefined slot %s",
                    item.id,
                    class_id,
                    item.slot_number,
                )

        visible = filter_visible(display, scoped)
        return sorted(visible, key=lambda e: (e.schedule_date, e.slot_number))
