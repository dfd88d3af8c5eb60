"""Unit tests for the schedule read pipeline."""

from datetime import date, time

import pytest

from diary_schedule.core.errors import ScheduleUnavailable, ValidationError
from diary_schedule.services.collaborators import DateRange, ScheduleEntry, SubgroupRef
from diary_schedule.services.schedule import ScheduleResolutionFacade
from diary_schedule.services.time_slots import SlotSource
from diary_schedule.services.visibility import Role, Viewer

pytestmark = pytest.mark.unit

MONDAY = date(2024, 9, 2)
TUESDAY = date(2024, 9, 3)
SUNDAY = date(2024, 9, 8)
WEEK = DateRange(MONDAY, SUNDAY)
ADMIN = Viewer(role=Role.SCHOOL_ADMIN, user_id=1)


def _entry(entry_id, day, slot_number, subgroup_id=None, teacher_id=40, class_id=7):
    return ScheduleEntry(
        id=entry_id,
        class_id=class_id,
        subject_id=3,
        teacher_id=teacher_id,
        schedule_date=day,
        slot_number=slot_number,
        room="12",
        subgroup_id=subgroup_id,
    )


@pytest.fixture
def facade(backend):
    return ScheduleResolutionFacade(backend, timeout=1, subgroup_placeholder="Subgroup")


class TestDateRange:
    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(SUNDAY, MONDAY)

    def test_bounds_inclusive(self):
        assert MONDAY in WEEK and SUNDAY in WEEK
        assert date(2024, 9, 9) not in WEEK


class TestGetSchedule:
    @pytest.mark.asyncio
    async def test_sorted_by_date_then_slot(self, facade, backend):
        backend.entries = [
            _entry(1, TUESDAY, 1),
            _entry(2, MONDAY, 3),
            _entry(3, MONDAY, 1),
        ]

        result = await facade.get_schedule(7, WEEK, ADMIN)

        assert [e.id for e in result] == [3, 2, 1]
        assert [e.day_of_week for e in result] == [1, 1, 2]

    @pytest.mark.asyncio
    async def test_times_follow_overrides(self, facade, backend):
        backend.add_override(7, 1, time(8, 30), time(9, 15))
        backend.entries = [_entry(1, MONDAY, 1), _entry(2, MONDAY, 2)]

        first, second = await facade.get_schedule(7, WEEK, ADMIN)

        assert (first.start_time, first.end_time, first.slot_source) == (
            time(8, 30),
            time(9, 15),
            SlotSource.OVERRIDE,
        )
        assert (second.start_time, second.slot_source) == (time(9, 0), SlotSource.DEFAULT)

    @pytest.mark.asyncio
    async def test_unresolved_slot_kept_and_flagged(self, facade, backend):
        backend.entries = [_entry(1, MONDAY, 8), _entry(2, MONDAY, 1)]

        result = await facade.get_schedule(7, WEEK, ADMIN)

        assert [e.id for e in result] == [2, 1]
        unresolved = result[1]
        assert unresolved.time_unresolved is True
        assert unresolved.start_time is None and unresolved.slot_source is None
        assert result[0].time_unresolved is False

    @pytest.mark.asyncio
    async def test_subgroup_names_and_placeholder(self, facade, backend):
        backend.subgroups[7] = [SubgroupRef(1, "English A")]
        backend.entries = [
            _entry(1, MONDAY, 1, subgroup_id=1),
            _entry(2, MONDAY, 2, subgroup_id=5),
            _entry(3, MONDAY, 3),
        ]

        result = await facade.get_schedule(7, WEEK, ADMIN)

        assert [e.subgroup_name for e in result] == ["English A", "Subgroup", None]

    @pytest.mark.asyncio
    async def test_student_sees_whole_class_lessons_only_outside_subgroup(self, facade, backend):
        backend.subgroups[7] = [SubgroupRef(1, "A"), SubgroupRef(2, "B")]
        backend.memberships[100] = [2]
        backend.entries = [_entry(1, MONDAY, 1), _entry(2, MONDAY, 2, subgroup_id=1)]
        student = Viewer(role=Role.STUDENT, user_id=100, class_id=7)

        result = await facade.get_schedule(7, WEEK, student)

        assert [e.id for e in result] == [1]

    @pytest.mark.asyncio
    async def test_membership_in_other_class_subgroup_ignored(self, facade, backend):
        backend.subgroups[7] = [SubgroupRef(1, "A")]
        backend.subgroups[8] = [SubgroupRef(9, "Z")]
        backend.memberships[100] = [9]
        # an entry pointing at a subgroup of another class
        backend.entries = [_entry(1, MONDAY, 1, subgroup_id=9)]
        student = Viewer(role=Role.STUDENT, user_id=100, class_id=7)

        assert await facade.get_schedule(7, WEEK, student) == []

    @pytest.mark.asyncio
    async def test_parent_sees_union_for_children(self, facade, backend):
        backend.subgroups[7] = [SubgroupRef(1, "A"), SubgroupRef(2, "B")]
        backend.children[200] = [100, 101]
        backend.student_classes = {100: [7], 101: [7]}
        backend.memberships = {100: [1], 101: [2]}
        backend.entries = [
            _entry(1, MONDAY, 1),
            _entry(2, MONDAY, 2, subgroup_id=1),
            _entry(3, MONDAY, 3, subgroup_id=2),
        ]

        result = await facade.get_schedule(7, WEEK, Viewer(role=Role.PARENT, user_id=200))

        assert [e.id for e in result] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_teacher_sees_own_lessons(self, facade, backend):
        backend.entries = [_entry(1, MONDAY, 1, teacher_id=40), _entry(2, MONDAY, 2, teacher_id=41)]

        result = await facade.get_schedule(7, WEEK, Viewer(role=Role.TEACHER, user_id=41))

        assert [e.id for e in result] == [2]

    @pytest.mark.asyncio
    async def test_unknown_role_gets_empty_schedule(self, facade, backend):
        backend.entries = [_entry(1, MONDAY, 1)]
        assert await facade.get_schedule(7, WEEK, Viewer(role=None, user_id=5)) == []


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method",
        [
            "get_schedule_entries",
            "get_default_slots",
            "get_class_overrides",
            "get_subgroups_by_class",
            "get_subgroup_memberships",
        ],
    )
    async def test_any_collaborator_failure_is_unavailable(self, facade, backend, method):
        backend.entries = [_entry(1, MONDAY, 1)]
        backend.fail.add(method)
        student = Viewer(role=Role.STUDENT, user_id=100, class_id=7)

        with pytest.raises(ScheduleUnavailable) as exc_info:
            await facade.get_schedule(7, WEEK, student)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, backend):
        backend.delay = 0.5
        facade = ScheduleResolutionFacade(backend, timeout=0.05)

        with pytest.raises(ScheduleUnavailable):
            await facade.get_schedule(7, WEEK, ADMIN)
