"""
Who may see which lesson.

A `Viewer` is built per request from the session. Its role selects one
rule from `_RULES`; roles without a rule see nothing. Filtering is pure:
entries are never modified and input order is kept, so filtering an
already filtered list returns it unchanged.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable, Protocol, TypeVar

from diary_schedule.services.collaborators import ScheduleBackend


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    PRINCIPAL = "principal"
    VICE_PRINCIPAL = "vice_principal"
    CLASS_TEACHER = "class_teacher"
    TEACHER = "teacher"
    PARENT = "parent"
    STUDENT = "student"

    @classmethod
    def parse(cls, value: str | None) -> "Role | None":
        try:
            return cls(value)
        except ValueError:
            return None


ADMIN_ROLES = frozenset({Role.SUPER_ADMIN, Role.SCHOOL_ADMIN})
READ_ALL_ROLES = ADMIN_ROLES | {Role.PRINCIPAL, Role.VICE_PRINCIPAL}


@dataclass(frozen=True)
class StudentScope:
    """A student as seen from one class: their membership in its subgroups."""

    student_id: int
    class_id: int | None
    subgroup_ids: frozenset[int] = frozenset()


@dataclass(frozen=True)
class Viewer:
    role: Role | None
    user_id: int
    # student: own class; class teacher: the class they lead
    class_id: int | None = None
    subgroup_ids: frozenset[int] = frozenset()
    children: tuple[StudentScope, ...] = field(default_factory=tuple)


class VisibleEntry(Protocol):
    class_id: int
    teacher_id: int
    subgroup_id: int | None


E = TypeVar("E", bound=VisibleEntry)


def _sees_everything(viewer: Viewer, entry: VisibleEntry) -> bool:
    return True


def _teacher_sees(viewer: Viewer, entry: VisibleEntry) -> bool:
    return entry.teacher_id == viewer.user_id


def _class_teacher_sees(viewer: Viewer, entry: VisibleEntry) -> bool:
    if viewer.class_id is not None and entry.class_id == viewer.class_id:
        return True
    return _teacher_sees(viewer, entry)


def _scope_sees(scope: StudentScope, entry: VisibleEntry) -> bool:
    if scope.class_id is None or entry.class_id != scope.class_id:
        return False
    return entry.subgroup_id is None or entry.subgroup_id in scope.subgroup_ids


def _student_sees(viewer: Viewer, entry: VisibleEntry) -> bool:
    return _scope_sees(StudentScope(viewer.user_id, viewer.class_id, viewer.subgroup_ids), entry)


def _parent_sees(viewer: Viewer, entry: VisibleEntry) -> bool:
    return any(_scope_sees(child, entry) for child in viewer.children)


_RULES: dict[Role, Callable[[Viewer, VisibleEntry], bool]] = {
    Role.SUPER_ADMIN: _sees_everything,
    Role.SCHOOL_ADMIN: _sees_everything,
    Role.PRINCIPAL: _sees_everything,
    Role.VICE_PRINCIPAL: _sees_everything,
    Role.CLASS_TEACHER: _class_teacher_sees,
    Role.TEACHER: _teacher_sees,
    Role.STUDENT: _student_sees,
    Role.PARENT: _parent_sees,
}


def filter_visible(entries: Iterable[E], viewer: Viewer) -> list[E]:
    rule = _RULES.get(viewer.role) if viewer.role is not None else None
    if rule is None:
        return []
    return [entry for entry in entries if rule(viewer, entry)]


async def _student_scope(
    backend: ScheduleBackend,
    student_id: int,
    class_id: int,
    known_class_id: int | None = None,
) -> StudentScope:
    if known_class_id is not None:
        memberships = await backend.get_subgroup_memberships(student_id)
        in_class = known_class_id == class_id
    else:
        memberships, class_ids = await asyncio.gather(
            backend.get_subgroup_memberships(student_id),
            backend.get_student_class_ids(student_id),
        )
        in_class = class_id in class_ids
    if not in_class:
        return StudentScope(student_id, known_class_id)
    return StudentScope(student_id, class_id, frozenset(memberships))


async def scope_viewer(viewer: Viewer, backend: ScheduleBackend, class_id: int) -> Viewer:
    """
    Fill in the subgroup memberships a student or parent viewer needs
    to look at the schedule of `class_id`. Other roles are returned
    unchanged. Call `restrict_to_subgroups` afterwards to drop memberships
    outside the class.
    """
    if viewer.role == Role.STUDENT:
        scope = await _student_scope(backend, viewer.user_id, class_id, viewer.class_id)
        return replace(viewer, class_id=scope.class_id, subgroup_ids=scope.subgroup_ids)

    if viewer.role == Role.PARENT:
        child_ids = await backend.get_linked_children(viewer.user_id)
        children = await asyncio.gather(
            *[_student_scope(backend, child_id, class_id) for child_id in child_ids]
        )
        return replace(viewer, children=tuple(children))

    return viewer


def restrict_to_subgroups(viewer: Viewer, subgroup_ids: frozenset[int]) -> Viewer:
    """Keep only memberships in `subgroup_ids` (the subgroups of one class)."""
    return replace(
        viewer,
        subgroup_ids=viewer.subgroup_ids & subgroup_ids,
        children=tuple(
            replace(child, subgroup_ids=child.subgroup_ids & subgroup_ids)
            for child in viewer.children
        ),
    )
