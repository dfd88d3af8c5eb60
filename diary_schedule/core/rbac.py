from __future__ import annotations

from typing import Iterable

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from diary_schedule.core.security import verify_token
from diary_schedule.db import get_db
from diary_schedule.models import UserProfile
from diary_schedule.services.visibility import Role, Viewer

# Highest first; used when the profile has no usable active role
ROLE_PRECEDENCE: list[Role] = [
    Role.SUPER_ADMIN,
    Role.SCHOOL_ADMIN,
    Role.PRINCIPAL,
    Role.VICE_PRINCIPAL,
    Role.CLASS_TEACHER,
    Role.TEACHER,
    Role.PARENT,
    Role.STUDENT,
]


def get_roles_from_payload(payload: dict) -> list[str]:
    realm_access = payload.get("realm_access") or {}
    roles = realm_access.get("roles") or []
    # Normalize to strings only
    return [r for r in roles if isinstance(r, str)]


def pick_role(token_roles: Iterable[str], active_role: str | None = None) -> Role | None:
    """
    Choose the role a request acts under: the profile's active role when
    the token grants it, otherwise the highest granted role.
    """
    granted = set(token_roles)
    if active_role in granted:
        return Role.parse(active_role)
    for role in ROLE_PRECEDENCE:
        if role.value in granted:
            return role
    return None


def require_roles(allowed_roles: Iterable[str]):
    """Dependency guarding schedule writes; `super_admin` passes every guard."""
    allowed = {r for r in allowed_roles if isinstance(r, str) and r}
    if not allowed:
        raise ValueError("require_roles() needs at least one role")

    def _guard(payload: dict = Depends(verify_token)) -> dict:
        granted = set(get_roles_from_payload(payload))
        if Role.SUPER_ADMIN.value in granted or granted & allowed:
            return payload
        raise HTTPException(status_code=403, detail="Forbidden")

    return _guard


def get_viewer(
    payload: dict = Depends(verify_token),
    db: Session = Depends(get_db),
) -> Viewer:
    """Build the request's `Viewer` from the token and the user profile."""
    username = payload.get("preferred_username")
    profile = None
    if username:
        profile = db.query(UserProfile).filter(UserProfile.username == username).first()
    if not profile:
        raise HTTPException(status_code=403, detail="No profile for this user")

    return Viewer(
        role=pick_role(get_roles_from_payload(payload), profile.active_role),
        user_id=profile.id,
        class_id=profile.class_id,
    )
