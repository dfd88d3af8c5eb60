from fastapi import APIRouter, Depends
from diary_schedule.core.rbac import get_roles_from_payload, get_viewer
from diary_schedule.core.security import verify_token
from diary_schedule.services.visibility import Viewer

router = APIRouter()

@router.get("/me")
def get_me(payload: dict = Depends(verify_token), viewer: Viewer = Depends(get_viewer)):
    return {
        "username": payload.get("preferred_username"),
        "roles": get_roles_from_payload(payload),
        "email": payload.get("email"),
        "user_id": viewer.user_id,
        "active_role": viewer.role.value if viewer.role else None,
        "class_id": viewer.class_id,
    }
