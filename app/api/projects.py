"""
Projects Module.
Project creation, membership and the caller's effective permissions.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_project_actor
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.project import (
    MemberCreate,
    MemberOut,
    ProjectCreate,
    ProjectOut,
    ProjectPermissionsOut,
)
from app.services.permission_service import ActorContext, get_user_project_permissions
from app.services.project_service import ProjectService

router = APIRouter()


@router.post("/", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a project. Administrators only; the creator gets elevated rights on it."""
    return ProjectService.create_project(db, current_user, payload.name, payload.description)


@router.get("/{project_id}/members", response_model=List[MemberOut])
def list_members(
    project_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_project_actor),
):
    return ProjectService.list_members(db, project_id, actor)


@router.post("/{project_id}/members", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
def add_member(
    project_id: int,
    payload: MemberCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_project_actor),
):
    """Add a user to the project with one role (project creator or administrator)."""
    return ProjectService.add_member(db, project_id, payload.user_id, payload.role, actor)


@router.get("/{project_id}/permissions", response_model=ProjectPermissionsOut)
def read_my_permissions(
    project_id: int,
    actor: ActorContext = Depends(get_project_actor),
):
    return {
        "project_id": project_id,
        "project_role": actor.project_role,
        "is_project_creator": actor.is_project_creator,
        "permissions": get_user_project_permissions(
            actor.global_role, actor.project_role, actor.is_project_creator
        ),
    }
