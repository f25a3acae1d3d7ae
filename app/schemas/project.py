"""Project membership schemas."""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel

from app.models.project import ProjectRole


class MemberCreate(BaseModel):
    user_id: int
    role: ProjectRole


class MemberOut(BaseModel):
    id: int
    project_id: int
    user_id: int
    role: ProjectRole
    added_by: Optional[int] = None
    added_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectPermissionsOut(BaseModel):
    project_id: int
    project_role: Optional[ProjectRole] = None
    is_project_creator: bool
    permissions: Dict[str, bool]


class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None


class ProjectOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_by: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
