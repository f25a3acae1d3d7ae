"""Project and membership repositories."""

from typing import List, Optional
from sqlalchemy.orm import Session

from app.repositories.base_repository import BaseRepository
from app.models.project import Project, ProjectMember


class ProjectRepository(BaseRepository[Project]):
    """Repository for project operations."""

    def __init__(self, db: Session):
        super().__init__(Project, db)


class ProjectMemberRepository(BaseRepository[ProjectMember]):
    """Repository for project membership operations."""

    def __init__(self, db: Session):
        super().__init__(ProjectMember, db)

    def get_by_project_and_user(self, project_id: int, user_id: int) -> Optional[ProjectMember]:
        """
        Get the membership row of a user in a project.

        Args:
            project_id: Project ID
            user_id: User ID

        Returns:
            ProjectMember or None if the user is not a member
        """
        return (
            self.db.query(ProjectMember)
            .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
            .first()
        )

    def list_for_project(self, project_id: int) -> List[ProjectMember]:
        return (
            self.db.query(ProjectMember)
            .filter(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.added_at, ProjectMember.id)
            .all()
        )
