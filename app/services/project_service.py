"""
Project Service Module.
Resolves the caller's standing inside a project and manages memberships.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, InvalidInput, NotFound, StorageError
from app.models.project import Project, ProjectMember, ProjectRole
from app.models.user import GlobalRole, User
from app.repositories import ProjectMemberRepository, ProjectRepository, UserRepository
from app.services.permission_service import (
    Action,
    ActorContext,
    ResourceType,
    check_permission,
)

logger = logging.getLogger(__name__)


class ProjectService:
    """Service for project lookups and membership management."""

    @staticmethod
    def get_project_or_404(db: Session, project_id: int) -> Project:
        project = ProjectRepository(db).get_by_id(project_id)
        if not project:
            raise NotFound("Project not found")
        return project

    @staticmethod
    def create_project(db: Session, user: User, name: str, description: Optional[str] = None) -> Project:
        """
        Create a project owned by ``user``.

        Raises:
            Forbidden: If the user is not an administrator
            InvalidInput: If the name is empty
        """
        if user.role != GlobalRole.admin:
            raise Forbidden("Only administrators can create projects")
        if not name or not name.strip():
            raise InvalidInput("Project name cannot be empty")

        try:
            project = ProjectRepository(db).create(
                Project(name=name.strip(), description=description, created_by=user.id)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to create project", exc_info=True)
            raise StorageError("Failed to create project") from exc

        logger.info("Project %s created by user %s", project.id, user.id)
        return project

    @staticmethod
    def list_members(db: Session, project_id: int, actor: ActorContext) -> List[ProjectMember]:
        decision = check_permission(actor, ResourceType.member, Action.read)
        if not decision.allowed:
            raise Forbidden(decision.reason)
        return ProjectMemberRepository(db).list_for_project(project_id)

    @staticmethod
    def resolve_actor_context(db: Session, user: User, project_id: int) -> ActorContext:
        """
        Build the actor context of ``user`` for one project.

        Args:
            db: Database session
            user: Authenticated user
            project_id: Project the request targets

        Returns:
            ActorContext with the user's project role and creator flag

        Raises:
            NotFound: If the project does not exist
        """
        project = ProjectService.get_project_or_404(db, project_id)
        member = ProjectMemberRepository(db).get_by_project_and_user(project_id, user.id)
        return ActorContext(
            user_id=user.id,
            global_role=user.role,
            project_role=member.role if member else None,
            is_project_creator=project.created_by == user.id,
        )

    @staticmethod
    def add_member(
        db: Session,
        project_id: int,
        user_id: int,
        role: ProjectRole,
        actor: Optional[ActorContext] = None,
    ) -> ProjectMember:
        """
        Add a user to a project with a single role.

        Raises:
            Forbidden: If ``actor`` may not manage members
            NotFound: If the project or user does not exist
            InvalidInput: If the user is already a member
        """
        if actor is not None:
            decision = check_permission(actor, ResourceType.member, Action.create)
            if not decision.allowed:
                raise Forbidden(decision.reason)

        ProjectService.get_project_or_404(db, project_id)
        if not UserRepository(db).get_by_id(user_id):
            raise NotFound("User not found")

        member_repo = ProjectMemberRepository(db)
        if member_repo.get_by_project_and_user(project_id, user_id):
            raise InvalidInput("User is already a member of this project")

        try:
            member = member_repo.create(
                ProjectMember(
                    project_id=project_id,
                    user_id=user_id,
                    role=role,
                    added_by=actor.user_id if actor else None,
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to add member user=%s project=%s", user_id, project_id, exc_info=True)
            raise StorageError("Failed to add project member") from exc

        logger.info("Added user %s to project %s as %s", user_id, project_id, role.value)
        return member
