"""Repository layer for database access."""

from app.repositories.user_repository import UserRepository
from app.repositories.project_repository import ProjectRepository, ProjectMemberRepository
from app.repositories.document_repository import DocumentRepository, DocumentVersionRepository
from app.repositories.approval_history_repository import ApprovalHistoryRepository
from app.repositories.conversation_repository import ConversationRepository

__all__ = [
    "UserRepository",
    "ProjectRepository",
    "ProjectMemberRepository",
    "DocumentRepository",
    "DocumentVersionRepository",
    "ApprovalHistoryRepository",
    "ConversationRepository",
]
