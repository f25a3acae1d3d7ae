"""Shared request dependencies: actor resolution and process-wide collaborators."""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.ai.llm_factory import get_llm
from app.core.errors import NotFound
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.repositories import DocumentRepository
from app.services.conversation_buffer import ConversationBufferManager
from app.services.permission_service import ActorContext
from app.services.project_service import ProjectService


def get_project_actor(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ActorContext:
    return ProjectService.resolve_actor_context(db, current_user, project_id)


def get_document_actor(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ActorContext:
    """Actor context within the project that owns ``document_id``."""
    document = DocumentRepository(db).get_by_id(document_id)
    if not document:
        raise NotFound("Document not found")
    return ProjectService.resolve_actor_context(db, current_user, document.project_id)


def get_conversation_manager(request: Request) -> ConversationBufferManager:
    """The single buffer manager created at startup (see ``app.main.lifespan``)."""
    return request.app.state.conversation_manager


def get_chat_model():
    return get_llm()
