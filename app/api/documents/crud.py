"""
Document CRUD Module.
Create, read and edit planning documents.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_document_actor, get_project_actor
from app.db.session import get_db
from app.schemas.document import DocumentCreate, DocumentOut, DocumentSummaryOut, DocumentUpdate
from app.services.document_workflow import DocumentWorkflowService
from app.services.permission_service import ActorContext

router = APIRouter()


@router.post(
    "/projects/{project_id}/documents",
    response_model=DocumentOut,
    status_code=status.HTTP_201_CREATED,
)
def create_document(
    project_id: int,
    payload: DocumentCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_project_actor),
):
    """Create a private planning document owned by the caller."""
    return DocumentWorkflowService(db).create_document(
        project_id,
        actor,
        workflow_step=payload.workflow_step,
        title=payload.title,
        content=payload.content,
    )


@router.get("/projects/{project_id}/documents", response_model=List[DocumentSummaryOut])
def list_documents(
    project_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_project_actor),
):
    """Documents of the project visible to the caller; other members' private drafts are hidden."""
    return DocumentWorkflowService(db).list_documents(project_id, actor)


@router.get("/documents/{document_id}", response_model=DocumentOut)
def read_document(
    document_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_document_actor),
):
    return DocumentWorkflowService(db).get_document(document_id, actor)


@router.put("/documents/{document_id}", response_model=DocumentOut)
def update_document(
    document_id: int,
    payload: DocumentUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_document_actor),
):
    """
    Edit title and/or content.

    Content changes archive the previous content and bump the version.
    ``status`` may only move a private document to pending_approval;
    approval itself goes through the workflow endpoints.
    """
    return DocumentWorkflowService(db).update_document(
        document_id,
        actor,
        title=payload.title,
        content=payload.content,
        status=payload.status,
        expected_version=payload.expected_version,
    )
