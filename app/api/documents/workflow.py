"""
Document Workflow Module.
Approval requests, approvals, rejections and the approval queue.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_document_actor, get_project_actor
from app.db.session import get_db
from app.schemas.document import DocumentOut, DocumentSummaryOut, RejectRequest
from app.services.document_workflow import DocumentWorkflowService
from app.services.permission_service import ActorContext

router = APIRouter()


@router.get(
    "/projects/{project_id}/documents/pending-approvals",
    response_model=List[DocumentSummaryOut],
)
def read_pending_approvals(
    project_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_project_actor),
):
    """Pending documents in the project that the caller's role may approve."""
    return DocumentWorkflowService(db).list_pending_approvals(project_id, actor)


@router.post("/documents/{document_id}/request-approval", response_model=DocumentOut)
def request_approval(
    document_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_document_actor),
):
    return DocumentWorkflowService(db).request_approval(document_id, actor)


@router.post("/documents/{document_id}/approve", response_model=DocumentOut)
def approve_document(
    document_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_document_actor),
):
    """
    Approve a pending document.

    Only the roles configured for the document's workflow step (or the
    project creator, or an administrator) may approve; a 403 response lists
    the roles that could.
    """
    return DocumentWorkflowService(db).approve(document_id, actor)


@router.post("/documents/{document_id}/reject", response_model=DocumentOut)
def reject_document(
    document_id: int,
    payload: Optional[RejectRequest] = None,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_document_actor),
):
    return DocumentWorkflowService(db).reject(document_id, actor, payload.reason if payload else None)
