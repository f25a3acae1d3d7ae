"""
Document Versioning Module.
Archived versions and the approval history ledger.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_document_actor
from app.db.session import get_db
from app.schemas.document import ApprovalHistoryOut, DocumentVersionOut
from app.services.document_workflow import DocumentWorkflowService
from app.services.permission_service import ActorContext

router = APIRouter()


@router.get("/documents/{document_id}/versions", response_model=List[DocumentVersionOut])
def read_versions(
    document_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_document_actor),
):
    """Archived versions, newest first."""
    return DocumentWorkflowService(db).list_versions(document_id, actor)


@router.get("/documents/{document_id}/approval-history", response_model=List[ApprovalHistoryOut])
def read_approval_history(
    document_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_document_actor),
):
    """Ledger entries oldest first, with the acting user's email and name."""
    return DocumentWorkflowService(db).get_approval_history(document_id, actor)
