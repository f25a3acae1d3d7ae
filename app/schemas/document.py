"""Planning document schemas for request/response validation."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.approval_history import ApprovalAction
from app.models.document import DocumentStatus


class DocumentCreate(BaseModel):
    """Schema for creating a planning document."""

    workflow_step: int = Field(..., ge=1, le=9, description="Workflow step (1-9)")
    title: str = Field(..., min_length=1)
    content: str = Field(default="", description="Document body (markdown)")


class DocumentUpdate(BaseModel):
    """Partial update; omitted fields are left untouched."""

    title: Optional[str] = None
    content: Optional[str] = None
    status: Optional[DocumentStatus] = Field(
        None, description="Only private -> pending_approval is accepted here"
    )
    expected_version: Optional[int] = Field(
        None, description="Expected version for optimistic locking"
    )


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000, description="Reason for rejection")


class DocumentOut(BaseModel):
    id: int
    project_id: int
    workflow_step: int
    title: str
    content: str
    status: DocumentStatus
    version: int
    created_by: int
    approved_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    warning: Optional[str] = Field(
        None,
        validation_alias="content_warning",
        description="Set when the submitted content was sanitized before saving",
    )

    class Config:
        from_attributes = True


class DocumentSummaryOut(BaseModel):
    id: int
    project_id: int
    workflow_step: int
    title: str
    status: DocumentStatus
    version: int
    created_by: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentVersionOut(BaseModel):
    id: int
    document_id: int
    version: int
    content: str
    created_by: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApprovalHistoryOut(BaseModel):
    id: int
    document_id: int
    user_id: int
    action: ApprovalAction
    previous_status: DocumentStatus
    new_status: DocumentStatus
    reason: Optional[str] = None
    created_at: datetime
    user_email: Optional[str] = None
    user_name: Optional[str] = None

    class Config:
        from_attributes = True
