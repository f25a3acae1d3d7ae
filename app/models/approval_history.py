from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, Text
from sqlalchemy.sql import func
from app.db.session import Base
from app.models.document import DocumentStatus
import enum


class ApprovalAction(enum.Enum):
    requested = "requested"
    approved = "approved"
    rejected = "rejected"


class ApprovalHistoryEntry(Base):
    """One row per status transition. Rows are never updated or deleted."""
    __tablename__ = "document_approval_history"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("planning_documents.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action = Column(Enum(ApprovalAction), nullable=False)
    previous_status = Column(Enum(DocumentStatus), nullable=False)
    new_status = Column(Enum(DocumentStatus), nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
