from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from app.db.session import Base
import enum


class DocumentStatus(enum.Enum):
    private = "private"
    pending_approval = "pending_approval"
    official = "official"


class PlanningDocument(Base):
    __tablename__ = "planning_documents"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    workflow_step = Column(Integer, nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.private)
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    approved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("workflow_step BETWEEN 1 AND 9", name="ck_planning_documents_step"),
        # approver columns are set exactly when the document is official
        CheckConstraint(
            "(status = 'official' AND approved_by IS NOT NULL AND approved_at IS NOT NULL)"
            " OR (status != 'official' AND approved_by IS NULL AND approved_at IS NULL)",
            name="ck_planning_documents_approval",
        ),
    )

    # not persisted; set when the last create/edit sanitized the content
    content_warning = None


class DocumentVersion(Base):
    __tablename__ = "document_versions"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("planning_documents.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("document_id", "version", name="unique_document_version"),)
