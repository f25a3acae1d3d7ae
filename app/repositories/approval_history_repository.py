"""Approval history repository (append-only)."""

from typing import List
from sqlalchemy.orm import Session

from app.core.errors import StorageError
from app.repositories.base_repository import BaseRepository
from app.models.approval_history import ApprovalHistoryEntry


class ApprovalHistoryRepository(BaseRepository[ApprovalHistoryEntry]):
    """Repository for approval ledger rows; rows are only ever inserted."""

    def __init__(self, db: Session):
        super().__init__(ApprovalHistoryEntry, db)

    def delete(self, obj: ApprovalHistoryEntry) -> None:
        raise StorageError("Approval history entries cannot be deleted")

    def list_for_document(self, document_id: int) -> List[ApprovalHistoryEntry]:
        """
        Get ledger entries of a document in the order they were written.

        Args:
            document_id: Document ID

        Returns:
            List of entries, oldest first
        """
        return (
            self.db.query(ApprovalHistoryEntry)
            .filter(ApprovalHistoryEntry.document_id == document_id)
            .order_by(ApprovalHistoryEntry.created_at, ApprovalHistoryEntry.id)
            .all()
        )
