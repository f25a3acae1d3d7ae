"""Planning document repositories."""

from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.repositories.base_repository import BaseRepository
from app.models.document import DocumentStatus, DocumentVersion, PlanningDocument


class DocumentRepository(BaseRepository[PlanningDocument]):
    """Repository for planning document operations."""

    def __init__(self, db: Session):
        super().__init__(PlanningDocument, db)

    def list_by_project(
        self, project_id: int, status: Optional[DocumentStatus] = None
    ) -> List[PlanningDocument]:
        """
        Get documents of a project, most recently updated first.

        Args:
            project_id: Project ID
            status: Optional status filter

        Returns:
            List of documents
        """
        query = self.db.query(PlanningDocument).filter(PlanningDocument.project_id == project_id)
        if status:
            query = query.filter(PlanningDocument.status == status)
        return query.order_by(desc(PlanningDocument.updated_at), desc(PlanningDocument.id)).all()

    def current_status(self, document_id: int) -> Optional[DocumentStatus]:
        """Read the committed status straight from the table, bypassing the identity map."""
        return (
            self.db.query(PlanningDocument.status)
            .filter(PlanningDocument.id == document_id)
            .scalar()
        )

    def transition_status(
        self,
        document_id: int,
        expected_status: DocumentStatus,
        values: Dict[str, Any],
    ) -> int:
        """
        Conditionally update a document that is still in ``expected_status``.

        Args:
            document_id: Document ID
            expected_status: Status the caller validated against
            values: Columns to write, including the new status

        Returns:
            Number of rows updated (0 when the status changed concurrently)
        """
        return (
            self.db.query(PlanningDocument)
            .filter(
                PlanningDocument.id == document_id,
                PlanningDocument.status == expected_status,
            )
            .update(values, synchronize_session=False)
        )

    def update_at_version(
        self,
        document_id: int,
        expected_version: int,
        values: Dict[str, Any],
    ) -> int:
        """
        Conditionally update a document that is still at ``expected_version``.

        Returns:
            Number of rows updated (0 when another edit landed first)
        """
        return (
            self.db.query(PlanningDocument)
            .filter(
                PlanningDocument.id == document_id,
                PlanningDocument.version == expected_version,
            )
            .update(values, synchronize_session=False)
        )


class DocumentVersionRepository(BaseRepository[DocumentVersion]):
    """Repository for archived document versions."""

    def __init__(self, db: Session):
        super().__init__(DocumentVersion, db)

    def list_for_document(self, document_id: int) -> List[DocumentVersion]:
        """
        Get archived versions of a document, newest first.

        Args:
            document_id: Document ID

        Returns:
            List of versions
        """
        return (
            self.db.query(DocumentVersion)
            .filter(DocumentVersion.document_id == document_id)
            .order_by(desc(DocumentVersion.version))
            .all()
        )
