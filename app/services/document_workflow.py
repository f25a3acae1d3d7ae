"""
Document Workflow Service - planning document state machine.

Legal transitions:
    private          -> pending_approval   (request approval)
    pending_approval -> official           (approve)
    pending_approval -> private            (reject)

Every transition is one conditional UPDATE guarded by the status the caller
validated against, plus one ledger row, committed together. If another
request moved the document first the UPDATE matches nothing and the caller
gets InvalidTransition instead of a second ledger entry.
"""
import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.ai.prompt_security import UsageContext, screen_input
from app.core.errors import Conflict, Forbidden, InvalidTransition, NotFound, StorageError
from app.models.approval_history import ApprovalAction, ApprovalHistoryEntry
from app.models.document import DocumentStatus, DocumentVersion, PlanningDocument
from app.repositories import DocumentRepository, DocumentVersionRepository
from app.services.approval_ledger import ApprovalHistoryView, ApprovalLedger
from app.services.permission_service import (
    Action,
    ActorContext,
    ResourceType,
    can_approve_document,
    can_edit_document,
    check_permission,
)
from app.utils.validation import validate_content, validate_title, validate_workflow_step

logger = logging.getLogger(__name__)

LEGAL_TRANSITIONS: Mapping[Tuple[DocumentStatus, DocumentStatus], ApprovalAction] = MappingProxyType({
    (DocumentStatus.private, DocumentStatus.pending_approval): ApprovalAction.requested,
    (DocumentStatus.pending_approval, DocumentStatus.official): ApprovalAction.approved,
    (DocumentStatus.pending_approval, DocumentStatus.private): ApprovalAction.rejected,
})


def replay_status(entries: Iterable[ApprovalHistoryEntry]) -> DocumentStatus:
    """
    Replay ledger entries from ``private`` and return the resulting status.

    Raises:
        InvalidTransition: If an entry does not continue from the replayed
            status or is not a legal transition
    """
    status = DocumentStatus.private
    for entry in entries:
        action = LEGAL_TRANSITIONS.get((entry.previous_status, entry.new_status))
        if entry.previous_status != status or action != entry.action:
            raise InvalidTransition(
                status.value,
                entry.new_status.value,
                f"Ledger entry {entry.id} does not follow from status '{status.value}'",
            )
        status = entry.new_status
    return status


def _invalid_transition(current: DocumentStatus, target: DocumentStatus) -> InvalidTransition:
    if current == DocumentStatus.official:
        why = "official documents cannot leave the official status"
    elif target == DocumentStatus.official:
        why = "documents become official only by approving a pending request"
    elif target == DocumentStatus.pending_approval:
        why = "only private documents can be submitted for approval"
    else:
        why = "only documents pending approval can be rejected"
    return InvalidTransition(
        current.value,
        target.value,
        f"Cannot move document from '{current.value}' to '{target.value}': {why}",
    )


class DocumentWorkflowService:
    """Service for planning documents and their approval workflow."""

    def __init__(self, db: Session, ledger: Optional[ApprovalLedger] = None):
        self.db = db
        self.documents = DocumentRepository(db)
        self.versions = DocumentVersionRepository(db)
        self.ledger = ledger or ApprovalLedger(db)

    def get_document_or_404(self, document_id: int) -> PlanningDocument:
        document = self.documents.get_by_id(document_id)
        if not document:
            raise NotFound("Document not found")
        return document

    def _require(self, actor: ActorContext, document: PlanningDocument, action: Action) -> None:
        decision = check_permission(
            actor,
            ResourceType.document,
            action,
            resource_owner_id=document.created_by,
            document_status=document.status,
        )
        if not decision.allowed:
            logger.warning(
                "Denied %s on document %s for user %s: %s",
                action.value, document.id, actor.user_id, decision.reason,
            )
            raise Forbidden(decision.reason, list(decision.required_roles))

    def create_document(
        self,
        project_id: int,
        actor: ActorContext,
        workflow_step: int,
        title: str,
        content: str = "",
    ) -> PlanningDocument:
        """
        Create a private document at version 1 owned by ``actor``.

        Raises:
            Forbidden: If the actor may not create documents in the project
            InvalidInput: If the step, title or content is malformed
            SecurityRisk: If the content is classified critical
        """
        decision = check_permission(actor, ResourceType.document, Action.create)
        if not decision.allowed:
            raise Forbidden(decision.reason)

        validate_workflow_step(workflow_step)
        title = validate_title(title)
        content, warning = screen_input(validate_content(content), UsageContext.document_generation, actor.user_id)

        try:
            document = self.documents.create(
                PlanningDocument(
                    project_id=project_id,
                    workflow_step=workflow_step,
                    title=title,
                    content=content,
                    status=DocumentStatus.private,
                    version=1,
                    created_by=actor.user_id,
                )
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to create document in project %s", project_id, exc_info=True)
            raise StorageError("Failed to create document") from exc

        logger.info(
            "Created document %s (project=%s, step=%s) by user %s",
            document.id, project_id, workflow_step, actor.user_id,
        )
        document.content_warning = warning
        return document

    def get_document(self, document_id: int, actor: ActorContext) -> PlanningDocument:
        document = self.get_document_or_404(document_id)
        self._require(actor, document, Action.read)
        return document

    def list_documents(self, project_id: int, actor: ActorContext) -> List[PlanningDocument]:
        """Documents of a project the actor is allowed to see."""
        return [
            document
            for document in self.documents.list_by_project(project_id)
            if check_permission(
                actor,
                ResourceType.document,
                Action.read,
                resource_owner_id=document.created_by,
                document_status=document.status,
            ).allowed
        ]

    def request_approval(self, document_id: int, actor: ActorContext) -> PlanningDocument:
        """
        Submit a private document for approval.

        Raises:
            InvalidTransition: If the document is not private
            Forbidden: If the actor is neither the author nor an administrator
        """
        document = self.get_document_or_404(document_id)
        if document.status != DocumentStatus.private:
            raise _invalid_transition(document.status, DocumentStatus.pending_approval)

        if document.created_by != actor.user_id and not actor.is_admin:
            logger.warning("User %s tried to submit document %s they do not own", actor.user_id, document.id)
            raise Forbidden("Only the document's author or an administrator can request approval")
        self._require(actor, document, Action.update)

        return self._transition(document, actor, DocumentStatus.pending_approval)

    def approve(self, document_id: int, actor: ActorContext) -> PlanningDocument:
        """
        Approve a pending document.

        Raises:
            InvalidTransition: If the document is not pending approval
            Forbidden: If the actor's role may not approve this workflow step;
                ``required_roles`` lists the roles that could
        """
        document = self.get_document_or_404(document_id)
        self._check_reviewable(document, actor, DocumentStatus.official)
        return self._transition(
            document,
            actor,
            DocumentStatus.official,
            {"approved_by": actor.user_id, "approved_at": datetime.now(timezone.utc)},
        )

    def reject(self, document_id: int, actor: ActorContext, reason: Optional[str] = None) -> PlanningDocument:
        """Send a pending document back to private, clearing the approver."""
        document = self.get_document_or_404(document_id)
        self._check_reviewable(document, actor, DocumentStatus.private)
        reason = reason.strip() if reason else None
        return self._transition(
            document,
            actor,
            DocumentStatus.private,
            {"approved_by": None, "approved_at": None},
            reason=reason or None,
        )

    def _check_reviewable(self, document: PlanningDocument, actor: ActorContext, target: DocumentStatus) -> None:
        if document.status != DocumentStatus.pending_approval:
            raise _invalid_transition(document.status, target)

        decision = can_approve_document(actor, document.workflow_step, document.status)
        if not decision.allowed:
            logger.warning(
                "Denied review of document %s (step %s) for user %s: %s",
                document.id, document.workflow_step, actor.user_id, decision.reason,
            )
            raise Forbidden(decision.reason, list(decision.required_roles))

    def _transition(
        self,
        document: PlanningDocument,
        actor: ActorContext,
        target: DocumentStatus,
        values: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> PlanningDocument:
        previous = document.status
        action = LEGAL_TRANSITIONS.get((previous, target))
        if action is None:
            raise _invalid_transition(previous, target)

        update = {"status": target, "updated_at": datetime.now(timezone.utc)}
        update.update(values or {})

        try:
            updated = self.documents.transition_status(document.id, previous, update)
            if updated == 0:
                self.db.rollback()
                current = self.documents.current_status(document.id)
                if current is None:
                    raise NotFound("Document not found")
                logger.info(
                    "Document %s changed concurrently (%s -> %s) before %s",
                    document.id, previous.value, current.value, action.value,
                )
                raise _invalid_transition(current, target)

            self.ledger.append(
                document_id=document.id,
                actor_id=actor.user_id,
                action=action,
                previous_status=previous,
                new_status=target,
                reason=reason,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to %s document %s", action.value, document.id, exc_info=True)
            raise StorageError("Failed to update document status") from exc

        self.db.refresh(document)
        logger.info(
            "Document %s: %s -> %s (%s by user %s)",
            document.id, previous.value, target.value, action.value, actor.user_id,
        )
        return document

    def update_document(
        self,
        document_id: int,
        actor: ActorContext,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        status: Optional[DocumentStatus] = None,
        expected_version: Optional[int] = None,
    ) -> PlanningDocument:
        """
        Apply a partial update to a document.

        A content change archives the current content under the current
        version number and bumps ``version`` by one. Status is never changed
        by content edits; ``status`` may only be used to submit a private
        document for approval.

        Args:
            document_id: Document ID
            actor: Caller context within the document's project
            title: New title
            content: New content, screened by the prompt security filter
            status: Requested status
            expected_version: Version the caller edited; a mismatch is a conflict

        Raises:
            Forbidden: If the actor may not edit the document
            InvalidTransition: If ``status`` is not reachable by editing
            Conflict: If the document changed since ``expected_version``
        """
        document = self.get_document_or_404(document_id)
        is_owner = document.created_by == actor.user_id

        decision = can_edit_document(actor, is_owner, document.status)
        if not decision.allowed:
            logger.warning("Denied edit of document %s for user %s: %s", document.id, actor.user_id, decision.reason)
            raise Forbidden(decision.reason)

        submit = False
        if status is not None and status != document.status:
            if status == DocumentStatus.pending_approval and document.status == DocumentStatus.private:
                if not is_owner and not actor.is_admin:
                    raise Forbidden("Only the document's author or an administrator can request approval")
                submit = True
            elif status == DocumentStatus.official:
                raise _invalid_transition(document.status, status)
            else:
                raise InvalidTransition(
                    document.status.value,
                    status.value,
                    f"Cannot move document from '{document.status.value}' to '{status.value}' "
                    "by editing it; use the approve or reject operations",
                )

        if expected_version is not None and expected_version != document.version:
            raise Conflict(
                f"Document is at version {document.version}, not {expected_version}; reload and retry"
            )

        changes: Dict[str, Any] = {}
        if title is not None:
            title = validate_title(title)
            if title != document.title:
                changes["title"] = title

        content_changed = False
        warning = None
        if content is not None and content != document.content:
            content, warning = screen_input(
                validate_content(content), UsageContext.document_generation, actor.user_id
            )
            if content != document.content:
                changes["content"] = content
                content_changed = True

        if changes:
            self._apply_edit(document, actor, changes, content_changed)

        if submit:
            document = self.request_approval(document.id, actor)
        document.content_warning = warning
        return document

    def _apply_edit(
        self,
        document: PlanningDocument,
        actor: ActorContext,
        changes: Dict[str, Any],
        content_changed: bool,
    ) -> None:
        current_version = document.version
        values = dict(changes, updated_at=datetime.now(timezone.utc))

        try:
            if content_changed:
                self.versions.create(
                    DocumentVersion(
                        document_id=document.id,
                        version=current_version,
                        content=document.content,
                        created_by=actor.user_id,
                    )
                )
                values["version"] = current_version + 1

            if self.documents.update_at_version(document.id, current_version, values) == 0:
                self.db.rollback()
                raise Conflict("The document was modified by another request; reload and retry")
            self.db.commit()
        except IntegrityError as exc:
            # another edit archived the same version first
            self.db.rollback()
            raise Conflict("The document was modified by another request; reload and retry") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to update document %s", document.id, exc_info=True)
            raise StorageError("Failed to update document") from exc

        self.db.refresh(document)
        logger.info(
            "Updated document %s (%s) by user %s, now version %s",
            document.id, ", ".join(sorted(changes)), actor.user_id, document.version,
        )

    def list_versions(self, document_id: int, actor: ActorContext) -> List[DocumentVersion]:
        document = self.get_document(document_id, actor)
        return self.versions.list_for_document(document.id)

    def get_approval_history(self, document_id: int, actor: ActorContext) -> List[ApprovalHistoryView]:
        document = self.get_document(document_id, actor)
        return self.ledger.history(document.id)

    def list_pending_approvals(self, project_id: int, actor: ActorContext) -> List[PlanningDocument]:
        """Pending documents of a project that ``actor`` is allowed to approve."""
        pending = self.documents.list_by_project(project_id, status=DocumentStatus.pending_approval)
        return [
            document
            for document in pending
            if can_approve_document(actor, document.workflow_step, document.status).allowed
        ]
