"""
Approval history ledger.

Append-only audit trail of document status transitions. The ledger never
commits: the document workflow writes the status change and the ledger row
in one transaction.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.core.errors import StorageError
from app.models.approval_history import ApprovalAction, ApprovalHistoryEntry
from app.models.document import DocumentStatus
from app.repositories import ApprovalHistoryRepository, UserRepository

logger = logging.getLogger(__name__)


@event.listens_for(ApprovalHistoryEntry, "before_update")
def _reject_history_update(mapper, connection, target):
    raise StorageError("Approval history entries are immutable")


@event.listens_for(ApprovalHistoryEntry, "before_delete")
def _reject_history_delete(mapper, connection, target):
    raise StorageError("Approval history entries are immutable")


@dataclass(frozen=True)
class UserDisplay:
    email: str
    full_name: Optional[str] = None


class UserDirectory(Protocol):
    def lookup(self, user_ids: Iterable[int]) -> Dict[int, UserDisplay]:
        ...


class SqlUserDirectory:
    """User directory backed by the users table."""

    def __init__(self, db: Session):
        self._users = UserRepository(db)

    def lookup(self, user_ids: Iterable[int]) -> Dict[int, UserDisplay]:
        users = self._users.get_many(list(set(user_ids)))
        return {user.id: UserDisplay(email=user.email, full_name=user.full_name) for user in users}


@dataclass(frozen=True)
class ApprovalHistoryView:
    id: int
    document_id: int
    user_id: int
    action: ApprovalAction
    previous_status: DocumentStatus
    new_status: DocumentStatus
    reason: Optional[str]
    created_at: datetime
    user_email: Optional[str]
    user_name: Optional[str]


class ApprovalLedger:
    def __init__(self, db: Session, user_directory: Optional[UserDirectory] = None):
        self._repo = ApprovalHistoryRepository(db)
        self._directory = user_directory or SqlUserDirectory(db)

    def append(
        self,
        *,
        document_id: int,
        actor_id: int,
        action: ApprovalAction,
        previous_status: DocumentStatus,
        new_status: DocumentStatus,
        reason: Optional[str] = None,
    ) -> ApprovalHistoryEntry:
        """Write one ledger row in the caller's transaction."""
        entry = self._repo.create(
            ApprovalHistoryEntry(
                document_id=document_id,
                user_id=actor_id,
                action=action,
                previous_status=previous_status,
                new_status=new_status,
                reason=reason,
            )
        )
        logger.debug(
            "Ledger %s: document=%s %s -> %s by user=%s",
            action.value, document_id, previous_status.value, new_status.value, actor_id,
        )
        return entry

    def entries(self, document_id: int) -> List[ApprovalHistoryEntry]:
        return self._repo.list_for_document(document_id)

    def history(self, document_id: int) -> List[ApprovalHistoryView]:
        """Ledger entries oldest first, joined with actor display information."""
        entries = self.entries(document_id)
        users = self._directory.lookup(entry.user_id for entry in entries)
        views = []
        for entry in entries:
            display = users.get(entry.user_id)
            views.append(
                ApprovalHistoryView(
                    id=entry.id,
                    document_id=entry.document_id,
                    user_id=entry.user_id,
                    action=entry.action,
                    previous_status=entry.previous_status,
                    new_status=entry.new_status,
                    reason=entry.reason,
                    created_at=entry.created_at,
                    user_email=display.email if display else None,
                    user_name=display.full_name if display else None,
                )
            )
        return views
