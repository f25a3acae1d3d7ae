"""
Tests for the append-only approval history ledger.
"""
from types import SimpleNamespace

import pytest

from app.core.errors import InvalidTransition, StorageError
from app.models.approval_history import ApprovalAction, ApprovalHistoryEntry
from app.models.document import DocumentStatus
from app.models.project import ProjectRole
from app.services.approval_ledger import ApprovalLedger, UserDisplay
from app.services.document_workflow import DocumentWorkflowService, replay_status
from app.services.project_service import ProjectService


@pytest.fixture
def reviewed_document(db, project, members):
    """A step 1 document that was submitted, rejected, resubmitted and approved."""
    author = members[ProjectRole.content_planning]
    reviewer = members[ProjectRole.service_planning]
    author_ctx = ProjectService.resolve_actor_context(db, author, project.id)
    reviewer_ctx = ProjectService.resolve_actor_context(db, reviewer, project.id)

    service = DocumentWorkflowService(db)
    document = service.create_document(project.id, author_ctx, 1, "Service overview", "Draft")
    service.request_approval(document.id, author_ctx)
    service.reject(document.id, reviewer_ctx, "Needs goals")
    service.request_approval(document.id, author_ctx)
    service.approve(document.id, reviewer_ctx)
    return document


class TestLedgerOrdering:
    def test_entries_are_in_write_order(self, db, reviewed_document):
        entries = ApprovalLedger(db).entries(reviewed_document.id)
        assert [(e.previous_status, e.new_status, e.action) for e in entries] == [
            (DocumentStatus.private, DocumentStatus.pending_approval, ApprovalAction.requested),
            (DocumentStatus.pending_approval, DocumentStatus.private, ApprovalAction.rejected),
            (DocumentStatus.private, DocumentStatus.pending_approval, ApprovalAction.requested),
            (DocumentStatus.pending_approval, DocumentStatus.official, ApprovalAction.approved),
        ]

    def test_replay_matches_current_status(self, db, reviewed_document):
        entries = ApprovalLedger(db).entries(reviewed_document.id)
        assert replay_status(entries) == reviewed_document.status == DocumentStatus.official

    def test_replay_of_empty_ledger_is_private(self):
        assert replay_status([]) == DocumentStatus.private

    def test_replay_rejects_gaps(self):
        skipped = SimpleNamespace(
            id=1,
            action=ApprovalAction.approved,
            previous_status=DocumentStatus.pending_approval,
            new_status=DocumentStatus.official,
        )
        with pytest.raises(InvalidTransition):
            replay_status([skipped])

    def test_history_is_empty_for_untouched_document(self, db, project, members):
        author = members[ProjectRole.developer]
        document = DocumentWorkflowService(db).create_document(
            project.id, ProjectService.resolve_actor_context(db, author, project.id), 5, "Stack", "Body"
        )
        assert ApprovalLedger(db).history(document.id) == []


class TestLedgerHistory:
    def test_history_includes_actor_email_and_reason(self, db, reviewed_document, members):
        history = ApprovalLedger(db).history(reviewed_document.id)
        assert [view.user_email for view in history] == [
            "content_planning@test.com",
            "service_planning@test.com",
            "content_planning@test.com",
            "service_planning@test.com",
        ]
        assert history[1].reason == "Needs goals"
        assert history[0].reason is None
        assert history[1].user_name == members[ProjectRole.service_planning].full_name

    def test_history_uses_injected_directory(self, db, reviewed_document):
        class StaticDirectory:
            def lookup(self, user_ids):
                return {user_id: UserDisplay(email=f"user{user_id}@example.com") for user_id in user_ids}

        history = ApprovalLedger(db, StaticDirectory()).history(reviewed_document.id)
        assert all(view.user_email == f"user{view.user_id}@example.com" for view in history)

    def test_unknown_user_has_no_display(self, db, reviewed_document):
        class EmptyDirectory:
            def lookup(self, user_ids):
                return {}

        history = ApprovalLedger(db, EmptyDirectory()).history(reviewed_document.id)
        assert history
        assert all(view.user_email is None for view in history)


class TestLedgerImmutability:
    def test_entries_cannot_be_updated(self, db, reviewed_document):
        entry = db.query(ApprovalHistoryEntry).filter_by(document_id=reviewed_document.id).first()
        entry.reason = "rewritten"
        with pytest.raises(StorageError):
            db.flush()
        db.rollback()
        assert ApprovalLedger(db).entries(reviewed_document.id)[0].reason is None

    def test_entries_cannot_be_deleted(self, db, reviewed_document):
        entry = db.query(ApprovalHistoryEntry).filter_by(document_id=reviewed_document.id).first()
        db.delete(entry)
        with pytest.raises(StorageError):
            db.flush()
        db.rollback()
        assert len(ApprovalLedger(db).entries(reviewed_document.id)) == 4

    def test_repository_refuses_delete(self, db, reviewed_document):
        from app.repositories import ApprovalHistoryRepository

        repo = ApprovalHistoryRepository(db)
        entry = repo.list_for_document(reviewed_document.id)[0]
        with pytest.raises(StorageError):
            repo.delete(entry)
        assert len(repo.list_for_document(reviewed_document.id)) == 4
