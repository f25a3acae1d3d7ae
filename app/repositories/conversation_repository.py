"""AI conversation repository."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.orm import Session

from app.repositories.base_repository import BaseRepository
from app.models.conversation import AIConversation


class ConversationRepository(BaseRepository[AIConversation]):
    """Repository for durable conversation history keyed by (project, step, user)."""

    def __init__(self, db: Session):
        super().__init__(AIConversation, db)

    def get_by_key(self, project_id: int, workflow_step: int, user_id: int) -> Optional[AIConversation]:
        return (
            self.db.query(AIConversation)
            .filter(
                AIConversation.project_id == project_id,
                AIConversation.workflow_step == workflow_step,
                AIConversation.user_id == user_id,
            )
            .first()
        )

    def upsert(
        self,
        project_id: int,
        workflow_step: int,
        user_id: int,
        messages: List[Dict[str, Any]],
    ) -> None:
        """
        Insert or overwrite the conversation row in a single statement.

        Args:
            project_id: Project ID
            workflow_step: Workflow step (1-9)
            user_id: Conversation owner
            messages: Serialized turns, oldest first
        """
        now = datetime.now(timezone.utc)
        values = {
            "project_id": project_id,
            "workflow_step": workflow_step,
            "user_id": user_id,
            "messages": messages,
            "updated_at": now,
        }
        dialect = self.db.get_bind().dialect.name
        if dialect == "mysql":
            stmt = mysql.insert(AIConversation).values(**values)
            stmt = stmt.on_duplicate_key_update(messages=stmt.inserted.messages, updated_at=now)
        else:
            insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            stmt = insert(AIConversation).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["project_id", "workflow_step", "user_id"],
                set_={"messages": stmt.excluded.messages, "updated_at": now},
            )
        self.db.execute(stmt)

    def delete_by_key(self, project_id: int, workflow_step: int, user_id: int) -> int:
        return (
            self.db.query(AIConversation)
            .filter(
                AIConversation.project_id == project_id,
                AIConversation.workflow_step == workflow_step,
                AIConversation.user_id == user_id,
            )
            .delete(synchronize_session=False)
        )
