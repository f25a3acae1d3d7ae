"""
Conversation Buffer Manager

Chat turns are written to an in-memory buffer per (project, workflow step,
user) and persisted in batches. One manager is created at application
startup and shared by every request; see ``app.main``.

Flush protocol per key:
1. Under the manager lock, move the pending turns into ``in_flight``.
   Turns enqueued from now on land in a fresh pending list.
2. Read durable history, append the in-flight turns that are not already
   there, keep the newest ``max_messages`` and upsert the result.
3. On success drop ``in_flight``. On failure put the in-flight turns back
   in front of anything enqueued meanwhile and re-raise.

Readers see durable + in-flight + pending, deduplicated by turn id, so a
turn is visible from the moment it is enqueued until long after it is
durable, and never twice.
"""
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InvalidInput, StorageError
from app.repositories import ConversationRepository

logger = logging.getLogger(__name__)

Turn = Dict[str, str]

TURN_ROLES = ("user", "assistant")


@dataclass(frozen=True)
class ConversationKey:
    project_id: int
    workflow_step: int
    user_id: int

    def __str__(self) -> str:
        return f"{self.project_id}:{self.workflow_step}:{self.user_id}"


class ConversationStore(Protocol):
    def load(self, key: ConversationKey) -> List[Turn]:
        ...

    def save(self, key: ConversationKey, turns: List[Turn]) -> None:
        ...

    def delete(self, key: ConversationKey) -> None:
        ...


class SqlConversationStore:
    """
    Durable conversation history in the ``ai_conversations`` table.

    Each call uses its own short-lived session so flushes can run outside
    the request that triggered them (background tasks, shutdown).
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load(self, key: ConversationKey) -> List[Turn]:
        db = self._session_factory()
        try:
            row = ConversationRepository(db).get_by_key(key.project_id, key.workflow_step, key.user_id)
            return list(row.messages or []) if row else []
        except SQLAlchemyError as exc:
            logger.error("Failed to load conversation %s", key, exc_info=True)
            raise StorageError("Failed to load conversation") from exc
        finally:
            db.close()

    def save(self, key: ConversationKey, turns: List[Turn]) -> None:
        db = self._session_factory()
        try:
            ConversationRepository(db).upsert(key.project_id, key.workflow_step, key.user_id, turns)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to save conversation %s", key, exc_info=True)
            raise StorageError("Failed to save conversation") from exc
        finally:
            db.close()

    def delete(self, key: ConversationKey) -> None:
        db = self._session_factory()
        try:
            ConversationRepository(db).delete_by_key(key.project_id, key.workflow_step, key.user_id)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to delete conversation %s", key, exc_info=True)
            raise StorageError("Failed to delete conversation") from exc
        finally:
            db.close()


@dataclass
class _Buffer:
    pending: List[Turn] = field(default_factory=list)
    in_flight: List[Turn] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.pending and not self.in_flight


def make_turn(role: str, content: str, turn_id: Optional[str] = None, timestamp: Optional[str] = None) -> Turn:
    if role not in TURN_ROLES:
        raise InvalidInput(f"Turn role must be one of: {', '.join(TURN_ROLES)}")
    return {
        "id": turn_id or uuid.uuid4().hex,
        "role": role,
        "content": content,
        "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
    }


def _merge(*sequences: List[Turn]) -> List[Turn]:
    seen = set()
    merged = []
    for turns in sequences:
        for turn in turns:
            turn_id = turn.get("id")
            if turn_id is not None:
                if turn_id in seen:
                    continue
                seen.add(turn_id)
            merged.append(turn)
    return merged


class ConversationBufferManager:
    """
    Buffers chat turns in memory and flushes them to a ConversationStore.

    The manager lock only guards the buffer dictionary and is never held
    across store I/O. Flush, replace_all and clear take a flush lock picked
    from a fixed pool by the key's hash, so they are serialized per key
    while memory stays bounded; enqueue never waits for it.
    """

    def __init__(
        self,
        store: ConversationStore,
        max_messages: int = 100,
        flush_threshold: int = 10,
        flush_lock_pool: int = 64,
    ):
        if max_messages < 1:
            raise ValueError("max_messages must be positive")
        if flush_lock_pool < 1:
            raise ValueError("flush_lock_pool must be positive")
        self.store = store
        self.max_messages = max_messages
        self.flush_threshold = flush_threshold
        self._lock = threading.Lock()
        self._buffers: Dict[ConversationKey, _Buffer] = {}
        self._flush_locks: List[threading.Lock] = [threading.Lock() for _ in range(flush_lock_pool)]

    def _flush_lock(self, key: ConversationKey) -> threading.Lock:
        # keys sharing a lock only wait on each other; flush never nests locks
        return self._flush_locks[hash(key) % len(self._flush_locks)]

    def enqueue(self, key: ConversationKey, role: str, content: str) -> Turn:
        """Buffer one turn with a server-assigned id and timestamp. No storage I/O."""
        turn = make_turn(role, content)
        with self._lock:
            self._buffers.setdefault(key, _Buffer()).pending.append(turn)
        return dict(turn)

    def pending_count(self, key: ConversationKey) -> int:
        with self._lock:
            buffer = self._buffers.get(key)
            return len(buffer.pending) if buffer else 0

    def should_flush(self, key: ConversationKey) -> bool:
        return self.flush_threshold > 0 and self.pending_count(key) >= self.flush_threshold

    def buffered_keys(self) -> List[ConversationKey]:
        with self._lock:
            return [key for key, buffer in self._buffers.items() if buffer.pending]

    def current_messages(self, key: ConversationKey) -> List[Turn]:
        """Durable history followed by buffered turns, oldest first."""
        with self._lock:
            buffer = self._buffers.get(key)
            buffered = list(buffer.in_flight) + list(buffer.pending) if buffer else []
        durable = self.store.load(key)
        return [dict(turn) for turn in _merge(durable, buffered)]

    def flush(self, key: ConversationKey) -> int:
        """
        Persist buffered turns for ``key``.

        Returns:
            Number of turns flushed (0 when nothing was buffered)

        Raises:
            StorageError: If the store failed; the turns stay buffered
        """
        with self._flush_lock(key):
            with self._lock:
                buffer = self._buffers.get(key)
                if not buffer or not buffer.pending:
                    return 0
                captured = buffer.pending
                buffer.pending = []
                buffer.in_flight = captured

            try:
                durable = self.store.load(key)
                merged = _merge(durable, captured)[-self.max_messages:]
                self.store.save(key, merged)
            except Exception:
                with self._lock:
                    buffer = self._buffers.setdefault(key, _Buffer())
                    buffer.pending = captured + buffer.pending
                    buffer.in_flight = []
                logger.warning("Flush of conversation %s failed; %d turns kept buffered", key, len(captured))
                raise

            with self._lock:
                buffer = self._buffers.get(key)
                if buffer is not None:
                    buffer.in_flight = []
                    if buffer.is_empty():
                        del self._buffers[key]

        logger.debug("Flushed %d turns for conversation %s", len(captured), key)
        return len(captured)

    def flush_all(self) -> Dict[ConversationKey, Exception]:
        """Flush every buffered key; failures are logged and returned, not raised."""
        failures = {}
        for key in self.buffered_keys():
            try:
                self.flush(key)
            except Exception as exc:
                logger.error("Failed to flush conversation %s: %s", key, exc)
                failures[key] = exc
        return failures

    def replace_all(self, key: ConversationKey, turns: List[Turn]) -> List[Turn]:
        """Overwrite durable history and drop anything still buffered for ``key``."""
        normalized = [
            make_turn(turn["role"], turn["content"], turn.get("id"), turn.get("timestamp"))
            for turn in turns
        ][-self.max_messages:]
        with self._flush_lock(key):
            self.store.save(key, normalized)
            with self._lock:
                self._buffers.pop(key, None)
        logger.info("Replaced conversation %s with %d turns", key, len(normalized))
        return normalized

    def clear(self, key: ConversationKey) -> None:
        with self._flush_lock(key):
            self.store.delete(key)
            with self._lock:
                self._buffers.pop(key, None)
        logger.info("Cleared conversation %s", key)

    def stats(self, key: ConversationKey) -> Dict[str, object]:
        messages = self.current_messages(key)
        return {
            "message_count": len(messages),
            "user_messages": sum(1 for turn in messages if turn.get("role") == "user"),
            "assistant_messages": sum(1 for turn in messages if turn.get("role") == "assistant"),
            "pending_messages": self.pending_count(key),
            "last_activity": messages[-1].get("timestamp") if messages else None,
        }

    def export_markdown(self, key: ConversationKey) -> str:
        messages = self.current_messages(key)
        lines = [
            "# Conversation",
            "",
            f"- Project: {key.project_id}",
            f"- Workflow step: {key.workflow_step}",
            f"- Messages: {len(messages)}",
            "",
        ]
        for turn in messages:
            speaker = "User" if turn.get("role") == "user" else "Assistant"
            lines.append(f"## {speaker} ({turn.get('timestamp', '')})")
            lines.append("")
            lines.append(turn.get("content", ""))
            lines.append("")
        return "\n".join(lines)
