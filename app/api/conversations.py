"""
Conversations Module.
Planning assistant conversations per (project, workflow step, user).

Turns go through the process-wide ConversationBufferManager; they are
visible immediately and persisted in batches.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Request, Response, status
from fastapi.responses import PlainTextResponse

from app.ai.prompt_security import FILTERED_WARNING, UsageContext, screen_input
from app.api.deps import get_chat_model, get_conversation_manager, get_project_actor
from app.core.errors import Forbidden
from app.core.rate_limit import CHAT_RATE_LIMIT, limiter
from app.schemas.conversation import (
    ChatMessageCreate,
    ChatReply,
    ConversationOut,
    ConversationReplace,
    ConversationStatsOut,
    FlushResult,
    TurnCreate,
    TurnCreated,
)
from app.services.chat_service import ChatService
from app.services.conversation_buffer import ConversationBufferManager, ConversationKey
from app.services.permission_service import Action, ActorContext, ResourceType, check_permission

logger = logging.getLogger(__name__)

router = APIRouter()


def _authorize(actor: ActorContext, action: Action) -> None:
    decision = check_permission(actor, ResourceType.conversation, action, is_owner=True)
    if not decision.allowed:
        raise Forbidden(decision.reason)


def _background_flush(manager: ConversationBufferManager, key: ConversationKey) -> None:
    try:
        manager.flush(key)
    except Exception as exc:
        # turns stay buffered; the next flush or shutdown retries
        logger.warning("Background flush of conversation %s failed: %s", key, exc)


def _schedule_flush(manager: ConversationBufferManager, key: ConversationKey, tasks: BackgroundTasks) -> None:
    if manager.should_flush(key):
        tasks.add_task(_background_flush, manager, key)


def _conversation(manager: ConversationBufferManager, key: ConversationKey) -> dict:
    return {
        "project_id": key.project_id,
        "workflow_step": key.workflow_step,
        "user_id": key.user_id,
        "messages": manager.current_messages(key),
        "pending_messages": manager.pending_count(key),
    }


@router.get("/{project_id}/{workflow_step}", response_model=ConversationOut)
def read_conversation(
    project_id: int,
    workflow_step: int = Path(..., ge=1, le=9, description="Workflow step (1-9)"),
    actor: ActorContext = Depends(get_project_actor),
    manager: ConversationBufferManager = Depends(get_conversation_manager),
):
    """Durable history followed by turns not yet flushed."""
    _authorize(actor, Action.read)
    return _conversation(manager, ConversationKey(project_id, workflow_step, actor.user_id))


@router.post("/{project_id}/{workflow_step}/turns", response_model=TurnCreated, status_code=status.HTTP_201_CREATED)
def enqueue_turn(
    project_id: int,
    payload: TurnCreate,
    background_tasks: BackgroundTasks,
    workflow_step: int = Path(..., ge=1, le=9, description="Workflow step (1-9)"),
    actor: ActorContext = Depends(get_project_actor),
    manager: ConversationBufferManager = Depends(get_conversation_manager),
):
    """Buffer a client-supplied turn. Every role is screened; the history is replayed to the model."""
    _authorize(actor, Action.create)
    key = ConversationKey(project_id, workflow_step, actor.user_id)

    content, warning = screen_input(payload.content, UsageContext.chat, actor.user_id)

    turn = manager.enqueue(key, payload.role.value, content)
    _schedule_flush(manager, key, background_tasks)
    return {**turn, "warning": warning}


@router.post("/{project_id}/{workflow_step}/messages", response_model=ChatReply)
@limiter.limit(CHAT_RATE_LIMIT)
def send_message(
    request: Request,
    project_id: int,
    payload: ChatMessageCreate,
    background_tasks: BackgroundTasks,
    workflow_step: int = Path(..., ge=1, le=9, description="Workflow step (1-9)"),
    actor: ActorContext = Depends(get_project_actor),
    manager: ConversationBufferManager = Depends(get_conversation_manager),
    llm=Depends(get_chat_model),
):
    """Send a message to the planning assistant and get its reply."""
    _authorize(actor, Action.create)
    key = ConversationKey(project_id, workflow_step, actor.user_id)

    user_turn, assistant_turn, warning = ChatService(manager, llm).send_message(key, payload.content)
    _schedule_flush(manager, key, background_tasks)
    return {"user_turn": user_turn, "assistant_turn": assistant_turn, "warning": warning}


@router.post("/{project_id}/{workflow_step}/flush", response_model=FlushResult)
def flush_conversation(
    project_id: int,
    workflow_step: int = Path(..., ge=1, le=9, description="Workflow step (1-9)"),
    actor: ActorContext = Depends(get_project_actor),
    manager: ConversationBufferManager = Depends(get_conversation_manager),
):
    _authorize(actor, Action.update)
    return {"flushed": manager.flush(ConversationKey(project_id, workflow_step, actor.user_id))}


@router.put("/{project_id}/{workflow_step}", response_model=ConversationOut)
def replace_conversation(
    project_id: int,
    payload: ConversationReplace,
    workflow_step: int = Path(..., ge=1, le=9, description="Workflow step (1-9)"),
    actor: ActorContext = Depends(get_project_actor),
    manager: ConversationBufferManager = Depends(get_conversation_manager),
):
    """
    Overwrite the stored history; anything still buffered is discarded.

    Each turn is screened like a new one; a critical turn rejects the whole
    replacement before anything is written.
    """
    _authorize(actor, Action.update)
    key = ConversationKey(project_id, workflow_step, actor.user_id)

    turns = []
    filtered = False
    for turn in payload.messages:
        data = turn.model_dump(mode="json")
        data["content"], warning = screen_input(data["content"], UsageContext.chat, actor.user_id)
        filtered = filtered or warning is not None
        turns.append(data)

    manager.replace_all(key, turns)
    return {**_conversation(manager, key), "warning": FILTERED_WARNING if filtered else None}


@router.delete("/{project_id}/{workflow_step}", status_code=status.HTTP_204_NO_CONTENT)
def delete_conversation(
    project_id: int,
    workflow_step: int = Path(..., ge=1, le=9, description="Workflow step (1-9)"),
    actor: ActorContext = Depends(get_project_actor),
    manager: ConversationBufferManager = Depends(get_conversation_manager),
):
    _authorize(actor, Action.delete)
    manager.clear(ConversationKey(project_id, workflow_step, actor.user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{project_id}/{workflow_step}/stats", response_model=ConversationStatsOut)
def read_conversation_stats(
    project_id: int,
    workflow_step: int = Path(..., ge=1, le=9, description="Workflow step (1-9)"),
    actor: ActorContext = Depends(get_project_actor),
    manager: ConversationBufferManager = Depends(get_conversation_manager),
):
    _authorize(actor, Action.read)
    return manager.stats(ConversationKey(project_id, workflow_step, actor.user_id))


@router.get("/{project_id}/{workflow_step}/export", response_class=PlainTextResponse)
def export_conversation(
    project_id: int,
    workflow_step: int = Path(..., ge=1, le=9, description="Workflow step (1-9)"),
    actor: ActorContext = Depends(get_project_actor),
    manager: ConversationBufferManager = Depends(get_conversation_manager),
):
    """Markdown transcript of the conversation."""
    _authorize(actor, Action.read)
    key = ConversationKey(project_id, workflow_step, actor.user_id)
    return PlainTextResponse(
        manager.export_markdown(key),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="conversation-{project_id}-step{workflow_step}.md"'},
    )
