"""AI conversation schemas."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TurnRole(str, Enum):
    user = "user"
    assistant = "assistant"


class TurnCreate(BaseModel):
    role: TurnRole = TurnRole.user
    content: str = Field(..., min_length=1, max_length=20000)


class TurnIn(BaseModel):
    """A turn supplied for a bulk replace; id and timestamp are kept when given."""

    id: Optional[str] = None
    role: TurnRole
    content: str
    timestamp: Optional[str] = None


class TurnOut(BaseModel):
    id: str
    role: TurnRole
    content: str
    timestamp: str


class TurnCreated(TurnOut):
    warning: Optional[str] = None


class ConversationOut(BaseModel):
    project_id: int
    workflow_step: int
    user_id: int
    messages: List[TurnOut]
    pending_messages: int = 0
    warning: Optional[str] = None


class ConversationReplace(BaseModel):
    messages: List[TurnIn]


class ChatMessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)


class ChatReply(BaseModel):
    user_turn: TurnOut
    assistant_turn: TurnOut
    warning: Optional[str] = None


class FlushResult(BaseModel):
    flushed: int


class ConversationStatsOut(BaseModel):
    message_count: int
    user_messages: int
    assistant_messages: int
    pending_messages: int
    last_activity: Optional[str] = None
