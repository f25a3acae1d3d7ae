"""
Chat Service Module.
Runs one planning assistant exchange: screen the user's text, buffer it,
ask the language model with the conversation so far and buffer the reply.
"""
import logging
from typing import Any, List, Optional, Tuple

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from app.ai.prompt_security import UsageContext, screen_input
from app.core.errors import ExternalServiceError
from app.services.conversation_buffer import ConversationBufferManager, ConversationKey, Turn

logger = logging.getLogger(__name__)

WORKFLOW_STEP_NAMES = {
    1: "Service overview and goals",
    2: "Target user analysis",
    3: "Core feature definition",
    4: "User experience design",
    5: "Technology stack and architecture",
    6: "Development schedule and milestones",
    7: "Risk analysis and mitigation",
    8: "Success metrics and measurement",
    9: "Launch and marketing strategy",
}

SYSTEM_PROMPT = (
    "You are a planning assistant helping a product team write planning documents. "
    "The team is working on workflow step {step}: {step_name}. "
    "Answer concisely and stay within the scope of this step."
)


def build_messages(workflow_step: int, history: List[Turn]) -> List[BaseMessage]:
    messages: List[BaseMessage] = [
        SystemMessage(
            content=SYSTEM_PROMPT.format(
                step=workflow_step,
                step_name=WORKFLOW_STEP_NAMES.get(workflow_step, "Planning"),
            )
        )
    ]
    for turn in history:
        if turn.get("role") == "assistant":
            messages.append(AIMessage(content=turn.get("content", "")))
        else:
            messages.append(HumanMessage(content=turn.get("content", "")))
    return messages


class ChatService:
    """Service for planning assistant exchanges."""

    def __init__(self, manager: ConversationBufferManager, llm: Any):
        self.manager = manager
        self.llm = llm

    def send_message(self, key: ConversationKey, text: str) -> Tuple[Turn, Turn, Optional[str]]:
        """
        Handle one user message.

        Args:
            key: Conversation key (project, workflow step, user)
            text: Raw user text

        Returns:
            (user turn, assistant turn, warning); warning is set when the
            user text was sanitized before use

        Raises:
            SecurityRisk: If the text is classified critical
            ExternalServiceError: If the language model call failed
        """
        screened, warning = screen_input(text, UsageContext.chat, key.user_id)

        user_turn = self.manager.enqueue(key, "user", screened)
        history = self.manager.current_messages(key)

        try:
            response = self.llm.invoke(build_messages(key.workflow_step, history))
        except Exception as exc:
            logger.error("Language model call failed for conversation %s", key, exc_info=True)
            raise ExternalServiceError("The AI service is temporarily unavailable") from exc

        reply = getattr(response, "content", response)
        if not isinstance(reply, str):
            reply = str(reply)

        assistant_turn = self.manager.enqueue(key, "assistant", reply)
        logger.info("Chat exchange for conversation %s (%d chars in, %d out)", key, len(screened), len(reply))
        return user_turn, assistant_turn, warning
