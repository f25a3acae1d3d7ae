"""
Prompt security check endpoint.

Lets clients pre-check text before submitting it. Matched rule ids are only
returned to administrators so the endpoint cannot be used to map the rule
set.
"""
from fastapi import APIRouter, Depends

from app.ai.prompt_security import check_prompt_security, log_security_event
from app.core.security import get_current_user
from app.models.user import GlobalRole, User
from app.schemas.security import PromptCheckOut, PromptCheckRequest

router = APIRouter()


@router.post("/prompt-check", response_model=PromptCheckOut)
def prompt_check(
    payload: PromptCheckRequest,
    current_user: User = Depends(get_current_user),
):
    result = check_prompt_security(payload.text, payload.usage_context)
    log_security_event(current_user.id, payload.text, result, payload.usage_context)

    if current_user.role != GlobalRole.admin:
        result = result.model_copy(update={"detected_patterns": [], "suspicious_keywords": []})
    return result
