from typing import List

from pydantic import BaseModel, Field

from app.ai.prompt_security import RiskLevel, UsageContext


class PromptCheckRequest(BaseModel):
    text: str = Field(..., max_length=200000)
    usage_context: UsageContext = UsageContext.general


class PromptCheckOut(BaseModel):
    is_secure: bool
    risk_level: RiskLevel
    detected_patterns: List[str]
    suspicious_keywords: List[str]
    sanitized_input: str
    recommendations: List[str]
