from app.ai.prompt_security.filter import (
    FILTERED_WARNING,
    PromptSecurityFilter,
    PromptSecurityResult,
    check_prompt_security,
    get_prompt_filter,
    log_security_event,
    screen_input,
    screen_text,
    secure_prompt_template,
)
from app.ai.prompt_security.rules import RiskLevel, RuleSet, UsageContext, load_rule_set

__all__ = [
    "FILTERED_WARNING",
    "PromptSecurityFilter",
    "PromptSecurityResult",
    "RiskLevel",
    "RuleSet",
    "UsageContext",
    "check_prompt_security",
    "get_prompt_filter",
    "load_rule_set",
    "log_security_event",
    "screen_input",
    "screen_text",
    "secure_prompt_template",
]
