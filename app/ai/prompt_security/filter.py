"""
Prompt Security Filter

Classifies free text before it is sent to the language model or stored as
document content. The filter is advisory: it never raises on user input and
always returns a classification plus a sanitized fallback. Callers decide
what to do with it; ``screen_text`` implements the usual policy (reject
critical, sanitize medium/high, pass low through).
"""
import hashlib
import logging
import re
from functools import lru_cache
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from app.ai.prompt_security.detectors import KEYWORD_CATEGORY, Finding, build_detectors
from app.ai.prompt_security.rules import (
    ContextProfile,
    RiskLevel,
    RuleSet,
    UsageContext,
    load_rule_set,
)
from app.core.errors import SecurityRisk

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HORIZONTAL_WHITESPACE = re.compile(r"[ \t]{3,}")
_BLANK_LINES = re.compile(r"\n{3,}")

FILTERED_WARNING = "Parts of your input were filtered by the content security check."


class PromptSecurityResult(BaseModel):
    is_secure: bool
    risk_level: RiskLevel
    detected_patterns: List[str] = Field(default_factory=list)
    suspicious_keywords: List[str] = Field(default_factory=list)
    sanitized_input: str
    recommendations: List[str] = Field(default_factory=list)


class PromptSecurityFilter:
    def __init__(self, rules: RuleSet):
        self.rules = rules
        self._patterns, self._keywords, self._encoding = build_detectors(rules)

    def check(
        self,
        text: str,
        usage_context: Union[UsageContext, str] = UsageContext.general,
    ) -> PromptSecurityResult:
        """
        Classify ``text`` for one usage context.

        Args:
            text: Untrusted input
            usage_context: Where the text is going; unknown contexts use the
                general profile

        Returns:
            PromptSecurityResult with risk level and sanitized input
        """
        profile = self.rules.profile(_coerce_context(usage_context))
        findings = self._scan(text, profile, depth=0)

        risk = RiskLevel.low
        for finding in findings:
            risk = risk.escalate(finding.risk)

        detected_patterns = _unique(f.rule_id for f in findings if f.category != KEYWORD_CATEGORY)
        suspicious_keywords = _unique(f.rule_id for f in findings if f.category == KEYWORD_CATEGORY)

        return PromptSecurityResult(
            is_secure=risk == RiskLevel.low and not detected_patterns,
            risk_level=risk,
            detected_patterns=detected_patterns,
            suspicious_keywords=suspicious_keywords,
            sanitized_input=self._sanitize(text, findings, profile),
            recommendations=_recommendations(risk, detected_patterns, suspicious_keywords),
        )

    def _scan(self, text: str, profile: ContextProfile, depth: int) -> List[Finding]:
        findings = self._patterns.detect(text, profile.patterns) + self._keywords.detect(text)
        if depth < self.rules.encoding.max_depth:
            findings += self._encoding.detect(text, lambda decoded: self._scan(decoded, profile, depth + 1))
        return [finding for finding in findings if finding.rule_id not in profile.tolerate]

    def _sanitize(self, text: str, findings: List[Finding], profile: ContextProfile) -> str:
        spans = sorted(span for finding in findings for span in finding.spans)
        pieces = []
        cursor = 0
        for start, end in spans:
            if end <= cursor:
                continue
            if start >= cursor:
                pieces.append(text[cursor:start])
                pieces.append(self.rules.placeholder)
            cursor = end
        pieces.append(text[cursor:])
        sanitized = "".join(pieces)

        sanitized = _CONTROL_CHARS.sub("", sanitized)
        if not profile.preserve_whitespace:
            sanitized = _HORIZONTAL_WHITESPACE.sub(" ", sanitized)
            sanitized = _BLANK_LINES.sub("\n\n", sanitized).strip()

        max_length = profile.max_length(self.rules.sanitizer.max_length)
        if max_length is not None and len(sanitized) > max_length:
            sanitized = sanitized[:max_length] + self.rules.sanitizer.truncation_marker
        return sanitized


def _coerce_context(value: Union[UsageContext, str]) -> UsageContext:
    try:
        return UsageContext(value)
    except ValueError:
        logger.warning("Unknown prompt usage context %r, using general rules", value)
        return UsageContext.general


def _unique(values) -> List[str]:
    return list(dict.fromkeys(values))


def _recommendations(risk: RiskLevel, patterns: List[str], keywords: List[str]) -> List[str]:
    # never name the matched rule or echo the input
    recommendations = []
    if patterns:
        recommendations.append("Potentially unsafe instructions were detected in the input.")
        recommendations.append("Review and filter the input before forwarding it.")
    if keywords:
        recommendations.append("The input contains suspicious keywords.")
        recommendations.append("Additional validation may be required.")
    if risk == RiskLevel.critical:
        recommendations.append("The input is likely a prompt injection attempt and should be blocked.")
    return recommendations


@lru_cache(maxsize=1)
def get_prompt_filter() -> PromptSecurityFilter:
    """Process-wide filter built from the configured rule set."""
    return PromptSecurityFilter(load_rule_set())


def check_prompt_security(
    text: str,
    usage_context: Union[UsageContext, str] = UsageContext.general,
) -> PromptSecurityResult:
    return get_prompt_filter().check(text, usage_context)


def input_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def log_security_event(
    user_id: Optional[int],
    text: str,
    result: PromptSecurityResult,
    usage_context: Union[UsageContext, str],
) -> None:
    """Record a non-clean classification without logging the raw input."""
    if result.is_secure and result.risk_level == RiskLevel.low:
        return

    event = {
        "user_id": user_id if user_id is not None else "anonymous",
        "context": getattr(usage_context, "value", usage_context),
        "risk_level": result.risk_level.value,
        "detected_patterns": result.detected_patterns,
        "suspicious_keywords": result.suspicious_keywords,
        "input_length": len(text),
        "input_sha256": input_digest(text),
    }
    if result.risk_level == RiskLevel.critical:
        logger.error("Critical prompt security event: %s", event)
    else:
        logger.warning("Prompt security event: %s", event)


def screen_input(
    text: str,
    usage_context: Union[UsageContext, str],
    user_id: Optional[int] = None,
) -> Tuple[str, Optional[str]]:
    """
    Apply the standard policy to untrusted text.

    Returns:
        (text, warning): the original text and no warning for low risk,
        the sanitized text and FILTERED_WARNING for medium/high

    Raises:
        SecurityRisk: If the text is classified critical
    """
    result = check_prompt_security(text, usage_context)
    log_security_event(user_id, text, result, usage_context)

    if result.risk_level == RiskLevel.critical:
        raise SecurityRisk(result.risk_level.value)
    if result.risk_level == RiskLevel.low:
        return text, None
    return result.sanitized_input, FILTERED_WARNING


def screen_text(
    text: str,
    usage_context: Union[UsageContext, str],
    user_id: Optional[int] = None,
) -> str:
    """Like ``screen_input`` but returns only the text."""
    return screen_input(text, usage_context, user_id)[0]


def secure_prompt_template(
    template: str,
    variables: Dict[str, str],
    usage_context: Union[UsageContext, str] = UsageContext.general,
) -> str:
    """Fill ``{{name}}`` placeholders, substituting sanitized values for unsafe variables."""
    filled = template
    for name, value in variables.items():
        result = check_prompt_security(value, usage_context)
        if not result.is_secure:
            logger.warning("Prompt template variable %r failed the security check (%s)", name, result.risk_level.value)
            value = result.sanitized_input
        filled = filled.replace("{{%s}}" % name, value)
    return filled
