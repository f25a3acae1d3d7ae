"""
Prompt security rule set.

Rules live in a versioned JSON document so new attack phrasing can be
shipped without a code change. The bundled ``rules/default_rules.json`` is
used unless ``PROMPT_SECURITY_RULES_PATH`` points at a replacement.
"""
import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "rules" / "default_rules.json"


class RiskLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    def escalate(self, other: "RiskLevel") -> "RiskLevel":
        """Return the higher of the two levels; risk never goes down."""
        return other if other.rank > self.rank else self


_RISK_ORDER = [RiskLevel.low, RiskLevel.medium, RiskLevel.high, RiskLevel.critical]


class UsageContext(str, Enum):
    general = "general"
    document_generation = "document_generation"
    chat = "chat"
    analysis = "analysis"
    report_generation = "report_generation"


class PatternRule(BaseModel):
    id: str
    category: str
    pattern: str
    risk: RiskLevel = RiskLevel.critical

    @field_validator("pattern")
    @classmethod
    def pattern_must_compile(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression: {exc}") from exc
        return value


class StructureLimits(BaseModel):
    special_characters: str
    special_run_length: int = 5
    max_length: int = 5000
    repetition_min_unit: int = 10
    repetition_max_unit: int = 200
    repetition_min_repeats: int = 3
    repetition_scan_limit: int = 20000
    risk: RiskLevel = RiskLevel.medium


class EncodingSettings(BaseModel):
    base64_min_length: int = 50
    min_printable_ratio: float = 0.9
    max_depth: int = 2
    risk: RiskLevel = RiskLevel.high


class SanitizerSettings(BaseModel):
    max_length: int = 2000
    truncation_marker: str = "... [TRUNCATED]"


class ContextProfile(BaseModel):
    patterns: List[PatternRule] = Field(default_factory=list)
    tolerate: List[str] = Field(default_factory=list)
    # None disables truncation for the context
    sanitizer_max_length: Optional[int] = -1
    # keep indentation and blank lines, e.g. markdown code blocks
    preserve_whitespace: bool = False

    def max_length(self, default: int) -> Optional[int]:
        if self.sanitizer_max_length is not None and self.sanitizer_max_length < 0:
            return default
        return self.sanitizer_max_length


class RuleSet(BaseModel):
    version: str
    placeholder: str = "[FILTERED]"
    patterns: List[PatternRule]
    keywords: List[str]
    keyword_risk: RiskLevel = RiskLevel.medium
    structure: StructureLimits
    encoding: EncodingSettings = Field(default_factory=EncodingSettings)
    sanitizer: SanitizerSettings = Field(default_factory=SanitizerSettings)
    contexts: Dict[UsageContext, ContextProfile] = Field(default_factory=dict)

    def profile(self, context: UsageContext) -> ContextProfile:
        return self.contexts.get(context) or ContextProfile()


def load_rule_set(path: Optional[str] = None) -> RuleSet:
    """
    Load and validate a rule set.

    Args:
        path: JSON file to read; falls back to ``PROMPT_SECURITY_RULES_PATH``
            and then to the bundled default

    Returns:
        Validated RuleSet

    Raises:
        ValueError: If the file is not a valid rule set
    """
    source = Path(path or settings.PROMPT_SECURITY_RULES_PATH or DEFAULT_RULES_PATH)
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
        rule_set = RuleSet.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        logger.error("Failed to load prompt security rules from %s: %s", source, exc)
        raise ValueError(f"Invalid prompt security rule set: {source}") from exc

    logger.info(
        "Loaded prompt security rules v%s (%d patterns, %d keywords) from %s",
        rule_set.version, len(rule_set.patterns), len(rule_set.keywords), source.name,
    )
    return rule_set
