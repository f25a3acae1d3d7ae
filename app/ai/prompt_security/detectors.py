"""
Composable detectors used by the prompt security filter.

Each detector looks at the raw text and returns ``Finding`` objects. A
finding names the rule that fired, the risk it carries and the spans the
sanitizer should replace. Detectors never decide what to do with the
input; the filter combines their findings into one risk level.
"""
import base64
import binascii
import re
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple
from urllib.parse import unquote

from app.ai.prompt_security.rules import (
    EncodingSettings,
    PatternRule,
    RiskLevel,
    RuleSet,
    StructureLimits,
)

Span = Tuple[int, int]

KEYWORD_CATEGORY = "keyword"

EXCESSIVE_SPECIAL_CHARACTERS = "structure.excessive_special_characters"
EXCESSIVE_LENGTH = "structure.excessive_length"
REPETITIVE_PATTERN = "structure.repetitive_pattern"
BASE64_INJECTION = "encoding.base64_injection"
PERCENT_ENCODED_INJECTION = "encoding.percent_encoded_injection"


@dataclass(frozen=True)
class Finding:
    rule_id: str
    category: str
    risk: RiskLevel
    spans: Tuple[Span, ...] = ()


class PatternDetector:
    """Regular expression library plus structural anomaly checks."""

    def __init__(self, patterns: Sequence[PatternRule], structure: StructureLimits):
        self._rules = [(rule, re.compile(rule.pattern, re.IGNORECASE)) for rule in patterns]
        self._structure = structure
        self._special_run = re.compile(
            f"{structure.special_characters}{{{structure.special_run_length},}}"
        )
        self._repetition = re.compile(
            f"(.{{{structure.repetition_min_unit},{structure.repetition_max_unit}}}?)"
            f"\\1{{{structure.repetition_min_repeats},}}"
        )
        self._compiled_extra = {}

    def _compile(self, rule: PatternRule):
        compiled = self._compiled_extra.get(rule.id)
        if compiled is None:
            compiled = self._compiled_extra[rule.id] = re.compile(rule.pattern, re.IGNORECASE)
        return compiled

    def detect(self, text: str, extra_rules: Sequence[PatternRule] = ()) -> List[Finding]:
        findings = []
        rules = self._rules + [(rule, self._compile(rule)) for rule in extra_rules]
        for rule, regex in rules:
            spans = tuple(match.span() for match in regex.finditer(text) if match.end() > match.start())
            if spans:
                findings.append(Finding(rule.id, rule.category, rule.risk, spans))

        findings.extend(self._structural(text))
        return findings

    def _structural(self, text: str) -> List[Finding]:
        limits = self._structure
        findings = []

        runs = tuple(match.span() for match in self._special_run.finditer(text))
        if runs:
            findings.append(Finding(EXCESSIVE_SPECIAL_CHARACTERS, "structure", limits.risk, runs))

        if len(text) > limits.max_length:
            findings.append(Finding(EXCESSIVE_LENGTH, "structure", limits.risk))

        # backreference search is superlinear; only the head of huge inputs is scanned
        if self._repetition.search(text[: limits.repetition_scan_limit]):
            findings.append(Finding(REPETITIVE_PATTERN, "structure", limits.risk))

        return findings


class KeywordDetector:
    """Case-insensitive substring match against known jailbreak terms."""

    def __init__(self, keywords: Sequence[str], risk: RiskLevel):
        self._keywords = [(keyword, re.compile(re.escape(keyword), re.IGNORECASE)) for keyword in keywords]
        self._risk = risk

    def detect(self, text: str) -> List[Finding]:
        findings = []
        for keyword, regex in self._keywords:
            spans = tuple(match.span() for match in regex.finditer(text))
            if spans:
                findings.append(Finding(keyword, KEYWORD_CATEGORY, self._risk, spans))
        return findings


class EncodingEvasionDetector:
    """
    Decodes base64 and percent-encoded content and re-runs detection on it.

    The ``scan`` callback is the filter's own detection pipeline, so nested
    encodings are unwrapped until the filter stops recursing.
    """

    _base64_chars = "[A-Za-z0-9+/]"
    _percent_token = re.compile(r"\S*%[0-9A-Fa-f]{2}\S*")

    def __init__(self, settings: EncodingSettings):
        self._settings = settings
        self._base64 = re.compile(f"{self._base64_chars}{{{settings.base64_min_length},}}={{0,2}}")

    def detect(self, text: str, scan: Callable[[str], List[Finding]]) -> List[Finding]:
        findings = []

        hits = []
        for match in self._base64.finditer(text):
            decoded = self._decode_base64(match.group())
            if decoded and scan(decoded):
                hits.append(match.span())
        if hits:
            findings.append(Finding(BASE64_INJECTION, "encoding", self._settings.risk, tuple(hits)))

        if "%" in text:
            decoded = unquote(text)
            if decoded != text and scan(decoded):
                spans = tuple(match.span() for match in self._percent_token.finditer(text))
                findings.append(Finding(PERCENT_ENCODED_INJECTION, "encoding", self._settings.risk, spans))

        return findings

    def _decode_base64(self, candidate: str):
        padded = candidate + "=" * (-len(candidate) % 4)
        try:
            decoded = base64.b64decode(padded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return None
        if not decoded:
            return None
        printable = sum(1 for char in decoded if char.isprintable() or char in "\t\n\r")
        if printable / len(decoded) < self._settings.min_printable_ratio:
            return None
        return decoded


def build_detectors(rules: RuleSet):
    return (
        PatternDetector(rules.patterns, rules.structure),
        KeywordDetector(rules.keywords, rules.keyword_risk),
        EncodingEvasionDetector(rules.encoding),
    )
