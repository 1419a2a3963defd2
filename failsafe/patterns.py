"""
Pattern Scanner — Deterministic Line Scanning

Regex families run line by line over raw AI output:
  1. Hallucination phrasing (self-reported actions, checks, discoveries)
  2. Code-block issues (debug statements, markers, credential tokens)
  3. Chat shape (does this look like a conversation at all?)
  4. Suspicious filesystem phrasing (unverified locations and layouts)
  5. Minimal critical claims (the low-latency subset)

A bare claim is suspicious, not proven false. Hallucination and
filesystem phrasing therefore only ever produce warnings; errors are
reserved for credential tokens, unverified emptiness claims and
empty input. Claims contradicted by the real filesystem are handled
by the claim verifier (claims.py).

The scanner never raises on content. A pattern that fails to compile
or to match is logged and skipped; the rest of the family still runs.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from failsafe.config import settings
from failsafe.models import ERROR, WARNING, ValidationItem

logger = logging.getLogger(__name__)


class PatternFamily(str, Enum):
    HALLUCINATION = "hallucination"
    CODE_BLOCK = "code_block"
    CHAT_SHAPE = "chat_shape"
    SUSPICIOUS_FILESYSTEM = "suspicious_filesystem"
    MINIMAL = "minimal"


@dataclass(frozen=True)
class ScanPattern:
    """
    A single line-level detection pattern.

    `indicator` is a regex source; it is compiled once when the
    scanner is built. When `quote_match` is set the matched fragment
    is appended to the message.
    """
    id: str
    indicator: str
    message: str
    category: str
    type: str = "quality"
    severity: str = WARNING
    flags: int = re.IGNORECASE
    quote_match: bool = False


# ============================================================
# HALLUCINATION PHRASING
# ============================================================

HALLUCINATION_PATTERNS: list[ScanPattern] = [
    ScanPattern(
        id="ACTION_CLAIM",
        indicator=(
            r"\bi\s+(?:have|will|can|did|am\s+going\s+to)\s+"
            r"(?:created|modified|updated|added|implemented|fixed|built|developed|generated)\b"
        ),
        message="AI claims to have performed actions that may not be verifiable",
        category="hallucination",
    ),
    ScanPattern(
        id="EXISTENCE_CLAIM",
        indicator=(
            r"\b(?:file|folder|directory|project)\s+"
            r"(?:exists|is\s+present|has\s+been\s+created|was\s+created)\b"
        ),
        message="AI claims about file/folder existence without verification",
        category="hallucination",
    ),
    ScanPattern(
        id="COMPLETION_CLAIM",
        indicator=(
            r"\b(?:successfully(?:\s+completed)?|finished|done|completed)\s+"
            r"(?:creating|modifying|updating|adding|implementing|fixing)\b"
        ),
        message="AI claims task completion without evidence",
        category="hallucination",
    ),
    ScanPattern(
        id="CREATION_CLAIM",
        indicator=(
            r"\b(?:here\s+is|here's|i've\s+created|i\s+created)\s+(?:the|a|an)\s+"
            r"(?:file|code|implementation|solution)\b"
        ),
        message="AI claims to have created files or code without verification",
        category="hallucination",
    ),
    ScanPattern(
        id="FUTURE_PROMISE",
        indicator=(
            r"\b(?:let\s+me|i'll|i\s+will)\s+(?:create|generate|build|implement|develop)\s+"
            r"(?:a|an|the)\b"
        ),
        message="AI promises future actions that may not be completed",
        category="hallucination",
    ),
    ScanPattern(
        id="CAPABILITY_CLAIM",
        indicator=(
            r"\bi\s+(?:can|could|would|might)\s+(?:help|assist|create|generate|build)\b"
        ),
        message="AI makes capability claims without demonstration",
        category="hallucination",
    ),
    ScanPattern(
        id="CONTENT_CLAIM",
        indicator=r"\b(?:the|this)\s+(?:file|code)\s+(?:contains|includes|has|shows)\b",
        message="AI makes claims about file content without verification",
        category="hallucination",
    ),
    ScanPattern(
        id="VERIFICATION_CLAIM",
        indicator=r"\b(?:i\s+have|i've)\s+(?:checked|verified|confirmed|validated|tested)\b",
        message="AI claims to have verified something without evidence",
        category="hallucination",
    ),
    ScanPattern(
        id="PROJECT_CLAIM",
        indicator=r"\b(?:the|this)\s+(?:project|workspace)\s+(?:has|contains|includes)\b",
        message="AI makes claims about project structure without verification",
        category="hallucination",
    ),
    ScanPattern(
        id="DISCOVERY_CLAIM",
        indicator=r"\bi\s+(?:found|discovered|located|identified)\b",
        message="AI claims to have discovered something without evidence",
        category="hallucination",
    ),
]


# ============================================================
# CODE BLOCK CONTENT
# ============================================================

CODE_BLOCK_PATTERNS: list[ScanPattern] = [
    ScanPattern(
        id="DEBUG_STATEMENT",
        indicator=r"console\.(?:log|debug)\(|\bdebugger\b|\bpdb\.set_trace\(|\bbreakpoint\(\)",
        message="Debug code detected - consider removing debug statements",
        category="code_issue",
        flags=0,
    ),
    ScanPattern(
        id="WORK_MARKER",
        indicator=r"\b(?:TODO|FIXME|HACK|XXX)\b",
        message="Code contains TODO/FIXME comments that need attention",
        category="code_issue",
        flags=0,
    ),
    ScanPattern(
        id="SENSITIVE_TOKEN",
        indicator=r"\b(?:password|passwd|secret|api[_-]?key|private[_-]?key|key|token)s?\b",
        message="Potential sensitive information detected in code",
        category="code_issue",
        type="security",
        severity=ERROR,
    ),
]

_FENCE = re.compile(r"^```[\w+#.-]*$")


# ============================================================
# CHAT SHAPE
# ============================================================

CHAT_SHAPE_INDICATORS: dict[str, re.Pattern] = {
    "role_indicator": re.compile(
        r"^(?:user|assistant|system|human|ai|bot|gpt|claude|bard|perplexity|anthropic|openai):",
        re.IGNORECASE,
    ),
    "message_marker": re.compile(r"^[-#>*]\s"),
    "timestamp": re.compile(r"\d{1,2}:\d{2}(?::\d{2})?\s*(?:AM|PM)?", re.IGNORECASE),
    "conversation_flow": re.compile(r"^(?:me:|you:|i\s+said:|you\s+said:)", re.IGNORECASE),
}


# ============================================================
# SUSPICIOUS FILESYSTEM PHRASING
# ============================================================

SUSPICIOUS_FILESYSTEM_PATTERNS: list[ScanPattern] = [
    ScanPattern(
        id="UNVERIFIED_DISCOVERY",
        indicator=(
            r"\b(?:i\s+can\s+see|i\s+can\s+find|i\s+found|i\s+located)\s+"
            r"(?:the|this)\s+(?:file|folder)\b"
        ),
        message="AI claims to have found files without providing evidence",
        category="suspicious_filesystem_pattern",
    ),
    ScanPattern(
        id="ASSUMED_LOCATION",
        indicator=(
            r"\b(?:the|this)\s+(?:file|folder)\s+(?:should\s+be|ought\s+to\s+be|must\s+be)\s+"
            r"(?:at|in|under)\b"
        ),
        message="AI makes assumptions about file locations without verification",
        category="suspicious_filesystem_pattern",
    ),
    ScanPattern(
        id="UNLISTED_BULK_CREATION",
        indicator=(
            r"\b(?:i\s+have|i've)\s+(?:created|made|generated)\s+"
            r"(?:all|several|multiple)\s+(?:the\s+)?(?:files|folders)\b"
        ),
        message="AI claims to have created multiple files without listing them",
        category="suspicious_filesystem_pattern",
    ),
    ScanPattern(
        id="STRUCTURE_CLAIM",
        indicator=(
            r"\b(?:the|this)\s+(?:project|workspace)\s+(?:structure|layout|organization)\s+"
            r"(?:is|looks\s+like|contains)\b"
        ),
        message="AI makes claims about project structure without verification",
        category="suspicious_filesystem_pattern",
    ),
]


# ============================================================
# MINIMAL (LOW-LATENCY) CRITICAL CLAIMS
# ============================================================

MINIMAL_PATTERNS: list[ScanPattern] = [
    ScanPattern(
        id="UNVERIFIED_EMPTINESS",
        indicator=(
            r"\b(?:there\s+are|there\s+is|there\s+were)\s+(?:currently|now)\s+(?:no|missing)\s+"
            r"(?:files?|directories?)\s+(?:in|at)\s+[\w/.-]+"
        ),
        message="File existence claim without verification",
        category="unverified_existence_claim",
        type="hallucination",
        severity=ERROR,
        quote_match=True,
    ),
    ScanPattern(
        id="UNVERIFIED_IMPLEMENTATION",
        indicator=(
            r"\b(?:i\s+have|i've|i\s+just)\s+(?:successfully|properly|correctly|fully)\s+"
            r"(?:implemented|created|added|fixed)\b"
        ),
        message="Unverified implementation claim",
        category="unverified_implementation_claim",
        type="hallucination",
        quote_match=True,
    ),
    ScanPattern(
        id="UNVERIFIED_TESTING",
        indicator=(
            r"\b(?:tested|verified|validated|confirmed)\s+(?:and|that|it)\s+"
            r"(?:works|functions|operates)\b"
        ),
        message="Unverified testing claim",
        category="unverified_testing_claim",
        type="hallucination",
        quote_match=True,
    ),
    ScanPattern(
        id="VAGUE_OFFER",
        indicator=(
            r"\bi\s+can\s+(?:provide|show|list)\s+(?:a|the)\s+(?:list|script|solution)\b"
        ),
        message="Vague offer without specific details",
        category="vague_offer",
        quote_match=True,
    ),
    ScanPattern(
        id="BROAD_NEGATIVE",
        indicator=(
            r"\b(?:all|every|each)\s+(?:files?|components?|modules?)\s+(?:is|are)\s+"
            r"(?:missing|deleted|corrupted)\b"
        ),
        message="Broad negative claim without evidence",
        category="broad_negative_claim",
        quote_match=True,
    ),
]

FAMILY_PATTERNS: dict[PatternFamily, list[ScanPattern]] = {
    PatternFamily.HALLUCINATION: HALLUCINATION_PATTERNS,
    PatternFamily.CODE_BLOCK: CODE_BLOCK_PATTERNS,
    PatternFamily.CHAT_SHAPE: [],
    PatternFamily.SUSPICIOUS_FILESYSTEM: SUSPICIOUS_FILESYSTEM_PATTERNS,
    PatternFamily.MINIMAL: MINIMAL_PATTERNS,
}


def empty_content_item() -> ValidationItem:
    """The single hard error raised for empty or whitespace-only input."""
    return ValidationItem(
        type="hallucination",
        message="Document is empty or contains only whitespace",
        category="empty_content",
        line=1,
        severity=ERROR,
    )


def is_blank(lines: list[str]) -> bool:
    return not any(line.strip() for line in lines)


# ============================================================
# THE SCANNER
# ============================================================

class PatternScanner:
    """
    Runs one pattern family over a list of lines.

    Built-in patterns are module-level constants. Callers may pass
    `extra_patterns` to extend a family; these add detection and
    cannot remove a built-in pattern.
    """

    def __init__(
        self,
        extra_patterns: Optional[dict[PatternFamily, list[ScanPattern]]] = None,
        chat_threshold: Optional[float] = None,
    ):
        self.chat_threshold = (
            settings.CHAT_LIKELIHOOD_THRESHOLD if chat_threshold is None else chat_threshold
        )
        extra_patterns = extra_patterns or {}
        self._compiled: dict[PatternFamily, list[tuple[ScanPattern, re.Pattern]]] = {}
        for family, patterns in FAMILY_PATTERNS.items():
            active = list(patterns) + list(extra_patterns.get(family, []))
            self._compiled[family] = self._compile(active)

    @staticmethod
    def _compile(patterns: list[ScanPattern]) -> list[tuple[ScanPattern, re.Pattern]]:
        compiled = []
        for pattern in patterns:
            try:
                compiled.append((pattern, re.compile(pattern.indicator, pattern.flags)))
            except re.error as e:
                logger.warning(
                    "Skipping pattern %s: %s", pattern.id, e,
                    extra={"pattern_id": pattern.id, "error": str(e)},
                )
        return compiled

    def patterns(self, family: PatternFamily) -> list[ScanPattern]:
        """Return the active (successfully compiled) patterns of a family."""
        return [p for p, _ in self._compiled[PatternFamily(family)]]

    def scan(self, lines: list[str], family: PatternFamily) -> list[ValidationItem]:
        """
        Scan lines with one pattern family.

        Args:
            lines: The document split on newlines.
            family: Which family to run.

        Returns:
            Findings in line order per pattern. Empty or whitespace-only
            input returns exactly one `empty_content` error.
        """
        family = PatternFamily(family)
        if is_blank(lines):
            return [empty_content_item()]

        if family is PatternFamily.CHAT_SHAPE:
            return self._scan_chat_shape(lines)
        if family is PatternFamily.CODE_BLOCK:
            return self._match(self._fenced_lines(lines), self._compiled[family])
        if family is PatternFamily.MINIMAL:
            return self._match(
                list(enumerate(lines, 1)), self._compiled[family], first_only=True,
            )
        return self._match(list(enumerate(lines, 1)), self._compiled[family])

    def _match(
        self,
        numbered: list[tuple[int, str]],
        compiled: list[tuple[ScanPattern, re.Pattern]],
        first_only: bool = False,
    ) -> list[ValidationItem]:
        items: list[ValidationItem] = []
        for pattern, regex in compiled:
            try:
                for line_no, line in numbered:
                    match = regex.search(line)
                    if not match:
                        continue
                    items.append(self._item(pattern, line_no, match.group(0)))
                    if first_only:
                        break
            except Exception as e:
                logger.warning(
                    "Pattern %s failed during scan: %s", pattern.id, e,
                    extra={"pattern_id": pattern.id, "error": str(e)},
                )
        return items

    @staticmethod
    def _item(pattern: ScanPattern, line_no: int, matched: str) -> ValidationItem:
        message = pattern.message
        if pattern.quote_match:
            message = f'{message}: "{matched.strip()}"'
        return ValidationItem(
            type=pattern.type,
            message=message,
            category=pattern.category,
            line=line_no,
            severity=pattern.severity,
        )

    @staticmethod
    def _fenced_lines(lines: list[str]) -> list[tuple[int, str]]:
        """
        Return (line_no, line) pairs inside closed ``` fences.

        An unclosed trailing fence contributes nothing.
        """
        fenced: list[tuple[int, str]] = []
        block: Optional[list[tuple[int, str]]] = None
        for line_no, line in enumerate(lines, 1):
            if _FENCE.match(line.strip()):
                if block is None:
                    block = []
                else:
                    fenced.extend(block)
                    block = None
                continue
            if block is not None:
                block.append((line_no, line))
        return fenced

    # --- Chat shape ---

    def chat_likelihood(self, lines: list[str]) -> float:
        """Fraction of lines carrying at least one chat indicator."""
        if not lines:
            return 0.0
        hits = sum(1 for line in lines if self._chat_indicators(line))
        return hits / len(lines)

    def is_chat_like(self, lines: list[str]) -> bool:
        return self.chat_likelihood(lines) > self.chat_threshold

    @staticmethod
    def _chat_indicators(line: str) -> list[str]:
        trimmed = line.strip()
        return [
            name for name, regex in CHAT_SHAPE_INDICATORS.items()
            if regex.search(trimmed)
        ]

    def chat_indicators(self, lines: Iterable[str]) -> list[str]:
        """Distinct indicator kinds found across the lines."""
        found: list[str] = []
        for line in lines:
            for name in self._chat_indicators(line):
                if name not in found:
                    found.append(name)
        return found

    def _scan_chat_shape(self, lines: list[str]) -> list[ValidationItem]:
        try:
            if self.is_chat_like(lines):
                return []
            found = self.chat_indicators(lines)
        except Exception as e:
            logger.warning("Chat shape detection failed: %s", e, extra={"error": str(e)})
            return []
        seen = ", ".join(found) if found else "none"
        return [ValidationItem(
            type="quality",
            message=(
                "Content does not appear to be chat content "
                f"(chat indicators found: {seen}). "
                "Consider using a different validation method."
            ),
            category="not_chat_content",
            line=1,
            severity=WARNING,
        )]
