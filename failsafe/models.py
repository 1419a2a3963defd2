"""
Models — Call-Scoped Value Objects

Everything the validation pipeline produces or consumes per call:
findings, results, file claims, rules and the final aggregate.
Nothing here is persisted; a new set is built for every call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional


Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# FINDINGS
# ============================================================

ERROR = "error"
WARNING = "warning"


@dataclass
class ValidationItem:
    """A single finding raised during validation."""
    type: str              # "hallucination", "quality", "safety", "security", ...
    message: str
    category: str          # e.g., "filesystem_hallucination", "long_line"
    line: Optional[int] = None
    severity: Optional[str] = None  # "error" | "warning"
    timestamp: datetime = field(default_factory=utcnow)
    file_path: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR


@dataclass
class ValidationResult:
    """
    Findings from one validation pass.

    Validity is derived, never stored: a result is valid exactly
    when it carries no errors.
    """
    errors: list[ValidationItem] = field(default_factory=list)
    warnings: list[ValidationItem] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add(self, item: ValidationItem) -> None:
        """File a finding under errors or warnings by its severity."""
        if item.is_error:
            self.errors.append(item)
        else:
            self.warnings.append(item)

    def extend(self, items: list[ValidationItem]) -> None:
        for item in items:
            self.add(item)

    def merge(self, other: ValidationResult) -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.suggestions.extend(other.suggestions)


# ============================================================
# FILE CLAIMS
# ============================================================

class ClaimType(str, Enum):
    CREATION = "CREATION"
    EXISTENCE = "EXISTENCE"
    MODIFICATION = "MODIFICATION"
    CONTENT = "CONTENT"


@dataclass
class FileClaim:
    """A falsifiable statement about a file, extracted from prose."""
    type: ClaimType
    file_path: str
    line: int
    context: str           # The stripped source line
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class FileStat:
    mtime: float           # Epoch seconds
    size: int


# ============================================================
# RULES
# ============================================================

@dataclass(frozen=True)
class Rule:
    """
    A text rule supplied by an external rule source.

    `response` selects the action taken on a match:
    "block" replaces the text, "warn" and "suggest" append a banner,
    anything else appends an informational banner.
    """
    name: str
    pattern: str
    response: str = "default"
    message: Optional[str] = None
    description: Optional[str] = None
    enabled: bool = True


@dataclass(frozen=True)
class CompiledRule:
    rule: Rule
    regex: re.Pattern


@dataclass(frozen=True)
class InvalidRule:
    rule: Rule
    error: str


@dataclass
class RuleOutcome:
    """Result of applying one or more rules to a text."""
    validated_text: str
    applied_changes: bool = False
    change_log: list[str] = field(default_factory=list)


# ============================================================
# AGGREGATE
# ============================================================

@dataclass
class AggregateValidation:
    """Final output of the orchestrator for one AI response."""
    original_response: str
    validated_response: str
    is_valid: bool
    applied_changes: bool
    change_log: list[str]
    warnings: list[str]
    errors: list[str]
    timestamp: datetime = field(default_factory=utcnow)
    diff_spans: list[dict] = field(default_factory=list)
