"""
Tech Debt Analyzer — Heuristic Code-Quality Passes

Runs over fenced code blocks found in AI output:

  1. Complexity       (brace depth, via a ComplexityEstimator)
  2. Code smells      (markers, magic numbers, long lines, debug code)
  3. Maintainability  (comment ratio)
  4. Performance      (DOM writes, eval, unpaired listeners)
  5. Security debt    (interpolated SQL/HTML, hardcoded secrets)

plus whole-document structure checks (size, indentation drift).

There is no parser here. Brace counting and line regexes stand in
for one, so findings are hints: everything is a warning except
security debt, which is an error. Passes are concatenated and never
short-circuit each other.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from failsafe.config import settings
from failsafe.models import ERROR, WARNING, ValidationItem, ValidationResult

logger = logging.getLogger(__name__)

CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")

COMMENT_PREFIXES = ("//", "/*", "*", "#")

_MARKER = re.compile(r"\b(TODO|FIXME|HACK)\b")
_MAGIC_NUMBER = re.compile(r"\b\d{3,}\b")
_DEAD_CODE = re.compile(r"console\.log|\bdebugger\b")
_DOM_WRITE = re.compile(r"\.(?:innerHTML|outerHTML)\b|document\.write\(|insertAdjacentHTML\(")
_EVAL = re.compile(r"\beval\(|\bFunction\(")
_INTERPOLATION = re.compile(r"\$\{|[\"'`]\s*\+\s*\w|\w\s*\+\s*[\"'`]|\bf[\"']|\.format\(")
_SQL = re.compile(r"\b(?:SELECT|INSERT\s+INTO|UPDATE|DELETE\s+FROM)\b")
_SECRET_ASSIGNMENT = re.compile(
    r"\b\w*(?:password|passwd|secret|api_?key|key|token)\w*\b\s*[:=]\s*[\"'][^\"']+[\"']",
    re.IGNORECASE,
)


@dataclass
class CodeBlock:
    """A fenced block with its fence lines removed."""
    start_line: int        # Document line number of the first body line
    lines: list[str]


def extract_code_blocks(text: str) -> list[CodeBlock]:
    """
    Non-greedy ``` ... ``` extraction. The opening fence line (with any
    language tag) and the closing fence are dropped.
    """
    blocks = []
    for match in CODE_BLOCK_RE.finditer(text):
        fence_line = text.count("\n", 0, match.start()) + 1
        raw = match.group(0)[3:-3]
        body = raw.split("\n")
        # First element is the rest of the opening fence line (language tag)
        body = body[1:] if len(body) > 1 else []
        if body and not body[-1].strip():
            body = body[:-1]
        blocks.append(CodeBlock(start_line=fence_line + 1, lines=body))
    return blocks


def is_comment(line: str) -> bool:
    return line.strip().startswith(COMMENT_PREFIXES)


def _warning(type_: str, message: str, category: str, line: int) -> ValidationItem:
    return ValidationItem(type=type_, message=message, category=category,
                          line=line, severity=WARNING)


# ============================================================
# COMPLEXITY
# ============================================================

class ComplexityEstimator(ABC):
    """Strategy for structural complexity findings on one code block."""

    @abstractmethod
    def estimate(self, lines: list[str], first_line: int = 1) -> list[ValidationItem]:
        ...


class HeuristicComplexityEstimator(ComplexityEstimator):
    """
    Brace-depth estimator.

    A line with `{` and no `}` opens a level; `}` and no `{` closes
    one. Depth never goes below zero.
    """

    def __init__(
        self,
        long_function_lines: Optional[int] = None,
        max_nesting: int = 4,
        max_depth: int = 5,
    ):
        self.long_function_lines = (
            settings.LONG_FUNCTION_LINES if long_function_lines is None else long_function_lines
        )
        self.max_nesting = max_nesting
        self.max_depth = max_depth

    def estimate(self, lines: list[str], first_line: int = 1) -> list[ValidationItem]:
        items: list[ValidationItem] = []
        depth = 0
        deepest = 0
        body_lines = 0

        for offset, raw in enumerate(lines):
            line_no = first_line + offset
            line = raw.strip()

            if "{" in line and "}" not in line:
                depth += 1
                deepest = max(deepest, depth)
            elif "}" in line and "{" not in line and depth > 0:
                depth -= 1
                if depth == 0:
                    if body_lines > self.long_function_lines:
                        items.append(_warning(
                            "maintainability",
                            f"Long function detected ({body_lines} lines). "
                            "Consider breaking it into smaller functions.",
                            "long_function", line_no,
                        ))
                    body_lines = 0

            if depth > 0:
                body_lines += 1

            if depth > self.max_nesting:
                items.append(_warning(
                    "maintainability",
                    f"Deep nesting detected (depth: {depth}). "
                    "Consider refactoring to reduce complexity.",
                    "deep_nesting", line_no,
                ))

        if deepest > self.max_depth:
            items.append(_warning(
                "maintainability",
                "High cyclomatic complexity detected. Consider simplifying the code structure.",
                "high_complexity", first_line,
            ))
        return items


# ============================================================
# THE ANALYZER
# ============================================================

class TechDebtAnalyzer:
    """Runs every tech-debt pass over the code blocks of a document."""

    def __init__(
        self,
        estimator: Optional[ComplexityEstimator] = None,
        long_line_chars: Optional[int] = None,
        large_file_lines: Optional[int] = None,
        low_comment_ratio: float = 0.1,
        high_comment_ratio: float = 0.5,
        max_indentation_breaks: int = 5,
    ):
        self.estimator = estimator or HeuristicComplexityEstimator()
        self.long_line_chars = settings.LONG_LINE_CHARS if long_line_chars is None else long_line_chars
        self.large_file_lines = (
            settings.LARGE_FILE_LINES if large_file_lines is None else large_file_lines
        )
        self.low_comment_ratio = low_comment_ratio
        self.high_comment_ratio = high_comment_ratio
        self.max_indentation_breaks = max_indentation_breaks

    def analyze(self, text: str) -> ValidationResult:
        """
        Analyze every fenced block, then the whole document's structure.
        Line numbers are document line numbers.
        """
        result = ValidationResult()
        for block in extract_code_blocks(text):
            result.merge(self.analyze_code(block.lines, block.start_line))
        result.extend(self.check_file_structure(text.split("\n")))
        return result

    def analyze_code(self, lines: list[str], first_line: int = 1) -> ValidationResult:
        result = ValidationResult()
        result.extend(self.estimator.estimate(lines, first_line))
        result.extend(self.detect_code_smells(lines, first_line))
        result.extend(self.check_maintainability(lines, first_line))
        result.extend(self.check_performance(lines, first_line))
        result.extend(self.check_security_debt(lines, first_line))
        return result

    # --- Passes ---

    def detect_code_smells(self, lines: list[str], first_line: int = 1) -> list[ValidationItem]:
        items = []
        for offset, line in enumerate(lines):
            line_no = first_line + offset

            marker = _MARKER.search(line)
            if marker:
                items.append(_warning(
                    "quality",
                    f"Code smell: {marker.group(1)} comment indicates technical debt",
                    "code_smell", line_no,
                ))
            if _MAGIC_NUMBER.search(line) and not is_comment(line) and "//" not in line:
                items.append(_warning(
                    "maintainability",
                    "Magic number detected. Consider using named constants.",
                    "magic_number", line_no,
                ))
            if len(line) > self.long_line_chars:
                items.append(_warning(
                    "style",
                    f"Long line detected ({len(line)} characters). "
                    "Consider breaking it into multiple lines.",
                    "long_line", line_no,
                ))
            if _DEAD_CODE.search(line):
                items.append(_warning(
                    "quality",
                    "Debug code detected. Remove before production.",
                    "dead_code", line_no,
                ))
        return items

    def check_maintainability(self, lines: list[str], first_line: int = 1) -> list[ValidationItem]:
        comment_lines = sum(1 for line in lines if line.strip() and is_comment(line))
        code_lines = sum(1 for line in lines if line.strip() and not is_comment(line))
        total = comment_lines + code_lines
        if total == 0:
            return []

        ratio = comment_lines / total
        if ratio < self.low_comment_ratio:
            return [_warning(
                "maintainability",
                "Low comment ratio detected. Consider adding more documentation.",
                "low_documentation", first_line,
            )]
        if ratio > self.high_comment_ratio:
            return [_warning(
                "maintainability",
                "High comment ratio detected. Consider if code could be self-documenting.",
                "over_documentation", first_line,
            )]
        return []

    def check_performance(self, lines: list[str], first_line: int = 1) -> list[ValidationItem]:
        items = []
        for offset, line in enumerate(lines):
            if is_comment(line):
                continue
            line_no = first_line + offset
            if _DOM_WRITE.search(line):
                items.append(_warning(
                    "performance",
                    "Direct HTML write detected. Consider textContent or DOM APIs "
                    "for better performance and security.",
                    "inefficient_dom_manipulation", line_no,
                ))
            if _EVAL.search(line):
                items.append(_warning(
                    "performance",
                    "eval() or Function() constructor detected. "
                    "These are performance and security risks.",
                    "eval_usage", line_no,
                ))
            if "addEventListener" in line and "removeEventListener" not in line:
                items.append(_warning(
                    "performance",
                    "Event listener added without removal. Potential memory leak.",
                    "memory_leak", line_no,
                ))
        return items

    def check_security_debt(self, lines: list[str], first_line: int = 1) -> list[ValidationItem]:
        items = []
        for offset, line in enumerate(lines):
            if is_comment(line):
                continue
            line_no = first_line + offset
            interpolated = bool(_INTERPOLATION.search(line))

            if interpolated and _SQL.search(line):
                items.append(self._security(
                    "Potential SQL injection detected. Use parameterized queries.",
                    "sql_injection", line_no,
                ))
            if interpolated and _DOM_WRITE.search(line):
                items.append(self._security(
                    "Potential XSS vulnerability detected. Sanitize user input.",
                    "xss_vulnerability", line_no,
                ))
            if _SECRET_ASSIGNMENT.search(line):
                items.append(self._security(
                    "Hardcoded secret detected. Use environment variables.",
                    "hardcoded_secret", line_no,
                ))
        return items

    @staticmethod
    def _security(message: str, category: str, line: int) -> ValidationItem:
        return ValidationItem(type="security", message=message, category=category,
                              line=line, severity=ERROR)

    def check_file_structure(self, lines: list[str]) -> list[ValidationItem]:
        items = []
        if len(lines) > self.large_file_lines:
            items.append(_warning(
                "maintainability",
                f"Large file detected ({len(lines)} lines). "
                "Consider splitting into smaller modules.",
                "large_file", 1,
            ))

        breaks = 0
        for prev, line in zip(lines, lines[1:]):
            if line and not line.startswith((" ", "\t")) and prev.startswith((" ", "\t")):
                breaks += 1
        if breaks > self.max_indentation_breaks:
            items.append(_warning(
                "style",
                "Inconsistent indentation detected. Consider using a formatter.",
                "inconsistent_formatting", 1,
            ))
        return items
