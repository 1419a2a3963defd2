"""
Chat Validator — Hallucination Screening for AI Chat Output

Full pass, in order:

  1. Empty input fast path (one hard error, nothing else runs)
  2. Chat shape (advisory)
  3. Hallucination phrasing
  4. Code-block issues
  5. File references checked against the workspace
  6. File claims extracted and verified
  7. Suspicious filesystem phrasing

Each stage owns its failures: an exception inside a stage becomes a
single `safety` error and the remaining stages still run.

Also exposes the low-latency minimal check and the tech-debt pass.
"""

from __future__ import annotations

import inspect
import logging
import re
import time
from typing import Optional

from failsafe.claims import ClaimExtractor, ClaimVerifier
from failsafe.models import ERROR, WARNING, Clock, ValidationItem, ValidationResult, utcnow
from failsafe.patterns import PatternFamily, PatternScanner, empty_content_item, is_blank
from failsafe.tech_debt import TechDebtAnalyzer
from failsafe.workspace import Workspace

logger = logging.getLogger(__name__)

_SOURCE_EXTENSIONS = r"(?:js|ts|jsx|tsx|py|java|cpp|c|h|json|xml|yaml|yml|md|txt|css|html)"

FILE_MENTIONS = [
    re.compile(r"`([^`]+\." + _SOURCE_EXTENSIONS + r")`"),
    re.compile(r'"([^"]+\.' + _SOURCE_EXTENSIONS + r')"'),
    re.compile(r"'([^']+\." + _SOURCE_EXTENSIONS + r")'"),
]

MINIMAL_SUGGESTIONS = [
    "Consider requesting specific evidence or verification steps",
    "Ask for file listings, code snippets, or test results",
    "Verify claims manually before proceeding with implementation",
]


class ChatValidator:
    """
    Screens one piece of AI output.

    Collaborators are injected; only `workspace` is required.
    """

    def __init__(
        self,
        workspace: Workspace,
        scanner: Optional[PatternScanner] = None,
        extractor: Optional[ClaimExtractor] = None,
        verifier: Optional[ClaimVerifier] = None,
        analyzer: Optional[TechDebtAnalyzer] = None,
        clock: Clock = utcnow,
    ):
        self.workspace = workspace
        self.scanner = scanner or PatternScanner()
        self.extractor = extractor or ClaimExtractor(clock=clock)
        self.verifier = verifier or ClaimVerifier(workspace, clock=clock)
        self.analyzer = analyzer or TechDebtAnalyzer()

    # --- Full pass ---

    async def validate_chat(self, text: str) -> ValidationResult:
        start = time.time()
        lines = text.split("\n")
        result = ValidationResult()

        if is_blank(lines):
            result.add(empty_content_item())
            return result

        stages = [
            ("chat shape", self.scanner.scan, (lines, PatternFamily.CHAT_SHAPE)),
            ("hallucination patterns", self.scanner.scan, (lines, PatternFamily.HALLUCINATION)),
            ("code blocks", self.scanner.scan, (lines, PatternFamily.CODE_BLOCK)),
            ("file references", self.check_file_references, (lines,)),
            ("file claims", self.verify_file_claims, (lines,)),
            ("suspicious filesystem patterns", self.scanner.scan,
             (lines, PatternFamily.SUSPICIOUS_FILESYSTEM)),
        ]
        for name, func, args in stages:
            result.extend(await self._run_stage(name, func, *args))

        logger.info(
            "Chat validation complete",
            extra={
                "duration_ms": int((time.time() - start) * 1000),
                "error_count": len(result.errors),
                "warning_count": len(result.warnings),
                "response_length": len(text),
            },
        )
        return result

    async def _run_stage(self, name: str, func, *args) -> list[ValidationItem]:
        try:
            items = func(*args)
            if inspect.isawaitable(items):
                items = await items
            return items
        except Exception as e:
            logger.exception(
                "Validation stage %r failed", name,
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return [ValidationItem(
                type="safety",
                message=f"Validation failed during {name}: {e}",
                category="validation_error",
                line=1,
                severity=ERROR,
            )]

    async def check_file_references(self, lines: list[str]) -> list[ValidationItem]:
        """Warn about quoted or backticked source files that are not in the workspace."""
        mentioned: dict[str, int] = {}
        for line_no, line in enumerate(lines, 1):
            for pattern in FILE_MENTIONS:
                for match in pattern.finditer(line):
                    mentioned.setdefault(match.group(1), line_no)

        items = []
        for path, line_no in mentioned.items():
            try:
                if await self.workspace.exists(path):
                    continue
                items.append(ValidationItem(
                    type="quality",
                    message=f"File mentioned but not found: {path}",
                    category="file_not_found",
                    line=line_no,
                    severity=WARNING,
                    file_path=path,
                ))
            except Exception as e:
                logger.warning(
                    "Could not check file %s: %s", path, e,
                    extra={"file_path": path, "error": str(e)},
                )
                items.append(ValidationItem(
                    type="quality",
                    message=f"Error checking file {path}: {e}",
                    category="file_check_error",
                    line=line_no,
                    severity=WARNING,
                    file_path=path,
                ))
        return items

    async def verify_file_claims(self, lines: list[str]) -> list[ValidationItem]:
        claims = self.extractor.extract(lines)
        if not claims:
            return []
        return await self.verifier.verify_all(claims)

    # --- Minimal pass ---

    def validate_minimal(self, text: str) -> ValidationResult:
        """
        Pattern-only check for latency-sensitive callers. No
        filesystem access.
        """
        result = ValidationResult()
        try:
            result.extend(self.scanner.scan(text.split("\n"), PatternFamily.MINIMAL))
        except Exception as e:
            logger.exception("Minimal validation failed", extra={"error": str(e)})
            return ValidationResult(errors=[ValidationItem(
                type="safety",
                message="Minimal validation failed due to internal error",
                category="validation_error",
                severity=ERROR,
            )])

        if result.errors or result.warnings:
            result.suggestions.extend(MINIMAL_SUGGESTIONS)
        return result

    # --- Tech debt ---

    def evaluate_tech_debt(self, text: str) -> ValidationResult:
        try:
            return self.analyzer.analyze(text)
        except Exception as e:
            logger.exception("Tech debt evaluation failed", extra={"error": str(e)})
            return ValidationResult(errors=[ValidationItem(
                type="quality",
                message=f"Tech debt evaluation failed: {e}",
                category="tech_debt_evaluation_error",
                line=1,
                severity=ERROR,
            )])
