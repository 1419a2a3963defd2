"""
Claims — Prose to Falsifiable File Statements

ClaimExtractor turns sentences like `I created the file "x.ts"` into
structured FileClaims. ClaimVerifier checks each claim against the
Workspace:

  CREATION / EXISTENCE  the path must exist        -> error if missing
  MODIFICATION          the file must be recent    -> warning if stale
  CONTENT               not checked against disk

A collaborator failure never becomes an error. The claim may be
true; we just could not confirm it.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

from failsafe.config import settings
from failsafe.models import (
    ERROR,
    WARNING,
    ClaimType,
    Clock,
    FileClaim,
    ValidationItem,
    utcnow,
)
from failsafe.workspace import Workspace

logger = logging.getLogger(__name__)


# One capture group per quote style. The path is the first non-empty one.
_QUOTED = r"""(?:"([^"]+)"|`([^`]+)`|'([^']+)')"""

CLAIM_PATTERNS: dict[ClaimType, re.Pattern] = {
    ClaimType.CREATION: re.compile(
        r"\b(?:i\s+have\s+created|i've\s+created|i\s+created|i\s+made|i\s+generated)\s+"
        r"(?:a|an|the)\s+(?:new\s+)?(?:file|folder|directory)\s+"
        r"(?:(?:called|named|at)\s+)?" + _QUOTED,
        re.IGNORECASE,
    ),
    ClaimType.EXISTENCE: re.compile(
        r"\b(?:the\s+)?(?:file|folder|directory)\s+" + _QUOTED +
        r"\s+(?:exists|is\s+present|was\s+found|is\s+located)\b",
        re.IGNORECASE,
    ),
    ClaimType.MODIFICATION: re.compile(
        r"\b(?:i\s+have\s+modified|i've\s+modified|i\s+modified|i\s+updated|i\s+changed|i\s+edited)\s+"
        r"(?:the\s+)?(?:(?:file|folder)\s+)?" + _QUOTED,
        re.IGNORECASE,
    ),
    ClaimType.CONTENT: re.compile(
        r"\b(?:the\s+)?(?:file|folder)\s+" + _QUOTED +
        r"\s+(?:contains|has|includes)\b",
        re.IGNORECASE,
    ),
}


class ClaimExtractor:
    """Extract FileClaims from document lines."""

    def __init__(self, clock: Clock = utcnow):
        self._clock = clock

    def extract(self, lines: list[str]) -> list[FileClaim]:
        """
        Every claim found on a line carries that line's number, even
        when the line holds several claims.
        """
        claims: list[FileClaim] = []
        for line_no, line in enumerate(lines, 1):
            for claim_type, regex in CLAIM_PATTERNS.items():
                for match in regex.finditer(line):
                    path = next((g for g in match.groups() if g), "").strip()
                    if not path:
                        continue
                    claims.append(FileClaim(
                        type=claim_type,
                        file_path=path,
                        line=line_no,
                        context=line.strip(),
                        timestamp=self._clock(),
                    ))
        return claims


class ClaimVerifier:
    """Check FileClaims against a Workspace."""

    def __init__(
        self,
        workspace: Workspace,
        clock: Clock = utcnow,
        modification_window: Optional[float] = None,
        concurrency: Optional[int] = None,
    ):
        self.workspace = workspace
        self._clock = clock
        self.modification_window = (
            settings.MODIFICATION_WINDOW_SECONDS
            if modification_window is None else modification_window
        )
        self.concurrency = max(1, settings.VERIFY_CONCURRENCY if concurrency is None else concurrency)

    async def verify(self, claim: FileClaim) -> list[ValidationItem]:
        try:
            if claim.type in (ClaimType.CREATION, ClaimType.EXISTENCE):
                return await self._verify_presence(claim)
            if claim.type is ClaimType.MODIFICATION:
                return await self._verify_recency(claim)
            return []
        except Exception as e:
            logger.warning(
                "Could not verify claim about %s: %s", claim.file_path, e,
                extra={
                    "claim_type": claim.type.value,
                    "file_path": claim.file_path,
                    "error": str(e),
                },
            )
            return [ValidationItem(
                type="hallucination",
                message=f'Could not validate file claim: "{claim.file_path}"',
                category="file_validation_error",
                line=claim.line,
                severity=WARNING,
                file_path=claim.file_path,
            )]

    async def _verify_presence(self, claim: FileClaim) -> list[ValidationItem]:
        if await self.workspace.exists(claim.file_path):
            return []
        verb = "created" if claim.type is ClaimType.CREATION else "present"
        return [ValidationItem(
            type="hallucination",
            message=f'AI claims file "{claim.file_path}" is {verb}, but it does not exist',
            category="filesystem_hallucination",
            line=claim.line,
            severity=ERROR,
            file_path=claim.file_path,
        )]

    async def _verify_recency(self, claim: FileClaim) -> list[ValidationItem]:
        if not await self.workspace.exists(claim.file_path):
            return []
        stat = await self.workspace.stat(claim.file_path)
        age = self._clock().timestamp() - stat.mtime
        if age <= self.modification_window:
            return []
        return [ValidationItem(
            type="hallucination",
            message=(
                f'AI claims to have modified "{claim.file_path}", '
                f"but it was last modified {int(age // 60)} minutes ago"
            ),
            category="modification_timing",
            line=claim.line,
            severity=WARNING,
            file_path=claim.file_path,
        )]

    async def verify_all(self, claims: list[FileClaim]) -> list[ValidationItem]:
        """Verify claims concurrently; findings come back in claim order."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(claim: FileClaim) -> list[ValidationItem]:
            async with semaphore:
                return await self.verify(claim)

        batches = await asyncio.gather(*(bounded(c) for c in claims))
        return [item for batch in batches for item in batch]
