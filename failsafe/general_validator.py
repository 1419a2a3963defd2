"""
General Validator — Second-Opinion Pass Over a Response

The orchestrator hands the revised response, the caller's context
and the workspace file list to a GeneralValidator. Hosts plug in
their own; ImplementationClaimValidator is the reference one.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from failsafe.models import ERROR, WARNING, ValidationItem, ValidationResult
from failsafe.workspace import Workspace, relative_posix

logger = logging.getLogger(__name__)


class GeneralValidator(ABC):

    @abstractmethod
    async def validate_ai_response(
        self, text: str, context: Optional[str], known_files: list[str],
    ) -> ValidationResult:
        ...


# Up to the end of the sentence; a dot inside "src/app.ts" does not end it
_SENTENCE = r"(?:[^.!?\n]|[.!?](?=\S))+"

# Sentences that claim work was done
IMPLEMENTATION_CLAIMS = [
    re.compile(
        r"\b(?:I\s+have|I've|I\s+just|I\s+created|I\s+implemented|I\s+added|I\s+fixed)\s+" + _SENTENCE,
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:created|added|implemented)\s+" + _SENTENCE, re.IGNORECASE),
    re.compile(r"\b(?:in|at)\s+[\w/.-]+\.(?:ts|js|json|md)\b", re.IGNORECASE),
]

FILE_REFERENCE = re.compile(r"[\w/.-]+\.(?:ts|tsx|js|jsx|py|json|md|txt|yml|yaml)\b")


def is_known(path: str, known: set[str]) -> bool:
    """Exact match on the normalized path, or a suffix match at a directory boundary."""
    normalized = relative_posix(path)
    if normalized in known:
        return True
    suffix = "/" + normalized
    return any(candidate.endswith(suffix) for candidate in known)


class ImplementationClaimValidator(GeneralValidator):
    """
    Flags files named in implementation claims that are not in the workspace.

    The file list is only a first pass. With a workspace, a reference the
    list does not contain is confirmed with `exists` before it counts as
    missing; a check that fails leaves the file unknown, which is a
    warning and not an error.
    """

    def __init__(self, workspace: Optional[Workspace] = None):
        self.workspace = workspace

    async def confirm_missing(self, ref: str) -> Optional[bool]:
        """True if absent, False if present, None when it cannot be told."""
        if self.workspace is None:
            return True
        try:
            return not await self.workspace.exists(ref)
        except Exception as e:
            logger.warning(
                "Could not confirm referenced file %s: %s", ref, e,
                extra={"file_path": ref, "error": str(e)},
            )
            return None

    async def validate_ai_response(
        self, text: str, context: Optional[str], known_files: list[str],
    ) -> ValidationResult:
        result = ValidationResult()
        known = {relative_posix(f) for f in known_files}

        references: list[str] = []
        for pattern in IMPLEMENTATION_CLAIMS:
            for claim in pattern.finditer(text):
                for ref in FILE_REFERENCE.findall(claim.group(0)):
                    if ref not in references:
                        references.append(ref)

        for ref in references:
            if is_known(ref, known):
                continue
            missing = await self.confirm_missing(ref)
            if missing is False:
                continue
            if missing is None:
                result.add(ValidationItem(
                    type="hallucination",
                    message=f"Referenced file could not be checked: {ref}",
                    category="file_check_error",
                    severity=WARNING,
                    file_path=ref,
                ))
                continue
            result.add(ValidationItem(
                type="hallucination",
                message=f"File referenced but doesn't exist: {ref}",
                category="missing_file",
                severity=ERROR,
                file_path=ref,
            ))
            result.suggestions.append(f"Verify that {ref} exists in the workspace")

        if result.errors:
            logger.debug(
                "Implementation claims reference missing files",
                extra={"error_count": len(result.errors)},
            )
        return result
