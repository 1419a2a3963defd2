"""
Orchestrator — End-to-End Validation of One AI Response

Full mode:
  1. Rule pre-pass: the rule source's own edits, then every enabled
     rule through the RuleEngine. Changes content, never validity.
  2. Chat validator over the revised text.
  3. General validator with the workspace file list.
  4. Merge. Valid only if both validator passes are valid.
  5. If the pre-pass changed the text, append a summary banner.

Minimal mode applies only the critical rules and always reports valid.

Any exception reaching this layer yields the original text plus a
failure notice and is_valid=False. Content is never dropped and
trust is never granted on failure.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from failsafe.chat_validator import ChatValidator
from failsafe.general_validator import GeneralValidator, ImplementationClaimValidator
from failsafe.models import (
    AggregateValidation,
    Clock,
    RuleOutcome,
    ValidationItem,
    utcnow,
)
from failsafe.rules import (
    CRITICAL_RULE_NAMES,
    STALLING_RULE,
    RuleEngine,
    RuleSource,
    StaticRuleSource,
    compute_diff_spans,
)
from failsafe.workspace import DEFAULT_EXCLUDE, DEFAULT_GLOB, Workspace

logger = logging.getLogger(__name__)


def _messages(items: list[ValidationItem]) -> list[str]:
    return [item.message for item in items]


class ValidationOrchestrator:

    def __init__(
        self,
        workspace: Workspace,
        rule_source: Optional[RuleSource] = None,
        general_validator: Optional[GeneralValidator] = None,
        chat_validator: Optional[ChatValidator] = None,
        engine: Optional[RuleEngine] = None,
        clock: Clock = utcnow,
    ):
        self.workspace = workspace
        self.engine = engine or RuleEngine()
        self.rule_source = rule_source or StaticRuleSource(engine=self.engine)
        self.general_validator = general_validator or ImplementationClaimValidator(workspace)
        self.chat_validator = chat_validator or ChatValidator(workspace, clock=clock)
        self._clock = clock

    # --- Banners ---

    def passive_feedback(self, change_log: list[str]) -> str:
        stamp = self._clock().strftime("%H:%M:%S")
        return (
            f"\n\n---\n**FailSafe Passive Validation Applied** ({stamp})\n"
            f"*{', '.join(change_log)}*\n"
            "*This response has been automatically validated and revised for accuracy.*"
        )

    def failure_notice(self, error: Exception) -> str:
        stamp = self._clock().strftime("%H:%M:%S")
        return (
            f"\n\n---\n**⚠️ FailSafe Validation Failed** ({stamp})\n"
            f"*Validation system encountered an error: {error}*\n"
            "*Manual verification of this response is strongly advised.*\n"
            "*Please review the content carefully before proceeding.*"
        )

    def _failed(self, response: str, error: Exception) -> AggregateValidation:
        return AggregateValidation(
            original_response=response,
            validated_response=response + self.failure_notice(error),
            is_valid=False,
            applied_changes=False,
            change_log=[f"Validation failed: {error}"],
            warnings=[],
            errors=[f"Validation system error: {error}"],
            timestamp=self._clock(),
        )

    # --- Full mode ---

    async def rule_prepass(self, text: str) -> RuleOutcome:
        cursor = await self.rule_source.apply_cursor_rules_to_html(text)
        if cursor.applied_changes:
            logger.info(
                "CursorRules validation applied",
                extra={"change_count": len(cursor.change_log)},
            )

        rules = self.engine.apply_all_rules(
            self.rule_source.get_enabled_rules(), cursor.validated_text,
        )
        return RuleOutcome(
            validated_text=rules.validated_text,
            applied_changes=cursor.applied_changes or rules.applied_changes,
            change_log=cursor.change_log + rules.change_log,
        )

    async def known_files(self) -> list[str]:
        try:
            files = await self.workspace.list_files(DEFAULT_GLOB, DEFAULT_EXCLUDE)
            if self.workspace.truncated:
                logger.info(
                    "Workspace listing incomplete; unlisted references will be checked individually",
                )
            return files
        except Exception as e:
            logger.warning("Could not list workspace files: %s", e, extra={"error": str(e)})
            return []

    async def validate_ai_response(
        self, response: str, context: Optional[str] = None,
    ) -> AggregateValidation:
        start = time.time()
        try:
            prepass = await self.rule_prepass(response)
            revised = prepass.validated_text

            chat = await self.chat_validator.validate_chat(revised)
            files = await self.known_files()
            general = await self.general_validator.validate_ai_response(revised, context, files)

            validated = revised
            if prepass.applied_changes and prepass.change_log:
                validated += self.passive_feedback(prepass.change_log)

            result = AggregateValidation(
                original_response=response,
                validated_response=validated,
                is_valid=chat.is_valid and general.is_valid,
                applied_changes=prepass.applied_changes,
                change_log=prepass.change_log,
                warnings=_messages(chat.warnings) + _messages(general.warnings),
                errors=_messages(chat.errors) + _messages(general.errors),
                timestamp=self._clock(),
                diff_spans=compute_diff_spans(response, revised) if prepass.applied_changes else [],
            )
        except Exception as e:
            logger.exception(
                "AI response validation failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return self._failed(response, e)

        logger.info(
            "AI response validation completed",
            extra={
                "duration_ms": int((time.time() - start) * 1000),
                "applied_changes": result.applied_changes,
                "change_count": len(result.change_log),
                "warning_count": len(result.warnings),
                "error_count": len(result.errors),
            },
        )
        return result

    # --- Minimal mode ---

    async def validate_ai_response_minimal(self, response: str) -> AggregateValidation:
        """
        Critical rules only. Stalling language is removed; the other
        critical rules are recorded in the change log without edits.
        """
        start = time.time()
        try:
            critical = [
                rule for rule in self.rule_source.get_enabled_rules()
                if rule.name in CRITICAL_RULE_NAMES
            ]
            validated = response
            applied = False
            change_log: list[str] = []

            for rule in critical:
                if not self.engine.matches(rule, validated):
                    continue
                applied = True
                if rule.name == STALLING_RULE:
                    validated = self.engine.strip_matches(rule, validated)
                    change_log.append("Removed stalling language")
                else:
                    change_log.append(f'Critical rule "{rule.name}" triggered')
        except Exception as e:
            logger.exception("Minimal AI response validation failed", extra={"error": str(e)})
            return self._failed(response, e)

        logger.info(
            "Minimal AI response validation completed",
            extra={
                "duration_ms": int((time.time() - start) * 1000),
                "applied_changes": applied,
            },
        )
        return AggregateValidation(
            original_response=response,
            validated_response=validated,
            is_valid=True,
            applied_changes=applied,
            change_log=change_log,
            warnings=[],
            errors=[],
            timestamp=self._clock(),
            diff_spans=compute_diff_spans(response, validated) if validated != response else [],
        )
