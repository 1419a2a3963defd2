"""
Rules — Compiled Text Rules and Their Actions

A Rule is a named regex plus a response action:

  block     replace the whole text with a notice (destructive)
  warn      append a warning banner
  suggest   append a suggestion banner
  other     append an informational banner

Rules arrive from a RuleSource. StaticRuleSource ships the inherent
rule set and can load more from a JSON file. RuleEngine compiles each
rule once per (name, pattern) and folds rules over the text in order;
a malformed rule is logged once and skipped from then on.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, Union

import diff_match_patch as dmp_module

from failsafe.models import CompiledRule, InvalidRule, Rule, RuleOutcome
from failsafe.schemas.rules import RuleFile

logger = logging.getLogger(__name__)

# Singleton diff engine
_dmp = dmp_module.diff_match_patch()

STALLING_RULE = "No Repetitive Confirmation or Stalling"
CRITICAL_RULE_NAMES = (
    STALLING_RULE,
    "Implementation Verification",
    "Task Completion Claim",
)


# ============================================================
# INHERENT RULES
# ============================================================

DEFAULT_RULES: list[Rule] = [
    Rule(
        name="Filesystem Hallucination Detection",
        pattern=r"\b(?:file|directory|folder|path)\s+(?:exists|is\s+present|can\s+be\s+found|is\s+available)\b",
        response="warn",
        message="Potential hallucination: File existence claim detected. Verify file actually exists.",
        description="Claims about file existence must be checked against the workspace.",
    ),
    Rule(
        name="Implementation Verification",
        pattern=r"\b(?:I\s+implemented|I\s+created|I\s+built|I\s+developed)\b",
        response="warn",
        description="Implementation claims should be verified against actual changes.",
    ),
    Rule(
        name="Task Completion Claim",
        pattern=r"\b(?:completed|finished|done|implemented|resolved)\b",
        response="warn",
        description="Completion claims should be verified before they are trusted.",
    ),
    Rule(
        name="Audit Results Claim",
        pattern=r"\b(?:audit|review|analysis|assessment)\s+(?:shows|indicates|reveals)\b",
        response="warn",
    ),
    Rule(
        name="Compilation Status Claim",
        pattern=r"\b(?:compiles|builds|runs|executes)\s+(?:successfully|without\s+errors)\b",
        response="warn",
    ),
    Rule(
        name="Test Results Claim",
        pattern=r"\b(?:tests\s+pass|test\s+results|coverage|tested)\b",
        response="warn",
    ),
    Rule(
        name="Hallucination Admission",
        pattern=r"\b(?:I\s+don\s*'t\s+know|I\s+can\s*'t\s+see|I\s+don\s*'t\s+have\s+access)\b",
        response="default",
    ),
    Rule(
        name="Vague Offer Detection",
        pattern=r"\b(?:I\s+can\s+help|I\s+can\s+assist|I\s+can\s+guide)\b",
        response="suggest",
        message="Replace the offer with the specific action to be taken.",
    ),
    Rule(
        name="Absolute Statement Detection",
        pattern=r"\b(?:always|never|every|all|none|impossible|guaranteed)\b",
        response="suggest",
        enabled=False,
    ),
    Rule(
        name="Performance Claim Detection",
        pattern=r"\b(?:fast|slow|efficient|optimized|performance|speed)\b",
        response="suggest",
        enabled=False,
    ),
    Rule(
        name=STALLING_RULE,
        pattern=(
            r"(let me know if you want to review|otherwise, I will proceed as planned|"
            r"waiting for confirmation|if you have any new requests|just let me know).*?[.!?]"
        ),
        response="warn",
        message=(
            "Detected repetitive confirmation or stalling. "
            "Proceed with the work unless explicitly told to wait."
        ),
    ),
]


# ============================================================
# COMPILATION
# ============================================================

def compile_rule(rule: Rule) -> Union[CompiledRule, InvalidRule]:
    """Compile a rule's pattern case-insensitively. Never raises."""
    try:
        return CompiledRule(rule=rule, regex=re.compile(rule.pattern, re.IGNORECASE))
    except re.error as e:
        return InvalidRule(rule=rule, error=str(e))


def block_notice(rule: Rule) -> str:
    description = rule.description or "Rule violation detected."
    return f'🚨 **BLOCKED**: This response was blocked by rule "{rule.name}". {description}'


def rule_banner(rule: Rule) -> str:
    """The exact suffix an additive rule appends to the text."""
    if rule.response == "warn":
        detail = rule.message or 'Rule "%s" was triggered.' % rule.name
        banner = f"\n\n⚠️ **WARNING**: {detail}"
    elif rule.response == "suggest":
        detail = rule.message or 'Consider reviewing rule "%s".' % rule.name
        banner = f"\n\n💡 **SUGGESTION**: {detail}"
    else:
        banner = f'\n\nℹ️ **INFO**: Rule "{rule.name}" was applied.'
    if rule.message:
        banner += f"\n\n**{rule.message}**"
    return banner


_CHANGE_VERBS = {
    "block": "Blocked content based on rule",
    "warn": "Applied warning based on rule",
    "suggest": "Applied suggestion based on rule",
}


class RuleEngine:
    """
    Applies rules to text.

    Compilation is memoized by (name, pattern), so one engine can be
    shared across calls and a bad pattern is reported only once.
    """

    def __init__(self):
        self._compiled: dict[tuple[str, str], Union[CompiledRule, InvalidRule]] = {}

    def compile(self, rule: Rule) -> Union[CompiledRule, InvalidRule]:
        key = (rule.name, rule.pattern)
        compiled = self._compiled.get(key)
        if compiled is None:
            compiled = compile_rule(rule)
            if isinstance(compiled, InvalidRule):
                logger.warning(
                    "Skipping rule %r with invalid pattern: %s", rule.name, compiled.error,
                    extra={"rule": rule.name, "error": compiled.error},
                )
            self._compiled[key] = compiled
        return compiled

    def apply_rule(self, rule: Rule, text: str) -> RuleOutcome:
        compiled = self.compile(rule)
        if isinstance(compiled, InvalidRule):
            return RuleOutcome(validated_text=text)

        regex = compiled.regex
        if not regex.search(text):
            return RuleOutcome(validated_text=text)

        if rule.response == "block":
            notice = block_notice(rule)
            if text == notice and not regex.search(notice):
                return RuleOutcome(validated_text=text)
            revised = notice
            if rule.message:
                revised += f"\n\n**{rule.message}**"
        else:
            banner = rule_banner(rule)
            if banner in text and not regex.search(banner):
                return RuleOutcome(validated_text=text)
            revised = text + banner

        verb = _CHANGE_VERBS.get(rule.response, "Applied info based on rule")
        logger.debug("Rule %r applied", rule.name, extra={"rule": rule.name})
        return RuleOutcome(
            validated_text=revised,
            applied_changes=True,
            change_log=[f"{verb}: {rule.name}"],
        )

    def apply_all_rules(self, rules: Iterable[Rule], text: str) -> RuleOutcome:
        """Fold rules over the text in order; later rules see earlier output."""
        outcome = RuleOutcome(validated_text=text)
        for rule in rules:
            step = self.apply_rule(rule, outcome.validated_text)
            if step.applied_changes:
                outcome.validated_text = step.validated_text
                outcome.applied_changes = True
                outcome.change_log.extend(step.change_log)
        return outcome

    def strip_matches(self, rule: Rule, text: str) -> str:
        """Remove every match of the rule's pattern from the text."""
        compiled = self.compile(rule)
        if isinstance(compiled, InvalidRule):
            return text
        return compiled.regex.sub("", text)

    def matches(self, rule: Rule, text: str) -> bool:
        compiled = self.compile(rule)
        return isinstance(compiled, CompiledRule) and bool(compiled.regex.search(text))


# ============================================================
# RULE SOURCES
# ============================================================

class RuleSource(ABC):
    """Supplies rules and performs the store's own pre-render edits."""

    @abstractmethod
    def get_enabled_rules(self) -> list[Rule]:
        ...

    @abstractmethod
    async def apply_cursor_rules_to_html(self, text: str) -> RuleOutcome:
        ...


class StaticRuleSource(RuleSource):
    """
    A fixed rule list.

    Defaults to the inherent rules. Its pre-render pass strips
    stalling language; that is the only edit it makes.
    """

    def __init__(self, rules: Optional[list[Rule]] = None, engine: Optional[RuleEngine] = None):
        self.rules = list(DEFAULT_RULES if rules is None else rules)
        self.engine = engine or RuleEngine()

    @classmethod
    def from_file(cls, path: str, include_defaults: bool = True) -> StaticRuleSource:
        """
        Load rules from a JSON rule file.

        Raises:
            OSError: the file cannot be read.
            pydantic.ValidationError: the file does not match RuleFile.
        """
        return cls(load_rules(path, include_defaults=include_defaults))

    def get_enabled_rules(self) -> list[Rule]:
        return [rule for rule in self.rules if rule.enabled]

    async def apply_cursor_rules_to_html(self, text: str) -> RuleOutcome:
        outcome = RuleOutcome(validated_text=text)
        for rule in self.get_enabled_rules():
            if rule.name != STALLING_RULE or not self.engine.matches(rule, text):
                continue
            outcome.validated_text = self.engine.strip_matches(rule, outcome.validated_text)
            outcome.applied_changes = True
            outcome.change_log.append("Removed repetitive confirmation/stalling language")
        return outcome


def load_rules(path: str, include_defaults: bool = True) -> list[Rule]:
    """
    Read a JSON rule file. File rules replace defaults of the same name.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    loaded = [schema.to_rule() for schema in RuleFile.model_validate(raw).rules]
    if not include_defaults:
        return loaded
    names = {rule.name for rule in loaded}
    return [rule for rule in DEFAULT_RULES if rule.name not in names] + loaded


# ============================================================
# DIFF SPANS
# ============================================================

_SPAN_SIDES = {
    0: ("equal", ("orig", "rev")),
    -1: ("delete", ("orig",)),
    1: ("insert", ("rev",)),
}


def compute_diff_spans(original: str, revised: str) -> list[dict]:
    """
    Locate what the rule pass did to a response.

    Text a rule stripped shows up as a "delete" span with offsets into
    the original only; notices and banners a rule added show up as
    "insert" spans with offsets into the revised text only. Untouched
    text is "equal" and carries both.
    """
    diffs = _dmp.diff_main(original, revised)
    _dmp.diff_cleanupSemantic(diffs)

    offsets = {"orig": 0, "rev": 0}
    spans = []
    for op, text in diffs:
        kind, sides = _SPAN_SIDES[op]
        span = {"type": kind, "text": text}
        for side in sides:
            span[f"{side}_start"] = offsets[side]
            offsets[side] += len(text)
            span[f"{side}_end"] = offsets[side]
        spans.append(span)
    return spans
