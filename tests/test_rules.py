"""
Tests for rule compilation, application, rule sources and diff spans.
"""

import json

import pytest
from pydantic import ValidationError

from failsafe.models import CompiledRule, InvalidRule, Rule
from failsafe.rules import (
    CRITICAL_RULE_NAMES,
    DEFAULT_RULES,
    RuleEngine,
    StaticRuleSource,
    block_notice,
    compile_rule,
    compute_diff_spans,
    load_rules,
    rule_banner,
)


@pytest.fixture
def engine():
    return RuleEngine()


class TestCompileRule:

    def test_valid(self):
        compiled = compile_rule(Rule(name="r", pattern=r"\bdone\b"))
        assert isinstance(compiled, CompiledRule)
        assert compiled.regex.search("DONE")

    def test_invalid(self):
        compiled = compile_rule(Rule(name="r", pattern="(oops"))
        assert isinstance(compiled, InvalidRule)
        assert compiled.error

    def test_engine_memoizes(self, engine):
        rule = Rule(name="r", pattern="x")
        assert engine.compile(rule) is engine.compile(rule)

    def test_invalid_rule_logged_once(self, engine, caplog):
        rule = Rule(name="broken", pattern="(oops")
        with caplog.at_level("WARNING", logger="failsafe.rules"):
            engine.apply_rule(rule, "text")
            engine.apply_rule(rule, "text")
        assert len([r for r in caplog.records if "broken" in r.getMessage()]) == 1


class TestApplyRule:

    def test_no_match_is_passthrough(self, engine):
        outcome = engine.apply_rule(Rule(name="r", pattern="zzz", response="warn"), "hello")
        assert outcome.validated_text == "hello"
        assert outcome.applied_changes is False
        assert outcome.change_log == []

    def test_block_replaces_text(self, engine):
        rule = Rule(name="No Secrets", pattern="secret", response="block", description="Secrets leaked.")
        outcome = engine.apply_rule(rule, "the secret is 42")
        assert outcome.validated_text == block_notice(rule)
        assert "No Secrets" in outcome.validated_text
        assert "Secrets leaked." in outcome.validated_text
        assert outcome.change_log == ["Blocked content based on rule: No Secrets"]

    def test_block_without_description(self, engine):
        rule = Rule(name="B", pattern="x", response="block")
        outcome = engine.apply_rule(rule, "x")
        assert "Rule violation detected." in outcome.validated_text

    def test_warn_appends_banner(self, engine):
        rule = Rule(name="Task Completion Claim", pattern=r"\bdone\b", response="warn")
        outcome = engine.apply_rule(rule, "All done.")
        assert outcome.validated_text.startswith("All done.")
        assert '⚠️ **WARNING**: Rule "Task Completion Claim" was triggered.' in outcome.validated_text
        assert outcome.change_log == ["Applied warning based on rule: Task Completion Claim"]

    def test_suggest_appends_banner(self, engine):
        rule = Rule(name="S", pattern="maybe", response="suggest")
        outcome = engine.apply_rule(rule, "maybe later")
        assert "💡 **SUGGESTION**: Consider reviewing rule \"S\"." in outcome.validated_text

    def test_default_appends_info(self, engine):
        rule = Rule(name="I", pattern="hello")
        outcome = engine.apply_rule(rule, "hello")
        assert outcome.validated_text == 'hello\n\nℹ️ **INFO**: Rule "I" was applied.'

    def test_message_appended_after_transform(self, engine):
        rule = Rule(name="M", pattern="hello", message="Be specific.")
        outcome = engine.apply_rule(rule, "hello")
        assert outcome.validated_text.endswith("\n\n**Be specific.**")

    def test_matching_is_case_insensitive(self, engine):
        outcome = engine.apply_rule(Rule(name="r", pattern="done", response="warn"), "DONE")
        assert outcome.applied_changes


class TestIdempotence:

    def test_banner_does_not_retrigger(self, engine):
        rule = Rule(name="Task Completion Claim", pattern=r"\bdone\b", response="warn")
        once = engine.apply_rule(rule, "All done.")
        twice = engine.apply_rule(rule, once.validated_text)
        assert twice.applied_changes is False
        assert twice.validated_text == once.validated_text

    def test_banner_matching_pattern_retriggers(self, engine):
        rule = Rule(name="Warner", pattern="warning", response="warn")
        once = engine.apply_rule(rule, "a warning")
        assert "warning" in rule_banner(rule).lower()
        twice = engine.apply_rule(rule, once.validated_text)
        assert twice.applied_changes is True


class TestApplyAllRules:

    def test_rules_fold_in_order(self, engine):
        rules = [
            Rule(name="first", pattern="start", response="warn", message="FIRST-RAN"),
            Rule(name="second", pattern="FIRST-RAN", response="suggest"),
        ]
        outcome = engine.apply_all_rules(rules, "start")
        assert outcome.change_log == [
            "Applied warning based on rule: first",
            "Applied suggestion based on rule: second",
        ]

    def test_invalid_rules_skipped(self, engine):
        rules = [Rule(name="bad", pattern="(oops"), Rule(name="good", pattern="hi", response="warn")]
        outcome = engine.apply_all_rules(rules, "hi")
        assert outcome.change_log == ["Applied warning based on rule: good"]

    def test_empty_rule_list(self, engine):
        outcome = engine.apply_all_rules([], "text")
        assert outcome.validated_text == "text"
        assert outcome.applied_changes is False


class TestStaticRuleSource:

    def test_defaults_include_critical_rules(self):
        names = {rule.name for rule in StaticRuleSource().get_enabled_rules()}
        for name in CRITICAL_RULE_NAMES:
            assert name in names

    def test_default_patterns_compile(self):
        for rule in DEFAULT_RULES:
            assert isinstance(compile_rule(rule), CompiledRule), rule.name

    def test_disabled_rules_filtered(self):
        source = StaticRuleSource([Rule(name="a", pattern="a"), Rule(name="b", pattern="b", enabled=False)])
        assert [r.name for r in source.get_enabled_rules()] == ["a"]

    @pytest.mark.asyncio
    async def test_cursor_pass_strips_stalling(self):
        text = "Here is the fix. Let me know if you want to review the changes."
        outcome = await StaticRuleSource().apply_cursor_rules_to_html(text)
        assert outcome.applied_changes is True
        assert "Let me know" not in outcome.validated_text
        assert outcome.validated_text.startswith("Here is the fix.")
        assert outcome.change_log == ["Removed repetitive confirmation/stalling language"]

    @pytest.mark.asyncio
    async def test_cursor_pass_leaves_other_text(self):
        outcome = await StaticRuleSource().apply_cursor_rules_to_html("I finished the task.")
        assert outcome.applied_changes is False
        assert outcome.validated_text == "I finished the task."


class TestLoadRules:

    def test_file_rules_merge_over_defaults(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [
            {"name": "Task Completion Claim", "pattern": "finito", "response": "suggest"},
            {"name": "Custom", "pattern": "foo", "response": "block"},
        ]}))
        rules = load_rules(str(path))
        by_name = {r.name: r for r in rules}
        assert by_name["Task Completion Claim"].pattern == "finito"
        assert by_name["Custom"].response == "block"
        assert len(rules) == len(DEFAULT_RULES) + 1

    def test_without_defaults(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [{"name": "Only", "pattern": "x"}]}))
        source = StaticRuleSource.from_file(str(path), include_defaults=False)
        assert [r.name for r in source.rules] == ["Only"]

    def test_invalid_file_rejected(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [{"name": "", "pattern": "x"}]}))
        with pytest.raises(ValidationError):
            load_rules(str(path))


class TestDiffSpans:

    def test_identical_text(self):
        spans = compute_diff_spans("same", "same")
        assert spans == [{
            "type": "equal", "text": "same",
            "orig_start": 0, "orig_end": 4, "rev_start": 0, "rev_end": 4,
        }]

    def test_insert_and_delete(self):
        spans = compute_diff_spans("keep drop", "keep add")
        kinds = {s["type"] for s in spans}
        assert "equal" in kinds
        assert "delete" in kinds or "insert" in kinds
        rebuilt = "".join(s["text"] for s in spans if s["type"] != "delete")
        assert rebuilt == "keep add"

    def test_stripped_text_has_original_offsets_only(self):
        original = "Done. Just let me know."
        spans = compute_diff_spans(original, "Done. ")
        deleted = [s for s in spans if s["type"] == "delete"]
        assert deleted
        for span in deleted:
            assert "rev_start" not in span
            assert original[span["orig_start"]:span["orig_end"]] == span["text"]

    def test_appended_notice_has_revised_offsets_only(self):
        revised = "Body.\n\n---\nnotice"
        spans = compute_diff_spans("Body.", revised)
        assert spans[-1]["type"] == "insert"
        assert "orig_start" not in spans[-1]
        assert revised[spans[-1]["rev_start"]:spans[-1]["rev_end"]] == spans[-1]["text"]
