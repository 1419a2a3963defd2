"""
Tests for the tech-debt analyzer and complexity estimator.
"""

import pytest

from failsafe.tech_debt import (
    ComplexityEstimator,
    HeuristicComplexityEstimator,
    TechDebtAnalyzer,
    extract_code_blocks,
)


def fenced(body: str, lang: str = "js") -> str:
    return f"```{lang}\n{body}\n```"


def categories(items) -> list[str]:
    return [i.category for i in items]


@pytest.fixture
def analyzer():
    return TechDebtAnalyzer()


class TestExtractCodeBlocks:

    def test_fence_lines_stripped(self):
        blocks = extract_code_blocks("intro\n```python\nx = 1\ny = 2\n```\noutro")
        assert len(blocks) == 1
        assert blocks[0].lines == ["x = 1", "y = 2"]
        assert blocks[0].start_line == 3

    def test_multiple_blocks_non_greedy(self):
        text = "```\na\n```\ntext\n```\nb\n```"
        blocks = extract_code_blocks(text)
        assert [b.lines for b in blocks] == [["a"], ["b"]]
        assert [b.start_line for b in blocks] == [2, 6]

    def test_no_blocks(self):
        assert extract_code_blocks("just prose") == []


class TestComplexity:

    def test_long_function_and_high_complexity(self, analyzer):
        opening = ["function f() {"] + ["  if (x) {"] * 6
        body = ["    x++;"] * 1486
        closing = ["  }"] * 6 + ["}"]
        code = "\n".join(opening + body + closing)
        assert len(opening + body + closing) == 1500

        result = analyzer.analyze(fenced(code))
        found = categories(result.warnings)
        assert "long_function" in found
        assert "high_complexity" in found
        assert "deep_nesting" in found

    def test_short_shallow_function_is_clean(self):
        items = HeuristicComplexityEstimator().estimate(["function f() {", "  return 1;", "}"])
        assert items == []

    def test_depth_clamped_at_zero(self):
        items = HeuristicComplexityEstimator(long_function_lines=2).estimate(
            ["}", "}", "function f() {", "a", "b", "c", "}"]
        )
        assert categories(items) == ["long_function"]

    def test_line_with_both_braces_is_neutral(self):
        estimator = HeuristicComplexityEstimator(max_depth=0)
        assert estimator.estimate(["} else {"]) == []

    def test_custom_estimator(self):
        class NoComplexity(ComplexityEstimator):
            def estimate(self, lines, first_line=1):
                return []

        analyzer = TechDebtAnalyzer(estimator=NoComplexity())
        code = "\n".join(["{"] * 10 + ["x"] + ["}"] * 10)
        result = analyzer.analyze(fenced(code))
        assert "high_complexity" not in categories(result.warnings)


class TestCodeSmells:

    def test_markers(self, analyzer):
        items = analyzer.detect_code_smells(["// FIXME broken"])
        assert categories(items) == ["code_smell"]
        assert "FIXME" in items[0].message

    def test_magic_number(self, analyzer):
        assert categories(analyzer.detect_code_smells(["timeout = 5000"])) == ["magic_number"]

    def test_magic_number_ignored_in_comments(self, analyzer):
        assert analyzer.detect_code_smells(["# retry after 5000 ms"]) == []
        assert analyzer.detect_code_smells(["wait(10); // 5000 max"]) == []

    def test_long_line(self, analyzer):
        items = analyzer.detect_code_smells(["x" * 121])
        assert categories(items) == ["long_line"]
        assert items[0].type == "style"

    def test_dead_code(self, analyzer):
        assert categories(analyzer.detect_code_smells(["debugger;"])) == ["dead_code"]

    def test_line_numbers_offset(self, analyzer):
        items = analyzer.detect_code_smells(["ok", "debugger;"], first_line=10)
        assert items[0].line == 11


class TestMaintainability:

    def test_low_documentation(self, analyzer):
        items = analyzer.check_maintainability(["a = 1"] * 20)
        assert categories(items) == ["low_documentation"]

    def test_over_documentation(self, analyzer):
        items = analyzer.check_maintainability(["// note"] * 6 + ["a = 1"] * 4)
        assert categories(items) == ["over_documentation"]

    def test_balanced(self, analyzer):
        assert analyzer.check_maintainability(["// note"] * 3 + ["a = 1"] * 7) == []

    def test_empty_block(self, analyzer):
        assert analyzer.check_maintainability(["", "  "]) == []


class TestPerformance:

    def test_dom_write(self, analyzer):
        items = analyzer.check_performance(["el.innerHTML = html;"])
        assert categories(items) == ["inefficient_dom_manipulation"]
        assert items[0].type == "performance"

    def test_eval(self, analyzer):
        assert categories(analyzer.check_performance(["eval(code)"])) == ["eval_usage"]

    def test_listener_without_removal(self, analyzer):
        items = analyzer.check_performance(["btn.addEventListener('click', go)"])
        assert categories(items) == ["memory_leak"]

    def test_listener_with_removal_same_line(self, analyzer):
        line = "btn.addEventListener('click', go); btn.removeEventListener('click', go)"
        assert analyzer.check_performance([line]) == []


class TestSecurityDebt:

    def test_hardcoded_secret(self, analyzer):
        result = analyzer.analyze(fenced('const password = "abc123";'))
        assert len(result.errors) == 1
        assert result.errors[0].category == "hardcoded_secret"
        assert result.errors[0].type == "security"
        assert result.errors[0].line == 2

    def test_sql_injection(self, analyzer):
        items = analyzer.check_security_debt(["db.query(`SELECT * FROM users WHERE id = ${id}`)"])
        assert categories(items) == ["sql_injection"]
        assert items[0].severity == "error"

    def test_xss(self, analyzer):
        items = analyzer.check_security_debt(["el.innerHTML = `<b>${name}</b>`"])
        assert categories(items) == ["xss_vulnerability"]

    def test_secret_from_env_is_fine(self, analyzer):
        assert analyzer.check_security_debt(["const token = process.env.TOKEN;"]) == []

    def test_commented_out_secret_ignored(self, analyzer):
        assert analyzer.check_security_debt(['// password = "hunter2"']) == []


class TestFileStructure:

    def test_large_file(self, analyzer):
        items = analyzer.check_file_structure(["x"] * 1001)
        assert "large_file" in categories(items)

    def test_threshold_is_configurable(self):
        analyzer = TechDebtAnalyzer(large_file_lines=10)
        assert "large_file" in categories(analyzer.check_file_structure(["x"] * 11))

    def test_inconsistent_formatting(self, analyzer):
        lines = ["  indented", "flush"] * 6
        assert categories(analyzer.check_file_structure(lines)) == ["inconsistent_formatting"]

    def test_consistent_formatting(self, analyzer):
        lines = ["  indented", "flush"] * 5
        assert analyzer.check_file_structure(lines) == []


class TestAnalyze:

    def test_prose_only(self, analyzer):
        result = analyzer.analyze("No code here.")
        assert result.is_valid
        assert result.warnings == []

    def test_passes_are_concatenated(self, analyzer):
        code = "\n".join([
            "function go() {",
            "  debugger;",
            "  el.innerHTML = html;",
            '  const apiKey = "sk-123";',
            "}",
        ])
        result = analyzer.analyze(fenced(code))
        found = categories(result.warnings) + categories(result.errors)
        assert "dead_code" in found
        assert "inefficient_dom_manipulation" in found
        assert "hardcoded_secret" in found
        assert "low_documentation" in found
        assert not result.is_valid
