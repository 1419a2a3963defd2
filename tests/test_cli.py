"""
Tests for the failsafe command-line entry point.
"""

import io
import json

import pytest

from failsafe.cli import EXIT_ERROR, EXIT_INVALID, EXIT_VALID, main


def run_cli(argv, capsys):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    out = capsys.readouterr().out
    return exc.value.code, out


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.ts").write_text("export const x = 1;\n")
    return tmp_path


class TestCli:

    def test_valid_response_exits_zero(self, workspace, tmp_path, capsys):
        response = tmp_path / "response.md"
        response.write_text("User: what changed?\nAssistant: The parser now trims input.")
        code, out = run_cli([str(response), "--workspace", str(workspace)], capsys)
        assert code == EXIT_VALID
        assert "VALID" in out

    def test_hallucination_exits_two(self, workspace, tmp_path, capsys):
        response = tmp_path / "response.md"
        response.write_text('I created the file "src/missing.ts".')
        code, out = run_cli([str(response), "--workspace", str(workspace)], capsys)
        assert code == EXIT_INVALID
        assert "INVALID" in out

    def test_json_output(self, workspace, tmp_path, capsys):
        response = tmp_path / "response.md"
        response.write_text('I created the file "src/app.ts".')
        code, out = run_cli([str(response), "--workspace", str(workspace), "--json"], capsys)
        payload = json.loads(out)
        assert payload["original_response"] == 'I created the file "src/app.ts".'
        assert payload["is_valid"] is True
        assert code == EXIT_VALID

    def test_stdin(self, workspace, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("   "))
        code, out = run_cli(["-", "--mode", "chat", "--workspace", str(workspace), "--json"], capsys)
        payload = json.loads(out)
        assert code == EXIT_INVALID
        assert [e["category"] for e in payload["errors"]] == ["empty_content"]

    def test_minimal_mode(self, workspace, tmp_path, capsys):
        response = tmp_path / "response.md"
        response.write_text("Done. Just let me know.")
        code, out = run_cli([str(response), "--mode", "minimal", "--json"], capsys)
        payload = json.loads(out)
        assert code == EXIT_VALID
        assert payload["validated_response"] == "Done. "

    def test_tech_debt_mode(self, tmp_path, capsys):
        response = tmp_path / "response.md"
        response.write_text('```js\nconst password = "abc123";\n```')
        code, out = run_cli([str(response), "--mode", "tech-debt"], capsys)
        assert code == EXIT_INVALID
        assert "hardcoded_secret" in out

    def test_missing_input_file(self, tmp_path, capsys):
        code, _ = run_cli([str(tmp_path / "nope.md")], capsys)
        assert code == EXIT_ERROR

    def test_rules_file(self, workspace, tmp_path, capsys):
        rules = tmp_path / "rules.json"
        rules.write_text(json.dumps({"rules": [
            {"name": "No Foo", "pattern": "foo", "response": "block", "description": "Foo is banned."},
        ]}))
        response = tmp_path / "response.md"
        response.write_text("User: foo bar")
        code, out = run_cli(
            [str(response), "--workspace", str(workspace), "--rules", str(rules), "--json"], capsys,
        )
        payload = json.loads(out)
        assert payload["validated_response"].startswith('🚨 **BLOCKED**: This response was blocked by rule "No Foo".')
        assert "Blocked content based on rule: No Foo" in payload["change_log"]

    def test_bad_rules_file(self, tmp_path, capsys):
        rules = tmp_path / "rules.json"
        rules.write_text("{not json")
        response = tmp_path / "response.md"
        response.write_text("hello")
        code, _ = run_cli([str(response), "--rules", str(rules)], capsys)
        assert code == EXIT_ERROR
