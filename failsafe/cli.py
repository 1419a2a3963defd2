"""
failsafe — Validate an AI response from the command line.

Usage:
    failsafe response.md                         # Full validation
    cat response.md | failsafe -                 # Read from stdin
    failsafe response.md --mode minimal          # Critical rules only
    failsafe response.md --mode chat             # Chat validator pass only
    failsafe response.md --mode tech-debt        # Code-block tech debt
    failsafe response.md --workspace ../project  # Check claims against a checkout
    failsafe response.md --rules rules.json      # Extra rules (JSON)
    failsafe response.md --json                  # JSON output (for CI)

Exit codes: 0 valid, 2 invalid, 1 usage or input error.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from failsafe.chat_validator import ChatValidator
from failsafe.config import settings
from failsafe.logging import get_logger, setup_logging
from failsafe.models import AggregateValidation, ValidationResult
from failsafe.orchestrator import ValidationOrchestrator
from failsafe.rules import StaticRuleSource
from failsafe.schemas.validation import AggregateValidationResponse, ValidationResultResponse
from failsafe.workspace import LocalWorkspace

logger = get_logger("cli")

EXIT_VALID = 0
EXIT_ERROR = 1
EXIT_INVALID = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="failsafe",
        description="Screen AI-generated output for hallucinated claims and code debt",
    )
    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        help="File holding the AI response, or - for stdin (default: -)",
    )
    parser.add_argument(
        "--mode",
        choices=("full", "minimal", "chat", "tech-debt"),
        default="full",
        help="Validation mode (default: full)",
    )
    parser.add_argument(
        "--workspace",
        default=settings.WORKSPACE_ROOT,
        help="Workspace root that file claims are checked against (default: %(default)s)",
    )
    parser.add_argument(
        "--rules",
        default=settings.RULES_PATH,
        help="JSON rule file, merged over the built-in rules",
    )
    parser.add_argument(
        "--context",
        default=None,
        help="Free-text context passed to the general validator",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON only (for CI/automation)",
    )
    return parser


def read_input(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def format_result(result: ValidationResult) -> str:
    lines = ["VALID" if result.is_valid else "INVALID"]
    for item in result.errors + result.warnings:
        where = f"line {item.line}" if item.line is not None else "-"
        lines.append(f"  {item.severity or 'warning':<8} {where:<10} [{item.category}] {item.message}")
    for suggestion in result.suggestions:
        lines.append(f"  suggestion: {suggestion}")
    return "\n".join(lines)


def format_aggregate(result: AggregateValidation) -> str:
    lines = [result.validated_response, "", "=" * 60]
    lines.append("VALID" if result.is_valid else "INVALID")
    for message in result.errors:
        lines.append(f"  error    {message}")
    for message in result.warnings:
        lines.append(f"  warning  {message}")
    for change in result.change_log:
        lines.append(f"  change   {change}")
    return "\n".join(lines)


async def run(
    args: argparse.Namespace, text: str, rule_source: Optional[StaticRuleSource] = None,
) -> tuple[bool, str]:
    workspace = LocalWorkspace(args.workspace)

    if args.mode in ("chat", "tech-debt"):
        validator = ChatValidator(workspace)
        if args.mode == "chat":
            result = await validator.validate_chat(text)
        else:
            result = validator.evaluate_tech_debt(text)
        if args.json:
            return result.is_valid, ValidationResultResponse.from_result(result).model_dump_json(indent=2)
        return result.is_valid, format_result(result)

    orchestrator = ValidationOrchestrator(workspace, rule_source=rule_source)
    if args.mode == "minimal":
        aggregate = await orchestrator.validate_ai_response_minimal(text)
    else:
        aggregate = await orchestrator.validate_ai_response(text, args.context)

    if args.json:
        return aggregate.is_valid, AggregateValidationResponse.from_aggregate(aggregate).model_dump_json(indent=2)
    return aggregate.is_valid, format_aggregate(aggregate)


def main(argv: Optional[list[str]] = None):
    args = build_parser().parse_args(argv)
    setup_logging(stream=sys.stderr)

    try:
        text = read_input(args.input)
    except OSError as e:
        print(f"Error: Cannot read input {args.input}: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    rule_source = None
    if args.rules:
        try:
            rule_source = StaticRuleSource.from_file(args.rules)
        except (OSError, ValueError, ValidationError) as e:
            logger.error("Could not load rules: %s", e, extra={"error": str(e)})
            print(f"Error: Invalid rule file {args.rules}: {e}", file=sys.stderr)
            sys.exit(EXIT_ERROR)

    is_valid, output = asyncio.run(run(args, text, rule_source))

    print(output)
    sys.exit(EXIT_VALID if is_valid else EXIT_INVALID)


if __name__ == "__main__":
    main()
