"""
FailSafe — Passive Validation for AI Assistant Output

Screens AI-generated chat and code for hallucinated claims about the
workspace and for heuristic code-quality debt before it reaches a user.

Public API:
  - ValidationOrchestrator: Rule pre-pass, chat pass, general pass, banners
  - ChatValidator:          Pattern, file-reference and claim checks
  - PatternScanner:         Deterministic regex families over lines
  - ClaimExtractor:         Prose to structured file claims
  - ClaimVerifier:          File claims checked against a Workspace
  - RuleEngine:             Compiled rules with block/warn/suggest actions
  - TechDebtAnalyzer:       Heuristic complexity, smell and security passes
  - LocalWorkspace:         aiofiles-backed filesystem ground truth

Usage:
    from failsafe import ValidationOrchestrator, LocalWorkspace
    orchestrator = ValidationOrchestrator(LocalWorkspace("."))
    result = await orchestrator.validate_ai_response(text)
"""

from failsafe.config import settings

__version__ = settings.CORE_VERSION

from failsafe.models import (
    AggregateValidation,
    ClaimType,
    FileClaim,
    Rule,
    RuleOutcome,
    ValidationItem,
    ValidationResult,
)
from failsafe.patterns import PatternFamily, PatternScanner, ScanPattern
from failsafe.claims import ClaimExtractor, ClaimVerifier
from failsafe.rules import RuleEngine, RuleSource, StaticRuleSource, compile_rule
from failsafe.tech_debt import (
    ComplexityEstimator,
    HeuristicComplexityEstimator,
    TechDebtAnalyzer,
)
from failsafe.workspace import LocalWorkspace, Workspace
from failsafe.general_validator import GeneralValidator, ImplementationClaimValidator
from failsafe.chat_validator import ChatValidator
from failsafe.orchestrator import ValidationOrchestrator

__all__ = [
    "AggregateValidation",
    "ClaimType",
    "FileClaim",
    "Rule",
    "RuleOutcome",
    "ValidationItem",
    "ValidationResult",
    "PatternFamily",
    "PatternScanner",
    "ScanPattern",
    "ClaimExtractor",
    "ClaimVerifier",
    "RuleEngine",
    "RuleSource",
    "StaticRuleSource",
    "compile_rule",
    "ComplexityEstimator",
    "HeuristicComplexityEstimator",
    "TechDebtAnalyzer",
    "LocalWorkspace",
    "Workspace",
    "GeneralValidator",
    "ImplementationClaimValidator",
    "ChatValidator",
    "ValidationOrchestrator",
]
