"""
Rule Schemas — Rule File Format

Pydantic models for JSON rule files loaded by StaticRuleSource.

    {"rules": [{"name": "...", "pattern": "...", "response": "warn"}]}
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field

from failsafe.models import Rule


class RuleSchema(BaseModel):
    name: str = Field(..., min_length=1)
    pattern: str = Field(..., min_length=1,
                         description="Regex, matched case-insensitively.")
    response: str = Field("default",
                          description="block, warn, suggest, or anything else for an info banner.")
    message: Optional[str] = None
    description: Optional[str] = None
    enabled: bool = True

    def to_rule(self) -> Rule:
        return Rule(
            name=self.name,
            pattern=self.pattern,
            response=self.response,
            message=self.message,
            description=self.description,
            enabled=self.enabled,
        )


class RuleFile(BaseModel):
    """Top-level rule file body."""
    rules: list[RuleSchema] = Field(default_factory=list)
