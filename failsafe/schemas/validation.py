"""
Validation Schemas — Serializable Results

Pydantic models for hosts that ship results over the wire or print
them as JSON.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from failsafe.models import AggregateValidation, ValidationItem, ValidationResult


# ============================================================
# FINDINGS
# ============================================================

class ValidationItemResponse(BaseModel):
    type: str
    message: str
    category: str
    line: Optional[int] = None
    severity: Optional[str] = None
    file_path: Optional[str] = None
    timestamp: datetime

    @classmethod
    def from_item(cls, item: ValidationItem) -> ValidationItemResponse:
        return cls(
            type=item.type,
            message=item.message,
            category=item.category,
            line=item.line,
            severity=item.severity,
            file_path=item.file_path,
            timestamp=item.timestamp,
        )


class ValidationResultResponse(BaseModel):
    """One chat, minimal or tech-debt pass."""
    is_valid: bool
    errors: list[ValidationItemResponse] = Field(default_factory=list)
    warnings: list[ValidationItemResponse] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    timestamp: datetime

    @classmethod
    def from_result(cls, result: ValidationResult) -> ValidationResultResponse:
        return cls(
            is_valid=result.is_valid,
            errors=[ValidationItemResponse.from_item(i) for i in result.errors],
            warnings=[ValidationItemResponse.from_item(i) for i in result.warnings],
            suggestions=list(result.suggestions),
            timestamp=result.timestamp,
        )


# ============================================================
# AGGREGATE
# ============================================================

class DiffSpan(BaseModel):
    type: str = Field(..., pattern="^(equal|delete|insert)$")
    text: str
    orig_start: Optional[int] = None
    orig_end: Optional[int] = None
    rev_start: Optional[int] = None
    rev_end: Optional[int] = None


class AggregateValidationResponse(BaseModel):
    """Full or minimal response validation."""
    original_response: str
    validated_response: str
    is_valid: bool
    applied_changes: bool
    change_log: list[str]
    warnings: list[str]
    errors: list[str]
    timestamp: datetime
    diff_spans: list[DiffSpan] = Field(default_factory=list)

    @classmethod
    def from_aggregate(cls, result: AggregateValidation) -> AggregateValidationResponse:
        return cls(
            original_response=result.original_response,
            validated_response=result.validated_response,
            is_valid=result.is_valid,
            applied_changes=result.applied_changes,
            change_log=list(result.change_log),
            warnings=list(result.warnings),
            errors=list(result.errors),
            timestamp=result.timestamp,
            diff_spans=[DiffSpan(**span) for span in result.diff_spans],
        )
