"""
Shared validation framework for TimeForge.

This module provides the issue, severity and result types used by the
validators, plus small helpers for building actionable messages. Validators
report problems as issues grouped by category; only ERRORs make a result
invalid.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from rapidfuzz import fuzz, process as rapidfuzz_process


class ValidationSeverity(Enum):
    """Severity levels for validation issues."""

    ERROR = "error"      # Blocks query execution
    WARNING = "warning"  # Likely mistake, query may still run
    INFO = "info"        # Informational suggestion


@dataclass
class ValidationIssue:
    """Represents a single validation issue found in a query or its context."""

    severity: ValidationSeverity
    category: str  # "context", "placeholders", "range", "syntax"
    message: str
    location: Optional[str] = None  # e.g. "time_field", "time_range.from"
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "severity": self.severity.value,
            "category": self.category,
            "message": self.message,
            "location": self.location,
            "suggestion": self.suggestion,
        }


@dataclass
class ValidationResult:
    """Results from validating a query."""

    valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    info: List[ValidationIssue] = field(default_factory=list)

    def add_issue(self, issue: ValidationIssue) -> None:
        """Add an issue to the appropriate list based on severity."""
        if issue.severity == ValidationSeverity.ERROR:
            self.errors.append(issue)
            self.valid = False
        elif issue.severity == ValidationSeverity.WARNING:
            self.warnings.append(issue)
        else:
            self.info.append(issue)

    def add_issues(self, issues: Sequence[ValidationIssue]) -> None:
        for issue in issues:
            self.add_issue(issue)

    @property
    def messages(self) -> List[str]:
        """Human-readable error messages, in the order they were found."""
        return [issue.message for issue in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "info": [i.to_dict() for i in self.info],
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "info_count": len(self.info),
        }


class BaseValidator(ABC):
    """
    Abstract base class for validators.

    Subclasses implement :meth:`checks`, returning a mapping of category name
    to the issues found for that category.
    """

    @abstractmethod
    def checks(self, query: str, context: Dict[str, Any]) -> Dict[str, List[ValidationIssue]]:
        """Run all checks and return issues keyed by category."""

    @abstractmethod
    def get_name(self) -> str:
        """Return the validator name used in result metadata."""

    def validate(self, query: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run all checks and return comprehensive results.

        Returns:
            Dictionary with:
                - valid: Overall validation status
                - validation_results: Detailed results by category
                - metadata: Validator name and issue totals
        """
        context = context or {}
        by_category: Dict[str, ValidationResult] = {}
        for category, issues in self.checks(query, context).items():
            result = ValidationResult(valid=True)
            result.add_issues(issues)
            by_category[category] = result

        overall_valid = all(result.valid for result in by_category.values())
        return {
            "valid": overall_valid,
            "query": query,
            "validation_results": {name: result.to_dict() for name, result in by_category.items()},
            "metadata": {
                "validator": self.get_name(),
                "error_count": sum(len(r.errors) for r in by_category.values()),
                "warning_count": sum(len(r.warnings) for r in by_category.values()),
            },
        }


def check_balanced_quotes(text: str, quote_char: str = "'") -> Optional[ValidationIssue]:
    """
    Check if quotes are balanced in text.

    Returns:
        ValidationIssue if unbalanced, None otherwise
    """
    escaped = text.replace(f"\\{quote_char}", "").replace(quote_char * 2, "")
    if escaped.count(quote_char) % 2 != 0:
        return ValidationIssue(
            severity=ValidationSeverity.WARNING,
            category="syntax",
            message=f"Unbalanced {quote_char} quotes detected",
            suggestion=f"Ensure all {quote_char} quotes are properly closed or escaped",
        )
    return None


def suggest_similar(value: str, candidates: Sequence[str], max_suggestions: int = 3, score_cutoff: float = 70.0) -> List[str]:
    """
    Find candidates similar to ``value`` using rapidfuzz.

    Args:
        value: The unknown or misspelled name
        candidates: Valid names
        max_suggestions: Maximum number of suggestions to return
        score_cutoff: Minimum similarity (0-100) for a candidate to be kept

    Returns:
        Candidate names ordered by similarity
    """
    if not value or not candidates:
        return []
    matches = rapidfuzz_process.extract(
        value,
        list(candidates),
        scorer=fuzz.ratio,
        limit=max_suggestions,
        score_cutoff=score_cutoff,
    )
    return [match[0] for match in matches]
