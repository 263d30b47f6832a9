"""Validation report for collecting and formatting business-rule issues."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional


class ValidationSeverity(IntEnum):
    """Severity levels for validation issues."""

    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass
class ValidationIssue:
    """Represents a single validation issue.

    Attributes:
        severity: The severity level of the issue
        field: The field name that has the issue (``line_items[2].quantity``)
        message: Human-readable description of the issue
        value: The value that caused the issue
        context: Optional context information (e.g. invoice number)
    """

    severity: ValidationSeverity
    field: str
    message: str
    value: Any
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        context_str = ""
        if self.context:
            context_parts = [f"{k}={v}" for k, v in self.context.items()]
            context_str = f" ({', '.join(context_parts)})"

        return f"[{self.severity.name}] {self.field}: {self.message}{context_str}"

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form used in API error responses."""
        return {
            "severity": self.severity.name.lower(),
            "field": self.field,
            "message": self.message,
        }


class ValidationReport:
    """Collects validation errors, warnings and info messages.

    Errors block the operation; warnings and info are returned to the
    caller alongside a successful result.

    Example:
        >>> report = ValidationReport()
        >>> report.add_error("due_date", "Due date is before issue date", "2025-01-01")
        >>> report.add_warning("line_items", "Invoice has no line items", [])
        >>> report.summary()
        '1 error(s), 1 warning(s)'
    """

    def __init__(self) -> None:
        self.issues: List[ValidationIssue] = []

    def _add(
        self,
        severity: ValidationSeverity,
        field: str,
        message: str,
        value: Any,
        context: Optional[Dict[str, Any]],
    ) -> None:
        self.issues.append(
            ValidationIssue(
                severity=severity,
                field=field,
                message=message,
                value=value,
                context=context,
            )
        )

    def add_error(
        self,
        field: str,
        message: str,
        value: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._add(ValidationSeverity.ERROR, field, message, value, context)

    def add_warning(
        self,
        field: str,
        message: str,
        value: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._add(ValidationSeverity.WARNING, field, message, value, context)

    def add_info(
        self,
        field: str,
        message: str,
        value: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._add(ValidationSeverity.INFO, field, message, value, context)

    def get_by_severity(self, severity: ValidationSeverity) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == severity]

    def get_errors(self) -> List[ValidationIssue]:
        return self.get_by_severity(ValidationSeverity.ERROR)

    def get_warnings(self) -> List[ValidationIssue]:
        return self.get_by_severity(ValidationSeverity.WARNING)

    @property
    def error_count(self) -> int:
        return len(self.get_errors())

    @property
    def warning_count(self) -> int:
        return len(self.get_warnings())

    @property
    def info_count(self) -> int:
        return len(self.get_by_severity(ValidationSeverity.INFO))

    def is_valid(self) -> bool:
        """True when there are no errors; warnings do not affect validity."""
        return self.error_count == 0

    def has_errors(self) -> bool:
        return self.error_count > 0

    def first_error_message(self) -> Optional[str]:
        """Message of the first error, used as the user-facing error text."""
        errors = self.get_errors()
        return errors[0].message if errors else None

    def merge(self, other: "ValidationReport") -> None:
        self.issues.extend(other.issues)

    def summary(self) -> str:
        """Get a summary with counts of errors, warnings and info messages."""
        parts = []
        if self.error_count > 0:
            parts.append(f"{self.error_count} error(s)")
        if self.warning_count > 0:
            parts.append(f"{self.warning_count} warning(s)")
        if self.info_count > 0:
            parts.append(f"{self.info_count} info message(s)")

        return ", ".join(parts) if parts else "No issues found"

    def format(self) -> str:
        """Format the report for CLI display, grouped by severity."""
        if not self.issues:
            return "Validation successful - no issues found"

        lines = [f"Validation Report - {self.summary()}", "=" * 60]

        for severity, title in (
            (ValidationSeverity.ERROR, "ERRORS"),
            (ValidationSeverity.WARNING, "WARNINGS"),
            (ValidationSeverity.INFO, "INFO"),
        ):
            issues = self.get_by_severity(severity)
            if issues:
                lines.append(f"\n{title}:")
                lines.extend(f"  - {issue}" for issue in issues)

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.is_valid(),
            "summary": self.summary(),
            "issues": [issue.to_dict() for issue in self.issues],
        }
