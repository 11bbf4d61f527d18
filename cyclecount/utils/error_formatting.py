"""
Error messaging for the command line.

Turns exceptions raised while loading exports or applying user edits into
short, actionable messages. Technical details go to the log.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
import csv


class ErrorSeverity(Enum):
    """Error severity classification for presentation."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """
    Structured error context for user-facing messages.

    Attributes:
        message: User-friendly error description
        severity: Error severity level
        technical_details: Technical error info (for logs)
        context: Additional context (file, SKU, field)
        recovery_steps: Actions the user can take
        error_code: Short code for support/documentation
    """
    message: str
    severity: ErrorSeverity
    technical_details: str
    context: Dict[str, Any] = field(default_factory=dict)
    recovery_steps: List[str] = field(default_factory=list)
    error_code: Optional[str] = None

    def format_for_display(self, include_technical: bool = False) -> str:
        lines = [self.message]

        if self.context:
            lines.append("")
            lines.append("Details:")
            for key, value in self.context.items():
                if value is not None:
                    lines.append(f"  - {key}: {value}")

        if self.recovery_steps:
            lines.append("")
            lines.append("Suggested actions:")
            for i, step in enumerate(self.recovery_steps, 1):
                lines.append(f"  {i}. {step}")

        if include_technical and self.technical_details:
            lines.append("")
            lines.append(f"Technical details: {self.technical_details}")

        if self.error_code:
            lines.append("")
            lines.append(f"Error code: {self.error_code}")

        return "\n".join(lines)

    def format_for_log(self) -> str:
        """Format error for structured logging."""
        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items() if v is not None)
        return f"[{self.severity.value.upper()}] {self.message} | Context: {context_str} | Technical: {self.technical_details}"


class ErrorFormatter:
    """Transforms exceptions into ErrorContext objects."""

    @staticmethod
    def format_import_error(exc: Exception, operation: str, path: Optional[Path] = None) -> ErrorContext:
        """
        Format errors raised while reading an export file.

        Args:
            exc: The exception raised
            operation: What was being loaded (e.g. "cycle-count import")
            path: File involved
        """
        context: Dict[str, Any] = {"Operation": operation}
        if path is not None:
            context["File"] = str(path)
        technical = f"{type(exc).__name__}: {exc}"

        if isinstance(exc, FileNotFoundError):
            return ErrorContext(
                message="File not found",
                severity=ErrorSeverity.ERROR,
                technical_details=technical,
                context=context,
                recovery_steps=["Check the file path", "Export the file again from the source system"],
                error_code="IMP_001",
            )
        if isinstance(exc, PermissionError):
            return ErrorContext(
                message="File cannot be read",
                severity=ErrorSeverity.ERROR,
                technical_details=technical,
                context=context,
                recovery_steps=["Close the file in other programs", "Check file permissions"],
                error_code="IMP_002",
            )
        if isinstance(exc, (csv.Error, UnicodeDecodeError)):
            return ErrorContext(
                message="File is not a readable CSV export",
                severity=ErrorSeverity.ERROR,
                technical_details=technical,
                context=context,
                recovery_steps=["Save the file as CSV (comma, semicolon or tab separated)"],
                error_code="IMP_003",
            )
        return ErrorContext(
            message=f"Unexpected error during {operation}",
            severity=ErrorSeverity.ERROR,
            technical_details=technical,
            context=context,
            recovery_steps=["Check the file contents", "Run again with --verbose and review the log"],
            error_code="IMP_UNKNOWN",
        )

    @staticmethod
    def format_validation_error(
        field_name: str,
        value: Any,
        constraint: str,
        expected: Optional[str] = None,
    ) -> ErrorContext:
        """Format a rejected user input (lead time, planning window, date)."""
        message = f"Invalid value for '{field_name}'"
        if expected:
            message += f": {expected}"

        recovery_steps = [f"Check the value given for '{field_name}'"]
        lowered = constraint.lower()
        if "date" in lowered:
            recovery_steps.append("Date format: YYYY-MM-DD (e.g. 2025-03-14)")
        elif "greater than 0" in lowered or "> 0" in lowered:
            recovery_steps.append("The value must be a positive number")
        elif "number" in lowered or "integer" in lowered:
            recovery_steps.append("The value must be numeric")

        return ErrorContext(
            message=message,
            severity=ErrorSeverity.WARNING,
            technical_details=f"ValidationError: field={field_name}, value={value!r}, constraint={constraint}",
            context={"Field": field_name, "Value": str(value), "Constraint": constraint},
            recovery_steps=recovery_steps,
            error_code="VAL_001",
        )
