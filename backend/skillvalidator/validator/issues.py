"""
Structural validation issues shared by every validation layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..models import IssueSeverity


@dataclass
class ValidationIssue:
    """A single structural problem found in a skill document."""

    code: str
    severity: str  # error | warning
    path: str
    message: str
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.path}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "code": self.code,
            "severity": self.severity,
            "path": self.path,
            "message": self.message,
        }
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data


@dataclass
class LayerResult:
    """Issues produced by one validation layer."""

    valid: bool = True
    issues: List[ValidationIssue] = field(default_factory=list)

    def add_issue(
        self,
        code: str,
        severity: str,
        path: str,
        message: str,
        suggestion: Optional[str] = None,
    ) -> None:
        """Add an issue; error severity marks the layer invalid."""
        self.issues.append(ValidationIssue(
            code=code,
            severity=severity,
            path=path,
            message=message,
            suggestion=suggestion,
        ))
        if severity == IssueSeverity.ERROR.value:
            self.valid = False

    def error(self, code: str, path: str, message: str, suggestion: Optional[str] = None) -> None:
        self.add_issue(code, IssueSeverity.ERROR.value, path, message, suggestion)

    def warning(self, code: str, path: str, message: str, suggestion: Optional[str] = None) -> None:
        self.add_issue(code, IssueSeverity.WARNING.value, path, message, suggestion)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR.value]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING.value]
