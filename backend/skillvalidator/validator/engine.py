"""
Validation Engine.

Combines all validation layers into a unified validation pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..errors import RequestShapeError
from .completeness import Completeness, CompletenessChecker
from .issues import ValidationIssue
from .references import ReferenceValidator, Unresolved
from .schema import SchemaValidator
from .security import SecurityValidator

# Sections that must be complete before a skill can be exported.
# Role and mocks are optional for export.
EXPORT_REQUIRED_SECTIONS = ("problem", "tools")


@dataclass
class ValidationResult:
    """
    Combined result from all validation layers.

    Contains issues from:
    - Layer 1: Schema Validation
    - Layer 2: Reference Validation
    - Layer 4: Security Validation

    plus the Layer 3 completeness flags.
    """

    valid: bool
    ready_to_export: bool = False
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    unresolved: Unresolved = field(default_factory=Unresolved)
    completeness: Completeness = field(default_factory=Completeness)

    def summary(self) -> str:
        """Generate a summary of validation results."""
        lines = []
        status = "PASSED" if self.valid else "FAILED"
        lines.append(f"Validation {status}")
        lines.append(f"  Errors: {len(self.errors)}")
        lines.append(f"  Warnings: {len(self.warnings)}")
        lines.append(f"  Ready to export: {'yes' if self.ready_to_export else 'no'}")

        if self.unresolved.tools or self.unresolved.workflows:
            refs = ", ".join(self.unresolved.tools + self.unresolved.workflows)
            lines.append(f"  Unresolved: {refs}")

        incomplete = self.completeness.incomplete_sections()
        if incomplete:
            lines.append(f"  Incomplete: {', '.join(incomplete)}")

        for issue in self.errors:
            lines.append(f"  {issue}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "valid": self.valid,
            "ready_to_export": self.ready_to_export,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "unresolved": self.unresolved.to_dict(),
            "completeness": self.completeness.to_dict(),
        }


class ValidationEngine:
    """
    Unified validation engine combining all validation layers.

    Layers:
    - Layer 1: Schema Validation (structure)
    - Layer 2: Reference Validation (cross-references)
    - Layer 3: Completeness Check (export readiness)
    - Layer 4: Security Validation (access control)

    Every layer runs even when an earlier one fails, so authors see all
    problems at once. Validation never modifies the document.
    """

    def __init__(self) -> None:
        self.schema_validator = SchemaValidator()
        self.reference_validator = ReferenceValidator()
        self.completeness_checker = CompletenessChecker()
        self.security_validator = SecurityValidator()

    def validate(self, skill: Dict[str, Any]) -> ValidationResult:
        """
        Run all validation layers on a skill.

        Args:
            skill: The skill document.

        Returns:
            ValidationResult with combined results from all layers.
        """
        result = ValidationResult(valid=True)

        schema = self.schema_validator.validate(skill)
        result.errors.extend(schema.errors)
        result.warnings.extend(schema.warnings)

        references = self.reference_validator.validate(skill)
        result.errors.extend(references.errors)
        result.warnings.extend(references.warnings)
        result.unresolved = references.unresolved

        result.completeness = self.completeness_checker.check(skill)

        security = self.security_validator.validate(skill)
        result.errors.extend(security.errors)
        result.warnings.extend(security.warnings)

        result.valid = not result.errors
        result.ready_to_export = self._ready_to_export(result)
        return result

    def _ready_to_export(self, result: ValidationResult) -> bool:
        if result.errors or not result.unresolved.empty:
            return False
        return all(getattr(result.completeness, name) for name in EXPORT_REQUIRED_SECTIONS)

    def quick_validate(self, skill: Dict[str, Any]) -> bool:
        """
        Quick validation check (schema only).

        Args:
            skill: The skill document.

        Returns:
            True if the schema layer reports no errors.
        """
        return self.schema_validator.validate(skill).valid

    def summary(self, skill: Dict[str, Any]) -> Dict[str, Any]:
        """
        Progress summary for a skill: counts, unresolved references and
        per-section completeness details.
        """
        result = self.validate(skill)
        report = self.completeness_checker.report(skill)

        sections = {}
        for name in ("problem", "scenarios", "role", "intents", "tools", "policy", "mocks"):
            sections[name] = {"complete": report[name]["complete"], **report[name]["details"]}
        security = self.security_validator.report(skill)
        sections["security"] = {
            "complete": security["high_risk"] == security["high_risk_with_policy"],
            **security,
        }

        return {
            "valid": result.valid,
            "ready_to_export": result.ready_to_export,
            "error_count": len(result.errors),
            "warning_count": len(result.warnings),
            "unresolved_refs": {
                "tools": len(result.unresolved.tools),
                "workflows": len(result.unresolved.workflows),
                "intents": len(result.unresolved.intents),
            },
            "progress": report["overall_progress"],
            "sections": sections,
        }


def load_skill_file(path: Path) -> Dict[str, Any]:
    """
    Load a skill document from a YAML or JSON file.

    Args:
        path: Path to the document.

    Returns:
        The parsed document.

    Raises:
        RequestShapeError: If the file is missing, unparsable or not a mapping.
    """
    if not path.exists():
        raise RequestShapeError(f"File not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RequestShapeError(f"YAML parse error: {e}") from e

    if data is None:
        raise RequestShapeError("File is empty")
    if not isinstance(data, dict):
        raise RequestShapeError("Skill document must be a mapping")
    # Accept both a bare skill and a request body of the form {skill: {...}}
    if isinstance(data.get("skill"), dict) and "id" not in data:
        return data["skill"]
    return data


def validate_skill(skill: Dict[str, Any], engine: Optional[ValidationEngine] = None) -> ValidationResult:
    """
    Convenience function to validate a skill document.

    Args:
        skill: The skill document.
        engine: Engine to use; a fresh one by default.

    Returns:
        ValidationResult with combined results.
    """
    return (engine or ValidationEngine()).validate(skill)
