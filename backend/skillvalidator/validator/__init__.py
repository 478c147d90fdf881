"""
Skill Validation Engine.

This package provides multi-layer validation for skill documents:
- Layer 1: Schema Validation (structure, required sections, enums)
- Layer 2: Reference Validation (cross-references, duplicates, cycles)
- Layer 3: Completeness Check (export readiness)
- Layer 4: Security Validation (access control)
- Section checks for incremental authoring
- Solution Validation (cross-skill contracts)
"""

from .issues import LayerResult, ValidationIssue
from .schema import SchemaValidator
from .references import ReferenceValidationResult, ReferenceValidator, Unresolved
from .completeness import Completeness, CompletenessChecker
from .security import SecurityValidator
from .engine import ValidationEngine, ValidationResult, load_skill_file, validate_skill
from .sections import SECTION_CHECKS, SectionResult, validate_section
from .solution import SolutionValidationResult, SolutionValidator

__all__ = [
    "LayerResult",
    "ValidationIssue",
    # Layer 1: Schema
    "SchemaValidator",
    # Layer 2: References
    "ReferenceValidator",
    "ReferenceValidationResult",
    "Unresolved",
    # Layer 3: Completeness
    "CompletenessChecker",
    "Completeness",
    # Layer 4: Security
    "SecurityValidator",
    # Engine
    "ValidationEngine",
    "ValidationResult",
    "load_skill_file",
    "validate_skill",
    # Sections
    "SECTION_CHECKS",
    "SectionResult",
    "validate_section",
    # Solution
    "SolutionValidator",
    "SolutionValidationResult",
]
