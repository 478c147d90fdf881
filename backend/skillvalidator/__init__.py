"""
Skill Validator: expansion and validation for AI-agent skill documents.

This package turns minimal skill documents into complete ones, validates
them structurally (with a single auto-fix pass), checks cross-skill
contracts of solutions, scores solution quality with an LLM, and tracks
cascading validation issues while a skill is being edited.
"""

__version__ = "0.3.0"

from .expansion import ExpansionResult, SkillExpander, expand_skill
from .validator import ValidationEngine, ValidationResult, validate_skill
from .pipeline import AutoFixer, SkillValidationOutcome, ValidationPipeline
from .cascade import CascadingValidationEngine, Issue

__all__ = [
    "__version__",
    # Expansion
    "SkillExpander",
    "ExpansionResult",
    "expand_skill",
    # Validation
    "ValidationEngine",
    "ValidationResult",
    "validate_skill",
    # Pipeline
    "ValidationPipeline",
    "SkillValidationOutcome",
    "AutoFixer",
    # Cascading issues
    "CascadingValidationEngine",
    "Issue",
]
