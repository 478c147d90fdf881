"""
Skill expansion: derivation heuristics and the expander that turns a
minimal skill document into a complete one.
"""

from .expander import DEFAULT_ENGINE, ExpansionResult, SkillExpander, expand_skill, is_missing
from .heuristics import (
    derive_example_input,
    derive_example_output,
    derive_goals,
    derive_intent_id,
    derive_mcp_tool,
    derive_tool_id,
    extract_entities,
    generate_examples,
    generate_sample_value,
    slugify,
)

__all__ = [
    "DEFAULT_ENGINE",
    "ExpansionResult",
    "SkillExpander",
    "expand_skill",
    "is_missing",
    "derive_example_input",
    "derive_example_output",
    "derive_goals",
    "derive_intent_id",
    "derive_mcp_tool",
    "derive_tool_id",
    "extract_entities",
    "generate_examples",
    "generate_sample_value",
    "slugify",
]
