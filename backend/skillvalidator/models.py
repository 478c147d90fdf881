"""
Pydantic models and enumerations shared across the validator.

Skill documents themselves travel as plain dictionaries (they are
user-authored JSON/YAML and must round-trip verbatim); the models here
describe the HTTP request envelopes and the closed vocabularies used by
validation issues.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Severity of a cascading validation issue."""

    BLOCKER = "blocker"
    WARNING = "warning"
    SUGGESTION = "suggestion"
    INFO = "info"


class Category(str, Enum):
    """Skill section an issue belongs to."""

    INTENTS = "intents"
    TOOLS = "tools"
    POLICY = "policy"
    SCENARIOS = "scenarios"
    ENGINE = "engine"


class IssueStatus(str, Enum):
    NEW = "new"
    REVIEWING = "reviewing"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ChangeType(str, Enum):
    """Kinds of document edits the cascading engine reacts to."""

    SCENARIO_ADDED = "scenario_added"
    INTENT_ADDED = "intent_added"
    INTENT_MODIFIED = "intent_modified"
    TOOL_ADDED = "tool_added"
    TOOL_MODIFIED = "tool_modified"
    POLICY_MODIFIED = "policy_modified"


class IssueSeverity(str, Enum):
    """Severity of a structural validation issue."""

    ERROR = "error"
    WARNING = "warning"


class Section(str, Enum):
    """Sections accepted by incremental section validation."""

    PROBLEM = "problem"
    TOOLS = "tools"
    GUARDRAILS = "guardrails"
    INTENTS = "intents"
    ROLE = "role"


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="allow")


class SkillRequest(_Envelope):
    """Body of ``POST /validate/skill`` and ``POST /expand/skill``."""

    skill: Optional[Dict[str, Any]] = None


class SectionRequest(_Envelope):
    """Body of ``POST /validate/section``."""

    skill: Optional[Dict[str, Any]] = None
    section: Optional[str] = None


class SolutionRequest(_Envelope):
    """Body of ``POST /validate/solution``."""

    solution: Optional[Dict[str, Any]] = None
    skills: Optional[List[Dict[str, Any]]] = None
    connectors: Optional[List[Dict[str, Any]]] = None
    mcp_store: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    ok: bool = True
    service: str


class AutoFix(BaseModel):
    """One repair applied by the auto-fix stage."""

    error: str
    path: str
    fix: str


class ExpandedSkillFields(BaseModel):
    skill_id: Optional[str] = None
    expanded_fields: List[str] = Field(default_factory=list)
