"""
Relevance sweep.

Decides whether an issue still describes something true about the
current skill, by evaluating the issue's relevance check.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from .issues import (
    EXPIRES_AFTER,
    INTENT_MISSING_EXAMPLES,
    INTENT_PRESENT,
    PROBLEM_MISSING,
    SCENARIO_PRESENT,
    TOOL_MISSING_MOCKS,
    TOOL_MISSING_POLICY,
    TOOL_PRESENT,
    Issue,
    parse_timestamp,
)
from .rules import has_mock_examples, has_policy, problem_missing


def _find_tool(skill: Dict[str, Any], name: Optional[str]) -> Optional[Dict[str, Any]]:
    for tool in skill.get("tools") or []:
        if isinstance(tool, dict) and tool.get("name") == name:
            return tool
    return None


def _find_intent(skill: Dict[str, Any], name: Optional[str]) -> Optional[Dict[str, Any]]:
    intents = skill.get("intents")
    supported: List[Any] = intents.get("supported") or [] if isinstance(intents, dict) else []
    for intent in supported:
        if isinstance(intent, dict) and name in (intent.get("name"), intent.get("id")):
            return intent
    return None


def _has_scenario(skill: Dict[str, Any], target: Optional[str]) -> bool:
    return any(
        isinstance(s, dict) and target in (s.get("title"), s.get("id"))
        for s in skill.get("scenarios") or []
    )


def is_still_relevant(issue: Issue, skill: Dict[str, Any], now: datetime) -> bool:
    """
    Evaluate an issue against the current skill.

    Args:
        issue: The issue to check.
        skill: Current revision of the skill.
        now: Current time, for expiring checks.

    Returns:
        False when the issue should be dropped from the set.
    """
    check = issue.check
    kind, target = check.kind, check.target

    if kind == TOOL_MISSING_POLICY:
        tool = _find_tool(skill, target)
        return tool is not None and not has_policy(tool)

    if kind == TOOL_MISSING_MOCKS:
        tool = _find_tool(skill, target)
        return tool is not None and not has_mock_examples(tool)

    if kind == TOOL_PRESENT:
        return _find_tool(skill, target) is not None

    if kind == INTENT_MISSING_EXAMPLES:
        intent = _find_intent(skill, target)
        return intent is not None and not intent.get("examples")

    if kind == INTENT_PRESENT:
        return _find_intent(skill, target) is not None

    if kind == SCENARIO_PRESENT:
        return _has_scenario(skill, target)

    if kind == PROBLEM_MISSING:
        return problem_missing(skill)

    if kind == EXPIRES_AFTER:
        created = issue.created_at or parse_timestamp(issue.triggered_by.get("timestamp"))
        if created is None or check.ttl_s is None:
            return True
        return (now - created).total_seconds() <= check.ttl_s

    return True
