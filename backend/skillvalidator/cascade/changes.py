"""
Change detection between two revisions of a skill document.

Detection is shallow on purpose: a list that grew is reported as the
addition of its last element, and an intent, tool or policy whose content
differs is reported as modified. Removals and reordering produce no change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models import ChangeType


@dataclass
class Change:
    type: ChangeType
    item: Any
    id: Optional[str] = None
    previous_item: Any = None


def _items(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _supported_intents(skill: Dict[str, Any]) -> List[Any]:
    intents = skill.get("intents")
    return _items(intents.get("supported")) if isinstance(intents, dict) else []


def _get(item: Any, key: str) -> Any:
    return item.get(key) if isinstance(item, dict) else None


def detect_changes(previous: Dict[str, Any], current: Dict[str, Any]) -> List[Change]:
    """
    Compare two revisions of a skill.

    Args:
        previous: The prior revision.
        current: The new revision.

    Returns:
        Detected changes, scenarios first, then intents, tools and policy.
    """
    changes: List[Change] = []

    prev_scenarios = _items(previous.get("scenarios"))
    curr_scenarios = _items(current.get("scenarios"))
    if len(curr_scenarios) > len(prev_scenarios):
        scenario = curr_scenarios[-1]
        changes.append(Change(
            type=ChangeType.SCENARIO_ADDED,
            item=scenario,
            id=_get(scenario, "id") or f"scenario_{len(curr_scenarios)}",
        ))

    prev_intents = _supported_intents(previous)
    curr_intents = _supported_intents(current)
    if len(curr_intents) > len(prev_intents):
        intent = curr_intents[-1]
        changes.append(Change(
            type=ChangeType.INTENT_ADDED,
            item=intent,
            id=_get(intent, "id") or f"intent_{len(curr_intents)}",
        ))

    for intent in curr_intents:
        intent_id = _get(intent, "id")
        if intent_id is None:
            continue
        prev_intent = next((i for i in prev_intents if _get(i, "id") == intent_id), None)
        if prev_intent is not None and prev_intent != intent:
            changes.append(Change(
                type=ChangeType.INTENT_MODIFIED,
                item=intent,
                id=intent_id,
                previous_item=prev_intent,
            ))

    prev_tools = _items(previous.get("tools"))
    curr_tools = _items(current.get("tools"))
    if len(curr_tools) > len(prev_tools):
        tool = curr_tools[-1]
        changes.append(Change(
            type=ChangeType.TOOL_ADDED,
            item=tool,
            id=_get(tool, "id") or _get(tool, "name") or f"tool_{len(curr_tools)}",
        ))

    for tool in curr_tools:
        prev_tool = _matching_tool(prev_tools, tool)
        if prev_tool is not None and prev_tool != tool:
            changes.append(Change(
                type=ChangeType.TOOL_MODIFIED,
                item=tool,
                id=_get(tool, "id") or _get(tool, "name"),
                previous_item=prev_tool,
            ))

    prev_policy = previous.get("policy") or {}
    curr_policy = current.get("policy") or {}
    if prev_policy != curr_policy:
        changes.append(Change(
            type=ChangeType.POLICY_MODIFIED,
            item=curr_policy,
            previous_item=prev_policy,
        ))

    return changes


def _matching_tool(tools: List[Any], tool: Any) -> Optional[Dict[str, Any]]:
    tool_id, name = _get(tool, "id"), _get(tool, "name")
    for candidate in tools:
        if tool_id is not None and _get(candidate, "id") == tool_id:
            return candidate
        if name is not None and _get(candidate, "name") == name:
            return candidate
    return None
