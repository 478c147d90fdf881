"""
Cascading validation rules.

One rule per change type. Each rule looks at the changed item and the
current skill and returns the issues the change raises, each with the
relevance check that later decides whether it is still worth showing.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List

from ..models import Category, ChangeType, Severity
from .changes import Change
from .issues import (
    ALWAYS,
    EXPIRES_AFTER,
    GUARDRAILS_UPDATED_TITLE,
    GUARDRAILS_UPDATED_TTL_S,
    INTENT_MISSING_EXAMPLES,
    INTENT_PRESENT,
    PROBLEM_MISSING,
    SCENARIO_PRESENT,
    TOOL_MISSING_MOCKS,
    TOOL_MISSING_POLICY,
    TOOL_PRESENT,
    Issue,
    IssueFactory,
    RelevanceCheck,
)

Rule = Callable[[Change, Dict[str, Any], IssueFactory], List[Issue]]

# Scenario words that usually imply a tool call.
ACTION_KEYWORDS = ["lookup", "search", "get", "create", "update", "delete", "send", "check", "verify"]

MIN_PROBLEM_STATEMENT = 10


def has_policy(tool: Any) -> bool:
    return isinstance(tool, dict) and isinstance(tool.get("policy"), dict) and bool(tool["policy"])


def has_mock_examples(tool: Any) -> bool:
    mock = tool.get("mock") if isinstance(tool, dict) else None
    return isinstance(mock, dict) and bool(mock.get("examples"))


def intent_name(intent: Any, default: str) -> str:
    if not isinstance(intent, dict):
        return default
    return intent.get("name") or intent.get("id") or default


def tool_names(skill: Dict[str, Any]) -> List[str]:
    return [
        str(t.get("name") or "").lower()
        for t in skill.get("tools") or []
        if isinstance(t, dict)
    ]


def _field(item: Any, key: str) -> Any:
    return item.get(key) if isinstance(item, dict) else None


def scenario_added(change: Change, skill: Dict[str, Any], issues: IssueFactory) -> List[Issue]:
    scenario = change.item
    title = _field(scenario, "title")
    scenario_name = title or "New scenario"
    raised = [issues.create(
        severity=Severity.WARNING,
        category=Category.INTENTS,
        title=f'Review intents for "{scenario_name}"',
        context="New scenario added",
        chat_prompt=(
            f'I just added a new scenario: "{scenario_name}". Please review if the existing intents '
            "cover this scenario, and suggest any new intents or example updates that might be needed."
        ),
        trigger_type=change.type.value,
        trigger_id=change.id,
        related_ids=[change.id],
        check=RelevanceCheck(kind=SCENARIO_PRESENT, target=title or change.id),
    )]

    steps = _field(scenario, "steps") or []
    text = " ".join([
        str(title or ""),
        str(_field(scenario, "description") or ""),
        " ".join(str(s) for s in steps) if isinstance(steps, list) else "",
    ]).lower()
    mentioned = [kw for kw in ACTION_KEYWORDS if kw in text]
    existing = tool_names(skill)
    missing = [action for action in mentioned if not any(action in name for name in existing)]

    if missing:
        actions = ", ".join(missing)
        raised.append(issues.create(
            severity=Severity.SUGGESTION,
            category=Category.TOOLS,
            title="Scenario may need new tools",
            context=f'"{scenario_name}" mentions: {actions}',
            chat_prompt=(
                f'The new scenario "{scenario_name}" seems to require actions like: {actions}. '
                "Please check if any new tools should be defined to support this scenario."
            ),
            trigger_type=change.type.value,
            trigger_id=change.id,
            related_ids=[change.id],
            check=RelevanceCheck(kind=SCENARIO_PRESENT, target=change.id),
        ))
    return raised


def intent_added(change: Change, skill: Dict[str, Any], issues: IssueFactory) -> List[Issue]:
    intent = change.item
    if _field(intent, "examples"):
        return []
    name = intent_name(intent, "New intent")
    return [issues.create(
        severity=Severity.WARNING,
        category=Category.INTENTS,
        title=f'Intent "{name}" needs examples',
        context="No example utterances provided",
        chat_prompt=(
            f'The intent "{name}" was added but has no example utterances. '
            "Please suggest 3-5 example phrases users might say for this intent."
        ),
        trigger_type=change.type.value,
        trigger_id=change.id,
        related_ids=[change.id],
        check=RelevanceCheck(kind=INTENT_MISSING_EXAMPLES, target=name),
    )]


def intent_modified(change: Change, skill: Dict[str, Any], issues: IssueFactory) -> List[Issue]:
    intent = change.item
    if _field(change.previous_item, "description") == _field(intent, "description"):
        return []
    name = intent_name(intent, "Intent")
    return [issues.create(
        severity=Severity.SUGGESTION,
        category=Category.INTENTS,
        title=f'Review examples for "{name}"',
        context="Intent description was updated",
        chat_prompt=(
            f'The description for intent "{name}" was updated. Please review if the existing examples '
            "still match the new description, and suggest any updates if needed."
        ),
        trigger_type=change.type.value,
        trigger_id=change.id,
        related_ids=[change.id],
        check=RelevanceCheck(kind=INTENT_PRESENT, target=name),
    )]


def tool_added(change: Change, skill: Dict[str, Any], issues: IssueFactory) -> List[Issue]:
    tool = change.item
    name = _field(tool, "name") or "New tool"
    raised = []

    if not has_policy(tool):
        raised.append(issues.create(
            severity=Severity.BLOCKER,
            category=Category.POLICY,
            title=f'Tool "{name}" missing policy',
            context="No guardrails defined for this tool",
            chat_prompt=(
                f'The tool "{name}" was added but has no policy configuration. Please define the '
                "guardrails: Is it always allowed? Does it require approval? Are there any restrictions?"
            ),
            trigger_type=change.type.value,
            trigger_id=change.id,
            related_ids=[change.id],
            check=RelevanceCheck(kind=TOOL_MISSING_POLICY, target=name),
        ))

    if not has_mock_examples(tool):
        raised.append(issues.create(
            severity=Severity.SUGGESTION,
            category=Category.TOOLS,
            title=f'Add mock data for "{name}"',
            context="No mock examples for testing",
            chat_prompt=(
                f'The tool "{name}" has no mock examples defined. Please suggest some example '
                "input/output pairs so we can test this tool."
            ),
            trigger_type=change.type.value,
            trigger_id=change.id,
            related_ids=[change.id],
            check=RelevanceCheck(kind=TOOL_MISSING_MOCKS, target=name),
        ))
    return raised


def tool_modified(change: Change, skill: Dict[str, Any], issues: IssueFactory) -> List[Issue]:
    tool = change.item
    previous_inputs = json.dumps(_field(change.previous_item, "inputs") or [], sort_keys=True)
    current_inputs = json.dumps(_field(tool, "inputs") or [], sort_keys=True)
    if previous_inputs == current_inputs:
        return []
    name = _field(tool, "name") or "Tool"
    return [issues.create(
        severity=Severity.WARNING,
        category=Category.TOOLS,
        title=f'Update mocks for "{name}"',
        context="Tool inputs were modified",
        chat_prompt=(
            f'The inputs for tool "{name}" were changed. Please review and update the mock '
            "examples to match the new input structure."
        ),
        trigger_type=change.type.value,
        trigger_id=change.id,
        related_ids=[change.id],
        check=RelevanceCheck(kind=TOOL_PRESENT, target=name),
    )]


def _guardrails(policy: Any) -> Dict[str, Any]:
    guardrails = _field(policy, "guardrails")
    return guardrails if isinstance(guardrails, dict) else {}


def policy_modified(change: Change, skill: Dict[str, Any], issues: IssueFactory) -> List[Issue]:
    current = _guardrails(change.item)
    previous = _guardrails(change.previous_item)
    never = current.get("never") or []
    always = current.get("always") or []
    raised = []

    names = tool_names(skill)
    for rule in never:
        rule_text = str(rule)
        for name in names:
            if name in rule_text.lower():
                raised.append(issues.create(
                    severity=Severity.WARNING,
                    category=Category.POLICY,
                    title="Policy may conflict with tool",
                    context=f'"Never" rule mentions tool "{name}"',
                    chat_prompt=(
                        f'A policy guardrail says to never "{rule_text}", but there\'s a tool named '
                        f'"{name}". Please clarify: Is this tool still needed, or should the policy be adjusted?'
                    ),
                    trigger_type=change.type.value,
                    check=RelevanceCheck(kind=ALWAYS),
                ))

    if len(never) != len(previous.get("never") or []) or len(always) != len(previous.get("always") or []):
        raised.append(issues.create(
            severity=Severity.INFO,
            category=Category.POLICY,
            title=GUARDRAILS_UPDATED_TITLE,
            context="Review impact on skill behavior",
            chat_prompt=(
                "The policy guardrails were updated. Please review if the changes align with the "
                "skill's intended behavior and if any tools or intents need adjustments."
            ),
            trigger_type=change.type.value,
            check=RelevanceCheck(kind=EXPIRES_AFTER, ttl_s=GUARDRAILS_UPDATED_TTL_S),
        ))
    return raised


RULES: Dict[ChangeType, Rule] = {
    ChangeType.SCENARIO_ADDED: scenario_added,
    ChangeType.INTENT_ADDED: intent_added,
    ChangeType.INTENT_MODIFIED: intent_modified,
    ChangeType.TOOL_ADDED: tool_added,
    ChangeType.TOOL_MODIFIED: tool_modified,
    ChangeType.POLICY_MODIFIED: policy_modified,
}


def run_rules(changes: List[Change], skill: Dict[str, Any], issues: IssueFactory) -> List[Issue]:
    """Apply the rule for each change, in order."""
    raised: List[Issue] = []
    for change in changes:
        rule = RULES.get(change.type)
        if rule is not None:
            raised.extend(rule(change, skill, issues))
    return raised


def run_full_validation(skill: Dict[str, Any], issues: IssueFactory) -> List[Issue]:
    """
    Check a whole skill at once (initial load or manual trigger): every
    tool needs a policy, every intent needs examples and the problem
    statement must be present.
    """
    raised: List[Issue] = []

    for tool in skill.get("tools") or []:
        if not isinstance(tool, dict) or has_policy(tool):
            continue
        name = tool.get("name") or "Unknown"
        raised.append(issues.create(
            severity=Severity.BLOCKER,
            category=Category.POLICY,
            title=f'Tool "{name}" missing policy',
            context="Required for export",
            chat_prompt=f'The tool "{name}" has no policy defined. Please configure the guardrails for this tool.',
            trigger_type="full_validation",
            related_ids=[tool.get("id") or name],
            check=RelevanceCheck(kind=TOOL_MISSING_POLICY, target=name),
        ))

    intents = skill.get("intents")
    supported = intents.get("supported") or [] if isinstance(intents, dict) else []
    for intent in supported:
        if not isinstance(intent, dict) or intent.get("examples"):
            continue
        name = intent_name(intent, "Unknown")
        raised.append(issues.create(
            severity=Severity.WARNING,
            category=Category.INTENTS,
            title=f'Intent "{name}" needs examples',
            context="No example utterances",
            chat_prompt=f'The intent "{name}" has no examples. Please add example utterances.',
            trigger_type="full_validation",
            related_ids=[intent.get("id") or name],
            check=RelevanceCheck(kind=INTENT_MISSING_EXAMPLES, target=name),
        ))

    if problem_missing(skill):
        raised.append(issues.create(
            severity=Severity.BLOCKER,
            category=Category.SCENARIOS,
            title="Problem statement missing",
            context="Required to define skill scope",
            chat_prompt=(
                "The skill doesn't have a problem statement defined. "
                "Please describe the problem this skill is meant to solve."
            ),
            trigger_type="full_validation",
            check=RelevanceCheck(kind=PROBLEM_MISSING),
        ))

    return raised


def problem_missing(skill: Dict[str, Any]) -> bool:
    problem = skill.get("problem")
    statement = problem.get("statement") if isinstance(problem, dict) else None
    return not isinstance(statement, str) or len(statement) < MIN_PROBLEM_STATEMENT
