"""
Skill Expander.

Takes a minimal skill document (id, name, problem, tools and optionally
guardrails) and fills in everything a complete skill needs:

- problem context and goals
- full tool shapes (id, source binding, policy, mock data, security)
- intents (one per tool), workflows (one single-step workflow per intent)
- scenarios (one per intent), role/persona, engine defaults, access policy

Only absent or empty sections are synthesized. Whatever the caller
supplied is carried over unchanged, and every synthesized field is
reported in ``expanded_fields`` so the caller can show what was generated.
Workflows are never composed from several tools; a generated workflow has
exactly the one step taken from the tool behind its intent.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..logger import get_logger
from .heuristics import (
    derive_example_input,
    derive_example_output,
    derive_goals,
    derive_intent_id,
    derive_mcp_tool,
    derive_tool_id,
    extract_entities,
    generate_examples,
    strip_period,
)

logger = get_logger(__name__)

DEFAULT_ENGINE: Dict[str, Any] = {
    "model": "claude-sonnet-4-20250514",
    "temperature": 0.3,
    "rv2": {
        "max_iterations": 10,
        "iteration_timeout_ms": 30000,
        "allow_parallel_tools": False,
        "on_max_iterations": "fail",
    },
    "hlr": {
        "enabled": True,
        "critic": {"enabled": False, "strictness": "medium"},
        "reflection": {"enabled": False, "depth": "shallow"},
    },
    "autonomy": {"level": "autonomous"},
}

DEFAULT_THRESHOLDS: Dict[str, float] = {"accept": 0.85, "clarify": 0.6, "reject": 0.4}

DEFAULT_OUT_OF_DOMAIN_MESSAGE = "This request is outside my capabilities."

DEFAULT_ACCESS_POLICY: Dict[str, Any] = {"rules": [{"tools": ["*"], "effect": "allow"}]}

DEFAULT_CONNECTOR = "default-mcp"


def is_missing(value: Any) -> bool:
    """A section counts as missing when absent, null, or an empty container/string."""
    if value is None:
        return True
    if isinstance(value, (dict, list, str)) and len(value) == 0:
        return True
    return False


@dataclass
class ExpansionResult:
    """
    Result of expanding a skill document.

    Attributes:
        skill: The complete skill document.
        expanded_fields: Dotted paths of every synthesized field.
    """

    skill: Dict[str, Any]
    expanded_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"skill": self.skill, "expanded_fields": list(self.expanded_fields)}


class SkillExpander:
    """
    Expands minimal skill documents into complete ones.

    The expander holds no state between calls; ``expand`` is deterministic
    and idempotent for fields that became present on a previous call.
    """

    def __init__(
        self,
        default_engine: Optional[Dict[str, Any]] = None,
        default_connector: str = DEFAULT_CONNECTOR,
    ):
        """
        Initialize the expander.

        Args:
            default_engine: Engine configuration used when a skill has none.
            default_connector: Connection id for tools when the skill
                declares no connectors.
        """
        self.default_engine = default_engine or DEFAULT_ENGINE
        self.default_connector = default_connector

    def expand(self, minimal: Dict[str, Any]) -> ExpansionResult:
        """
        Expand a skill document.

        Args:
            minimal: Skill document; at least id, name, problem and tools.
                It is never mutated.

        Returns:
            ExpansionResult with the full skill and the synthesized paths.
        """
        skill = copy.deepcopy(minimal)
        expanded: List[str] = []

        self._expand_metadata(skill)
        self._expand_problem(skill, expanded)
        self._expand_tools(skill, expanded)
        self._expand_intents(skill, expanded)
        self._expand_policy(skill, expanded)
        self._expand_scenarios(skill, expanded)
        self._expand_role(skill, expanded)

        if is_missing(skill.get("engine")):
            skill["engine"] = copy.deepcopy(self.default_engine)
            expanded.append("engine")

        if is_missing(skill.get("access_policy")):
            skill["access_policy"] = copy.deepcopy(DEFAULT_ACCESS_POLICY)
            expanded.append("access_policy")

        logger.debug(
            "Expanded skill %s: %d field(s) synthesized",
            skill.get("id"),
            len(expanded),
        )
        return ExpansionResult(skill=skill, expanded_fields=expanded)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _expand_metadata(self, skill: Dict[str, Any]) -> None:
        # Copy-through defaults; not reported as expanded.
        if skill.get("description") is None:
            skill["description"] = _problem_statement(skill.get("problem"))
        skill.setdefault("version", "1.0.0")
        skill.setdefault("phase", "TOOL_DEFINITION")
        skill.setdefault("ui_capable", False)
        for key in ("connectors", "grant_mappings", "response_filters", "triggers"):
            if skill.get(key) is None:
                skill[key] = []

    def _expand_problem(self, skill: Dict[str, Any], expanded: List[str]) -> None:
        problem = skill.get("problem")
        if is_missing(problem):
            return

        if isinstance(problem, str):
            problem = {"statement": problem}
        elif not isinstance(problem, dict):
            return

        statement = problem.get("statement") or ""
        problem.setdefault("statement", statement)

        if is_missing(problem.get("context")) and statement:
            problem["context"] = statement
            expanded.append("problem.context")

        if is_missing(problem.get("goals")):
            goals = derive_goals(skill.get("tools"))
            if goals:
                problem["goals"] = goals
                expanded.append("problem.goals")
            elif "goals" not in problem:
                problem["goals"] = []

        skill["problem"] = problem

    def _expand_tools(self, skill: Dict[str, Any], expanded: List[str]) -> None:
        connectors = skill.get("connectors") or []
        first = connectors[0] if connectors else None
        if isinstance(first, dict):
            first = first.get("id")
        connector = first or self.default_connector

        tools = skill.get("tools") or []
        skill["tools"] = [
            self._expand_tool(tool, i, connector, expanded)
            for i, tool in enumerate(tools)
        ]

    def _expand_tool(
        self,
        tool: Dict[str, Any],
        index: int,
        connector: str,
        expanded: List[str],
    ) -> Dict[str, Any]:
        path = f"tools[{index}]"
        name = tool.get("name") or ""

        if is_missing(tool.get("id")) and name:
            tool["id"] = derive_tool_id(name)
            expanded.append(f"{path}.id")
        tool.setdefault("id_status", "permanent")
        if tool.get("description") is None:
            tool["description"] = ""

        inputs = tool.get("inputs") or []
        for inp in inputs:
            if isinstance(inp, dict):
                inp.setdefault("type", "string")
                inp.setdefault("required", False)
                inp.setdefault("description", "")
        tool["inputs"] = inputs

        output = tool.get("output")
        if isinstance(output, str) and output:
            tool["output"] = {"type": "object", "description": output}
            expanded.append(f"{path}.output")
        elif is_missing(output):
            tool["output"] = {"type": "object", "description": "Result"}
            expanded.append(f"{path}.output")

        if is_missing(tool.get("source")) and name:
            tool["source"] = {
                "type": "mcp_bridge",
                "connection_id": connector,
                "mcp_tool": derive_mcp_tool(name),
            }
            expanded.append(f"{path}.source")

        if is_missing(tool.get("policy")):
            tool["policy"] = {"allowed": "always"}
            expanded.append(f"{path}.policy")

        mock = tool.get("mock")
        if not (isinstance(mock, dict) and "enabled" in mock):
            tool["mock"] = self._expand_mock(tool, mock)
            expanded.append(f"{path}.mock")

        security = tool.get("security")
        if isinstance(security, str) and security:
            tool["security"] = {"classification": security}
            expanded.append(f"{path}.security")
        elif not isinstance(security, dict) or not security:
            tool["security"] = {"classification": "public"}
            expanded.append(f"{path}.security")

        return tool

    def _expand_mock(self, tool: Dict[str, Any], shorthand: Any) -> Dict[str, Any]:
        name = tool.get("name") or ""
        tool_id = derive_tool_id(name)
        example_input = derive_example_input(tool.get("inputs"))

        if isinstance(shorthand, dict) and shorthand:
            example = {
                "id": f"{tool_id}-example",
                "input": example_input,
                "output": shorthand,
                "description": f"Example output for {name}",
            }
        else:
            example = {
                "id": f"{tool_id}-auto",
                "input": example_input,
                "output": derive_example_output(tool),
                "description": f"Auto-generated example for {name}",
            }
        return {"enabled": True, "mode": "examples", "examples": [example]}

    def _expand_intents(self, skill: Dict[str, Any], expanded: List[str]) -> None:
        if not is_missing(skill.get("intents")):
            return

        skill["intents"] = {
            "supported": [_intent_for_tool(t) for t in skill["tools"] if t.get("name")],
            "thresholds": dict(DEFAULT_THRESHOLDS),
            "out_of_domain": _expand_out_of_domain(skill.get("out_of_domain")),
        }
        expanded.append("intents")

    def _expand_policy(self, skill: Dict[str, Any], expanded: List[str]) -> None:
        policy = skill.get("policy")
        policy = dict(policy) if isinstance(policy, dict) else {}

        if is_missing(policy.get("guardrails")):
            shorthand = skill.get("guardrails") or {}
            policy["guardrails"] = {
                "never": list(shorthand.get("never") or []),
                "always": list(shorthand.get("always") or []),
            }
            expanded.append("policy.guardrails")

        if is_missing(policy.get("workflows")):
            intents = (skill.get("intents") or {}).get("supported") or []
            workflows = _generate_workflows(skill["tools"], intents)
            policy["workflows"] = workflows
            if workflows:
                expanded.append("policy.workflows")

        if policy.get("approvals") is None:
            policy["approvals"] = []
        if policy.get("escalation") is None:
            policy["escalation"] = {"enabled": False, "conditions": []}

        skill["policy"] = policy

    def _expand_scenarios(self, skill: Dict[str, Any], expanded: List[str]) -> None:
        if not is_missing(skill.get("scenarios")):
            return

        intents = (skill.get("intents") or {}).get("supported") or []
        scenarios = _generate_scenarios(
            intents, skill["policy"].get("workflows") or [], skill["tools"]
        )
        skill["scenarios"] = scenarios
        if scenarios:
            expanded.append("scenarios")

    def _expand_role(self, skill: Dict[str, Any], expanded: List[str]) -> None:
        if not is_missing(skill.get("role")):
            return
        skill["role"] = _generate_role(skill)
        expanded.append("role")


def expand_skill(minimal: Dict[str, Any]) -> ExpansionResult:
    """
    Convenience function to expand a skill with default settings.

    Args:
        minimal: Minimal skill document.

    Returns:
        ExpansionResult.
    """
    return SkillExpander().expand(minimal)


# ----------------------------------------------------------------------
# Generators
# ----------------------------------------------------------------------


def _problem_statement(problem: Any) -> str:
    if isinstance(problem, str):
        return problem
    if isinstance(problem, dict):
        return problem.get("statement") or ""
    return ""


def _intent_for_tool(tool: Dict[str, Any]) -> Dict[str, Any]:
    intent_id = derive_intent_id(tool["name"])
    description = tool.get("description") or f"Handle {intent_id.replace('_', ' ')} request"
    intent: Dict[str, Any] = {
        "id": intent_id,
        "description": description,
        "examples": generate_examples(intent_id, tool.get("description")),
        "maps_to_workflow": f"{intent_id}_flow",
    }
    entities = extract_entities(tool.get("inputs"))
    if entities:
        intent["entities"] = entities
    return intent


def _expand_out_of_domain(ood: Any) -> Dict[str, Any]:
    if isinstance(ood, str) and ood:
        return {"action": "redirect", "message": ood, "suggest_domains": []}
    if isinstance(ood, dict) and ood:
        return ood
    return {
        "action": "redirect",
        "message": DEFAULT_OUT_OF_DOMAIN_MESSAGE,
        "suggest_domains": [],
    }


def _generate_workflows(
    tools: List[Dict[str, Any]],
    intents: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    workflows = []
    for intent in intents:
        intent_id = intent.get("id") or ""
        step = next(
            (t["name"] for t in tools if t.get("name") and derive_intent_id(t["name"]) == intent_id),
            None,
        )
        workflows.append({
            "id": intent.get("maps_to_workflow") or f"{intent_id}_flow",
            "name": intent.get("description") or intent_id,
            "description": f"Auto-generated workflow for {intent_id}",
            "trigger": intent_id,
            "steps": [step] if step else [],
            "required": False,
            "on_deviation": "warn",
        })
    return workflows


def _generate_scenarios(
    intents: List[Dict[str, Any]],
    workflows: List[Dict[str, Any]],
    tools: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    tools_by_name = {t.get("name"): t for t in tools}
    scenarios = []

    for intent in intents:
        intent_id = intent.get("id") or ""
        readable = intent_id.replace("_", " ")
        workflow = next((w for w in workflows if w.get("trigger") == intent_id), None)

        steps = []
        examples = intent.get("examples") or []
        if examples:
            steps.append(f'User says: "{examples[0]}"')
        for tool_name in (workflow or {}).get("steps") or []:
            tool = tools_by_name.get(tool_name)
            if tool and tool.get("description"):
                steps.append(f"Agent calls {tool_name} — {tool['description'].lower()}")
            else:
                steps.append(f"Agent calls {tool_name}")
        steps.append("Agent presents results to the user")

        scenarios.append({
            "id": intent_id,
            "title": intent.get("description") or readable,
            "description": f"Test scenario for {readable}",
            "steps": steps,
            "expected_outcome": f"User request for {readable} is handled successfully.",
        })
    return scenarios


def _generate_role(skill: Dict[str, Any]) -> Dict[str, Any]:
    problem = skill.get("problem") if isinstance(skill.get("problem"), dict) else {}
    problem_text = problem.get("statement") or skill.get("description") or ""
    tool_text = ", ".join(t.get("description") or "" for t in skill.get("tools") or [])
    never_rules = ((skill.get("policy") or {}).get("guardrails") or {}).get("never") or []
    name = skill.get("name") or ""

    if never_rules:
        limitations = [f"Cannot {strip_period(rule.lower())}" for rule in never_rules]
    else:
        limitations = ["Operates only within defined tool capabilities"]

    return {
        "name": name,
        "persona": (
            f"You are a helpful assistant that {strip_period(problem_text.lower())}. "
            f"You have access to tools for: {tool_text}."
        ),
        "goals": problem.get("goals") or [f"Help users with {name.lower()} tasks"],
        "limitations": limitations,
        "communication_style": {"tone": "casual", "verbosity": "concise"},
    }
