"""
Reference Validation (Layer 2).

Validates cross-references between sections of a skill document:
- Workflow steps and approval rules point at defined tools
- Intent ``maps_to_workflow`` points at a defined workflow
- Each intent is reachable from a workflow or a related tool
- No duplicate tool, workflow, intent or scenario ids
- No circular sub-workflow references
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from .issues import LayerResult

# Tools provided by the agent runtime; they never need a definition.
SYSTEM_TOOL_PREFIXES = ("sys.", "ui.", "cp.")


def is_system_tool(name: Any) -> bool:
    return isinstance(name, str) and name.lower().startswith(SYSTEM_TOOL_PREFIXES)


@dataclass
class Unresolved:
    """References that could not be resolved, by target kind."""

    tools: List[str] = field(default_factory=list)
    workflows: List[str] = field(default_factory=list)
    intents: List[str] = field(default_factory=list)

    def add_tool(self, ref: str) -> None:
        if ref not in self.tools:
            self.tools.append(ref)

    def add_workflow(self, ref: str) -> None:
        if ref not in self.workflows:
            self.workflows.append(ref)

    @property
    def empty(self) -> bool:
        return not self.tools and not self.workflows

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "tools": list(self.tools),
            "workflows": list(self.workflows),
            "intents": list(self.intents),
        }


@dataclass
class ReferenceValidationResult(LayerResult):
    """Result of reference validation."""

    unresolved: Unresolved = field(default_factory=Unresolved)


class ReferenceValidator:
    """
    Validates cross-section references (Layer 2).

    Unresolved tool and workflow references are warnings: a draft may name
    a tool before defining it. They block export through ``unresolved``.
    """

    def validate(self, skill: Dict[str, Any]) -> ReferenceValidationResult:
        """
        Validate skill references.

        Args:
            skill: The skill document. It is not modified.

        Returns:
            ReferenceValidationResult with issues and unresolved references.
        """
        result = ReferenceValidationResult()

        tools = [t for t in skill.get("tools") or [] if isinstance(t, dict)]
        tool_ids: Set[str] = {t["id"] for t in tools if t.get("id")}
        tool_names: Set[str] = {t["name"].lower() for t in tools if isinstance(t.get("name"), str)}
        for meta in skill.get("meta_tools") or []:
            if meta.get("id"):
                tool_ids.add(meta["id"])
            if isinstance(meta.get("name"), str):
                tool_names.add(meta["name"].lower())

        policy = skill.get("policy") if isinstance(skill.get("policy"), dict) else {}
        workflows = [w for w in policy.get("workflows") or [] if isinstance(w, dict)]
        approvals = [a for a in policy.get("approvals") or [] if isinstance(a, dict)]
        intents_section = skill.get("intents") if isinstance(skill.get("intents"), dict) else {}
        intents = [i for i in intents_section.get("supported") or [] if isinstance(i, dict)]
        workflow_ids = {w.get("id") for w in workflows}

        def tool_exists(ref: Any) -> bool:
            if not isinstance(ref, str):
                return False
            return ref in tool_ids or ref.lower() in tool_names or is_system_tool(ref)

        self._check_workflow_steps(workflows, workflow_ids, tool_exists, result)
        self._check_intent_workflows(intents, workflow_ids, result)
        self._check_approvals(approvals, tool_exists, result)
        self._check_duplicates(skill, tools, workflows, intents, result)
        self._check_intent_reachability(intents, workflows, workflow_ids, tool_names, result)
        self._check_workflow_cycles(workflows, workflow_ids, result)

        return result

    def _check_workflow_steps(self, workflows, workflow_ids, tool_exists, result) -> None:
        """Workflow steps reference defined tools (or sub-workflows)."""
        for wi, workflow in enumerate(workflows):
            for si, step in enumerate(workflow.get("steps") or []):
                if tool_exists(step) or step in workflow_ids:
                    continue
                result.unresolved.add_tool(str(step))
                result.warning(
                    "TOOL_NOT_FOUND",
                    f"policy.workflows[{wi}].steps[{si}]",
                    f'Tool "{step}" not found',
                    f'Define tool "{step}" or remove from workflow',
                )

    def _check_intent_workflows(self, intents, workflow_ids, result) -> None:
        for ii, intent in enumerate(intents):
            target = intent.get("maps_to_workflow")
            if not target or target in workflow_ids:
                continue
            result.unresolved.add_workflow(target)
            result.warning(
                "WORKFLOW_NOT_FOUND",
                f"intents.supported[{ii}].maps_to_workflow",
                f'Workflow "{target}" not found',
                f'Define workflow "{target}" or remove mapping',
            )

    def _check_approvals(self, approvals, tool_exists, result) -> None:
        for ri, rule in enumerate(approvals):
            tool_id = rule.get("tool_id")
            if not tool_id or tool_exists(tool_id):
                continue
            result.unresolved.add_tool(tool_id)
            result.warning(
                "TOOL_NOT_FOUND",
                f"policy.approvals[{ri}].tool_id",
                f'Tool "{tool_id}" not found for approval rule',
                f'Define tool "{tool_id}" or update the approval rule',
            )

    def _check_duplicates(self, skill, tools, workflows, intents, result) -> None:
        scenarios = [s for s in skill.get("scenarios") or [] if isinstance(s, dict)]
        groups = [
            ("DUPLICATE_TOOL_ID", "tool", tools, "tools[{}].id"),
            ("DUPLICATE_WORKFLOW_ID", "workflow", workflows, "policy.workflows[{}].id"),
            ("DUPLICATE_INTENT_ID", "intent", intents, "intents.supported[{}].id"),
            ("DUPLICATE_SCENARIO_ID", "scenario", scenarios, "scenarios[{}].id"),
        ]
        for code, label, items, path in groups:
            seen: Set[Any] = set()
            for i, item in enumerate(items):
                item_id = item.get("id")
                if item_id is None:
                    continue
                if item_id in seen:
                    result.error(
                        code,
                        path.format(i),
                        f'Duplicate {label} ID: "{item_id}"',
                        f"Each {label} must have a unique ID",
                    )
                seen.add(item_id)

        seen_names: Set[str] = set()
        for i, tool in enumerate(tools):
            name = tool.get("name")
            if not isinstance(name, str):
                continue
            if name.lower() in seen_names:
                result.warning(
                    "DUPLICATE_TOOL_NAME",
                    f"tools[{i}].name",
                    f'Duplicate tool name: "{name}"',
                    "Tool names should be unique for clarity",
                )
            seen_names.add(name.lower())

    def _check_intent_reachability(self, intents, workflows, workflow_ids, tool_names, result) -> None:
        """
        Warn about intents nothing can fulfil.

        An intent is connected when its workflow resolves, a workflow is
        triggered by it, or a tool name contains one of its id keywords.
        """
        triggers = {w.get("trigger") for w in workflows if w.get("trigger")}
        all_names = " ".join(sorted(tool_names))

        for i, intent in enumerate(intents):
            intent_id = intent.get("id")
            if not isinstance(intent_id, str) or not intent_id:
                continue
            if intent.get("maps_to_workflow") in workflow_ids or intent_id in triggers:
                continue
            keywords = [k for k in re.split(r"[_\-.]", intent_id.lower()) if len(k) > 2]
            if any(k in all_names for k in keywords):
                continue
            result.warning(
                "INTENT_NO_TOOLS",
                f"intents.supported[{i}]",
                f'Intent "{intent_id}" has no mapped workflow and no obviously related tools',
                f'Add maps_to_workflow, create a workflow with trigger "{intent_id}", '
                "or ensure tool names relate to this intent",
            )

    def _check_workflow_cycles(self, workflows, workflow_ids, result) -> None:
        """Detect sub-workflow cycles with a depth-first search."""
        graph: Dict[Any, List[Any]] = {}
        for workflow in workflows:
            wid = workflow.get("id")
            refs = []
            for step in workflow.get("steps") or []:
                if step in workflow_ids and step != wid and step not in refs:
                    refs.append(step)
            graph[wid] = refs

        visited: Set[Any] = set()
        visiting: List[Any] = []

        def visit(node: Any) -> None:
            if node in visiting:
                cycle = visiting[visiting.index(node):] + [node]
                result.error(
                    "WORKFLOW_CIRCULAR",
                    "policy.workflows",
                    f"Circular workflow reference detected: {' -> '.join(map(str, cycle))}",
                    "Remove the circular dependency between workflows",
                )
                return
            if node in visited:
                return
            visiting.append(node)
            for neighbour in graph.get(node, []):
                visit(neighbour)
            visiting.pop()
            visited.add(node)

        for workflow in workflows:
            if workflow.get("id") not in visited:
                visit(workflow.get("id"))
