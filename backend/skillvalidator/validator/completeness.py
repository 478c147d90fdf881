"""
Completeness Check (Layer 3).

Reports which sections of a skill document are filled in well enough to
export. Completeness never produces issues; it feeds ``ready_to_export``
and the progress report shown to the author.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _statement(skill: Dict[str, Any]) -> str:
    problem = skill.get("problem")
    if isinstance(problem, str):
        return problem
    statement = _dict(problem).get("statement")
    return statement if isinstance(statement, str) else ""


@dataclass
class Completeness:
    """Per-section completeness flags."""

    problem: bool = False
    scenarios: bool = False
    role: bool = False
    intents: bool = False
    tools: bool = False
    policy: bool = False
    engine: bool = True
    mocks_tested: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            "problem": self.problem,
            "scenarios": self.scenarios,
            "role": self.role,
            "intents": self.intents,
            "tools": self.tools,
            "policy": self.policy,
            "engine": self.engine,
            "mocks_tested": self.mocks_tested,
        }

    def incomplete_sections(self) -> List[str]:
        names = ["problem", "scenarios", "role", "intents", "tools", "policy"]
        missing = [name for name in names if not getattr(self, name)]
        if not self.mocks_tested:
            missing.append("mocks")
        return missing


class CompletenessChecker:
    """
    Checks section completeness (Layer 3).

    Rules:
    - problem: statement of at least 10 characters
    - scenarios: at least one, every scenario titled
    - role: name and persona
    - intents: at least one, each with description and an example
    - tools: at least one, each with name, description and output description
    - policy: at least one never/always guardrail
    - mocks: every tool tested or skipped
    - engine: always complete (defaults exist)
    """

    MIN_STATEMENT_LENGTH = 10

    def check(self, skill: Dict[str, Any]) -> Completeness:
        return Completeness(
            problem=self.problem_complete(skill),
            scenarios=self.scenarios_complete(skill),
            role=self.role_complete(skill),
            intents=self.intents_complete(skill),
            tools=self.tools_complete(skill),
            policy=self.policy_complete(skill),
            engine=True,
            mocks_tested=self.mocks_tested(skill),
        )

    def problem_complete(self, skill: Dict[str, Any]) -> bool:
        return len(_statement(skill)) >= self.MIN_STATEMENT_LENGTH

    def scenarios_complete(self, skill: Dict[str, Any]) -> bool:
        scenarios = _list(skill.get("scenarios"))
        return bool(scenarios) and all(_dict(s).get("title") for s in scenarios)

    def role_complete(self, skill: Dict[str, Any]) -> bool:
        role = _dict(skill.get("role"))
        return bool(role.get("name") and role.get("persona"))

    def intents_complete(self, skill: Dict[str, Any]) -> bool:
        supported = _list(_dict(skill.get("intents")).get("supported"))
        if not supported:
            return False
        return all(
            _dict(i).get("description") and _list(_dict(i).get("examples"))
            for i in supported
        )

    def tools_complete(self, skill: Dict[str, Any]) -> bool:
        tools = _list(skill.get("tools"))
        if not tools:
            return False
        return all(self._tool_defined(_dict(t)) for t in tools)

    def policy_complete(self, skill: Dict[str, Any]) -> bool:
        guardrails = _dict(_dict(skill.get("policy")).get("guardrails"))
        return bool(_list(guardrails.get("never")) or _list(guardrails.get("always")))

    def mocks_tested(self, skill: Dict[str, Any]) -> bool:
        tools = _list(skill.get("tools"))
        if not tools:
            return False
        return all(_dict(t).get("mock_status") != "untested" for t in tools)

    def _tool_defined(self, tool: Dict[str, Any]) -> bool:
        return bool(tool.get("name") and tool.get("description") and _dict(tool.get("output")).get("description"))

    def report(self, skill: Dict[str, Any]) -> Dict[str, Any]:
        """
        Detailed completeness report with an overall progress percentage.

        Args:
            skill: The skill document.

        Returns:
            Dictionary keyed by section, each with ``complete`` and ``details``,
            plus ``overall_progress`` (0-100).
        """
        problem = skill.get("problem") if isinstance(skill.get("problem"), dict) else {}
        scenarios = [_dict(s) for s in _list(skill.get("scenarios"))]
        role = _dict(skill.get("role"))
        intents = [_dict(i) for i in _list(_dict(skill.get("intents")).get("supported"))]
        tools = [_dict(t) for t in _list(skill.get("tools"))]
        policy = _dict(skill.get("policy"))
        guardrails = _dict(policy.get("guardrails"))

        report: Dict[str, Any] = {
            "problem": {
                "complete": self.problem_complete(skill),
                "details": {
                    "has_statement": len(_statement(skill)) >= self.MIN_STATEMENT_LENGTH,
                    "has_context": bool(problem.get("context")),
                    "has_goals": bool(_list(problem.get("goals"))),
                },
            },
            "scenarios": {
                "complete": self.scenarios_complete(skill),
                "details": {
                    "count": len(scenarios),
                    "min_required": 1,
                    "with_steps": sum(1 for s in scenarios if _list(s.get("steps"))),
                },
            },
            "role": {
                "complete": self.role_complete(skill),
                "details": {
                    "has_name": bool(role.get("name")),
                    "has_persona": bool(role.get("persona")),
                    "has_goals": bool(_list(role.get("goals"))),
                    "has_limitations": bool(_list(role.get("limitations"))),
                },
            },
            "intents": {
                "complete": self.intents_complete(skill),
                "details": {
                    "count": len(intents),
                    "min_required": 1,
                    "with_examples": sum(1 for i in intents if _list(i.get("examples"))),
                },
            },
            "tools": {
                "complete": self.tools_complete(skill),
                "details": {
                    "count": len(tools),
                    "min_required": 1,
                    "fully_defined": sum(1 for t in tools if self._tool_defined(t)),
                },
            },
            "policy": {
                "complete": self.policy_complete(skill),
                "details": {
                    "never_count": len(_list(guardrails.get("never"))),
                    "always_count": len(_list(guardrails.get("always"))),
                    "workflows_count": len(_list(policy.get("workflows"))),
                    "approvals_count": len(_list(policy.get("approvals"))),
                },
            },
            "mocks": {
                "complete": self.mocks_tested(skill),
                "details": {
                    "total": len(tools),
                    "tested": sum(1 for t in tools if t.get("mock_status") == "tested"),
                    "skipped": sum(1 for t in tools if t.get("mock_status") == "skipped"),
                    "untested": sum(1 for t in tools if t.get("mock_status") == "untested"),
                },
            },
        }

        sections = ["problem", "scenarios", "role", "intents", "tools", "policy", "mocks"]
        completed = sum(1 for s in sections if report[s]["complete"])
        report["overall_progress"] = round(completed / len(sections) * 100)
        return report
