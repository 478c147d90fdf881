"""
Incremental section checks.

Lightweight checks run while a skill is still being written, one section
at a time. They share nothing with the full validation engine and never
expand the document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from ..errors import UnknownSectionError
from ..models import Section


@dataclass
class SectionResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "message": self.message}


def _ok(message: str) -> SectionResult:
    return SectionResult(valid=True, errors=[], message=message)


def _fail(errors: List[str], message: str) -> SectionResult:
    return SectionResult(valid=False, errors=errors, message=message)


def check_problem(skill: Dict[str, Any]) -> SectionResult:
    problem = skill.get("problem")
    if not problem:
        return _fail(["Missing problem section"], "Add a problem statement.")
    statement = problem
    if isinstance(problem, dict):
        statement = problem.get("statement")
    if not isinstance(statement, str) or len(statement) < 10:
        return _fail(
            ["Problem statement too short (min 10 chars)"],
            "Describe the problem in at least 10 characters.",
        )
    return _ok("Problem looks good.")


def check_tools(skill: Dict[str, Any]) -> SectionResult:
    tools = skill.get("tools")
    if not tools or not isinstance(tools, list):
        return _fail(["No tools defined"], "Add at least one tool.")

    errors = []
    for i, tool in enumerate(tools):
        tool = tool if isinstance(tool, dict) else {}
        if not tool.get("name"):
            errors.append(f"tools[{i}]: missing name")
        if not tool.get("description"):
            errors.append(f"tools[{i}]: missing description")
    if errors:
        return _fail(errors, f"{len(errors)} tool issue(s) found.")
    return _ok(f"{len(tools)} tools defined. All look good.")


def check_guardrails(skill: Dict[str, Any]) -> SectionResult:
    policy = skill.get("policy") if isinstance(skill.get("policy"), dict) else {}
    guardrails = skill.get("guardrails") or policy.get("guardrails")
    if not guardrails:
        return _ok("No guardrails defined (optional, defaults will be used).")
    if not isinstance(guardrails, dict):
        return _fail(["Guardrails must be an object"], "Use { never: [...], always: [...] }.")
    never = guardrails.get("never") or []
    always = guardrails.get("always") or []
    if not never and not always:
        return _ok("Guardrails section is empty (consider adding constraints).")
    return _ok(f"{len(never)} never rules, {len(always)} always rules. Looks good.")


def check_intents(skill: Dict[str, Any]) -> SectionResult:
    intents = skill.get("intents")
    if not intents:
        return _ok("No intents defined (will be auto-generated from tools).")
    if not isinstance(intents, dict):
        return _fail(["Intents must be an object"], "Use { supported: [...] }.")
    supported = intents.get("supported") or []
    if not supported:
        return _fail(
            ["Empty supported intents array"],
            "Add at least one intent or remove the intents section to use auto-generation.",
        )
    return _ok(f"{len(supported)} intents defined.")


def check_role(skill: Dict[str, Any]) -> SectionResult:
    role = skill.get("role")
    if not role:
        return _ok("No role defined (will be auto-generated from problem + tools).")
    if not isinstance(role, dict):
        return _fail(["Role must be an object"], "Use { name, persona }.")
    if not role.get("persona"):
        return _fail(["Missing role.persona"], "Add a persona description.")
    return _ok("Role looks good.")


SECTION_CHECKS: Dict[str, Callable[[Dict[str, Any]], SectionResult]] = {
    Section.PROBLEM.value: check_problem,
    Section.TOOLS.value: check_tools,
    Section.GUARDRAILS.value: check_guardrails,
    Section.INTENTS.value: check_intents,
    Section.ROLE.value: check_role,
}


def validate_section(skill: Dict[str, Any], section: str) -> SectionResult:
    """
    Check one section of a partial skill.

    Args:
        skill: Partial skill document.
        section: One of ``problem``, ``tools``, ``guardrails``, ``intents``, ``role``.

    Returns:
        SectionResult.

    Raises:
        UnknownSectionError: If ``section`` is not a known section.
    """
    check = SECTION_CHECKS.get(section)
    if check is None:
        raise UnknownSectionError(section, SECTION_CHECKS)
    return check(skill)
