"""
Solution Validation.

Validates the contracts between the skills of a solution:
- Identity: actor types, admin roles, default actor type
- Grant economy: issuers and consumers exist, consumed grants have an issuer
- Handoffs: source and target skills exist, no cycles
- Security contracts: participants exist, a handoff path passes the grants
- Routing: every entry channel is routed, routes target real skills
- Platform connectors and orphan skills
- Connector bindings (when connectors or an MCP store are supplied)

Entries are plain dicts with a ``check`` key naming the rule and a
``message``, plus the ids involved.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set


@dataclass
class SolutionValidationResult:
    """Result of solution validation."""

    valid: bool = True
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=dict)

    def add_error(self, check: str, message: str, **details: Any) -> None:
        self.errors.append({"check": check, "message": message, **details})
        self.valid = False

    def add_warning(self, check: str, message: str, **details: Any) -> None:
        self.warnings.append({"check": check, "message": message, **details})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "summary": self.summary,
        }


def find_handoff_path(
    handoffs: List[Dict[str, Any]],
    source: str,
    target: str,
) -> Optional[List[Dict[str, Any]]]:
    """Breadth-first search for the shortest chain of handoffs from ``source`` to ``target``."""
    queue = deque([(source, [])])
    visited: Set[str] = set()

    while queue:
        current, path = queue.popleft()
        if current == target and path:
            return path
        if current in visited:
            continue
        visited.add(current)
        for handoff in handoffs:
            if handoff.get("from") == current:
                queue.append((handoff.get("to"), path + [handoff]))
    return None


def detect_handoff_cycles(handoffs: List[Dict[str, Any]]) -> List[List[str]]:
    """Return every cycle found by depth-first search, as lists of skill ids."""
    graph: Dict[str, List[str]] = {}
    for handoff in handoffs:
        graph.setdefault(handoff.get("from"), []).append(handoff.get("to"))

    cycles: List[List[str]] = []
    visited: Set[str] = set()
    stack: List[str] = []

    def visit(node: str) -> None:
        if node in stack:
            cycles.append(stack[stack.index(node):] + [node])
            return
        if node in visited:
            return
        visited.add(node)
        stack.append(node)
        for neighbour in graph.get(node, []):
            visit(neighbour)
        stack.pop()

    for node in list(graph):
        visit(node)
    return cycles


class SolutionValidator:
    """Validates cross-skill contracts of a solution definition."""

    def validate(
        self,
        solution: Dict[str, Any],
        skills: Optional[List[Dict[str, Any]]] = None,
        connectors: Optional[List[Dict[str, Any]]] = None,
        mcp_store: Optional[Dict[str, Any]] = None,
    ) -> SolutionValidationResult:
        """
        Validate a solution.

        Args:
            solution: The solution definition.
            skills: Full skill documents. Used for skill ids when the
                solution lists none, and for connector-binding checks.
            connectors: Connector definitions. Enables binding checks.
            mcp_store: Connector id to server code. Enables binding checks.

        Returns:
            SolutionValidationResult.
        """
        result = SolutionValidationResult()

        solution_skills = [s for s in solution.get("skills") or [] if isinstance(s, dict)]
        if not solution_skills:
            solution_skills = [s for s in skills or [] if isinstance(s, dict)]
        skill_ids = {s.get("id") for s in solution_skills if s.get("id")}

        grants = solution.get("grants") or []
        handoffs = solution.get("handoffs") or []
        routing = solution.get("routing") or {}
        platform_connectors = solution.get("platform_connectors") or []
        contracts = solution.get("security_contracts") or []

        self._check_identity(solution.get("identity") or {}, result)
        self._check_grants(grants, skill_ids, result)
        self._check_handoffs(handoffs, skill_ids, result)
        self._check_contracts(contracts, handoffs, skill_ids, result)
        self._check_routing(routing, solution_skills, skill_ids, result)
        self._check_platform_connectors(handoffs, platform_connectors, result)
        self._check_orphans(solution_skills, routing, handoffs, result)

        for cycle in detect_handoff_cycles(handoffs):
            result.add_error(
                "circular_handoffs",
                f"Circular handoff chain detected: {' -> '.join(map(str, cycle))}",
                cycle=cycle,
            )

        if connectors is not None or mcp_store is not None:
            self._check_connector_bindings(skills or [], connectors or [], mcp_store or {}, result)

        result.summary = {
            "skills": len(solution_skills),
            "grants": len(grants),
            "handoffs": len(handoffs),
            "channels": len(routing),
            "platform_connectors": len(platform_connectors),
            "security_contracts": len(contracts),
            "error_count": len(result.errors),
            "warning_count": len(result.warnings),
        }
        return result

    def _check_identity(self, identity: Dict[str, Any], result: SolutionValidationResult) -> None:
        actor_types = identity.get("actor_types") or []
        keys = {a.get("key") for a in actor_types if isinstance(a, dict)}
        admin_roles = identity.get("admin_roles") or []

        if not actor_types:
            result.add_warning(
                "identity_actor_types",
                "No actor types defined. Define the user types for your solution.",
            )
        elif not admin_roles:
            result.add_warning(
                "identity_admin_roles",
                "No admin roles defined. Consider setting which actor types have admin privileges.",
            )

        default_type = identity.get("default_actor_type")
        if default_type and keys and default_type not in keys:
            result.add_error(
                "identity_default_type_valid",
                f'Default actor type "{default_type}" is not a defined actor type',
            )

        for role in admin_roles:
            if keys and role not in keys:
                result.add_warning(
                    "identity_admin_role_valid",
                    f'Admin role "{role}" is not a defined actor type',
                )

    def _check_grants(self, grants, skill_ids, result: SolutionValidationResult) -> None:
        for grant in grants:
            if grant.get("internal"):
                continue
            key = grant.get("key")
            issued_by = grant.get("issued_by") or []
            consumed_by = grant.get("consumed_by") or []

            for issuer in issued_by:
                if issuer not in skill_ids:
                    result.add_error(
                        "grant_provider_exists",
                        f'Grant "{key}" references issuer "{issuer}" which is not a skill in this solution',
                        grant=key,
                        skill=issuer,
                    )
            for consumer in consumed_by:
                if consumer not in skill_ids:
                    result.add_error(
                        "grant_consumer_exists",
                        f'Grant "{key}" references consumer "{consumer}" which is not a skill in this solution',
                        grant=key,
                        skill=consumer,
                    )
            if consumed_by and not issued_by:
                result.add_error(
                    "grant_provider_missing",
                    f'Grant "{key}" is consumed by {", ".join(consumed_by)} but has no issuer',
                    grant=key,
                )

    def _check_handoffs(self, handoffs, skill_ids, result: SolutionValidationResult) -> None:
        for handoff in handoffs:
            handoff_id = handoff.get("id")
            for end, check, label in (
                ("from", "handoff_source_exists", "source"),
                ("to", "handoff_target_exists", "target"),
            ):
                skill_id = handoff.get(end)
                if skill_id not in skill_ids:
                    result.add_error(
                        check,
                        f'Handoff "{handoff_id}" references {label} skill "{skill_id}" which doesn\'t exist',
                        handoff=handoff_id,
                        skill=skill_id,
                    )

    def _check_contracts(self, contracts, handoffs, skill_ids, result: SolutionValidationResult) -> None:
        for contract in contracts:
            name = contract.get("name")
            consumer = contract.get("consumer")
            provider = contract.get("provider")

            if consumer not in skill_ids:
                result.add_error(
                    "contract_consumer_exists",
                    f'Security contract "{name}" references consumer "{consumer}" which doesn\'t exist',
                    contract=name,
                )
                continue
            if provider and provider not in skill_ids:
                result.add_error(
                    "contract_provider_exists",
                    f'Security contract "{name}" references provider "{provider}" which doesn\'t exist',
                    contract=name,
                )
                continue
            if not provider:
                continue

            path = find_handoff_path(handoffs, provider, consumer)
            if path is None:
                result.add_warning(
                    "contract_handoff_path",
                    f'Security contract "{name}": no handoff path from "{provider}" to "{consumer}"',
                    contract=name,
                )
                continue

            for grant in contract.get("requires_grants") or []:
                if not all(grant in (h.get("grants_passed") or []) for h in path):
                    result.add_error(
                        "grants_passed_match",
                        f'Security contract "{name}": grant "{grant}" is not passed through all '
                        f'handoffs from "{provider}" to "{consumer}"',
                        contract=name,
                        grant=grant,
                    )

    def _check_routing(self, routing, solution_skills, skill_ids, result: SolutionValidationResult) -> None:
        for skill in solution_skills:
            for channel in skill.get("entry_channels") or []:
                if not routing.get(channel):
                    result.add_warning(
                        "routing_covers_channels",
                        f'Skill "{skill.get("id")}" declares entry channel "{channel}" '
                        "but no routing rule exists for it",
                        skill=skill.get("id"),
                        channel=channel,
                    )

        for channel, config in routing.items():
            target = (config or {}).get("default_skill")
            if target and target not in skill_ids:
                result.add_error(
                    "routing_target_exists",
                    f'Routing for channel "{channel}" targets skill "{target}" which doesn\'t exist',
                    channel=channel,
                    skill=target,
                )

    def _check_platform_connectors(self, handoffs, platform_connectors, result: SolutionValidationResult) -> None:
        declared = {c.get("id") for c in platform_connectors if isinstance(c, dict)}
        for handoff in handoffs:
            mechanism = handoff.get("mechanism")
            if mechanism and mechanism != "internal-message" and mechanism not in declared:
                result.add_warning(
                    "platform_connectors_declared",
                    f'Handoff "{handoff.get("id")}" uses mechanism "{mechanism}" '
                    "which is not declared in platform_connectors",
                    handoff=handoff.get("id"),
                    connector=mechanism,
                )

    def _check_orphans(self, solution_skills, routing, handoffs, result: SolutionValidationResult) -> None:
        reachable = {(c or {}).get("default_skill") for c in routing.values()}
        reachable.update(h.get("to") for h in handoffs)
        reachable.update(h.get("from") for h in handoffs)

        for skill in solution_skills:
            if skill.get("id") not in reachable:
                result.add_warning(
                    "no_orphan_skills",
                    f'Skill "{skill.get("id")}" is not reachable via routing or handoffs',
                    skill=skill.get("id"),
                )

    def _check_connector_bindings(self, skills, connectors, mcp_store, result: SolutionValidationResult) -> None:
        connector_ids = {c.get("id") for c in connectors}

        for skill in skills:
            for tool in skill.get("tools") or []:
                source = tool.get("source") or {}
                connection_id = source.get("connection_id")
                if source.get("type") == "mcp_bridge" and connection_id and connection_id not in connector_ids:
                    result.add_error(
                        "mcp_bridge_connector_exists",
                        f'Tool "{tool.get("name")}" in skill "{skill.get("name") or skill.get("id")}" '
                        f'references connector "{connection_id}" which is not in the connectors array',
                        skill=skill.get("id"),
                        tool=tool.get("name"),
                        connector=connection_id,
                    )

        for connector in connectors:
            transport = connector.get("transport") or "stdio"
            if transport == "stdio" and not mcp_store.get(connector.get("id")):
                result.add_error(
                    "connector_code_available",
                    f'Connector "{connector.get("id")}" has no server code. Provide it in '
                    f'mcp_store.{connector.get("id")}; without it the connector cannot start.',
                    connector=connector.get("id"),
                )
