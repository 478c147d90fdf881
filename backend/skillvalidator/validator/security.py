"""
Security Validation (Layer 4).

Validates identity and access-control configuration:
- Every tool carries a valid security classification and risk level
- High-risk tools are covered by an access-policy rule
- PII tools have response filters or an access-policy rule
- Data-owner fields are injected by a constrain rule or grant mapping
- Grant mappings and access-policy rules reference defined tools
- Response-filter field paths are syntactically valid
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Set, Tuple

from .issues import LayerResult

HIGH_RISK_CLASSIFICATIONS = ["pii_write", "financial", "destructive"]
PII_CLASSIFICATIONS = ["pii_read", "pii_write"]
VALID_CLASSIFICATIONS = ["public", "pii_read", "pii_write", "financial", "destructive"]
VALID_RISK_LEVELS = ["low", "medium", "high", "critical"]
VALID_EFFECTS = ["allow", "deny", "constrain"]

# Dotted identifiers with optional index segments: customer.address.line1, items[0].name
FIELD_PATH_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*|\[\d+\])*$")


def _rules(skill: Dict[str, Any]) -> List[Dict[str, Any]]:
    access_policy = skill.get("access_policy")
    if not isinstance(access_policy, dict):
        return []
    return [r for r in access_policy.get("rules") or [] if isinstance(r, dict)]


def _policy_coverage(skill: Dict[str, Any]) -> Tuple[Set[str], bool]:
    """Tool names covered by access-policy rules, and whether a ``*`` rule exists."""
    covered: Set[str] = set()
    wildcard = False
    for rule in _rules(skill):
        for ref in rule.get("tools") or []:
            if ref == "*":
                wildcard = True
            else:
                covered.add(ref)
    return covered, wildcard


class SecurityValidator:
    """Validates access-control configuration of a skill (Layer 4)."""

    def validate(self, skill: Dict[str, Any]) -> LayerResult:
        """
        Validate security configuration.

        Args:
            skill: The skill document.

        Returns:
            LayerResult with security errors and warnings.
        """
        result = LayerResult()

        tools = [t for t in skill.get("tools") or [] if isinstance(t, dict)]
        tool_names = {t["name"] for t in tools if t.get("name")}
        covered, wildcard = _policy_coverage(skill)
        has_filters = bool(skill.get("response_filters"))

        for i, tool in enumerate(tools):
            self._check_tool(skill, tool, f"tools[{i}]", covered, wildcard, has_filters, result)

        for i, mapping in enumerate(skill.get("grant_mappings") or []):
            tool_ref = mapping.get("tool") if isinstance(mapping, dict) else None
            if tool_ref and tool_ref not in tool_names:
                result.error(
                    "GRANT_MAPPING_INVALID_TOOL",
                    f"grant_mappings[{i}].tool",
                    f'Grant mapping references non-existent tool "{tool_ref}"',
                    "Update the tool name or define the missing tool",
                )

        for i, rule in enumerate(_rules(skill)):
            for j, ref in enumerate(rule.get("tools") or []):
                if ref != "*" and ref not in tool_names:
                    result.error(
                        "ACCESS_POLICY_INVALID_TOOL",
                        f"access_policy.rules[{i}].tools[{j}]",
                        f'Access policy rule references non-existent tool "{ref}"',
                        "Update the tool name or define the missing tool",
                    )
            effect = rule.get("effect")
            if effect and effect not in VALID_EFFECTS:
                result.error(
                    "INVALID_POLICY_EFFECT",
                    f"access_policy.rules[{i}].effect",
                    f'Access policy rule has invalid effect "{effect}"',
                    f"Must be one of: {', '.join(VALID_EFFECTS)}",
                )

        for i, response_filter in enumerate(skill.get("response_filters") or []):
            if not isinstance(response_filter, dict):
                continue
            for key in ("strip_fields", "mask_fields"):
                for j, field_path in enumerate(response_filter.get(key) or []):
                    if not isinstance(field_path, str) or not FIELD_PATH_PATTERN.match(field_path):
                        result.error(
                            "INVALID_FILTER_FIELD_PATH",
                            f"response_filters[{i}].{key}[{j}]",
                            f'Invalid field path "{field_path}" in response filter',
                            'Use dotted notation (e.g. "customer.ssn") or bracket notation (e.g. "items[0].name")',
                        )

        return result

    def _check_tool(self, skill, tool, path, covered, wildcard, has_filters, result) -> None:
        name = tool.get("name")
        security = tool.get("security") if isinstance(tool.get("security"), dict) else {}
        classification = security.get("classification")

        if not classification:
            result.warning(
                "UNCLASSIFIED_TOOL",
                f"{path}.security.classification",
                f'Tool "{name}" has no security classification',
                "Assign a classification (public, pii_read, pii_write, financial, destructive)",
            )
            return

        if classification not in VALID_CLASSIFICATIONS:
            result.error(
                "INVALID_CLASSIFICATION",
                f"{path}.security.classification",
                f'Tool "{name}" has invalid classification "{classification}"',
                f"Must be one of: {', '.join(VALID_CLASSIFICATIONS)}",
            )

        risk = security.get("risk")
        if risk and risk not in VALID_RISK_LEVELS:
            result.error(
                "INVALID_RISK_LEVEL",
                f"{path}.security.risk",
                f'Tool "{name}" has invalid risk level "{risk}"',
                f"Must be one of: {', '.join(VALID_RISK_LEVELS)}",
            )

        is_covered = wildcard or name in covered

        if classification in HIGH_RISK_CLASSIFICATIONS and not is_covered:
            result.error(
                "HIGH_RISK_NO_POLICY",
                f"{path}.security",
                f'High-risk tool "{name}" ({classification}) has no access policy',
                "Add an access_policy rule covering this tool",
            )

        if classification in PII_CLASSIFICATIONS and not has_filters and not is_covered:
            result.warning(
                "PII_NO_FILTER",
                f"{path}.security",
                f'PII tool "{name}" ({classification}) has no response filter or access policy',
                "Add a response_filter to strip or mask sensitive fields, or add an access_policy rule",
            )

        owner_field = security.get("data_owner_field")
        if owner_field and name and not self._constrained(skill, name, owner_field):
            result.warning(
                "DATA_OWNER_NO_CONSTRAIN",
                f"{path}.security.data_owner_field",
                f'Tool "{name}" has data_owner_field "{owner_field}" but no constrain policy '
                "or grant mapping injects it",
                f'Add an access_policy rule with effect "constrain" that references "{owner_field}", '
                "or a grant_mapping that captures it",
            )

    def _constrained(self, skill: Dict[str, Any], tool_name: str, field_name: str) -> bool:
        for rule in _rules(skill):
            if rule.get("effect") != "constrain":
                continue
            refs = rule.get("tools") or []
            if "*" not in refs and tool_name not in refs:
                continue
            for key, value in (rule.get("constrain") or {}).items():
                if field_name in (key, value):
                    return True

        for mapping in skill.get("grant_mappings") or []:
            if not isinstance(mapping, dict) or mapping.get("tool") != tool_name:
                continue
            if any(g.get("value_from") == field_name for g in mapping.get("grants") or []):
                return True
        return False

    def report(self, skill: Dict[str, Any]) -> Dict[str, int]:
        """Security coverage counts for the progress view."""
        tools = [t for t in skill.get("tools") or [] if isinstance(t, dict)]
        covered, wildcard = _policy_coverage(skill)
        has_filters = bool(skill.get("response_filters"))

        counts = {
            "total_tools": len(tools),
            "classified": 0,
            "unclassified": 0,
            "high_risk": 0,
            "high_risk_with_policy": 0,
            "pii_tools": 0,
            "pii_with_filters": 0,
        }
        for tool in tools:
            classification = (tool.get("security") or {}).get("classification")
            if not classification:
                counts["unclassified"] += 1
                continue
            counts["classified"] += 1
            is_covered = wildcard or tool.get("name") in covered
            if classification in HIGH_RISK_CLASSIFICATIONS:
                counts["high_risk"] += 1
                counts["high_risk_with_policy"] += int(is_covered)
            if classification in PII_CLASSIFICATIONS:
                counts["pii_tools"] += 1
                counts["pii_with_filters"] += int(has_filters or is_covered)

        counts["grant_mappings_count"] = len(skill.get("grant_mappings") or [])
        counts["access_rules_count"] = len(_rules(skill))
        counts["response_filters_count"] = len(skill.get("response_filters") or [])
        return counts
