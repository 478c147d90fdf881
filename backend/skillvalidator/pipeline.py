"""
Validation Pipeline.

What the HTTP routes and the CLI run:

- skill: auto-expand -> validate -> auto-fix (one pass) -> re-validate
- solution: auto-expand every skill -> structural checks -> quality scoring

Auto-fix is a single pass over a copy of the skill. If it applied any fix
the skill is validated exactly once more, and the response reflects that
final state. There is no convergence loop.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import QualityScoringError
from .expansion import ExpansionResult, SkillExpander
from .logger import get_logger
from .models import AutoFix, ExpandedSkillFields
from .quality import QualityScorer
from .validator import (
    SolutionValidator,
    ValidationEngine,
    ValidationIssue,
    ValidationResult,
)

logger = get_logger(__name__)

# Sections whose absence triggers auto-expansion.
AUTO_EXPAND_SECTIONS = ("intents", "scenarios", "role")

QUALITY_UNAVAILABLE_NOTE = "Quality scoring unavailable, structural validation still valid"

_TOOL_INDEX = re.compile(r"tools\[(\d+)\]")
_INPUT_INDEX = re.compile(r"inputs\[(\d+)\]")


def needs_expansion(skill: Dict[str, Any]) -> bool:
    return any(not skill.get(name) for name in AUTO_EXPAND_SECTIONS)


def _index(pattern: re.Pattern, path: str) -> Optional[int]:
    match = pattern.search(path)
    return int(match.group(1)) if match else None


def _tool_at(skill: Dict[str, Any], path: str) -> Optional[Dict[str, Any]]:
    idx = _index(_TOOL_INDEX, path)
    tools = skill.get("tools")
    if idx is None or not isinstance(tools, list) or idx >= len(tools):
        return None
    tool = tools[idx]
    return tool if isinstance(tool, dict) else None


class AutoFixer:
    """
    Applies mechanical fixes for common validation errors.

    Rules are matched on the issue path, so any issue pointing at a fixable
    location is handled regardless of its code:

    - ``problem``: statement generated from the skill description
    - ``tools[i]...security``: classification set to public
    - ``policy`` or ``...guardrails``: empty never/always lists
    - ``tools[i]...output``: generic object output
    - ``tools[i].inputs[j].description``: description taken from the input name
    """

    def apply(
        self,
        skill: Dict[str, Any],
        issues: List[ValidationIssue],
    ) -> Tuple[Dict[str, Any], List[AutoFix]]:
        """
        Fix what can be fixed.

        Args:
            skill: Skill document. Not modified.
            issues: Issues to attempt.

        Returns:
            Tuple of (fixed copy, applied fixes).
        """
        fixed = copy.deepcopy(skill)
        fixes: List[AutoFix] = []

        for issue in issues:
            for rule in (
                self._fix_problem,
                self._fix_security,
                self._fix_guardrails,
                self._fix_output,
                self._fix_input_description,
            ):
                text = rule(fixed, issue.path)
                if text:
                    fixes.append(AutoFix(error=issue.code, path=issue.path, fix=text))
                    logger.debug("Auto-fix %s at %s: %s", issue.code, issue.path, text)

        return fixed, fixes

    def _fix_problem(self, skill: Dict[str, Any], path: str) -> Optional[str]:
        if "problem" not in path:
            return None
        problem = skill.get("problem")
        if isinstance(problem, dict) and problem.get("statement"):
            return None
        description = skill.get("description")
        if not description:
            return None
        skill["problem"] = {"statement": description, "context": description, "goals": []}
        return "Generated problem.statement from skill description"

    def _fix_security(self, skill: Dict[str, Any], path: str) -> Optional[str]:
        if "security" not in path or "tools" not in path:
            return None
        tool = _tool_at(skill, path)
        if tool is None or (tool.get("security") or {}).get("classification"):
            return None
        tool["security"] = {"classification": "public"}
        return 'Set security.classification to "public"'

    def _fix_guardrails(self, skill: Dict[str, Any], path: str) -> Optional[str]:
        if "guardrails" not in path and path != "policy":
            return None
        policy = skill.get("policy")
        if not isinstance(policy, dict):
            policy = {}
        if policy.get("guardrails"):
            return None
        skill["policy"] = {**policy, "guardrails": {"never": [], "always": []}}
        return "Added empty guardrails (never: [], always: [])"

    def _fix_output(self, skill: Dict[str, Any], path: str) -> Optional[str]:
        if "output" not in path or "tools" not in path:
            return None
        tool = _tool_at(skill, path)
        if tool is None or tool.get("output"):
            return None
        tool["output"] = {"type": "object", "description": "Result"}
        return 'Added default output: { type: "object", description: "Result" }'

    def _fix_input_description(self, skill: Dict[str, Any], path: str) -> Optional[str]:
        if "description" not in path or "inputs" not in path:
            return None
        tool = _tool_at(skill, path)
        input_idx = _index(_INPUT_INDEX, path)
        if tool is None or input_idx is None:
            return None
        inputs = tool.get("inputs")
        if not isinstance(inputs, list) or input_idx >= len(inputs):
            return None
        inp = inputs[input_idx]
        if not isinstance(inp, dict) or inp.get("description") or not inp.get("name"):
            return None
        inp["description"] = str(inp["name"]).replace("_", " ")
        return f'Set input description to "{inp["description"]}"'


@dataclass
class SkillValidationOutcome:
    """Final validation state of a skill after expansion and auto-fix."""

    result: ValidationResult
    skill: Dict[str, Any]
    expanded_fields: List[str] = field(default_factory=list)
    auto_fixes: List[AutoFix] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.result.valid

    def to_dict(self) -> Dict[str, Any]:
        data = self.result.to_dict()
        if self.expanded_fields:
            data["expanded_fields"] = list(self.expanded_fields)
        if self.auto_fixes:
            data["auto_fixes"] = [f.model_dump() for f in self.auto_fixes]
        return data


@dataclass
class SolutionValidationOutcome:
    """Structural result of a solution plus the advisory quality score."""

    valid: bool
    errors: List[Dict[str, Any]]
    warnings: List[Dict[str, Any]]
    summary: Dict[str, Any]
    quality: Optional[Dict[str, Any]] = None
    expanded_skills: List[ExpandedSkillFields] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "summary": self.summary,
            "quality": self.quality,
        }
        if self.expanded_skills:
            data["expanded_skills"] = [e.model_dump() for e in self.expanded_skills]
        return data


class ValidationPipeline:
    """
    Expansion, validation, auto-fix and quality scoring wired together.

    Holds no per-request state; one instance serves every request.
    """

    def __init__(
        self,
        engine: Optional[ValidationEngine] = None,
        expander: Optional[SkillExpander] = None,
        scorer: Optional[QualityScorer] = None,
        solution_validator: Optional[SolutionValidator] = None,
        fixer: Optional[AutoFixer] = None,
    ):
        self.engine = engine or ValidationEngine()
        self.expander = expander or SkillExpander()
        self.scorer = scorer or QualityScorer()
        self.solution_validator = solution_validator or SolutionValidator()
        self.fixer = fixer or AutoFixer()

    def expand_skill(self, skill: Dict[str, Any]) -> ExpansionResult:
        """Expand a minimal skill into a complete one."""
        return self.expander.expand(skill)

    def auto_expand(self, skill: Dict[str, Any]) -> ExpansionResult:
        """Expand only when intents, scenarios or role is missing."""
        if not needs_expansion(skill):
            return ExpansionResult(skill=skill, expanded_fields=[])
        return self.expander.expand(skill)

    def validate_skill(self, skill: Dict[str, Any]) -> SkillValidationOutcome:
        """
        Validate one skill.

        Args:
            skill: Skill document, minimal or complete. Not modified.

        Returns:
            SkillValidationOutcome reflecting the skill after expansion and fixes.
        """
        expansion = self.auto_expand(skill)
        current = expansion.skill
        if expansion.expanded_fields:
            logger.info(
                "Auto-expanded skill %s: %d fields",
                current.get("id"),
                len(expansion.expanded_fields),
            )

        result = self.engine.validate(current)
        fixes: List[AutoFix] = []

        if result.errors:
            fixed, fixes = self.fixer.apply(current, result.errors)
            if fixes:
                logger.info("Applied %d auto-fixes to skill %s", len(fixes), current.get("id"))
                current = fixed
                result = self.engine.validate(current)

        logger.info(
            "Skill %s validated: valid=%s errors=%d warnings=%d",
            current.get("id"),
            result.valid,
            len(result.errors),
            len(result.warnings),
        )
        return SkillValidationOutcome(
            result=result,
            skill=current,
            expanded_fields=expansion.expanded_fields,
            auto_fixes=fixes,
        )

    async def validate_solution(
        self,
        solution: Dict[str, Any],
        skills: List[Dict[str, Any]],
        connectors: Optional[List[Dict[str, Any]]] = None,
        mcp_store: Optional[Dict[str, Any]] = None,
    ) -> SolutionValidationOutcome:
        """
        Validate a solution and score its quality.

        Quality scoring never changes ``valid``; when it is unavailable the
        outcome carries ``quality = {error, note}`` instead.
        """
        expanded_skills: List[Dict[str, Any]] = []
        expanded_fields: List[ExpandedSkillFields] = []
        for skill in skills:
            expansion = self.auto_expand(skill)
            expanded_skills.append(expansion.skill)
            if expansion.expanded_fields:
                expanded_fields.append(ExpandedSkillFields(
                    skill_id=skill.get("id"),
                    expanded_fields=expansion.expanded_fields,
                ))

        structural = self.solution_validator.validate(
            solution,
            skills=expanded_skills,
            connectors=connectors,
            mcp_store=mcp_store,
        )
        logger.info(
            "Solution %s structural check: valid=%s errors=%d warnings=%d",
            solution.get("id") or solution.get("name"),
            structural.valid,
            len(structural.errors),
            len(structural.warnings),
        )

        try:
            quality = await self.scorer.score(solution, expanded_skills)
        except QualityScoringError as e:
            logger.warning("Quality scoring failed: %s", e)
            quality = {"error": str(e), "note": QUALITY_UNAVAILABLE_NOTE}
        except Exception as e:
            logger.exception("Unexpected quality scoring error")
            quality = {"error": str(e) or type(e).__name__, "note": QUALITY_UNAVAILABLE_NOTE}

        return SolutionValidationOutcome(
            valid=structural.valid,
            errors=structural.errors,
            warnings=structural.warnings,
            summary=structural.summary,
            quality=quality,
            expanded_skills=expanded_fields,
        )
