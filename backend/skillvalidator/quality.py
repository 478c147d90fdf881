"""
Solution Quality Scoring.

Advisory, LLM-based estimate of how well a solution does what it claims.
Two analyses run concurrently and are then combined:

- holistic: the model sees the full solution and its skills
- hybrid: a deterministic extraction (stats plus a goal coverage matrix)
  is computed first, and the model judges that instead

A failed analysis degrades to an empty one and the synthesis falls back
to neutral scores. Missing credentials or an overall timeout raise
``QualityScoringError``; callers report that next to, never instead of,
the structural result.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

from .config import Settings
from .errors import QualityScoringError
from .llm import create_llm_client
from .logger import get_logger

logger = get_logger(__name__)

GRADE_THRESHOLDS = [("excellent", 80), ("good", 60), ("fair", 40), ("bad", 0)]

GRADE_LABELS = {
    "excellent": "Excellent - Production Ready",
    "good": "Good - Minor Improvements Needed",
    "fair": "Fair - Significant Gaps",
    "bad": "Poor - Major Rework Required",
}

DIMENSION_WEIGHTS = {
    "goal_coverage": 0.25,
    "scenario_completeness": 0.20,
    "skill_coherence": 0.15,
    "integration_quality": 0.15,
    "security_posture": 0.15,
    "operational_readiness": 0.10,
}

NEUTRAL_SCORE = 50
HIGH_RISK_CLASSIFICATIONS = ("financial", "destructive", "pii_write")

# Keys under which analyses list problems for a dimension, in lookup order.
_ISSUE_KEYS = ("gaps", "issues", "risks", "missing", "missing_capabilities")

HOLISTIC_SYSTEM_PROMPT = """You are an expert AI solution architect reviewing a multi-skill AI agent solution.

Analyze the solution holistically and rate its quality across these dimensions (0-100):

1. Goal Coverage (25%): Do the skills and tools actually address the stated goals?
2. Scenario Completeness (20%): Can all defined scenarios be executed with available tools?
3. Skill Coherence (15%): Do skills have clear boundaries? No overlaps or gaps?
4. Integration Quality (15%): Are grants/handoffs properly connecting skills?
5. Security Posture (15%): Are high-risk operations properly gated?
6. Operational Readiness (10%): Error handling, escalation paths, edge cases?

Provide your analysis as JSON:
{
  "dimensions": {
    "goal_coverage": { "score": <0-100>, "reasoning": "<brief explanation>", "gaps": ["..."] },
    "scenario_completeness": { "score": <0-100>, "reasoning": "<brief>", "missing_capabilities": ["..."] },
    "skill_coherence": { "score": <0-100>, "reasoning": "<brief>", "overlaps": ["..."], "gaps": ["..."] },
    "integration_quality": { "score": <0-100>, "reasoning": "<brief>", "issues": ["..."] },
    "security_posture": { "score": <0-100>, "reasoning": "<brief>", "risks": ["..."] },
    "operational_readiness": { "score": <0-100>, "reasoning": "<brief>", "missing": ["..."] }
  },
  "strengths": ["..."],
  "critical_issues": ["..."],
  "suggestions": [
    { "priority": "high|medium|low", "category": "<category>", "description": "<what to do>", "impact": "<expected improvement>" }
  ],
  "summary": "<2-3 sentence overall assessment>"
}

Be specific and actionable. Reference actual skill/tool names when possible."""

HYBRID_SYSTEM_PROMPT = """You are an AI solution quality assessor. You will receive a structured analysis of an AI agent solution.

The extraction includes the problem statement and goals, skills with their tools, intents and scenarios,
integration (grants, handoffs, routing), a coverage matrix (goal to skill hints) and stats.

Rate each dimension (0-100) and identify specific issues:

{
  "dimensions": {
    "goal_coverage": { "score": <0-100>, "reasoning": "<based on coverage_matrix>", "gaps": ["..."] },
    "scenario_completeness": { "score": <0-100>, "reasoning": "<based on tool availability>", "missing": ["..."] },
    "skill_coherence": { "score": <0-100>, "reasoning": "<based on skill descriptions>", "issues": ["..."] },
    "integration_quality": { "score": <0-100>, "reasoning": "<based on grants/handoffs>", "issues": ["..."] },
    "security_posture": { "score": <0-100>, "reasoning": "<based on classifications & guardrails>", "risks": ["..."] },
    "operational_readiness": { "score": <0-100>, "reasoning": "<based on workflows & escalation>", "gaps": ["..."] }
  },
  "key_observations": ["..."],
  "suggestions": [
    { "priority": "high|medium|low", "category": "<category>", "description": "<action>", "effort": "low|medium|high" }
  ],
  "summary": "<1-2 sentence assessment based on data>"
}

Focus on what the data reveals. Be data-driven."""


def _classification(tool: Dict[str, Any]) -> Optional[str]:
    return (tool.get("security") or {}).get("classification") or tool.get("classification")


def _has_guardrails(skill: Dict[str, Any]) -> bool:
    guardrails = (skill.get("policy") or {}).get("guardrails") or {}
    return bool(guardrails.get("never") or guardrails.get("always"))


def extract_structured_data(solution: Dict[str, Any], skills: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Deterministic summary of a solution used by the hybrid analysis."""
    problem = solution.get("problem") or {}
    routing = solution.get("routing") or {}
    grants = solution.get("grants") or []
    handoffs = solution.get("handoffs") or []

    extraction: Dict[str, Any] = {
        "name": solution.get("name"),
        "description": solution.get("description") or "",
        "phase": solution.get("phase") or "unknown",
        "problem": {
            "statement": problem.get("statement") or "",
            "context": problem.get("context") or "",
            "goals": problem.get("goals") or [],
        },
        "skills": [
            {
                "id": skill.get("id"),
                "name": skill.get("name"),
                "description": skill.get("description") or "",
                "role": (skill.get("role") or {}).get("name") or "",
                "persona": ((skill.get("role") or {}).get("persona") or "")[:200],
                "tool_count": len(skill.get("tools") or []),
                "tools": [
                    {
                        "name": tool.get("name"),
                        "description": tool.get("description") or "",
                        "classification": _classification(tool) or "unclassified",
                        "input_count": len(tool.get("inputs") or []),
                    }
                    for tool in skill.get("tools") or []
                ],
                "intent_count": len((skill.get("intents") or {}).get("supported") or []),
                "scenario_count": len(skill.get("scenarios") or []),
                "has_guardrails": _has_guardrails(skill),
                "workflow_count": len((skill.get("policy") or {}).get("workflows") or []),
            }
            for skill in skills
        ],
        "grants": [
            {
                "key": g.get("key"),
                "description": g.get("description") or "",
                "issued_by": g.get("issued_by") or [],
                "consumed_by": g.get("consumed_by") or [],
            }
            for g in grants
        ],
        "handoffs": [
            {
                "id": h.get("id"),
                "from": h.get("from"),
                "to": h.get("to"),
                "trigger": h.get("trigger") or "",
                "grants_passed": h.get("grants_passed") or [],
            }
            for h in handoffs
        ],
        "routing": [
            {"channel": channel, "default_skill": (config or {}).get("default_skill")}
            for channel, config in routing.items()
        ],
        "security_contracts": [
            {
                "name": c.get("name"),
                "consumer": c.get("consumer"),
                "provider": c.get("provider"),
                "requires_grants": c.get("requires_grants") or [],
            }
            for c in solution.get("security_contracts") or []
        ],
        "stats": {
            "total_skills": len(skills),
            "total_tools": sum(len(s.get("tools") or []) for s in skills),
            "total_grants": len(grants),
            "total_handoffs": len(handoffs),
            "total_channels": len(routing),
            "skills_with_guardrails": sum(1 for s in skills if _has_guardrails(s)),
            "high_risk_tools": sum(
                1
                for s in skills
                for t in s.get("tools") or []
                if _classification(t) in HIGH_RISK_CLASSIFICATIONS
            ),
        },
    }
    extraction["coverage_matrix"] = build_coverage_matrix(extraction)
    return extraction


def build_coverage_matrix(extraction: Dict[str, Any]) -> Dict[str, Any]:
    """
    Hint which skills address which goals.

    A skill is a candidate for a goal when any goal word longer than three
    characters appears in the skill's name, description, role or tools.
    """
    goals = []
    for goal in extraction["problem"]["goals"]:
        words = [w for w in str(goal).lower().split() if len(w) > 3]
        entry: Dict[str, Any] = {"goal": goal, "potential_skills": [], "coverage_hints": []}

        for skill in extraction["skills"]:
            skill_text = f"{skill['name']} {skill['description']} {skill['role']}".lower()
            tool_text = " ".join(f"{t['name']} {t['description']}" for t in skill["tools"]).lower()
            matching = [w for w in words if w in skill_text or w in tool_text]
            if matching:
                entry["potential_skills"].append({
                    "skill_id": skill["id"],
                    "skill_name": skill["name"],
                    "matching_keywords": matching,
                    "tool_count": skill["tool_count"],
                })

        if not entry["potential_skills"]:
            entry["coverage_hints"].append("No skills appear to directly address this goal")
        goals.append(entry)

    return {"goals": goals, "uncovered_areas": [], "redundant_areas": []}


def parse_json_content(content: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of a model reply, tolerating code fences and
    surrounding prose.

    Raises:
        ValueError: If no JSON object can be decoded.
    """
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end != -1:
        text = text[start:end + 1]

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data


def grade_for(score: int) -> str:
    for grade, threshold in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "bad"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    if not value:
        return []
    return list(value) if isinstance(value, list) else [value]


def _as_score(value: Any) -> Optional[float]:
    """Numeric score from a model reply; numeric strings are accepted, anything else is unscored."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def prioritize_suggestions(suggestions: List[Any]) -> List[Dict[str, Any]]:
    """Sort by priority (high first) and drop suggestions whose descriptions start alike."""
    order = {"high": 0, "medium": 1, "low": 2}
    valid = [s for s in suggestions if isinstance(s, dict)]
    ranked = sorted(valid, key=lambda s: order.get(str(s.get("priority")), 2))

    seen = set()
    deduped = []
    for suggestion in ranked:
        key = str(suggestion.get("description") or "").lower()[:50]
        if key not in seen:
            seen.add(key)
            deduped.append(suggestion)
    return deduped


def _dimension_issues(dimension: Dict[str, Any]) -> List[Any]:
    for key in _ISSUE_KEYS:
        if dimension.get(key):
            return _as_list(dimension[key])
    return []


def synthesize(holistic: Dict[str, Any], hybrid: Dict[str, Any]) -> Dict[str, Any]:
    """
    Combine both analyses.

    A dimension scored by both is weighted 60% holistic, 40% hybrid; a
    dimension scored by one takes that score; an unscored one gets the
    neutral score.

    Model replies are untrusted: dimensions that are not objects, scores
    that are not numbers and suggestions that are not objects are ignored.
    """
    dimensions: Dict[str, Dict[str, Any]] = {}
    h_dims = _as_dict(holistic.get("dimensions"))
    y_dims = _as_dict(hybrid.get("dimensions"))

    for name in DIMENSION_WEIGHTS:
        h = _as_dict(h_dims.get(name))
        y = _as_dict(y_dims.get(name))
        h_score, y_score = _as_score(h.get("score")), _as_score(y.get("score"))

        if h_score is not None and y_score is not None:
            issues: List[Any] = []
            for issue in _dimension_issues(h) + _dimension_issues(y):
                if issue not in issues:
                    issues.append(issue)
            dimensions[name] = {
                "score": round(h_score * 0.6 + y_score * 0.4),
                "holistic_score": h_score,
                "hybrid_score": y_score,
                "reasoning": h.get("reasoning") or y.get("reasoning"),
                "issues": issues,
            }
        elif h_score is not None:
            dimensions[name] = {**h, "score": h_score, "source": "holistic"}
        elif y_score is not None:
            dimensions[name] = {**y, "score": y_score, "source": "hybrid"}
        else:
            dimensions[name] = {"score": NEUTRAL_SCORE, "source": "default", "reasoning": "Unable to assess"}

    overall = round(sum(
        (dimensions[name].get("score") or NEUTRAL_SCORE) * weight
        for name, weight in DIMENSION_WEIGHTS.items()
    ))
    grade = grade_for(overall)

    suggestions = prioritize_suggestions(
        _as_list(holistic.get("suggestions")) + _as_list(hybrid.get("suggestions"))
    )
    critical = _as_list(holistic.get("critical_issues"))
    critical += [
        o for o in _as_list(hybrid.get("key_observations"))
        if "missing" in str(o).lower() or "lack" in str(o).lower()
    ]
    summaries = [str(s) for s in (holistic.get("summary"), hybrid.get("summary")) if s]
    summary = " ".join(summaries) or f"Solution scored {overall}/100 ({grade}). See dimension scores for details."

    return {
        "overall_score": overall,
        "grade": grade,
        "grade_label": GRADE_LABELS[grade],
        "dimensions": dimensions,
        "strengths": _as_list(holistic.get("strengths")),
        "critical_issues": critical,
        "top_suggestions": suggestions[:5],
        "all_suggestions": suggestions,
        "summary": summary,
        "_analysis": {
            "holistic": {
                "completed": "_error" not in holistic,
                "error": holistic.get("_error"),
                "tokens": holistic.get("_tokens"),
            },
            "hybrid": {
                "completed": "_error" not in hybrid,
                "error": hybrid.get("_error"),
                "tokens": hybrid.get("_tokens"),
                "stats": (hybrid.get("_extraction") or {}).get("stats"),
            },
        },
    }


class QualityScorer:
    """
    Scores a solution with two concurrent LLM analyses.

    The LLM client is created lazily from ``settings`` unless one is given;
    anything with an async ``chat(system_prompt, user_prompt, max_tokens,
    temperature)`` returning an object with ``content`` and ``usage`` works.
    """

    def __init__(
        self,
        client: Any = None,
        settings: Optional[Settings] = None,
        timeout_s: Optional[float] = None,
    ):
        self.settings = settings or Settings.load()
        self._client = client
        self.timeout_s = timeout_s if timeout_s is not None else self.settings.quality_timeout_s

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = create_llm_client(self.settings)
        return self._client

    async def score(self, solution: Dict[str, Any], skills: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Score a solution.

        Args:
            solution: Solution definition.
            skills: Expanded skill documents.

        Returns:
            Synthesized quality assessment.

        Raises:
            QualityScoringError: If no client can be built or scoring times out.
        """
        client = self.client
        logger.info(
            "Scoring solution %s: %d skills, %d tools",
            solution.get("name"),
            len(skills),
            sum(len(s.get("tools") or []) for s in skills),
        )

        try:
            holistic, hybrid = await asyncio.wait_for(
                asyncio.gather(
                    self._holistic(client, solution, skills),
                    self._hybrid(client, solution, skills),
                ),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise QualityScoringError(f"Quality scoring timed out after {self.timeout_s:g}s") from e

        result = synthesize(holistic, hybrid)
        logger.info("Quality score %d/100 (%s)", result["overall_score"], result["grade"])
        return result

    async def _holistic(self, client: Any, solution: Dict[str, Any], skills: List[Dict[str, Any]]) -> Dict[str, Any]:
        context = {
            "name": solution.get("name"),
            "description": solution.get("description"),
            "problem": solution.get("problem"),
            "skills": [
                {
                    "id": s.get("id"),
                    "name": s.get("name"),
                    "description": s.get("description"),
                    "role": s.get("role"),
                    "tools": [
                        {
                            "name": t.get("name"),
                            "description": t.get("description"),
                            "classification": _classification(t),
                        }
                        for t in s.get("tools") or []
                    ],
                    "scenarios": s.get("scenarios"),
                    "intents": [
                        {"id": i.get("id"), "description": i.get("description"), "examples": i.get("examples")}
                        for i in (s.get("intents") or {}).get("supported") or []
                    ],
                    "guardrails": (s.get("policy") or {}).get("guardrails"),
                    "workflows": (s.get("policy") or {}).get("workflows"),
                }
                for s in skills
            ],
            "grants": solution.get("grants"),
            "handoffs": solution.get("handoffs"),
            "routing": solution.get("routing"),
            "security_contracts": solution.get("security_contracts"),
        }
        prompt = f"Analyze this AI agent solution:\n\n{json.dumps(context, indent=2)}"

        try:
            response = await client.chat(HOLISTIC_SYSTEM_PROMPT, prompt, max_tokens=4096, temperature=0.3)
            result = parse_json_content(response.content)
        except (QualityScoringError, ValueError) as e:
            logger.warning("Holistic analysis failed: %s", e)
            return {
                "_analysis_type": "holistic",
                "_error": str(e),
                "dimensions": {},
                "strengths": [],
                "critical_issues": [f"Analysis failed: {e}"],
                "suggestions": [],
                "summary": "Unable to complete holistic analysis",
            }

        result["_analysis_type"] = "holistic"
        result["_tokens"] = response.usage
        return result

    async def _hybrid(self, client: Any, solution: Dict[str, Any], skills: List[Dict[str, Any]]) -> Dict[str, Any]:
        extraction = extract_structured_data(solution, skills)
        prompt = f"Evaluate this solution based on extracted data:\n\n{json.dumps(extraction, indent=2)}"

        try:
            response = await client.chat(HYBRID_SYSTEM_PROMPT, prompt, max_tokens=3000, temperature=0.2)
            result = parse_json_content(response.content)
        except (QualityScoringError, ValueError) as e:
            logger.warning("Hybrid analysis failed: %s", e)
            return {
                "_analysis_type": "hybrid",
                "_error": str(e),
                "_extraction": extraction,
                "dimensions": {},
                "key_observations": [],
                "suggestions": [],
                "summary": "Unable to complete hybrid analysis",
            }

        result["_analysis_type"] = "hybrid"
        result["_extraction"] = extraction
        result["_tokens"] = response.usage
        return result
