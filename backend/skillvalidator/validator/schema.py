"""
Schema Validation (Layer 1).

Type checks, required sections and enum values for a skill document:
- Metadata (id, name, phase)
- Problem, scenarios, role, intents, engine
- Tools (inputs, output, policy, mock)
- Policy (guardrails, workflows, approvals)
- Triggers (schedule / event)
"""

from __future__ import annotations

import re
from typing import Any, Dict, List

from .issues import LayerResult

VALID_DATA_TYPES = ["string", "number", "boolean", "object", "array", "text"]
VALID_TRIGGER_TYPES = ["schedule", "event"]
VALID_PHASES = [
    "PROBLEM_DISCOVERY",
    "SCENARIO_EXPLORATION",
    "INTENT_DEFINITION",
    "TOOLS_PROPOSAL",
    "TOOL_DEFINITION",
    "POLICY_DEFINITION",
    "MOCK_TESTING",
    "READY_TO_EXPORT",
    "EXPORTED",
    "DEPLOYED",
]
VALID_TONES = ["formal", "casual", "technical"]
VALID_VERBOSITIES = ["concise", "balanced", "detailed"]
VALID_OOD_ACTIONS = ["redirect", "reject", "escalate"]
VALID_ON_MAX_ITERATIONS = ["escalate", "fail", "ask_user"]
VALID_STRICTNESS = ["low", "medium", "high"]
VALID_AUTONOMY_LEVELS = ["autonomous", "supervised", "restricted"]
VALID_TOOL_ALLOWED = ["always", "conditional", "never"]
VALID_MOCK_MODES = ["examples", "llm", "hybrid"]
VALID_MOCK_STATUSES = ["untested", "tested", "skipped"]

DURATION_PATTERN = re.compile(r"^P(?:\d+D)?(?:T(?:\d+H)?(?:\d+M)?(?:\d+S)?)?$")
DURATION_HINT = 'Use format like "PT2M" (2 minutes), "PT1H" (1 hour), "P1D" (1 day)'


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _dicts(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, dict) else {} for item in value]


class SchemaValidator:
    """
    Validates skill document structure (Layer 1).

    Missing ``intents``, ``role``, ``engine``, ``problem`` and ``policy``
    sections are errors; the pipeline normally expands them before this
    layer runs.
    """

    def validate(self, skill: Dict[str, Any]) -> LayerResult:
        """
        Validate a skill document.

        Args:
            skill: The skill document.

        Returns:
            LayerResult with schema errors and warnings.
        """
        result = LayerResult()

        self._validate_metadata(skill, result)
        self._validate_problem(skill.get("problem"), result)
        for i, scenario in enumerate(_dicts(skill.get("scenarios"))):
            self._validate_scenario(scenario, f"scenarios[{i}]", result)
        self._validate_role(skill.get("role"), result)
        self._validate_intents(skill.get("intents"), result)
        self._validate_engine(skill.get("engine"), result)
        for i, tool in enumerate(_dicts(skill.get("tools"))):
            self._validate_tool(tool, f"tools[{i}]", result)
        self._validate_policy(skill.get("policy"), result)
        for i, trigger in enumerate(_dicts(skill.get("triggers"))):
            self._validate_trigger(trigger, f"triggers[{i}]", result)

        return result

    def _validate_metadata(self, skill: Dict[str, Any], result: LayerResult) -> None:
        if not skill.get("id") or not isinstance(skill.get("id"), str):
            result.error("INVALID_ID", "id", "Skill ID is required and must be a string")

        if not skill.get("name") or not isinstance(skill.get("name"), str):
            result.error("INVALID_NAME", "name", "Skill name is required and must be a string")

        phase = skill.get("phase")
        if phase is not None and phase not in VALID_PHASES:
            result.error(
                "INVALID_PHASE",
                "phase",
                f"Invalid phase: {phase}. Must be one of: {', '.join(VALID_PHASES)}",
            )

    def _validate_problem(self, problem: Any, result: LayerResult) -> None:
        if not problem:
            result.error("MISSING_PROBLEM", "problem", "Problem section is required")
            return
        if not isinstance(problem, dict):
            return

        statement = problem.get("statement")
        if statement and not isinstance(statement, str):
            result.error(
                "INVALID_PROBLEM_STATEMENT", "problem.statement", "Problem statement must be a string"
            )

        goals = problem.get("goals")
        if goals and not isinstance(goals, list):
            result.error("INVALID_PROBLEM_GOALS", "problem.goals", "Problem goals must be an array")

    def _validate_scenario(self, scenario: Dict[str, Any], path: str, result: LayerResult) -> None:
        if not scenario.get("id"):
            result.error("MISSING_SCENARIO_ID", f"{path}.id", "Scenario ID is required")

        if not scenario.get("title") or not isinstance(scenario.get("title"), str):
            result.warning(
                "INVALID_SCENARIO_TITLE",
                f"{path}.title",
                "Scenario title is required",
                "Add a descriptive title for the scenario",
            )

        if not isinstance(scenario.get("steps"), list):
            result.error("INVALID_SCENARIO_STEPS", f"{path}.steps", "Scenario steps must be an array")

    def _validate_role(self, role: Any, result: LayerResult) -> None:
        if not role:
            result.error("MISSING_ROLE", "role", "Role section is required")
            return

        style = role.get("communication_style") if isinstance(role, dict) else None
        if not isinstance(style, dict):
            return

        tone = style.get("tone")
        if tone and tone not in VALID_TONES:
            result.error(
                "INVALID_TONE",
                "role.communication_style.tone",
                f"Invalid tone: {tone}. Must be one of: {', '.join(VALID_TONES)}",
            )

        verbosity = style.get("verbosity")
        if verbosity and verbosity not in VALID_VERBOSITIES:
            result.error(
                "INVALID_VERBOSITY",
                "role.communication_style.verbosity",
                f"Invalid verbosity: {verbosity}. Must be one of: {', '.join(VALID_VERBOSITIES)}",
            )

    def _validate_intents(self, intents: Any, result: LayerResult) -> None:
        if not intents:
            result.error("MISSING_INTENTS", "intents", "Intents section is required")
            return
        if not isinstance(intents, dict):
            return

        thresholds = intents.get("thresholds") or {}
        for key, label in (("accept", "Accept"), ("clarify", "Clarify")):
            value = thresholds.get(key)
            if _is_number(value) and (value < 0 or value > 1):
                result.error(
                    "INVALID_THRESHOLD",
                    f"intents.thresholds.{key}",
                    f"{label} threshold must be between 0 and 1",
                )

        for i, intent in enumerate(_dicts(intents.get("supported"))):
            self._validate_intent(intent, f"intents.supported[{i}]", result)

        # out_of_skill is the older name of the same block
        for key in ("out_of_domain", "out_of_skill"):
            ood = intents.get(key)
            if not isinstance(ood, dict):
                continue
            action = ood.get("action")
            if action and action not in VALID_OOD_ACTIONS:
                result.error(
                    "INVALID_OOD_ACTION",
                    f"intents.{key}.action",
                    f"Invalid out-of-domain action: {action}. Must be one of: {', '.join(VALID_OOD_ACTIONS)}",
                )

    def _validate_intent(self, intent: Dict[str, Any], path: str, result: LayerResult) -> None:
        if not intent.get("id"):
            result.error("MISSING_INTENT_ID", f"{path}.id", "Intent ID is required")

        if not intent.get("description") or not isinstance(intent.get("description"), str):
            result.warning(
                "INVALID_INTENT_DESCRIPTION",
                f"{path}.description",
                "Intent description is required",
                "Add a clear description of what this intent represents",
            )

        examples = intent.get("examples")
        if not isinstance(examples, list) or not examples:
            result.warning(
                "MISSING_INTENT_EXAMPLES",
                f"{path}.examples",
                "Intent should have at least one example",
                "Add example phrases that would trigger this intent",
            )

        for i, entity in enumerate(_dicts(intent.get("entities"))):
            if not entity.get("name"):
                result.error(
                    "MISSING_ENTITY_NAME", f"{path}.entities[{i}].name", "Entity name is required"
                )
            entity_type = entity.get("type")
            if entity_type and entity_type not in VALID_DATA_TYPES:
                result.error(
                    "INVALID_ENTITY_TYPE",
                    f"{path}.entities[{i}].type",
                    f"Invalid entity type: {entity_type}",
                )

    def _validate_engine(self, engine: Any, result: LayerResult) -> None:
        if not engine:
            result.error("MISSING_ENGINE", "engine", "Engine section is required")
            return
        if not isinstance(engine, dict):
            return

        rv2 = engine.get("rv2") or {}
        max_iterations = rv2.get("max_iterations")
        if _is_number(max_iterations) and max_iterations < 1:
            result.error(
                "INVALID_MAX_ITERATIONS", "engine.rv2.max_iterations", "max_iterations must be at least 1"
            )
        on_max = rv2.get("on_max_iterations")
        if on_max and on_max not in VALID_ON_MAX_ITERATIONS:
            result.error(
                "INVALID_ON_MAX_ITERATIONS",
                "engine.rv2.on_max_iterations",
                f"Invalid on_max_iterations: {on_max}. "
                f"Must be one of: {', '.join(VALID_ON_MAX_ITERATIONS)}",
            )

        critic = (engine.get("hlr") or {}).get("critic") or {}
        strictness = critic.get("strictness")
        if strictness and strictness not in VALID_STRICTNESS:
            result.error(
                "INVALID_STRICTNESS",
                "engine.hlr.critic.strictness",
                f"Invalid strictness: {strictness}. Must be one of: {', '.join(VALID_STRICTNESS)}",
            )

        level = (engine.get("autonomy") or {}).get("level")
        if level and level not in VALID_AUTONOMY_LEVELS:
            result.error(
                "INVALID_AUTONOMY_LEVEL",
                "engine.autonomy.level",
                f"Invalid autonomy level: {level}. Must be one of: {', '.join(VALID_AUTONOMY_LEVELS)}",
            )

        gate = engine.get("finalization_gate")
        if isinstance(gate, dict):
            if "enabled" in gate and not isinstance(gate["enabled"], bool):
                result.error(
                    "INVALID_FINALIZATION_GATE_ENABLED",
                    "engine.finalization_gate.enabled",
                    "finalization_gate.enabled must be a boolean",
                )
            if "max_retries" in gate:
                retries = gate["max_retries"]
                if not _is_number(retries) or retries < 0 or retries > 10:
                    result.error(
                        "INVALID_FINALIZATION_GATE_RETRIES",
                        "engine.finalization_gate.max_retries",
                        "finalization_gate.max_retries must be a number between 0 and 10",
                    )

    def _validate_tool(self, tool: Dict[str, Any], path: str, result: LayerResult) -> None:
        if not tool.get("id"):
            result.error("MISSING_TOOL_ID", f"{path}.id", "Tool ID is required")

        if not tool.get("name") or not isinstance(tool.get("name"), str):
            result.error(
                "INVALID_TOOL_NAME", f"{path}.name", "Tool name is required and must be a string"
            )

        if not tool.get("description") or not isinstance(tool.get("description"), str):
            result.warning(
                "INVALID_TOOL_DESCRIPTION",
                f"{path}.description",
                "Tool description is required",
                "Add a clear description of what this tool does",
            )

        inputs = tool.get("inputs")
        if not isinstance(inputs, list):
            result.error("INVALID_TOOL_INPUTS", f"{path}.inputs", "Tool inputs must be an array")
        else:
            for i, inp in enumerate(_dicts(inputs)):
                input_path = f"{path}.inputs[{i}]"
                if not inp.get("name"):
                    result.error("MISSING_INPUT_NAME", f"{input_path}.name", "Input name is required")
                input_type = inp.get("type")
                if input_type and input_type not in VALID_DATA_TYPES:
                    result.error(
                        "INVALID_INPUT_TYPE",
                        f"{input_path}.type",
                        f"Invalid input type: {input_type}. Must be one of: {', '.join(VALID_DATA_TYPES)}",
                    )
                if inp.get("name") and not inp.get("description"):
                    result.warning(
                        "MISSING_INPUT_DESCRIPTION",
                        f"{input_path}.description",
                        f'Input "{inp["name"]}" has no description',
                        "Describe what the input is used for",
                    )

        output = tool.get("output")
        if not output:
            result.error("MISSING_TOOL_OUTPUT", f"{path}.output", "Tool output is required")
        elif isinstance(output, dict):
            output_type = output.get("type")
            if output_type and output_type not in VALID_DATA_TYPES:
                result.error(
                    "INVALID_OUTPUT_TYPE",
                    f"{path}.output.type",
                    f"Invalid output type: {output_type}. Must be one of: {', '.join(VALID_DATA_TYPES)}",
                )

        tool_policy = tool.get("policy")
        allowed = tool_policy.get("allowed") if isinstance(tool_policy, dict) else None
        if allowed and allowed not in VALID_TOOL_ALLOWED:
            result.error(
                "INVALID_TOOL_POLICY_ALLOWED",
                f"{path}.policy.allowed",
                f"Invalid allowed value: {allowed}. Must be one of: {', '.join(VALID_TOOL_ALLOWED)}",
            )

        mode = tool["mock"].get("mode") if isinstance(tool.get("mock"), dict) else None
        if mode and mode not in VALID_MOCK_MODES:
            result.error(
                "INVALID_MOCK_MODE",
                f"{path}.mock.mode",
                f"Invalid mock mode: {mode}. Must be one of: {', '.join(VALID_MOCK_MODES)}",
            )

        mock_status = tool.get("mock_status")
        if mock_status and mock_status not in VALID_MOCK_STATUSES:
            result.error(
                "INVALID_MOCK_STATUS",
                f"{path}.mock_status",
                f"Invalid mock_status: {mock_status}. Must be one of: {', '.join(VALID_MOCK_STATUSES)}",
            )

    def _validate_policy(self, policy: Any, result: LayerResult) -> None:
        if not policy:
            result.error("MISSING_POLICY", "policy", "Policy section is required")
            return
        if not isinstance(policy, dict):
            return

        guardrails = policy.get("guardrails")
        if not guardrails:
            result.error(
                "MISSING_GUARDRAILS",
                "policy.guardrails",
                "Policy guardrails are required",
                "Add never/always rules, or empty lists if there are none",
            )
        elif isinstance(guardrails, dict):
            for key in ("never", "always"):
                rules = guardrails.get(key)
                if rules and not isinstance(rules, list):
                    result.error(
                        f"INVALID_GUARDRAILS_{key.upper()}",
                        f"policy.guardrails.{key}",
                        f"guardrails.{key} must be an array",
                    )

        for i, workflow in enumerate(_dicts(policy.get("workflows"))):
            path = f"policy.workflows[{i}]"
            if not workflow.get("id"):
                result.error("MISSING_WORKFLOW_ID", f"{path}.id", "Workflow ID is required")
            if not workflow.get("name"):
                result.warning("MISSING_WORKFLOW_NAME", f"{path}.name", "Workflow name is recommended")
            if not isinstance(workflow.get("steps"), list):
                result.error("INVALID_WORKFLOW_STEPS", f"{path}.steps", "Workflow steps must be an array")

        for i, approval in enumerate(_dicts(policy.get("approvals"))):
            path = f"policy.approvals[{i}]"
            if not approval.get("id"):
                result.error("MISSING_APPROVAL_ID", f"{path}.id", "Approval rule ID is required")
            if not approval.get("tool_id"):
                result.error(
                    "MISSING_APPROVAL_TOOL_ID", f"{path}.tool_id", "Approval rule must specify a tool_id"
                )

    def _validate_trigger(self, trigger: Dict[str, Any], path: str, result: LayerResult) -> None:
        if not trigger.get("id"):
            result.error("MISSING_TRIGGER_ID", f"{path}.id", "Trigger ID is required")

        trigger_type = trigger.get("type")
        if trigger_type not in VALID_TRIGGER_TYPES:
            result.error(
                "INVALID_TRIGGER_TYPE",
                f"{path}.type",
                f"Invalid trigger type: {trigger_type}. Must be one of: {', '.join(VALID_TRIGGER_TYPES)}",
            )

        if "enabled" in trigger and not isinstance(trigger["enabled"], bool):
            result.error("INVALID_TRIGGER_ENABLED", f"{path}.enabled", "Trigger enabled must be a boolean")

        if "concurrency" in trigger:
            concurrency = trigger["concurrency"]
            if not _is_number(concurrency) or concurrency < 1:
                result.error(
                    "INVALID_TRIGGER_CONCURRENCY",
                    f"{path}.concurrency",
                    "Trigger concurrency must be a number >= 1",
                )

        if not trigger.get("prompt") or not isinstance(trigger.get("prompt"), str):
            result.warning(
                "MISSING_TRIGGER_PROMPT",
                f"{path}.prompt",
                "Trigger should have a prompt string",
                "Add a goal prompt that describes what the triggered job should do",
            )

        if trigger_type == "schedule":
            every = trigger.get("every")
            if not every or not isinstance(every, str):
                result.error(
                    "MISSING_TRIGGER_EVERY",
                    f"{path}.every",
                    'Schedule trigger must have an "every" field (ISO8601 duration)',
                    DURATION_HINT,
                )
            elif not DURATION_PATTERN.match(every):
                result.error(
                    "INVALID_TRIGGER_DURATION",
                    f"{path}.every",
                    f"Invalid ISO8601 duration: {every}",
                    DURATION_HINT,
                )
        elif trigger_type == "event":
            event = trigger.get("event")
            if not event or not isinstance(event, str):
                result.error(
                    "MISSING_TRIGGER_EVENT",
                    f"{path}.event",
                    'Event trigger must have an "event" field specifying the event type',
                    'Use event names like "email.received", "slack.message"',
                )
            if "filter" in trigger and not isinstance(trigger["filter"], dict):
                result.error("INVALID_TRIGGER_FILTER", f"{path}.filter", "Event filter must be an object")
