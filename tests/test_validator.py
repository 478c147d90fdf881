"""
Tests for the skill validation layers and engine.
"""

import json

import pytest

from backend.skillvalidator.errors import RequestShapeError
from backend.skillvalidator.expansion import expand_skill
from backend.skillvalidator.validator import (
    CompletenessChecker,
    ReferenceValidator,
    SchemaValidator,
    SecurityValidator,
    ValidationEngine,
    load_skill_file,
    validate_skill,
)


def get_minimal_skill():
    """Return a minimal order-support skill."""
    return {
        "id": "order-support",
        "name": "Order Support",
        "problem": "Customers need help finding and cancelling their orders.",
        "tools": [
            {
                "name": "shop.orders.get",
                "description": "Get an order by id",
                "inputs": [{"name": "order_id", "type": "string", "required": True, "description": "Order id"}],
            },
            {
                "name": "shop.orders.cancel",
                "description": "Cancel an order",
                "inputs": [{"name": "order_id", "type": "string", "required": True, "description": "Order id"}],
            },
        ],
        "guardrails": {"never": ["Cancel without confirmation"], "always": []},
    }


def get_valid_skill():
    """Return a fully expanded, valid skill."""
    return expand_skill(get_minimal_skill()).skill


def codes(issues):
    return [issue.code for issue in issues]


class TestSchemaValidator:
    """Tests for SchemaValidator (Layer 1)."""

    def test_valid_skill(self):
        """Test an expanded skill passes."""
        result = SchemaValidator().validate(get_valid_skill())
        assert result.valid
        assert result.errors == []

    def test_missing_sections(self):
        """Test required sections are reported at their paths."""
        skill = get_valid_skill()
        for key in ("problem", "role", "intents", "engine", "policy"):
            del skill[key]

        result = SchemaValidator().validate(skill)
        assert not result.valid
        assert {"MISSING_PROBLEM", "MISSING_ROLE", "MISSING_INTENTS", "MISSING_ENGINE", "MISSING_POLICY"} <= set(
            codes(result.errors)
        )

    def test_invalid_enums(self):
        """Test enum values are checked."""
        skill = get_valid_skill()
        skill["phase"] = "SHIPPING"
        skill["role"]["communication_style"]["tone"] = "angry"
        skill["engine"]["rv2"]["on_max_iterations"] = "explode"
        skill["tools"][0]["policy"]["allowed"] = "sometimes"
        skill["tools"][0]["inputs"][0]["type"] = "uuid"

        error_codes = codes(SchemaValidator().validate(skill).errors)
        for code in (
            "INVALID_PHASE",
            "INVALID_TONE",
            "INVALID_ON_MAX_ITERATIONS",
            "INVALID_TOOL_POLICY_ALLOWED",
            "INVALID_INPUT_TYPE",
        ):
            assert code in error_codes

    def test_threshold_range(self):
        """Test intent thresholds must lie in [0, 1]."""
        skill = get_valid_skill()
        skill["intents"]["thresholds"]["accept"] = 1.5
        result = SchemaValidator().validate(skill)
        assert any(e.path == "intents.thresholds.accept" for e in result.errors)

    def test_missing_output_and_guardrails(self):
        """Test fixable errors carry the paths the auto-fixer matches on."""
        skill = get_valid_skill()
        del skill["tools"][1]["output"]
        del skill["policy"]["guardrails"]

        result = SchemaValidator().validate(skill)
        paths = {e.code: e.path for e in result.errors}
        assert paths["MISSING_TOOL_OUTPUT"] == "tools[1].output"
        assert paths["MISSING_GUARDRAILS"] == "policy.guardrails"

    def test_input_description_is_warning(self):
        """Test a missing input description only warns."""
        skill = get_valid_skill()
        skill["tools"][0]["inputs"][0]["description"] = ""
        result = SchemaValidator().validate(skill)
        assert result.valid
        warning = next(w for w in result.warnings if w.code == "MISSING_INPUT_DESCRIPTION")
        assert warning.path == "tools[0].inputs[0].description"

    @pytest.mark.parametrize("every,valid", [
        ("PT2M", True),
        ("P1D", True),
        ("PT1H30M", True),
        ("2 minutes", False),
    ])
    def test_schedule_trigger_duration(self, every, valid):
        """Test ISO8601 duration checking on schedule triggers."""
        skill = get_valid_skill()
        skill["triggers"] = [{"id": "t1", "type": "schedule", "every": every, "prompt": "Check orders"}]
        result = SchemaValidator().validate(skill)
        assert ("INVALID_TRIGGER_DURATION" not in codes(result.errors)) is valid

    def test_event_trigger(self):
        """Test event triggers need an event name and an object filter."""
        skill = get_valid_skill()
        skill["triggers"] = [{"id": "t1", "type": "event", "filter": "all"}]
        result = SchemaValidator().validate(skill)
        assert "MISSING_TRIGGER_EVENT" in codes(result.errors)
        assert "INVALID_TRIGGER_FILTER" in codes(result.errors)
        assert "MISSING_TRIGGER_PROMPT" in codes(result.warnings)


class TestReferenceValidator:
    """Tests for ReferenceValidator (Layer 2)."""

    def test_resolved(self):
        """Test an expanded skill has no unresolved references."""
        result = ReferenceValidator().validate(get_valid_skill())
        assert result.valid
        assert result.unresolved.empty

    def test_unknown_workflow_step(self):
        """Test an unknown step is a warning and an unresolved tool."""
        skill = get_valid_skill()
        skill["policy"]["workflows"][0]["steps"].append("shop.refunds.create")
        result = ReferenceValidator().validate(skill)
        assert result.valid
        assert "TOOL_NOT_FOUND" in codes(result.warnings)
        assert result.unresolved.tools == ["shop.refunds.create"]

    def test_system_tools_resolve(self):
        """Test sys./ui./cp. tools need no definition."""
        skill = get_valid_skill()
        skill["policy"]["workflows"][0]["steps"] += ["sys.askUser", "ui.render", "cp.handoff"]
        assert ReferenceValidator().validate(skill).unresolved.empty

    def test_unknown_workflow_mapping(self):
        """Test an intent mapped to a missing workflow."""
        skill = get_valid_skill()
        skill["intents"]["supported"][0]["maps_to_workflow"] = "missing_flow"
        result = ReferenceValidator().validate(skill)
        assert result.unresolved.workflows == ["missing_flow"]

    def test_duplicates(self):
        """Test duplicate ids are errors."""
        skill = get_valid_skill()
        skill["tools"][1]["id"] = skill["tools"][0]["id"]
        skill["scenarios"].append(dict(skill["scenarios"][0]))
        result = ReferenceValidator().validate(skill)
        assert "DUPLICATE_TOOL_ID" in codes(result.errors)
        assert "DUPLICATE_SCENARIO_ID" in codes(result.errors)

    def test_circular_workflows(self):
        """Test workflows referencing each other in a loop."""
        skill = get_valid_skill()
        skill["policy"]["workflows"][0]["steps"] = ["cancel_order_flow"]
        skill["policy"]["workflows"][1]["steps"] = ["get_order_flow"]
        result = ReferenceValidator().validate(skill)
        circular = next(e for e in result.errors if e.code == "WORKFLOW_CIRCULAR")
        assert "get_order_flow -> cancel_order_flow -> get_order_flow" in circular.message

    def test_does_not_mutate(self):
        """Test validation leaves the document unchanged."""
        skill = get_valid_skill()
        before = json.dumps(skill, sort_keys=True)
        ReferenceValidator().validate(skill)
        assert json.dumps(skill, sort_keys=True) == before


class TestCompletenessChecker:
    """Tests for CompletenessChecker (Layer 3)."""

    def test_expanded_skill_complete(self):
        """Test an expanded skill is complete in every section."""
        completeness = CompletenessChecker().check(get_valid_skill())
        assert completeness.incomplete_sections() == []

    def test_short_problem(self):
        """Test the ten character minimum."""
        skill = get_valid_skill()
        skill["problem"]["statement"] = "Too short"
        assert not CompletenessChecker().check(skill).problem

    def test_untested_mocks(self):
        """Test untested mocks are reported as the mocks section."""
        skill = get_valid_skill()
        skill["tools"][0]["mock_status"] = "untested"
        assert "mocks" in CompletenessChecker().check(skill).incomplete_sections()

    def test_report_progress(self):
        """Test the progress report is a percentage."""
        report = CompletenessChecker().report(get_valid_skill())
        assert 0 <= report["overall_progress"] <= 100
        assert report["intents"]["details"]["count"] == 2


class TestSecurityValidator:
    """Tests for SecurityValidator (Layer 4)."""

    def test_high_risk_without_policy(self):
        """Test a destructive tool needs an access policy rule."""
        skill = get_valid_skill()
        skill["tools"][1]["security"] = {"classification": "destructive"}
        skill["access_policy"] = {"rules": [{"tools": ["shop.orders.get"], "effect": "allow"}]}
        result = SecurityValidator().validate(skill)
        assert "HIGH_RISK_NO_POLICY" in codes(result.errors)

    def test_wildcard_covers_high_risk(self):
        """Test the allow-all rule from expansion covers every tool."""
        skill = get_valid_skill()
        skill["tools"][1]["security"] = {"classification": "destructive"}
        assert SecurityValidator().validate(skill).valid

    def test_unclassified_is_warning(self):
        """Test a missing classification only warns."""
        skill = get_valid_skill()
        skill["tools"][0]["security"] = {}
        result = SecurityValidator().validate(skill)
        assert result.valid
        assert result.warnings[0].path == "tools[0].security.classification"

    def test_invalid_references(self):
        """Test grant mappings and access rules must name real tools."""
        skill = get_valid_skill()
        skill["grant_mappings"] = [{"tool": "shop.ghost"}]
        skill["access_policy"]["rules"].append({"tools": ["shop.ghost"], "effect": "maybe"})
        error_codes = codes(SecurityValidator().validate(skill).errors)
        assert "GRANT_MAPPING_INVALID_TOOL" in error_codes
        assert "ACCESS_POLICY_INVALID_TOOL" in error_codes
        assert "INVALID_POLICY_EFFECT" in error_codes


class TestValidationEngine:
    """Tests for the combined ValidationEngine."""

    def test_valid_and_ready(self):
        """Test an expanded skill is valid and export-ready."""
        result = validate_skill(get_valid_skill())
        assert result.valid
        assert result.ready_to_export

    def test_all_layers_run(self):
        """Test later layers still run after schema errors."""
        skill = get_valid_skill()
        del skill["role"]
        skill["tools"][1]["id"] = skill["tools"][0]["id"]
        result = ValidationEngine().validate(skill)
        assert {"MISSING_ROLE", "DUPLICATE_TOOL_ID"} <= set(codes(result.errors))

    def test_unresolved_blocks_export(self):
        """Test unresolved references keep a valid skill from export."""
        skill = get_valid_skill()
        skill["policy"]["workflows"][0]["steps"].append("shop.refunds.create")
        result = ValidationEngine().validate(skill)
        assert result.valid
        assert not result.ready_to_export

    def test_to_dict(self):
        """Test the serialized shape."""
        data = ValidationEngine().validate(get_valid_skill()).to_dict()
        assert set(data) == {"valid", "ready_to_export", "errors", "warnings", "unresolved", "completeness"}
        assert data["unresolved"] == {"tools": [], "workflows": [], "intents": []}

    def test_quick_validate_and_summary(self):
        """Test the schema-only check and the progress summary."""
        engine = ValidationEngine()
        assert engine.quick_validate(get_valid_skill())
        summary = engine.summary(get_valid_skill())
        assert summary["valid"]
        assert summary["sections"]["security"]["total_tools"] == 2

    def test_summary_text(self):
        """Test the human-readable summary."""
        skill = get_valid_skill()
        del skill["role"]
        text = ValidationEngine().validate(skill).summary()
        assert "Validation FAILED" in text
        assert "MISSING_ROLE" not in text
        assert "role: Role section is required" in text


class TestLoadSkillFile:
    """Tests for load_skill_file."""

    def test_yaml(self, tmp_path):
        """Test loading a YAML document."""
        path = tmp_path / "skill.yaml"
        path.write_text("id: s1\nname: Skill One\n", encoding="utf-8")
        assert load_skill_file(path) == {"id": "s1", "name": "Skill One"}

    def test_json_request_body(self, tmp_path):
        """Test a JSON request body is unwrapped."""
        path = tmp_path / "body.json"
        path.write_text(json.dumps({"skill": {"id": "s1", "name": "One"}}), encoding="utf-8")
        assert load_skill_file(path)["id"] == "s1"

    def test_missing_file(self, tmp_path):
        """Test a missing file is a request-shape error."""
        with pytest.raises(RequestShapeError):
            load_skill_file(tmp_path / "nope.yaml")

    def test_not_a_mapping(self, tmp_path):
        """Test a list document is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(RequestShapeError):
            load_skill_file(path)
