"""
Tests for incremental section checks.
"""

import pytest

from backend.skillvalidator.errors import RequestShapeError, UnknownSectionError
from backend.skillvalidator.validator import SECTION_CHECKS, validate_section


class TestProblemSection:
    """Tests for the problem section check."""

    def test_missing(self):
        """Test a missing problem fails."""
        result = validate_section({}, "problem")
        assert not result.valid
        assert result.errors == ["Missing problem section"]

    @pytest.mark.parametrize("problem", ["Too short", {"statement": "short"}, {"goals": []}])
    def test_too_short(self, problem):
        """Test statements under ten characters fail."""
        result = validate_section({"problem": problem}, "problem")
        assert result.errors == ["Problem statement too short (min 10 chars)"]

    @pytest.mark.parametrize("problem", [
        "Customers cannot track orders",
        {"statement": "Customers cannot track orders"},
    ])
    def test_valid(self, problem):
        """Test string and object problems are accepted."""
        result = validate_section({"problem": problem}, "problem")
        assert result.valid
        assert result.message == "Problem looks good."


class TestToolsSection:
    """Tests for the tools section check."""

    def test_no_tools(self):
        """Test a missing tools list fails."""
        result = validate_section({"tools": []}, "tools")
        assert result.errors == ["No tools defined"]

    def test_tool_issues_listed(self):
        """Test every missing name and description is reported."""
        result = validate_section({"tools": [{"name": "orders.get"}, {}]}, "tools")
        assert not result.valid
        assert result.errors == [
            "tools[0]: missing description",
            "tools[1]: missing name",
            "tools[1]: missing description",
        ]
        assert result.message == "3 tool issue(s) found."

    def test_valid(self):
        """Test well-formed tools pass."""
        result = validate_section({"tools": [{"name": "orders.get", "description": "Get"}]}, "tools")
        assert result.to_dict() == {
            "valid": True,
            "errors": [],
            "message": "1 tools defined. All look good.",
        }


class TestOptionalSections:
    """Tests for guardrails, intents and role checks."""

    def test_guardrails_optional(self):
        """Test guardrails are never an error."""
        assert validate_section({}, "guardrails").valid
        result = validate_section({"guardrails": {"never": ["a", "b"], "always": ["c"]}}, "guardrails")
        assert result.message == "2 never rules, 1 always rules. Looks good."

    def test_guardrails_under_policy(self):
        """Test guardrails nested in policy are counted."""
        skill = {"policy": {"guardrails": {"never": [], "always": []}}}
        assert validate_section(skill, "guardrails").message.startswith("Guardrails section is empty")

    def test_intents(self):
        """Test absent intents pass and an empty supported list fails."""
        assert validate_section({}, "intents").valid
        result = validate_section({"intents": {"supported": []}}, "intents")
        assert result.errors == ["Empty supported intents array"]
        assert validate_section({"intents": {"supported": [{"id": "a"}]}}, "intents").valid

    def test_role(self):
        """Test a role without persona fails."""
        assert validate_section({}, "role").valid
        assert validate_section({"role": {"name": "Bot"}}, "role").errors == ["Missing role.persona"]
        assert validate_section({"role": {"persona": "You help"}}, "role").valid

    @pytest.mark.parametrize("section,skill,error", [
        ("guardrails", {"guardrails": ["never share data"]}, "Guardrails must be an object"),
        ("guardrails", {"policy": {"guardrails": "be nice"}}, "Guardrails must be an object"),
        ("intents", {"intents": [{"id": "x"}]}, "Intents must be an object"),
        ("role", {"role": "receptionist"}, "Role must be an object"),
    ])
    def test_wrong_shape(self, section, skill, error):
        """Test sections of the wrong type fail instead of raising."""
        result = validate_section(skill, section)
        assert not result.valid
        assert result.errors == [error]


class TestUnknownSection:
    """Tests for unknown section names."""

    def test_raises(self):
        """Test an unknown section lists the valid ones."""
        with pytest.raises(UnknownSectionError) as exc_info:
            validate_section({}, "workflows")
        assert exc_info.value.section == "workflows"
        assert exc_info.value.valid_sections == list(SECTION_CHECKS)
        assert "problem, tools, guardrails, intents, role" in str(exc_info.value)

    def test_is_request_shape_error(self):
        """Test the error maps to a bad request."""
        with pytest.raises(RequestShapeError):
            validate_section({}, "bogus")
