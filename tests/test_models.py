"""
Tests for the request models and shared enumerations.
"""

import pytest
from pydantic import ValidationError

from backend.skillvalidator.models import (
    AutoFix,
    ChangeType,
    ExpandedSkillFields,
    IssueStatus,
    Section,
    Severity,
    SectionRequest,
    SkillRequest,
    SolutionRequest,
)
from backend.skillvalidator.validator import SECTION_CHECKS


class TestRequests:
    """Tests for request envelopes."""

    def test_skill_request(self):
        """Test the skill document is kept as a plain dict."""
        request = SkillRequest(skill={"id": "s", "tools": [{"name": "a"}]})
        assert request.skill == {"id": "s", "tools": [{"name": "a"}]}

    def test_missing_fields_are_none(self):
        """Test missing fields are left for the route to reject."""
        assert SkillRequest().skill is None
        assert SectionRequest(skill={}).section is None
        assert SolutionRequest(solution={}).skills is None

    def test_extra_fields_allowed(self):
        """Test unknown envelope fields do not fail parsing."""
        request = SkillRequest(skill={"id": "s"}, client="editor")
        assert request.skill == {"id": "s"}

    def test_wrong_type_rejected(self):
        """Test a non-object skill fails validation."""
        with pytest.raises(ValidationError):
            SkillRequest(skill="not-a-dict")

    def test_solution_request(self):
        """Test the optional connector inputs."""
        request = SolutionRequest(
            solution={"id": "shop"},
            skills=[],
            connectors=[{"id": "crm-mcp"}],
            mcp_store={"crm-mcp": "code"},
        )
        assert request.skills == []
        assert request.connectors[0]["id"] == "crm-mcp"


class TestResultModels:
    """Tests for result models."""

    def test_auto_fix_dump(self):
        """Test AutoFix serializes its three fields."""
        fix = AutoFix(error="MISSING_PROBLEM", path="problem", fix="Generated problem.statement")
        assert fix.model_dump() == {
            "error": "MISSING_PROBLEM",
            "path": "problem",
            "fix": "Generated problem.statement",
        }

    def test_expanded_skill_fields_default(self):
        """Test the expanded field list defaults to empty."""
        assert ExpandedSkillFields(skill_id="s").expanded_fields == []


class TestEnums:
    """Tests for the shared vocabularies."""

    def test_values(self):
        """Test enum values match their serialized form."""
        assert Severity("blocker") is Severity.BLOCKER
        assert IssueStatus.DISMISSED.value == "dismissed"
        assert ChangeType("tool_added") is ChangeType.TOOL_ADDED

    def test_sections_match_checks(self):
        """Test every section has a check."""
        assert [s.value for s in Section] == list(SECTION_CHECKS)
