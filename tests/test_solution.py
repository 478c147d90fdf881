"""
Tests for solution-level validation.
"""

from backend.skillvalidator.validator import SolutionValidator
from backend.skillvalidator.validator.solution import detect_handoff_cycles, find_handoff_path


def get_solution():
    """Return a two-skill support solution."""
    return {
        "id": "support",
        "name": "Support Desk",
        "identity": {
            "actor_types": [{"key": "customer"}, {"key": "agent"}],
            "admin_roles": ["agent"],
            "default_actor_type": "customer",
        },
        "skills": [
            {"id": "triage", "entry_channels": ["web"]},
            {"id": "billing"},
        ],
        "grants": [
            {"key": "customer.verified", "issued_by": ["triage"], "consumed_by": ["billing"]},
        ],
        "handoffs": [
            {
                "id": "triage-to-billing",
                "from": "triage",
                "to": "billing",
                "grants_passed": ["customer.verified"],
                "mechanism": "internal-message",
            },
        ],
        "routing": {"web": {"default_skill": "triage"}},
        "security_contracts": [
            {
                "name": "billing-needs-verification",
                "consumer": "billing",
                "provider": "triage",
                "requires_grants": ["customer.verified"],
            },
        ],
    }


def checks(entries):
    return [e["check"] for e in entries]


class TestSolutionValidator:
    """Tests for SolutionValidator."""

    def test_valid_solution(self):
        """Test a consistent solution has no errors or warnings."""
        result = SolutionValidator().validate(get_solution())
        assert result.valid
        assert result.errors == []
        assert result.warnings == []
        assert result.summary["skills"] == 2
        assert result.summary["handoffs"] == 1
        assert result.summary["error_count"] == 0

    def test_missing_grant_issuer(self):
        """Test a grant issued by an unknown skill."""
        solution = get_solution()
        solution["grants"][0]["issued_by"] = ["nonexistent-skill"]
        result = SolutionValidator().validate(solution)
        assert not result.valid
        assert result.errors[0]["check"] == "grant_provider_exists"
        assert result.errors[0]["skill"] == "nonexistent-skill"
        assert "nonexistent-skill" in result.errors[0]["message"]

    def test_consumed_grant_without_issuer(self):
        """Test a consumed grant must have an issuer."""
        solution = get_solution()
        solution["grants"][0]["issued_by"] = []
        assert "grant_provider_missing" in checks(SolutionValidator().validate(solution).errors)

    def test_internal_grants_skipped(self):
        """Test internal grants are not checked."""
        solution = get_solution()
        solution["grants"].append({"key": "x", "internal": True, "issued_by": ["ghost"]})
        assert SolutionValidator().validate(solution).valid

    def test_handoff_unknown_target(self):
        """Test handoffs must point at solution skills."""
        solution = get_solution()
        solution["handoffs"][0]["to"] = "refunds"
        result = SolutionValidator().validate(solution)
        assert "handoff_target_exists" in checks(result.errors)

    def test_circular_handoffs(self):
        """Test handoff cycles are errors."""
        solution = get_solution()
        solution["handoffs"].append({"id": "back", "from": "billing", "to": "triage"})
        result = SolutionValidator().validate(solution)
        cycle_errors = [e for e in result.errors if e["check"] == "circular_handoffs"]
        assert cycle_errors[0]["cycle"] == ["triage", "billing", "triage"]
        assert "triage -> billing -> triage" in cycle_errors[0]["message"]

    def test_contract_grant_not_passed(self):
        """Test contract grants must flow through every handoff."""
        solution = get_solution()
        solution["handoffs"][0]["grants_passed"] = []
        result = SolutionValidator().validate(solution)
        assert checks(result.errors) == ["grants_passed_match"]

    def test_contract_without_path(self):
        """Test a contract with no handoff path is a warning."""
        solution = get_solution()
        solution["security_contracts"][0]["provider"] = "billing"
        solution["security_contracts"][0]["consumer"] = "triage"
        result = SolutionValidator().validate(solution)
        assert result.valid
        assert "contract_handoff_path" in checks(result.warnings)

    def test_routing(self):
        """Test unrouted entry channels and bad routing targets."""
        solution = get_solution()
        solution["skills"][1]["entry_channels"] = ["email"]
        solution["routing"]["sms"] = {"default_skill": "ghost"}
        result = SolutionValidator().validate(solution)
        assert "routing_target_exists" in checks(result.errors)
        assert "routing_covers_channels" in checks(result.warnings)

    def test_orphan_skill(self):
        """Test skills unreachable by routing or handoffs."""
        solution = get_solution()
        solution["skills"].append({"id": "lonely"})
        result = SolutionValidator().validate(solution)
        orphans = [w for w in result.warnings if w["check"] == "no_orphan_skills"]
        assert [w["skill"] for w in orphans] == ["lonely"]

    def test_identity(self):
        """Test identity checks."""
        solution = get_solution()
        solution["identity"]["default_actor_type"] = "robot"
        assert "identity_default_type_valid" in checks(SolutionValidator().validate(solution).errors)

        result = SolutionValidator().validate({"skills": [{"id": "a"}], "routing": {"web": {"default_skill": "a"}}})
        assert checks(result.warnings) == ["identity_actor_types"]

    def test_undeclared_platform_connector(self):
        """Test handoff mechanisms must be declared platform connectors."""
        solution = get_solution()
        solution["handoffs"][0]["mechanism"] = "slack-bridge"
        result = SolutionValidator().validate(solution)
        assert "platform_connectors_declared" in checks(result.warnings)

    def test_skill_ids_from_documents(self):
        """Test skill ids fall back to the supplied skill documents."""
        solution = get_solution()
        del solution["skills"]
        result = SolutionValidator().validate(solution, skills=[{"id": "triage"}, {"id": "billing"}])
        assert result.valid


class TestConnectorBindings:
    """Tests for connector binding checks."""

    def get_skills(self):
        return [{
            "id": "triage",
            "tools": [{"name": "crm.lookup", "source": {"type": "mcp_bridge", "connection_id": "crm-mcp"}}],
        }]

    def test_skipped_without_connectors(self):
        """Test bindings are only checked when connectors are supplied."""
        assert SolutionValidator().validate(get_solution(), skills=self.get_skills()).valid

    def test_missing_connector(self):
        """Test a tool bound to an undeclared connector."""
        result = SolutionValidator().validate(get_solution(), skills=self.get_skills(), connectors=[])
        assert checks(result.errors) == ["mcp_bridge_connector_exists"]
        assert result.errors[0]["connector"] == "crm-mcp"

    def test_stdio_connector_needs_code(self):
        """Test stdio connectors need server code in the MCP store."""
        connectors = [{"id": "crm-mcp"}]
        result = SolutionValidator().validate(get_solution(), skills=self.get_skills(), connectors=connectors)
        assert checks(result.errors) == ["connector_code_available"]

        result = SolutionValidator().validate(
            get_solution(),
            skills=self.get_skills(),
            connectors=connectors,
            mcp_store={"crm-mcp": "server code"},
        )
        assert result.valid

    def test_http_connector_without_code(self):
        """Test non-stdio connectors need no code."""
        connectors = [{"id": "crm-mcp", "transport": "http"}]
        result = SolutionValidator().validate(get_solution(), skills=self.get_skills(), connectors=connectors)
        assert result.valid


class TestHandoffGraph:
    """Tests for handoff path search and cycle detection."""

    def test_shortest_path(self):
        """Test the shortest chain is returned."""
        handoffs = [
            {"id": "ab", "from": "a", "to": "b"},
            {"id": "bc", "from": "b", "to": "c"},
            {"id": "ac", "from": "a", "to": "c"},
        ]
        assert [h["id"] for h in find_handoff_path(handoffs, "a", "c")] == ["ac"]
        assert find_handoff_path(handoffs, "c", "a") is None

    def test_no_cycles(self):
        """Test an acyclic graph has no cycles."""
        assert detect_handoff_cycles([{"from": "a", "to": "b"}, {"from": "b", "to": "c"}]) == []
