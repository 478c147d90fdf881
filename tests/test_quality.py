"""
Tests for solution quality scoring.
"""

import asyncio
import json

import pytest

from backend.skillvalidator.config import Settings
from backend.skillvalidator.errors import QualityScoringError
from backend.skillvalidator.llm import LLMResponse, create_llm_client
from backend.skillvalidator.quality import (
    DIMENSION_WEIGHTS,
    HOLISTIC_SYSTEM_PROMPT,
    QualityScorer,
    build_coverage_matrix,
    extract_structured_data,
    grade_for,
    parse_json_content,
    prioritize_suggestions,
    synthesize,
)


def get_solution():
    """Return a small solution with goals."""
    return {
        "name": "Clinic Desk",
        "problem": {
            "statement": "Patients wait too long to book",
            "goals": ["Book appointments online", "Send reminders by email"],
        },
        "routing": {"web": {"default_skill": "scheduler"}},
    }


def get_skills():
    """Return one expanded-looking skill."""
    return [{
        "id": "scheduler",
        "name": "Scheduler",
        "description": "Books clinic appointments",
        "role": {"name": "Scheduler", "persona": "You book appointments"},
        "tools": [
            {
                "name": "clinic.appointments.create",
                "description": "Create appointment",
                "security": {"classification": "pii_write"},
                "inputs": [{"name": "date"}],
            },
        ],
        "intents": {"supported": [{"id": "create_appointment"}]},
        "scenarios": [{"id": "s1"}],
        "policy": {"guardrails": {"never": ["Share records"]}, "workflows": [{"id": "w"}]},
    }]


def analysis(score, **extra):
    data = {"dimensions": {name: {"score": score} for name in DIMENSION_WEIGHTS}}
    data.update(extra)
    return data


class FakeClient:
    """LLM client returning canned replies per analysis."""

    def __init__(self, holistic=None, hybrid=None, error=None, delay=0):
        self.replies = {"holistic": holistic, "hybrid": hybrid}
        self.error = error
        self.delay = delay
        self.calls = []

    async def chat(self, system_prompt, user_prompt, max_tokens=4096, temperature=0.3):
        kind = "holistic" if system_prompt == HOLISTIC_SYSTEM_PROMPT else "hybrid"
        self.calls.append((kind, max_tokens, temperature))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        reply = self.replies[kind]
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return LLMResponse(content=content, usage={"input_tokens": 10, "output_tokens": 5})


def score(client, timeout_s=5):
    scorer = QualityScorer(client=client, settings=Settings(), timeout_s=timeout_s)
    return asyncio.run(scorer.score(get_solution(), get_skills()))


class TestQualityScorer:
    """Tests for QualityScorer."""

    def test_weighted_blend(self):
        """Test every dimension blends 60/40 and the overall score is weighted."""
        result = score(FakeClient(holistic=analysis(80), hybrid=analysis(60)))
        assert result["overall_score"] == 72
        assert result["grade"] == "good"
        assert result["grade_label"] == "Good - Minor Improvements Needed"
        dim = result["dimensions"]["goal_coverage"]
        assert dim["score"] == 72
        assert dim["holistic_score"] == 80
        assert dim["hybrid_score"] == 60
        assert result["_analysis"]["holistic"]["completed"] is True
        assert result["_analysis"]["holistic"]["tokens"] == {"input_tokens": 10, "output_tokens": 5}
        assert result["_analysis"]["hybrid"]["stats"]["total_tools"] == 1

    def test_analysis_parameters(self):
        """Test both analyses run with their own token limits."""
        client = FakeClient(holistic=analysis(80), hybrid=analysis(80))
        score(client)
        assert sorted(client.calls) == [("holistic", 4096, 0.3), ("hybrid", 3000, 0.2)]

    def test_both_analyses_fail(self):
        """Test failed analyses fall back to neutral scores."""
        result = score(FakeClient(error=QualityScoringError("LLM request failed: overloaded")))
        assert result["overall_score"] == 50
        assert result["grade"] == "fair"
        assert all(d["source"] == "default" for d in result["dimensions"].values())
        assert result["_analysis"]["holistic"]["completed"] is False
        assert result["critical_issues"] == ["Analysis failed: LLM request failed: overloaded"]

    def test_invalid_json_degrades_one_analysis(self):
        """Test an unparseable reply only loses that analysis."""
        result = score(FakeClient(holistic="not json at all", hybrid=analysis(90)))
        assert result["overall_score"] == 90
        assert result["dimensions"]["goal_coverage"]["source"] == "hybrid"
        assert result["_analysis"]["holistic"]["completed"] is False
        assert result["_analysis"]["hybrid"]["completed"] is True

    def test_misshaped_replies_tolerated(self):
        """Test replies that parse but have the wrong shape still produce a score."""
        holistic = {
            "dimensions": {"goal_coverage": {"score": "80"}, "skill_coherence": {"score": "high"}},
            "suggestions": ["add tools", {"priority": "high", "description": "Gate refunds"}],
            "critical_issues": "No escalation path",
        }
        result = score(FakeClient(holistic=holistic, hybrid={"dimensions": [1, 2]}))
        assert result["dimensions"]["goal_coverage"]["score"] == 80
        assert result["dimensions"]["goal_coverage"]["source"] == "holistic"
        assert result["dimensions"]["skill_coherence"]["source"] == "default"
        assert [s["description"] for s in result["all_suggestions"]] == ["Gate refunds"]
        assert result["critical_issues"] == ["No escalation path"]

    def test_timeout(self):
        """Test an overall timeout raises."""
        client = FakeClient(holistic=analysis(80), hybrid=analysis(80), delay=1)
        with pytest.raises(QualityScoringError, match="timed out"):
            score(client, timeout_s=0.01)

    def test_no_api_key(self):
        """Test scoring without credentials raises."""
        scorer = QualityScorer(settings=Settings(api_key=None))
        with pytest.raises(QualityScoringError, match="No API key"):
            asyncio.run(scorer.score(get_solution(), get_skills()))

    def test_unsupported_provider(self):
        """Test only the anthropic provider is accepted."""
        with pytest.raises(QualityScoringError, match="Unsupported"):
            create_llm_client(Settings(llm_provider="openai", api_key="k"))


class TestSynthesize:
    """Tests for synthesize and its helpers."""

    def test_single_source_dimension(self):
        """Test a dimension scored by one analysis keeps that score."""
        holistic = {"dimensions": {"goal_coverage": {"score": 90}}}
        result = synthesize(holistic, {})
        assert result["dimensions"]["goal_coverage"]["source"] == "holistic"
        assert result["dimensions"]["skill_coherence"]["score"] == 50
        # 90 * 0.25 + 50 * 0.75
        assert result["overall_score"] == 60

    def test_issues_merged(self):
        """Test dimension issues are merged without duplicates."""
        holistic = {"dimensions": {"security_posture": {"score": 40, "risks": ["No approval on refunds"]}}}
        hybrid = {"dimensions": {"security_posture": {"score": 40, "risks": ["No approval on refunds", "PII"]}}}
        dim = synthesize(holistic, hybrid)["dimensions"]["security_posture"]
        assert dim["issues"] == ["No approval on refunds", "PII"]

    def test_critical_issues_from_observations(self):
        """Test hybrid observations about gaps become critical issues."""
        hybrid = {"key_observations": ["Missing escalation path", "Good naming", "Lacks retries"]}
        result = synthesize({"critical_issues": ["No auth"]}, hybrid)
        assert result["critical_issues"] == ["No auth", "Missing escalation path", "Lacks retries"]

    def test_non_object_dimensions_ignored(self):
        """Test dimension entries that are not objects count as unscored."""
        holistic = {"dimensions": {"goal_coverage": "excellent", "security_posture": {"score": True}}}
        hybrid = {"dimensions": {"goal_coverage": {"score": 70, "gaps": "No reminders"}}}
        dims = synthesize(holistic, hybrid)["dimensions"]
        assert dims["goal_coverage"]["source"] == "hybrid"
        assert dims["goal_coverage"]["score"] == 70
        assert dims["security_posture"]["source"] == "default"

    def test_string_scores_blended(self):
        """Test numeric strings are blended like numbers."""
        holistic = {"dimensions": {"goal_coverage": {"score": "80", "gaps": "Reminders"}}}
        hybrid = {"dimensions": {"goal_coverage": {"score": 60}}}
        dim = synthesize(holistic, hybrid)["dimensions"]["goal_coverage"]
        assert dim["score"] == 72
        assert dim["issues"] == ["Reminders"]

    def test_summary_fallback(self):
        """Test a summary is produced when neither analysis gives one."""
        assert synthesize({}, {})["summary"] == "Solution scored 50/100 (fair). See dimension scores for details."

    def test_prioritize_suggestions(self):
        """Test suggestions sort by priority and near-duplicates are dropped."""
        suggestions = prioritize_suggestions([
            {"priority": "low", "description": "Add reminders"},
            {"priority": "high", "description": "Gate refunds"},
            {"priority": "medium", "description": "add reminders"},
        ])
        assert [s["description"] for s in suggestions] == ["Gate refunds", "add reminders"]

    def test_prioritize_skips_non_objects(self):
        """Test suggestions that are not objects are dropped."""
        suggestions = prioritize_suggestions(["add tools", None, {"description": "Gate refunds"}])
        assert suggestions == [{"description": "Gate refunds"}]

    @pytest.mark.parametrize("value,grade", [(80, "excellent"), (79, "good"), (60, "good"), (40, "fair"), (39, "bad")])
    def test_grade_for(self, value, grade):
        """Test grade thresholds."""
        assert grade_for(value) == grade


class TestParseJsonContent:
    """Tests for parse_json_content."""

    def test_code_fence(self):
        """Test fenced JSON is unwrapped."""
        assert parse_json_content('```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_prose(self):
        """Test prose around the object is ignored."""
        assert parse_json_content('Here you go: {"a": {"b": 2}} Thanks!') == {"a": {"b": 2}}

    def test_invalid(self):
        """Test unparseable content raises ValueError."""
        with pytest.raises(ValueError):
            parse_json_content("no json here")


class TestExtraction:
    """Tests for the deterministic extraction."""

    def test_stats(self):
        """Test counts over skills and tools."""
        stats = extract_structured_data(get_solution(), get_skills())["stats"]
        assert stats == {
            "total_skills": 1,
            "total_tools": 1,
            "total_grants": 0,
            "total_handoffs": 0,
            "total_channels": 1,
            "skills_with_guardrails": 1,
            "high_risk_tools": 1,
        }

    def test_coverage_matrix(self):
        """Test goal words are matched against skill and tool text."""
        extraction = extract_structured_data(get_solution(), get_skills())
        goals = build_coverage_matrix(extraction)["goals"]
        booked = goals[0]
        assert booked["potential_skills"][0]["skill_id"] == "scheduler"
        assert "appointments" in booked["potential_skills"][0]["matching_keywords"]
        reminders = goals[1]
        assert reminders["potential_skills"] == []
        assert reminders["coverage_hints"] == ["No skills appear to directly address this goal"]
