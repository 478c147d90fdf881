"""
Tests for the command line entry point.
"""

import json

import pytest
import yaml

from backend.skillvalidator.cli import build_parser, build_pipeline, main
from backend.skillvalidator.config import Settings


def write_skill(tmp_path, skill):
    path = tmp_path / "skill.yaml"
    path.write_text(yaml.safe_dump(skill))
    return path


def get_minimal_skill():
    """Return a minimal order-support skill."""
    return {
        "id": "order-support",
        "name": "Order Support",
        "problem": "Customers need help finding their orders.",
        "tools": [{"name": "shop.orders.get", "description": "Get an order by id"}],
    }


class TestCli:
    """Tests for main."""

    def test_expand_json(self, tmp_path, capsys):
        """Test expand prints the expanded skill."""
        path = write_skill(tmp_path, get_minimal_skill())
        assert main(["expand", str(path), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["skill"]["intents"]["supported"][0]["id"] == "get_order"
        assert "role" in data["expanded_fields"]

    def test_expand_yaml(self, tmp_path, capsys):
        """Test expand prints YAML by default."""
        path = write_skill(tmp_path, get_minimal_skill())
        assert main(["expand", str(path)]) == 0
        skill = yaml.safe_load(capsys.readouterr().out)
        assert skill["role"]["name"] == "Order Support"

    def test_validate_valid(self, tmp_path, capsys):
        """Test a valid skill exits 0."""
        path = write_skill(tmp_path, get_minimal_skill())
        assert main(["validate", str(path)]) == 0
        assert "Validation PASSED" in capsys.readouterr().out

    def test_validate_invalid(self, tmp_path, capsys):
        """Test an invalid skill exits 1."""
        skill = get_minimal_skill()
        skill["phase"] = "SHIPPING"
        path = write_skill(tmp_path, skill)
        assert main(["validate", str(path), "--json"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["errors"][0]["code"] == "INVALID_PHASE"

    def test_bad_config(self, tmp_path, capsys):
        """Test configuration errors exit 2."""
        path = write_skill(tmp_path, get_minimal_skill())
        assert main(["--config", str(tmp_path / "missing.yaml"), "validate", str(path)]) == 2
        assert "Config file not found" in capsys.readouterr().err

    def test_pipeline_uses_loaded_settings(self, tmp_path):
        """Test the quality scorer is built from the loaded config file."""
        config = tmp_path / "config.yaml"
        config.write_text("quality:\n  timeout_s: 7\n")
        settings = Settings.load(config, environ={})
        pipeline = build_pipeline(settings)
        assert pipeline.scorer.settings is settings
        assert pipeline.scorer.timeout_s == 7

    def test_command_required(self):
        """Test a subcommand is required."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])
