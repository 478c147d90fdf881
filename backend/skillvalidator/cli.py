"""
Command line entry point.

    python -m backend.skillvalidator serve [--host H] [--port P]
    python -m backend.skillvalidator expand skill.yaml
    python -m backend.skillvalidator validate skill.yaml [--json]
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .config import Settings
from .errors import SkillValidatorError
from .logger import get_logger, setup_logging
from .pipeline import ValidationPipeline
from .quality import QualityScorer
from .validator import load_skill_file

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skill-validator",
        description="Expand and validate skill documents",
    )
    parser.add_argument("--config", type=Path, help="YAML config file")
    parser.add_argument("--log-level", help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address")
    serve.add_argument("--port", type=int, help="HTTP port")

    expand = sub.add_parser("expand", help="Expand a minimal skill and print it")
    expand.add_argument("file", type=Path, help="Skill document (YAML or JSON)")
    expand.add_argument("--json", action="store_true", help="Print JSON instead of YAML")

    validate = sub.add_parser("validate", help="Validate a skill (exit code 1 when invalid)")
    validate.add_argument("file", type=Path, help="Skill document (YAML or JSON)")
    validate.add_argument("--json", action="store_true", help="Print the full result as JSON")

    return parser


def build_pipeline(settings: Settings) -> ValidationPipeline:
    """Pipeline whose quality scorer uses the loaded settings."""
    return ValidationPipeline(scorer=QualityScorer(settings=settings))


def _serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    host = args.host or settings.host
    port = args.port or settings.port
    logger.info("Starting %s on %s:%d", settings.service_name, host, port)
    uvicorn.run(create_app(settings), host=host, port=port, log_level=settings.log_level.lower())
    return 0


def _expand(pipeline: ValidationPipeline, args: argparse.Namespace) -> int:
    result = pipeline.expand_skill(load_skill_file(args.file))
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(yaml.safe_dump(result.skill, sort_keys=False, allow_unicode=True), end="")
        if result.expanded_fields:
            print(f"# expanded: {', '.join(result.expanded_fields)}", file=sys.stderr)
    return 0


def _validate(pipeline: ValidationPipeline, args: argparse.Namespace) -> int:
    outcome = pipeline.validate_skill(load_skill_file(args.file))
    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2))
    else:
        print(outcome.result.summary())
        for fix in outcome.auto_fixes:
            print(f"  Auto-fix {fix.path}: {fix.fix}")
        for warning in outcome.result.warnings:
            print(f"  {warning}")
    return 0 if outcome.valid else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.load(args.config)
        setup_logging(args.log_level or settings.log_level)

        if args.command == "serve":
            return _serve(settings, args)

        pipeline = build_pipeline(settings)
        if args.command == "expand":
            return _expand(pipeline, args)
        return _validate(pipeline, args)
    except SkillValidatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
