"""
HTTP API.

    GET  /health              Service health
    POST /validate/skill      Validate one skill (auto-expand, auto-fix, re-validate)
    POST /validate/section    Validate one section incrementally
    POST /validate/solution   Cross-skill checks plus LLM quality scoring
    POST /expand/skill        Expand a minimal skill

Every request is independent; the app holds no per-request state.
Missing body fields answer 400 ``{ok: false, error}``.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings
from .errors import RequestShapeError
from .logger import clear_request_id, get_logger, set_request_id
from .models import HealthResponse, SectionRequest, SkillRequest, SolutionRequest
from .pipeline import ValidationPipeline
from .quality import QualityScorer
from .validator import validate_section

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[ValidationPipeline] = None,
) -> FastAPI:
    """
    Build the validator app.

    Args:
        settings: Service settings; loaded from file/environment by default.
        pipeline: Pipeline to serve; built from ``settings`` by default.
    """
    settings = settings or Settings.load()
    pipeline = pipeline or ValidationPipeline(scorer=QualityScorer(settings=settings))

    app = FastAPI(
        title="Skill Validator",
        description="Skill expansion, structural validation and solution quality scoring",
        version=__version__,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(RequestShapeError)
    async def request_shape_error(request: Request, exc: RequestShapeError) -> JSONResponse:
        logger.info("Rejected %s: %s", request.url.path, exc)
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body') or 'body'}: {err.get('msg')}"
            for err in exc.errors()
        )
        logger.info("Rejected %s: %s", request.url.path, problems)
        return _error(400, f"Invalid request body: {problems}")

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return _error(500, str(exc))

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(ok=True, service=settings.service_name)

    @app.post("/validate/skill")
    async def validate_skill_route(body: SkillRequest) -> Dict[str, Any]:
        if not body.skill:
            raise RequestShapeError('Missing "skill" in request body')
        outcome = pipeline.validate_skill(body.skill)
        return {"ok": True, **outcome.to_dict()}

    @app.post("/validate/section")
    async def validate_section_route(body: SectionRequest) -> Dict[str, Any]:
        if not body.skill:
            raise RequestShapeError('Missing "skill" in request body')
        if not body.section:
            raise RequestShapeError(
                'Missing "section", specify which section to validate '
                '(e.g., "problem", "tools", "guardrails")'
            )
        result = validate_section(body.skill, body.section)
        return {"ok": True, "section": body.section, **result.to_dict()}

    @app.post("/validate/solution")
    async def validate_solution_route(body: SolutionRequest) -> Dict[str, Any]:
        if not body.solution:
            raise RequestShapeError('Missing "solution" in request body')
        if body.skills is None:
            raise RequestShapeError('Missing "skills" array in request body')
        outcome = await pipeline.validate_solution(
            body.solution,
            body.skills,
            connectors=body.connectors,
            mcp_store=body.mcp_store,
        )
        return {"ok": True, **outcome.to_dict()}

    @app.post("/expand/skill")
    async def expand_skill_route(body: SkillRequest) -> Dict[str, Any]:
        if not body.skill:
            raise RequestShapeError('Missing "skill" in request body')
        if not body.skill.get("id") or not body.skill.get("name"):
            raise RequestShapeError('Minimal skill requires at least "id" and "name"')
        result = pipeline.expand_skill(body.skill)
        return {"ok": True, **result.to_dict()}

    return app
