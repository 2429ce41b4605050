from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from fnmatch import fnmatch
from typing import Dict, List
from urllib.parse import urlparse

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .audit_client import AuditClient
from .browser import BrowserRunner, FakeBrowserRunner, PlaywrightBrowserRunner
from .errors import DetectionError, FatalLaunchError, FormatError, ValidationError
from .importer import apply_test_value, export_config, parse_import
from .models import (
    AutomationConfig,
    AutomationResult,
    DetectRequest,
    DetectResponse,
    ImportResult,
    TestRunRequest,
)
from .sessions import SessionRegistry

AUTOFILL_PORT = int(os.environ.get("AUTOFILL_SERVICE_PORT", "8090"))
AUTOFILL_SERVICE_TOKEN = os.environ.get("AUTOFILL_SERVICE_TOKEN")
AUTOFILL_REQUIRE_AUTH = os.environ.get("AUTOFILL_REQUIRE_AUTH", "true").lower() == "true"
AUDIT_URL = os.environ.get("AUTOFILL_AUDIT_URL")
AUDIT_TOKEN = os.environ.get("AUTOFILL_AUDIT_TOKEN")
LOG_LEVEL = os.environ.get("AUTOFILL_LOG_LEVEL", "INFO").upper()

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def _use_fake_browser() -> bool:
    return os.environ.get("AUTOFILL_FAKE_BROWSER", "false").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    runner: BrowserRunner = FakeBrowserRunner() if _use_fake_browser() else PlaywrightBrowserRunner()
    app.state.browser_runner = runner
    app.state.sessions = SessionRegistry()
    app.state.audit_client = AuditClient(AUDIT_URL, AUDIT_TOKEN)
    try:
        yield
    finally:
        await app.state.sessions.close_all()
        await runner.close()


app = FastAPI(title="autofill-agent", version="0.1.0", lifespan=lifespan)


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(FormatError)
async def _format_error(request: Request, exc: FormatError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid configuration file", "kind": exc.kind, "details": exc.message},
    )


@app.exception_handler(DetectionError)
async def _detection_error(request: Request, exc: DetectionError) -> JSONResponse:
    logger.error("Error detecting form fields: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "fields": [], "error": "Failed to detect form fields", "details": str(exc)},
    )


@app.exception_handler(FatalLaunchError)
async def _fatal_error(request: Request, exc: FatalLaunchError) -> JSONResponse:
    logger.error("%s: %s", exc.message, exc.details)
    return JSONResponse(status_code=500, content={"error": exc.message, "details": exc.details})


def _domain_patterns(env_name: str) -> List[str]:
    raw = os.environ.get(env_name, "")
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


def _host_matches_pattern(host: str, pattern: str) -> bool:
    if not host or not pattern:
        return False
    if pattern.startswith("*."):
        suffix = pattern[2:]
        return host == suffix or host.endswith(f".{suffix}")
    if pattern.startswith("."):
        return host.endswith(pattern)
    return fnmatch(host, pattern)


def _enforce_domain_policy(url: str) -> None:
    host = (urlparse(url).hostname or "").lower()
    if not host:
        raise HTTPException(status_code=400, detail="invalid_url")
    if any(_host_matches_pattern(host, pattern) for pattern in _domain_patterns("AUTOFILL_DOMAIN_DENYLIST")):
        raise HTTPException(status_code=403, detail="domain_denied")
    allow = _domain_patterns("AUTOFILL_DOMAIN_ALLOWLIST")
    if allow and not any(_host_matches_pattern(host, pattern) for pattern in allow):
        raise HTTPException(status_code=403, detail="domain_not_allowed")


def _validate_config(config: AutomationConfig) -> None:
    if not config.url.strip() or not config.fields:
        raise ValidationError("Invalid configuration. URL and fields are required.")


def get_browser_runner() -> BrowserRunner:
    return app.state.browser_runner


def get_sessions() -> SessionRegistry:
    return app.state.sessions


def get_audit_client() -> AuditClient:
    return app.state.audit_client


async def _require_auth(request: Request) -> None:
    if not AUTOFILL_REQUIRE_AUTH or not AUTOFILL_SERVICE_TOKEN:
        return
    token = request.headers.get("Authorization", "").replace("Bearer ", "").strip()
    if token != AUTOFILL_SERVICE_TOKEN:
        raise HTTPException(status_code=401, detail="unauthorized")


@app.get("/healthz")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
async def ready(audit: AuditClient = Depends(get_audit_client)) -> Dict[str, object]:
    audit_ok = await audit.ping()
    return {
        "status": "ok" if audit_ok else "degraded",
        "browser": "fake" if isinstance(app.state.browser_runner, FakeBrowserRunner) else "playwright",
        "audit": audit_ok,
    }


@app.post("/forms/detect", response_model=DetectResponse)
async def detect_form_fields(
    request: DetectRequest,
    browser: BrowserRunner = Depends(get_browser_runner),
    _: None = Depends(_require_auth),
) -> DetectResponse:
    if not request.url.strip():
        raise ValidationError("URL is required")
    _enforce_domain_policy(request.url)
    logger.info("Detecting form fields for URL: %s", request.url)
    fields = await browser.detect(request)
    return DetectResponse(success=True, fields=fields, message=f"Detected {len(fields)} form fields")


async def _run_automation(
    config: AutomationConfig,
    browser: BrowserRunner,
    sessions: SessionRegistry,
    audit: AuditClient,
) -> AutomationResult:
    _validate_config(config)
    _enforce_domain_policy(config.url)
    try:
        result, session = await browser.automate(config)
    except FatalLaunchError as exc:
        await audit.record({"action": "automate", "target": config.url, "status": "failed", "detail": exc.details})
        raise
    await sessions.add(session)
    await audit.record(
        {
            "action": "automate",
            "target": config.url,
            "status": "ok",
            "fields_processed": result.fields_processed,
            "session_id": session.session_id,
        }
    )
    return result


@app.post("/forms/automate", response_model=AutomationResult)
async def automate_form(
    config: AutomationConfig,
    browser: BrowserRunner = Depends(get_browser_runner),
    sessions: SessionRegistry = Depends(get_sessions),
    audit: AuditClient = Depends(get_audit_client),
    _: None = Depends(_require_auth),
) -> AutomationResult:
    return await _run_automation(config, browser, sessions, audit)


@app.post("/forms/test-run", response_model=AutomationResult)
async def test_run_form(
    request: TestRunRequest,
    browser: BrowserRunner = Depends(get_browser_runner),
    sessions: SessionRegistry = Depends(get_sessions),
    audit: AuditClient = Depends(get_audit_client),
    _: None = Depends(_require_auth),
) -> AutomationResult:
    fields = apply_test_value(request.config.fields, request.test_value)
    config = request.config.model_copy(update={"fields": fields})
    return await _run_automation(config, browser, sessions, audit)


@app.post("/configs/import", response_model=ImportResult)
async def import_config(request: Request, _: None = Depends(_require_auth)) -> ImportResult:
    text = (await request.body()).decode("utf-8", errors="replace")
    return parse_import(text)


@app.post("/configs/export", response_class=PlainTextResponse)
async def export_configuration(payload: ImportResult, _: None = Depends(_require_auth)) -> str:
    if not payload.config.url.strip():
        raise ValidationError("URL is required")
    return export_config(payload.config, payload.test_values)


@app.get("/sessions")
async def list_sessions(
    sessions: SessionRegistry = Depends(get_sessions),
    _: None = Depends(_require_auth),
) -> Dict[str, object]:
    return {"sessions": [info.model_dump(by_alias=True) for info in sessions.list()]}


@app.delete("/sessions/{session_id}")
async def close_session(
    session_id: str,
    sessions: SessionRegistry = Depends(get_sessions),
    _: None = Depends(_require_auth),
) -> Dict[str, str]:
    if not await sessions.close(session_id):
        raise HTTPException(status_code=404, detail="session_not_found")
    return {"status": "closed"}


@app.get("/")
async def root() -> Dict[str, str]:
    return {"service": "autofill-agent", "port": str(AUTOFILL_PORT)}
