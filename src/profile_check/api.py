from __future__ import annotations

import hmac
import ipaddress
import json
import logging
import os
from pathlib import Path
from typing import Iterator, Literal, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.staticfiles import StaticFiles

from .batch import BatchOrchestrator
from .config import Config, load_config
from .domain_utils import parse_domain_lines
from .exporters import export_path, export_results
from .models import BatchReport, Credentials
from .resolver import LookupResolver
from .search_client import DataForSEOClient

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 50
EXPORT_MEDIA_TYPES = {
    ".csv": "text/csv",
    ".json": "application/json",
    ".txt": "text/plain",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Lookup results are per-request and may be paid for; never cache them
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        return response


def _parse_origins() -> list[str]:
    raw = os.getenv(
        "FRONTEND_ORIGINS",
        ",".join(
            [
                "http://localhost:3000",
                "http://127.0.0.1:3000",
                "http://localhost:8000",
                "http://127.0.0.1:8000",
            ]
        ),
    )
    return [entry.strip() for entry in raw.split(",") if entry.strip()]


def _is_loopback_host(host: Optional[str]) -> bool:
    if not host:
        return False
    candidate = host.strip()
    if not candidate:
        return False
    if candidate == "localhost":
        return True
    try:
        return ipaddress.ip_address(candidate).is_loopback
    except ValueError:
        return False


def build_search_client(config: Config) -> DataForSEOClient:
    return DataForSEOClient.from_config(config)


class CredentialsPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")
    login: str = Field(..., max_length=200)
    password: str = Field(..., max_length=200)


class CheckDomainsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    domains: list[str]
    credentials: Optional[CredentialsPayload] = None
    batch_size: Optional[int] = Field(None, ge=1, le=MAX_BATCH_SIZE, alias="batchSize")
    export: Optional[Literal["csv", "json", "txt"]] = None


class CheckDomainRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    domain: str = Field(..., max_length=500)
    credentials: Optional[CredentialsPayload] = None


def resolve_credentials(
    config: Config,
    payload: Optional[CredentialsPayload],
    request: Request,
    token: Optional[str],
) -> Credentials:
    """Use the caller's credentials, else the server's own.

    The server's credentials spend the operator's quota, so they are guarded
    by SERVICE_API_KEY when one is configured.
    """
    if payload is not None:
        credentials = Credentials(login=payload.login.strip(), password=payload.password.strip())
        if not credentials.is_complete():
            raise HTTPException(status_code=400, detail="API credentials are required")
        return credentials

    if not config.has_default_credentials:
        raise HTTPException(status_code=400, detail="API credentials are required")

    if config.service_api_key:
        client_host = request.client.host if request.client else None
        if not (config.service_localhost_bypass and _is_loopback_host(client_host)):
            if not token or not hmac.compare_digest(token, config.service_api_key):
                raise HTTPException(status_code=401, detail="Invalid service API key")

    return Credentials(login=config.dataforseo_login or "", password=config.dataforseo_password or "")


def _service_token(x_api_key: Optional[str], authorization: Optional[str]) -> Optional[str]:
    token = x_api_key
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    return token


def create_app() -> FastAPI:
    config = load_config()
    search_client = build_search_client(config)
    resolver = LookupResolver(search_client, default_locale=config.default_locale)

    app = FastAPI(title="Business Profile Check API", version="0.1.0")
    app.state.config = config
    app.state.search_client = search_client
    app.state.resolver = resolver

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )

    def _export_dir() -> Path:
        path = Path(config.export_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _prepare_domains(raw_domains: list[str]) -> list[str]:
        domains = parse_domain_lines(raw_domains)
        if not domains:
            raise HTTPException(status_code=400, detail="Domains array is required")
        if len(domains) > config.max_domains_per_request:
            raise HTTPException(
                status_code=400,
                detail=f"At most {config.max_domains_per_request} domains per request",
            )
        return domains

    def _orchestrator(batch_size: Optional[int]) -> BatchOrchestrator:
        return BatchOrchestrator(
            resolver,
            batch_size=batch_size or config.batch_size,
            delay_seconds=config.batch_delay_seconds,
        )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/health")
    def api_health() -> dict:
        return {"status": "ok", "strategy": config.search_strategy}

    @app.post("/api/check-domains")
    def api_check_domains(
        payload: CheckDomainsRequest,
        request: Request,
        x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
        authorization: Optional[str] = Header(default=None),
    ) -> dict:
        domains = _prepare_domains(payload.domains)
        credentials = resolve_credentials(
            config, payload.credentials, request, _service_token(x_api_key, authorization)
        )

        report = _orchestrator(payload.batch_size).run(domains, credentials)
        body = report.as_dict()
        if payload.export:
            path = export_results(report.results, export_path(_export_dir(), payload.export))
            body["exportFile"] = path.name if path else None
        return body

    @app.post("/api/check-domain")
    def api_check_domain(
        payload: CheckDomainRequest,
        request: Request,
        x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
        authorization: Optional[str] = Header(default=None),
    ) -> dict:
        domain = payload.domain.strip()
        if not domain:
            raise HTTPException(status_code=400, detail="Domain is required")
        credentials = resolve_credentials(
            config, payload.credentials, request, _service_token(x_api_key, authorization)
        )
        return resolver.resolve(domain, credentials).as_dict()

    @app.post("/api/check-domains/stream")
    def api_check_domains_stream(
        payload: CheckDomainsRequest,
        request: Request,
        x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
        authorization: Optional[str] = Header(default=None),
    ) -> StreamingResponse:
        domains = _prepare_domains(payload.domains)
        credentials = resolve_credentials(
            config, payload.credentials, request, _service_token(x_api_key, authorization)
        )
        orchestrator = _orchestrator(payload.batch_size)

        def events() -> Iterator[str]:
            report = BatchReport()
            try:
                for progress in orchestrator.iter_batches(domains, credentials):
                    report.results.extend(progress.latest_results)
                    report.cancelled = report.cancelled or progress.cancelled
                    report.auth_rejected = report.auth_rejected or progress.auth_rejected
                    yield json.dumps({"event": "progress", **progress.as_dict()}) + "\n"
                yield json.dumps({"event": "summary", **report.as_dict()}) + "\n"
            except Exception as exc:
                logger.exception("Streaming batch run failed")
                yield json.dumps({"event": "error", "message": str(exc)}) + "\n"

        return StreamingResponse(events(), media_type="application/x-ndjson")

    @app.get("/api/exports/files")
    def api_export_files() -> list[dict]:
        files = []
        for path in _export_dir().iterdir():
            if not path.is_file() or path.suffix.lower() not in EXPORT_MEDIA_TYPES:
                continue
            stat = path.stat()
            files.append(
                {
                    "name": path.name,
                    "size": stat.st_size,
                    "modified_at": stat.st_mtime,
                }
            )
        files.sort(key=lambda entry: entry["modified_at"], reverse=True)
        return files

    @app.get("/api/exports/files/{filename}")
    def api_download_export(filename: str):
        if "/" in filename or "\\" in filename:
            raise HTTPException(status_code=400, detail="Invalid filename")

        export_dir = _export_dir()
        path = export_dir / filename
        if not path.resolve().is_relative_to(export_dir.resolve()):
            raise HTTPException(status_code=400, detail="Invalid filename")
        media_type = EXPORT_MEDIA_TYPES.get(path.suffix.lower())
        if media_type is None or not path.exists() or not path.is_file():
            raise HTTPException(status_code=404, detail="File not found")

        return FileResponse(path, media_type=media_type, filename=filename)

    if config.static_dir:
        static_dir = Path(config.static_dir)
        if static_dir.is_dir():
            app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="frontend")
        else:
            logger.warning("STATIC_DIR %s does not exist; static files are not served", static_dir)

    return app


app = create_app()
