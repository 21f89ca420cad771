"""
FastAPI backend server for Polly NPC dialogue.

This module builds the FastAPI application the game client talks to.
``create_app()`` sets up:
- logging, from the ``[logging]`` config section
- CORS middleware restricted to the configured game origins
- the shared ``NPCDialogueService`` (one resource cache and one
  ``httpx.AsyncClient`` per process)
- error handlers that turn upstream failures into ``502 {"error": ...}``
- all API routes

Run with ``polly-server run`` or ``uvicorn --factory
polly_server.api.server:create_app``.
"""

import json
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from polly_server import __version__
from polly_server.api.routes.register import register_routes
from polly_server.config import LoggingSettings, ServerConfig, load_config
from polly_server.generation import FetchError, GenerationError, NPCDialogueService

logger = logging.getLogger(__name__)

_LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
}


# ============================================================================
# LOGGING
# ============================================================================


class JsonLogFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(settings: LoggingSettings) -> None:
    """Install a root handler matching ``settings`` (idempotent)."""
    handler = logging.StreamHandler()
    if settings.format == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(_LOG_FORMATS[settings.format]))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_polly_handler", False):
            root.removeHandler(existing)
    handler._polly_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(settings.level)


# ============================================================================
# APPLICATION FACTORY
# ============================================================================


def create_app(
    cfg: ServerConfig | None = None, service: NPCDialogueService | None = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        cfg: Server configuration; loaded from disk and environment when omitted.
        service: Dialogue service; built from ``cfg.generation`` when omitted.
            Tests pass a service with a fake LLM client.

    Returns:
        Configured FastAPI instance.

    When the service is built here it shares one ``httpx.AsyncClient``
    (``app.state.http_client``) for bank, rule and LLM calls; the client is
    closed when the application shuts down.  An injected service keeps its
    own transport and ``app.state.http_client`` is ``None``.
    """
    if cfg is None:
        cfg = load_config()
    configure_logging(cfg.logging)

    http_client: httpx.AsyncClient | None = None
    if service is None:
        http_client = httpx.AsyncClient()
        service = NPCDialogueService(cfg.generation, http_client=http_client)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        if http_client is not None:
            await http_client.aclose()
            logger.info("Shared HTTP client closed")

    app = FastAPI(title="Polly NPC Dialogue Server", version=__version__, lifespan=lifespan)
    app.state.service = service
    app.state.http_client = http_client

    # Browser game client only; credentials are never sent.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.security.cors_origins,
        allow_methods=cfg.security.cors_allow_methods,
        allow_headers=cfg.security.cors_allow_headers,
        max_age=cfg.security.cors_max_age,
    )

    @app.exception_handler(FetchError)
    async def fetch_error_handler(_request: Request, exc: FetchError) -> JSONResponse:
        logger.warning("resource fetch failed: %s", exc)
        return JSONResponse(status_code=502, content={"error": str(exc)})

    @app.exception_handler(GenerationError)
    async def generation_error_handler(_request: Request, exc: GenerationError) -> JSONResponse:
        logger.warning("generation failed: %s", exc)
        return JSONResponse(status_code=502, content={"error": str(exc)})

    register_routes(app, service)

    logger.info(
        "Polly server ready (policy=%s, origins=%s)",
        cfg.generation.policy.value,
        ", ".join(cfg.security.cors_origins),
    )
    return app


# ============================================================================
# SERVER STARTUP
# ============================================================================


def start_server(host: str | None = None, port: int | None = None) -> None:
    """
    Start uvicorn with a freshly built application.

    Args:
        host: Bind address; ``[server] host`` when omitted.
        port: Bind port; ``[server] port`` when omitted.
    """
    import uvicorn

    cfg = load_config()
    app = create_app(cfg)
    uvicorn.run(
        app,
        host=host or cfg.server.host,
        port=port or cfg.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    start_server()
