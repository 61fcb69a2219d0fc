"""
FastAPI application — the nimproxy entry point.
Implements OpenAI-compatible endpoints that translate to NVIDIA NIM.

Every client-facing failure is a JSON ErrorEnvelope. A fault inside one
request is confined to that request's response; the process keeps serving.
"""

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from nimproxy import __version__
from nimproxy.backends.base import BaseBackend
from nimproxy.config import GatewaySettings, get_settings
from nimproxy.errors import error_envelope, normalize
from nimproxy.proxy import Proxy
from nimproxy.relay import SSE_HEADERS, SSE_MEDIA_TYPE

logger = logging.getLogger(__name__)

CHAT_ROUTES = (
    "/v1/chat/completions",
    "/chat/completions",
    "/v1/completions",
    "/completions",
)


def _setup_logging(settings: GatewaySettings):
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def _error_response(fault: BaseException) -> JSONResponse:
    status, envelope = normalize(fault)
    return JSONResponse(envelope, status_code=status)


def create_app(
    settings: GatewaySettings | None = None,
    backend: BaseBackend | None = None,
) -> FastAPI:
    """Build the app around an explicit settings object (and optional backend)."""
    settings = settings or get_settings()
    proxy = Proxy(settings, backend=backend)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle."""
        _setup_logging(settings)
        logger.info(
            "nimproxy %s listening on %s:%s, backend %s",
            __version__, settings.host, settings.port, settings.backend_url,
        )
        logger.info(
            "Models: %d mapped, fallback '%s'", len(settings.model_map), settings.fallback_model,
        )
        logger.info(
            "Reasoning display: %s, thinking mode: %s",
            "on" if settings.show_reasoning else "off",
            "on" if settings.enable_thinking else "off",
        )
        if not settings.api_key:
            logger.warning(
                "No backend API key configured (NIM_API_KEY); "
                "health and model listing work, completions will be rejected upstream"
            )
        yield
        logger.info("nimproxy shutting down")

    app = FastAPI(
        title="nimproxy",
        description="OpenAI-compatible gateway for NVIDIA NIM.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.proxy = proxy
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        """Last-resort boundary: any request fault becomes a 500 ErrorEnvelope."""
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return _error_response(exc)

    # -----------------------------------------------------------------------
    # Service endpoints
    # -----------------------------------------------------------------------

    @app.get("/")
    async def root():
        return JSONResponse({
            "status": "ok",
            "message": f"{settings.service_name} is live",
            "endpoints": ["/health", "/v1/models", "/v1/chat/completions"],
        })

    @app.get("/health")
    async def health():
        """Health check."""
        return JSONResponse(proxy.health())

    # -----------------------------------------------------------------------
    # OpenAI-compatible endpoints
    # -----------------------------------------------------------------------

    @app.get("/v1/models")
    @app.get("/models")
    async def list_models():
        """Every client-facing model name in the mapping table."""
        return JSONResponse(proxy.list_models(created=int(time.time())))

    async def chat_completions(request: Request):
        """
        Main proxy endpoint. Accepts chat (`messages`) or prompt (`prompt`)
        requests and answers in chat.completion shape, or streams NIM's SSE.
        """
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse(error_envelope("Invalid JSON body", 400), status_code=400)
        if not isinstance(body, dict):
            return JSONResponse(error_envelope("Request body must be a JSON object", 400), status_code=400)

        try:
            if body.get("stream", False):
                chunks = await proxy.open_chat_completion_stream(body, request.is_disconnected)
                return StreamingResponse(chunks, media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS)

            data = await proxy.forward_chat_completion(body)
            return JSONResponse(data)
        except Exception as e:
            logger.error("Proxy error on %s: %s", request.url.path, e, exc_info=True)
            return _error_response(e)

    for path in CHAT_ROUTES:
        app.add_api_route(path, chat_completions, methods=["POST"])

    # -----------------------------------------------------------------------
    # Catch-all — MUST be the last route registered.
    # -----------------------------------------------------------------------

    @app.api_route(
        "/{path:path}",
        methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
    )
    async def catch_all(path: str, request: Request):
        return JSONResponse(
            error_envelope(f"Endpoint {request.url.path} not found", 404),
            status_code=404,
        )

    return app


app = create_app()


# ---------------------------------------------------------------------------
# Run with: python -m nimproxy.main
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    cfg = app.state.settings
    uvicorn.run(
        "nimproxy.main:app",
        host=cfg.host,
        port=cfg.port,
        reload=False,
    )
