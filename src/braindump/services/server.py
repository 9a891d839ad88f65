"""HTTP API for braindump analysis, finalize, and scoring."""

import asyncio
import hmac
import json
from typing import Any, Awaitable, Callable, Optional

import psycopg2
from aiohttp import web

from braindump.config import Settings, load_settings, require_postgres
from braindump.errors import BraindumpError
from braindump.metrics import ERRORS, start_metrics_server
from braindump.services.analyzer import BraindumpAnalyzer
from braindump.services.braindumps import BraindumpService
from braindump.services.llm import GeminiClient, RateLimiter
from braindump.storage.postgres import PostgresStorage
from braindump.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

SERVICE_KEY = web.AppKey("service", BraindumpService)
API_TOKEN_KEY = web.AppKey("api_token", str)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


class BraindumpRequestError(Exception):
    """Malformed HTTP request body."""


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_json(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise BraindumpRequestError(f"Invalid JSON body: {e}") from e
    if not isinstance(body, dict):
        raise BraindumpRequestError("Request body must be a JSON object")
    return body


@web.middleware
async def auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Require a bearer token on /api/ routes when one is configured."""
    api_token = request.app.get(API_TOKEN_KEY)
    if not api_token or not request.path.startswith("/api/"):
        return await handler(request)

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        logger.warning("API request missing or invalid Authorization header")
        return _error(401, "Unauthorized")

    token = auth_header.replace("Bearer ", "", 1)
    if not hmac.compare_digest(token, api_token):
        logger.warning("API request with invalid token")
        return _error(401, "Unauthorized")

    return await handler(request)


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Map service errors to HTTP status codes."""
    try:
        return await handler(request)
    except BraindumpRequestError as e:
        return _error(400, str(e))
    except BraindumpError as e:
        if e.status >= 500:
            logger.error(f"{request.path} failed: {e}")
            ERRORS.labels(error_type=type(e).__name__).inc()
        return _error(e.status, str(e))
    except web.HTTPException:
        raise
    except Exception:
        logger.error(f"Unhandled error in {request.path}", exc_info=True)
        ERRORS.labels(error_type="unhandled").inc()
        return _error(500, "Internal error")


async def analyze_handler(request: web.Request) -> web.Response:
    """Handle POST /api/braindump/analyze."""
    service = request.app[SERVICE_KEY]
    body = await _read_json(request)
    result = await service.analyze(body.get("content"))
    return web.json_response(result.to_dict())


async def finalize_handler(request: web.Request) -> web.Response:
    """Handle POST /api/braindump/finalize."""
    service = request.app[SERVICE_KEY]
    body = await _read_json(request)
    result = await asyncio.to_thread(service.finalize, body.get("raw_text"), body.get("tasks"))
    return web.json_response(result.to_dict())


async def score_handler(request: web.Request) -> web.Response:
    """Handle POST /api/braindump/score."""
    service = request.app[SERVICE_KEY]
    body = await _read_json(request)
    result = await asyncio.to_thread(service.score, body.get("braindump_id"))
    return web.json_response(result.to_dict())


async def health_handler(request: web.Request) -> web.Response:
    return web.Response(status=200, text="ok")


def create_app(service: BraindumpService, api_token: Optional[str] = None) -> web.Application:
    """Build the aiohttp application.

    Args:
        service: Braindump service backing the handlers
        api_token: Bearer token required on /api/ routes (None disables auth)

    Returns:
        Configured application
    """
    app = web.Application(middlewares=[error_middleware, auth_middleware])
    app[SERVICE_KEY] = service
    if api_token:
        app[API_TOKEN_KEY] = api_token

    app.router.add_post("/api/braindump/analyze", analyze_handler)
    app.router.add_post("/api/braindump/finalize", finalize_handler)
    app.router.add_post("/api/braindump/score", score_handler)
    app.router.add_get("/healthz", health_handler)
    return app


def build_service(settings: Settings) -> tuple[BraindumpService, Optional[GeminiClient], PostgresStorage]:
    """Wire storage, model client, and analyzer from settings."""
    require_postgres(settings)
    pg_conn = psycopg2.connect(
        host=settings.postgres_host,
        port=settings.postgres_port,
        dbname=settings.postgres_db,
        user=settings.postgres_user,
        password=settings.postgres_password,
    )
    storage = PostgresStorage(pg_conn)

    client: Optional[GeminiClient] = None
    if settings.gemini_api_key:
        client = GeminiClient(
            api_key=settings.gemini_api_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_output_tokens=settings.llm_max_output_tokens,
            timeout=settings.llm_timeout_seconds,
            rate_limiter=RateLimiter(settings.llm_min_interval_seconds),
        )

    analyzer = BraindumpAnalyzer(
        client,
        duplicate_threshold=settings.duplicate_threshold,
        max_lines=settings.max_lines,
    )
    service = BraindumpService(
        analyzer,
        storage,
        max_lines=settings.max_lines,
        longevity_threshold=settings.longevity_threshold,
        history_limit=settings.history_limit,
    )
    return service, client, storage


def main() -> None:
    """Main entry point."""
    settings = load_settings()
    configure_logging("braindump", level=settings.log_level)

    start_metrics_server(port=settings.metrics_port)

    service, client, storage = build_service(settings)
    app = create_app(service, api_token=settings.api_token)

    async def close_components(app: web.Application) -> None:
        if client:
            await client.close()
        await asyncio.to_thread(storage.close)

    app.on_cleanup.append(close_components)

    logger.info(f"Starting braindump API on port {settings.port}")
    web.run_app(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
