"""
FPL Query Tools - FastAPI application
MCP tool endpoint over a cached FPL bootstrap snapshot
"""
import json
import logging
import time
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from config.settings import settings
from fpl_tools.cache import EncodedValue, StructuredValue, get_cache_coordinator, get_store
from fpl_tools.rate_limiter import get_rate_limiter
from fpl_tools.rpc import INTERNAL_ERROR, PARSE_ERROR, SERVER_ERROR, error_response, handle_message

load_dotenv()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("main")

APP_NAME = "FPL Query Tools"
APP_VERSION = "1.0.0"

app = FastAPI(
    title=APP_NAME,
    description="Fantasy Premier League query tools over a cached bootstrap snapshot",
    version=APP_VERSION,
)

KV_HEALTH_KEY = "kv:health:test"


def _cors_headers(preflight: bool = False) -> dict:
    headers = {"Access-Control-Allow-Origin": settings.cors_allow_origin}
    if preflight:
        headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
        headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization, Mcp-Session-Id"
    else:
        headers["Access-Control-Expose-Headers"] = "Mcp-Session-Id"
    return headers


def client_ip(request: Request) -> str:
    """First X-Forwarded-For entry, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _is_admin(request: Request) -> bool:
    token = settings.mcp_admin_token
    return bool(token) and request.headers.get("authorization") == f"Bearer {token}"


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "source": "fpl", "version": APP_VERSION}


@app.get("/cache/stats")
def cache_stats():
    """Get cache statistics."""
    return get_cache_coordinator().get_stats()


@app.get("/kv-health")
async def kv_health():
    """Write a probe value with a short expiry and read it back."""
    store = get_store()
    value = {"ok": True, "at": int(time.time() * 1000)}
    await store.set(KV_HEALTH_KEY, json.dumps(value), 60)
    raw = await store.get(KV_HEALTH_KEY)

    if isinstance(raw, StructuredValue):
        return JSONResponse(content=raw.data)
    if isinstance(raw, EncodedValue):
        return Response(content=raw.text, media_type="application/json")
    return Response(content="{}", media_type="application/json")


@app.get("/api/cron/fpl-refresh")
async def cron_refresh(request: Request):
    """Scheduled trigger: fetch and store a fresh snapshot."""
    if settings.cron_secret and request.headers.get("authorization") != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        result = await get_cache_coordinator().force_refresh()
    except Exception as e:
        logger.error(f"Scheduled refresh failed: {e}")
        return PlainTextResponse(str(e) or "failed", status_code=500)

    logger.info(f"Scheduled refresh stored snapshot fetched at {result.fetched_at}")
    return PlainTextResponse("ok")


@app.options("/mcp")
def mcp_preflight():
    """CORS preflight."""
    return Response(status_code=204, headers=_cors_headers(preflight=True))


@app.api_route("/mcp", methods=["GET", "PUT", "PATCH", "DELETE"])
def mcp_method_not_allowed():
    headers = _cors_headers()
    headers["Allow"] = "POST, OPTIONS"
    return JSONResponse(
        status_code=405,
        content=error_response(SERVER_ERROR, "Method not allowed"),
        headers=headers,
    )


@app.post("/mcp")
async def mcp_endpoint(request: Request):
    """
    MCP over HTTP (stateless JSON-RPC).

    Rate limited per client IP unless the admin bearer token is presented.
    """
    headers = _cors_headers()

    if not _is_admin(request):
        try:
            outcome = await get_rate_limiter().limit(f"mcp:{client_ip(request)}")
        except Exception as e:
            # A broken limiter must not take the endpoint down
            logger.error(f"ratelimit error: {e}")
        else:
            headers["X-RateLimit-Limit"] = str(outcome.limit)
            headers["X-RateLimit-Remaining"] = str(max(0, outcome.remaining))
            headers["X-RateLimit-Reset"] = str(outcome.reset)
            if not outcome.success:
                now_ms = int(time.time() * 1000)
                headers["Retry-After"] = str(outcome.retry_after_seconds(now_ms))
                return JSONResponse(
                    status_code=429,
                    content={"error": "Rate limit exceeded. Try again later."},
                    headers=headers,
                )

    try:
        body = json.loads(await request.body() or b"null")
    except ValueError:
        return JSONResponse(
            status_code=400,
            content=error_response(PARSE_ERROR, "Parse error"),
            headers=headers,
        )

    try:
        if isinstance(body, list):
            responses = [r for r in [await handle_message(m) for m in body] if r is not None]
            content: Optional[object] = responses or None
        else:
            content = await handle_message(body)
    except Exception:
        logger.exception("MCP handler error")
        return JSONResponse(
            status_code=500,
            content=error_response(INTERNAL_ERROR, "Internal server error"),
            headers=headers,
        )

    if content is None:
        return Response(status_code=202, headers=headers)
    return JSONResponse(content=content, headers=headers)


def run():
    """Console entry point: serve with uvicorn."""
    import uvicorn

    uvicorn.run("fpl_tools.main:app", host="0.0.0.0", port=8000)
