"""
web_server.py — JSON API in front of the scanner.

Runs as an aiohttp web server in the main asyncio event loop.

Endpoints:
  POST /api/vision         {imageBase64}                → signal bundle
  POST /api/intent         {…signals, userPrompt}       → {intent, confidence, bestQuery, followUp}
  POST /api/openai/intent  same as /api/intent (legacy path kept for older clients)
  POST /api/search         {query}                      → {regionNote, results}
  GET  /health             plain-text health check

Errors answer {"error": "..."} with the status carried by the exception
(errors.py). Required fields are checked before any external call.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

from aiohttp import web

import config
from errors import InputValidationError, ProductScannerError
from intent import IntentClassifier
from marketplace_search import MarketplaceAggregator
from vision.fusion import SignalFusionEngine

logger = logging.getLogger(__name__)

FUSION_ENGINE = web.AppKey("fusion_engine", SignalFusionEngine)
AGGREGATOR    = web.AppKey("aggregator", MarketplaceAggregator)
CLASSIFIER    = web.AppKey("intent_classifier", IntentClassifier)


# ── Helpers ────────────────────────────────────────────────────────────────────

async def _json_body(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise InputValidationError("request body must be JSON") from exc
    if not isinstance(body, dict):
        raise InputValidationError("request body must be a JSON object")
    return body


def decode_image(value: Any) -> bytes:
    if not value or not isinstance(value, str):
        raise InputValidationError("imageBase64 required")
    # Accept data URLs as sent by browsers
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    try:
        raw = base64.b64decode(value, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise InputValidationError("bad image") from exc
    if not raw:
        raise InputValidationError("bad image")
    return raw


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except ProductScannerError as exc:
        if exc.status >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, exc)
        return web.json_response({"error": str(exc) or "error"}, status=exc.status)


# ── Request handlers ───────────────────────────────────────────────────────────

async def handle_vision(request: web.Request) -> web.Response:
    body = await _json_body(request)
    image = decode_image(body.get("imageBase64"))
    bundle = await request.app[FUSION_ENGINE].analyse(image)
    return web.json_response(bundle.to_dict())


async def handle_intent(request: web.Request) -> web.Response:
    body = await _json_body(request)
    user_prompt = body.get("userPrompt") or ""
    try:
        result = await request.app[CLASSIFIER].classify(body, user_prompt)
    except Exception as exc:
        logger.error("Intent classification failed: %s", exc, exc_info=True)
        return web.json_response({"error": str(exc) or "openai error"}, status=500)
    return web.json_response(result.to_dict())


async def handle_search(request: web.Request) -> web.Response:
    body = await _json_body(request)
    query = body.get("query")
    if not isinstance(query, str) or not query.strip():
        raise InputValidationError("query required")
    results = await request.app[AGGREGATOR].search(query.strip())
    return web.json_response({
        "regionNote": config.REGION_NOTE,
        "results": [r.to_dict() for r in results],
    })


async def handle_health(request: web.Request) -> web.Response:
    """Health check — returns 200 OK. Use with uptime monitors."""
    return web.Response(text="OK", content_type="text/plain")


# ── App factory ────────────────────────────────────────────────────────────────

def build_web_app(
    engine: SignalFusionEngine,
    aggregator: MarketplaceAggregator,
    classifier: IntentClassifier,
) -> web.Application:
    app = web.Application(
        middlewares=[error_middleware],
        client_max_size=config.MAX_BODY_MB * 1024 * 1024,
    )
    app[FUSION_ENGINE] = engine
    app[AGGREGATOR] = aggregator
    app[CLASSIFIER] = classifier
    app.router.add_post("/api/vision",        handle_vision)
    app.router.add_post("/api/intent",        handle_intent)
    app.router.add_post("/api/openai/intent", handle_intent)
    app.router.add_post("/api/search",        handle_search)
    app.router.add_get("/health",             handle_health)
    return app


async def start_server(app: web.Application) -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", config.PORT)
    await site.start()
    logger.info("🔎 Product scanner API listening on port %d", config.PORT)
    return runner
