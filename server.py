"""
server.py — HTTP front for the frame pipeline (aiohttp).

Endpoints:
  POST /shop-frame  multipart/form-data, field "frame" (image/*, ≤ MAX_UPLOAD_BYTES)
                    optional fields videoId, timestampSec
                    user from X-Anonymous-Id / X-User-Id headers
  POST /track       JSON {eventName, userId, eventProps, userProps}
                    product_clicked events also feed the engagement boosts
  GET|POST /health  liveness check

The browser extension calls from page and extension origins, so every
response (errors included) carries permissive CORS headers.
"""
from __future__ import annotations

import json
import logging
import math
from typing import Optional

from aiohttp import web

import config
from models import ProductClick, SessionMetadata
from pipeline import FramePipeline, PipelineError

logger = logging.getLogger(__name__)

PIPELINE_KEY = web.AppKey("pipeline", FramePipeline)

_CORS_HEADERS = {
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Anonymous-Id, X-User-Id",
    "Access-Control-Allow-Credentials": "true",
}


def _apply_cors(request: web.Request, headers) -> None:
    headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    headers.update(_CORS_HEADERS)


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == "OPTIONS":
        response = web.Response(status=204)
    else:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            _apply_cors(request, exc.headers)
            raise
    _apply_cors(request, response.headers)
    return response


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=status)


def _parse_timestamp(value) -> Optional[float]:
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return None
    return ts if math.isfinite(ts) else None


# ── Request handlers ───────────────────────────────────────────────────────────

async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"ok": True})


async def handle_shop_frame(request: web.Request) -> web.Response:
    try:
        form = await request.post()
    except web.HTTPRequestEntityTooLarge:
        return _error("File too large", 400)
    except ValueError as exc:
        return _error(f"Invalid form data: {exc}", 400)

    frame = form.get("frame")
    if not isinstance(frame, web.FileField):
        return _error("No image file provided", 400)
    if not (frame.content_type or "").startswith("image/"):
        return _error("Only image files are allowed", 400)

    image_bytes = frame.file.read()
    if not image_bytes:
        return _error("No image file provided", 400)
    if len(image_bytes) > config.MAX_UPLOAD_BYTES:
        return _error("File too large", 400)

    video_id = form.get("videoId")
    session = SessionMetadata(
        user_id=(
            request.headers.get("X-Anonymous-Id")
            or request.headers.get("X-User-Id")
            or "anonymous"
        ),
        video_id=str(video_id) if isinstance(video_id, str) and video_id else None,
        timestamp_sec=_parse_timestamp(form.get("timestampSec")),
    )

    pipeline = request.app[PIPELINE_KEY]
    try:
        response = await pipeline.process_frame(image_bytes, session)
    except PipelineError:
        return _error("Failed to analyze image", 500)
    return web.json_response(response.to_dict())


async def handle_track(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None
    if not isinstance(body, dict):
        body = {}

    event_name = body.get("eventName")
    if not event_name:
        return web.json_response({"ok": False, "error": "eventName is required"}, status=400)

    user_id = body.get("userId") or "anonymous"
    props = body.get("eventProps") if isinstance(body.get("eventProps"), dict) else {}
    user_props = body.get("userProps") if isinstance(body.get("userProps"), dict) else None

    pipeline = request.app[PIPELINE_KEY]
    if event_name == "product_clicked":
        # record_product_click also forwards product_clicked to the sink
        pipeline.record_product_click(ProductClick(
            user_id=user_id,
            category=props.get("category"),
            query_text=props.get("query"),
            product_id=props.get("productId"),
            product_url=props.get("productUrl"),
            session_id=props.get("sessionId"),
            request_id=props.get("requestId"),
        ))
    else:
        pipeline.track(event_name, user_id, props, user_props)
    return web.json_response({"ok": True})


# ── App factory ────────────────────────────────────────────────────────────────

def build_web_app(pipeline: FramePipeline) -> web.Application:
    # Multipart overhead on top of the image itself
    app = web.Application(
        middlewares=[cors_middleware],
        client_max_size=config.MAX_UPLOAD_BYTES + 64 * 1024,
    )
    app[PIPELINE_KEY] = pipeline
    app.router.add_post("/health",     handle_health)
    app.router.add_get("/health",      handle_health)
    app.router.add_post("/shop-frame", handle_shop_frame)
    app.router.add_post("/track",      handle_track)
    return app


async def start_server(pipeline: FramePipeline) -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    app    = build_web_app(pipeline)
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", config.SERVER_PORT)
    await site.start()
    logger.info("Server running on http://localhost:%d", config.SERVER_PORT)
    return runner
