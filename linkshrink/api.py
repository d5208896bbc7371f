"""HTTP API: link creation, redirection and statistics."""

from __future__ import annotations

import logging
import queue
from datetime import datetime, timezone
from urllib.parse import urlsplit

from flask import Flask, jsonify, redirect, request

from .config import DEFAULT_BUFFER_SIZE
from .models import ClickEvent
from .repository import RecordNotFound
from .services import ClickService, LinkService

log = logging.getLogger(__name__)

INTERNAL_ERROR = "Internal server error"


def _is_valid_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    if not parts.scheme:
        return False
    if parts.scheme == "file":
        return True
    return bool(parts.netloc or parts.fragment)


def _client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return request.remote_addr or ""


def create_app(
    link_service: LinkService,
    click_service: ClickService,
    base_url: str,
    events: queue.Queue | None = None,
) -> Flask:
    """Build the Flask application serving the shortener API.

    Click events from redirections are put on ``events`` without blocking;
    when the queue is full the event is dropped and a warning logged.
    """
    app = Flask(__name__)
    if events is None:
        events = queue.Queue(maxsize=DEFAULT_BUFFER_SIZE)
    app.config["CLICK_EVENTS"] = events

    @app.get("/health")
    def health():
        return jsonify(status="ok")

    @app.post("/api/v1/links")
    def create_short_link():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify(error="request body must be a JSON object"), 400
        long_url = body.get("long_url")
        if long_url is None or long_url == "":
            return jsonify(error="long_url is required"), 400
        if not isinstance(long_url, str):
            return jsonify(error="long_url must be a string"), 400
        if not _is_valid_url(long_url):
            return jsonify(error="long_url must be a valid URL"), 400

        try:
            link = link_service.create_link(long_url)
        except Exception as exc:
            log.error("Error creating link for URL %s: %s", long_url, exc)
            return jsonify(error=INTERNAL_ERROR), 500

        return (
            jsonify(
                short_code=link.short_code,
                long_url=link.long_url,
                full_short_url=f"{base_url}/{link.short_code}",
            ),
            201,
        )

    def link_stats(short_code: str):
        try:
            link = link_service.get_link_by_short_code(short_code)
        except RecordNotFound as exc:
            return jsonify(error=str(exc)), 404
        except Exception as exc:
            log.error("Error retrieving link for %s: %s", short_code, exc)
            return jsonify(error=INTERNAL_ERROR), 500

        try:
            total_clicks = click_service.get_clicks_count_by_link_id(link.id)
        except Exception as exc:
            log.error("Error counting clicks for %s: %s", short_code, exc)
            return jsonify(error="Failed to retrieve click count"), 500

        return jsonify(
            short_code=link.short_code,
            long_url=link.long_url,
            total_clicks=total_clicks,
        )

    app.add_url_rule(
        "/api/v1/links/<short_code>/stats", "link_stats", link_stats, methods=["GET"]
    )
    app.add_url_rule(
        "/api/stats/<short_code>", "legacy_link_stats", link_stats, methods=["GET"]
    )

    @app.get("/api/v1/links/<short_code>")
    def redirect_short_link(short_code: str):
        try:
            link = link_service.get_link_by_short_code(short_code)
        except RecordNotFound:
            return jsonify(error="Short link not found"), 404
        except Exception as exc:
            log.error("Error retrieving link for %s: %s", short_code, exc)
            return jsonify(error=INTERNAL_ERROR), 500

        event = ClickEvent(
            link_id=link.id,
            timestamp=datetime.now(timezone.utc),
            user_agent=request.headers.get("User-Agent", ""),
            ip_address=_client_ip(),
        )
        try:
            events.put_nowait(event)
        except queue.Full:
            log.warning("Click event queue is full, dropping click event for %s.", short_code)

        return redirect(link.long_url, code=302)

    return app