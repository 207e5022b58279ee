from __future__ import annotations

import hashlib
import json
import os
import time
import uuid
from datetime import datetime

from flask import g, request


REDACTED_HEADERS = ("authorization", "x-api-key", "cookie", "set-cookie")


def _hash_ip(ip: str, salt: str) -> str:
    raw = f"{salt}:{ip or ''}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()[:16]


def get_request_id() -> str:
    return getattr(g, "request_id", "") or ""


def git_sha() -> str:
    return (os.getenv("GIT_SHA") or os.getenv("SOURCE_COMMIT") or "unknown").strip() or "unknown"


def init_sentry(app) -> bool:
    """Enable Sentry error reporting when SENTRY_DSN is configured."""
    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn:
        app.logger.info("sentry_disabled_no_dsn")
        return False
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        try:
            traces_rate = float((os.getenv("SENTRY_TRACES_SAMPLE_RATE") or "0.0").strip())
        except ValueError:
            traces_rate = 0.0

        sentry_sdk.init(
            dsn=dsn,
            environment=(os.getenv("SENTRY_ENVIRONMENT") or os.getenv("CLASSIFIEDS_ENV") or "dev"),
            release=git_sha(),
            integrations=[FlaskIntegration()],
            send_default_pii=False,
            traces_sample_rate=max(0.0, min(traces_rate, 1.0)),
            before_send=scrub_event,
        )
    except Exception as e:
        app.logger.warning("sentry_init_failed err=%s", e)
        return False
    app.logger.info("sentry_enabled")
    return True


def scrub_event(event, hint):
    req = event.get("request") or {}
    headers = req.get("headers") or {}
    for key in list(headers.keys()):
        if key.lower() in REDACTED_HEADERS:
            headers[key] = "[REDACTED]"
    if headers:
        req["headers"] = headers
        event["request"] = req
    return event


def install_request_observers(app) -> None:
    @app.before_request
    def _request_observer_begin():
        rid = (request.headers.get("X-Request-Id") or "").strip()
        g.request_id = rid[:64] if rid else uuid.uuid4().hex
        g.request_started_at = time.perf_counter()

    @app.after_request
    def _request_observer_end(response):
        rid = get_request_id() or uuid.uuid4().hex
        response.headers["X-Request-Id"] = rid
        started = getattr(g, "request_started_at", None)
        latency_ms = None
        if started is not None:
            latency_ms = round((time.perf_counter() - float(started)) * 1000.0, 2)
        forwarded = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
        payload = {
            "ts": datetime.utcnow().isoformat(),
            "request_id": rid,
            "path": request.path,
            "method": request.method,
            "status": int(response.status_code),
            "latency_ms": latency_ms,
            "user_id": getattr(g, "auth_user_id", None),
            "role": getattr(g, "auth_role", None),
            "ip_hash": _hash_ip(forwarded or request.remote_addr or "", app.config.get("SECRET_KEY", "classifieds")),
        }
        app.logger.info(json.dumps(payload))
        return response
