"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from authcore.api.deps import json_response, timing
from authcore.core.extensions import db, get_redis

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Report database and (when configured) Redis reachability."""

    checks = {"db": "ok"}
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        checks["db"] = "fail"

    if current_app.config.get("REDIS_URL"):
        checks["redis"] = "ok"
        try:
            get_redis().ping()
        except RedisError:  # pragma: no cover - depends on Redis availability
            current_app.logger.exception("healthcheck.redis_error")
            checks["redis"] = "fail"

    healthy = all(value == "ok" for value in checks.values())
    payload = {
        "status": "ok" if healthy else "degraded",
        **checks,
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if healthy else 503)
