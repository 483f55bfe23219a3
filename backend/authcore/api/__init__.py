"""API blueprint package aggregating versioned endpoints."""

from __future__ import annotations

from collections.abc import Iterable

from flask import Blueprint, Flask


def register_blueprint_group(
    app: Flask,
    *,
    base_prefix: str,
    entries: Iterable[tuple[Blueprint, str]],
) -> None:
    """Register related blueprints beneath a common prefix.

    Parameters
    ----------
    app:
        Application instance receiving the blueprints.
    base_prefix:
        Version root such as ``"/api/v1"``.
    entries:
        ``(blueprint, relative_prefix)`` pairs; an empty relative prefix
        mounts the blueprint at the version root.
    """

    root = base_prefix.rstrip("/")
    for bp, rel_prefix in entries:
        rel = rel_prefix.strip("/")
        prefix = f"{root}/{rel}" if rel else root
        if not prefix.startswith("/"):
            prefix = "/" + prefix
        app.register_blueprint(bp, url_prefix=prefix)


def init_app(app: Flask) -> None:
    """Register token verification callbacks and the v1 routes."""

    from authcore.api import security

    security.init_app(app)

    from authcore.api.v1 import API_VERSION as V1
    from authcore.api.v1 import REGISTRY as V1_REGISTRY

    api_base = app.config.get("API_BASE_PREFIX", "/api")
    register_blueprint_group(app, base_prefix=f"{api_base}/{V1}", entries=V1_REGISTRY)


__all__ = ["init_app", "register_blueprint_group"]
