"""CORS configuration for the credential API."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS


def init_app(app: Flask) -> None:
    """Allow configured browser origins to call ``/api/*``.

    Parameters
    ----------
    app: flask.Flask
        Application whose ``CORS_ORIGINS`` (comma separated) is consulted.
        A blank value or ``"*"`` opens every origin without credentials.
        The ``Authorization`` header is allowed in, and ``X-Request-ID`` is
        exposed so clients can quote it in support requests.
    """
    origins = [o.strip() for o in app.config.get("CORS_ORIGINS", "").split(",") if o.strip()]
    open_to_all = not origins or origins == ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if open_to_all else origins}},
        supports_credentials=not open_to_all,
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
