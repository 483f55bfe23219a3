"""Application factory wiring Flask extensions, services and blueprints."""

from __future__ import annotations

from typing import Any

from flask import Flask

from authcore.core.config import BaseConfig, get_config
from authcore.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
    **service_overrides: Any,
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config class, object or import path; ``APP_ENV`` decides when omitted.
    :param service_overrides: Forwarded to :func:`authcore.core.container.build_services`
        (``clock``, ``email_sender``, ``sms_sender``), mainly for tests.
    :raises ConfigurationError: Missing ``JWT_SECRET_KEY``.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from authcore.core import proxy

    proxy.init_app(app)

    from authcore.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from authcore.core import cors

    cors.init_app(app)

    # Fails fast without a signing key.
    from authcore.core import container

    container.init_app(app, **service_overrides)

    from authcore.api import init_app as init_api

    init_api(app)

    from authcore.core import errors

    errors.init_app(app)

    from authcore import cli as app_cli

    app_cli.init_app(app)

    return app
