"""Expose the application factory at package level.

``from authcore import create_app`` builds the credential and session API.
"""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
