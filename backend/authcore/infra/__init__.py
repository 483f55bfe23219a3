"""Concrete adapters for service-layer ports."""
