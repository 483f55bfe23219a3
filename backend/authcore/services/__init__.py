"""Service layer: credential and session lifecycle use cases."""
