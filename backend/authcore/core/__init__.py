"""Core application wiring: config, logging, errors, extensions."""
