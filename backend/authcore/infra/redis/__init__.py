"""Redis-backed denylist and per-user locks."""
