"""Cross-cutting service helpers, errors, and ports."""
