"""PyJWT-backed access-token issuer."""
