"""Small deterministic helpers shared across services."""
