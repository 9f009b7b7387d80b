"""Bearer token and role helpers."""
