"""Cross-cutting configuration, errors, logging and security helpers."""
