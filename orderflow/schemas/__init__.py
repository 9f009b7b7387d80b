"""Pydantic request/response schemas for API v1."""
