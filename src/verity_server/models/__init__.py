"""Pydantic models for API request, response and SSE event schemas."""
