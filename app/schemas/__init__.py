"""Pydantic request/response and domain schemas."""
