"""Pydantic schemas for usage payloads and query responses."""
