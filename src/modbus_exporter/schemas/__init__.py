"""Pydantic models for register schemas and API responses."""
