"""Pydantic models for backend payloads."""
