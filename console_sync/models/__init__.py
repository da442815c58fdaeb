"""Pydantic models for Console Sync."""
