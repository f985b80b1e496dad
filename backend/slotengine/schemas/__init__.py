"""Pydantic schemas for the slot engine."""
