"""Thin FastAPI transport over the stream orchestrator."""
