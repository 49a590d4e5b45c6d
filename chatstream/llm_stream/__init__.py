"""
LLM streaming: event models, providers and the orchestration services.
"""
