"""Chat streaming services: context assembly, orchestration and stream bookkeeping."""

from chatstream.llm_stream.services.context_assembler import (
    ContextAssembler,
    ContextBudget,
    estimate_tokens,
)
from chatstream.llm_stream.services.stream_orchestrator import StreamOrchestrator, StreamPlan
from chatstream.llm_stream.services.stream_registry import ActiveStream, StreamRegistry
from chatstream.llm_stream.services.title_generator import TitleGenerator

__all__ = [
    "ContextAssembler",
    "ContextBudget",
    "estimate_tokens",
    "StreamOrchestrator",
    "StreamPlan",
    "ActiveStream",
    "StreamRegistry",
    "TitleGenerator",
]
