"""
FastAPI dependencies.

Application singletons (the orchestrator and its registry, gateway, store and
retrieval engine) are created once in the lifespan and stored on
``app.state``; these functions read them back for route handlers.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Request

from chatstream.core.config.constants import HEADER_REQUEST_ID, HEADER_USER_ID
from chatstream.core.exceptions import RetrievalError, ValidationError
from chatstream.core.logging import get_request_id as current_request_id
from chatstream.llm_stream.providers import ProviderGateway
from chatstream.llm_stream.services import StreamOrchestrator, StreamRegistry
from chatstream.persistence import MessageStore
from chatstream.retrieval import RetrievalEngine


def get_orchestrator(request: Request) -> StreamOrchestrator:
    return request.app.state.orchestrator


def get_registry(request: Request) -> StreamRegistry:
    return request.app.state.orchestrator.registry


def get_gateway(request: Request) -> ProviderGateway:
    return request.app.state.orchestrator.gateway


def get_store(request: Request) -> MessageStore:
    return request.app.state.orchestrator.store


def get_retrieval(request: Request) -> RetrievalEngine:
    retrieval = request.app.state.orchestrator.retrieval
    if retrieval is None:
        raise RetrievalError("Document retrieval is not configured")
    return retrieval


def get_user_id(request: Request) -> str:
    """
    Caller identity from the ``X-User-ID`` header.

    Authentication happens upstream; a missing header is a client error.
    """
    user_id = request.headers.get(HEADER_USER_ID)
    if not user_id:
        raise ValidationError(f"Missing {HEADER_USER_ID} header")
    return user_id


def get_request_id(request: Request) -> str:
    """The request ID set by the middleware, or a fresh one outside it."""
    return request.headers.get(HEADER_REQUEST_ID) or current_request_id() or str(uuid.uuid4())


OrchestratorDep = Annotated[StreamOrchestrator, Depends(get_orchestrator)]
RegistryDep = Annotated[StreamRegistry, Depends(get_registry)]
GatewayDep = Annotated[ProviderGateway, Depends(get_gateway)]
StoreDep = Annotated[MessageStore, Depends(get_store)]
RetrievalDep = Annotated[RetrievalEngine, Depends(get_retrieval)]
UserIdDep = Annotated[str, Depends(get_user_id)]
RequestIdDep = Annotated[str, Depends(get_request_id)]
