"""
Chat Routes

POST /conversations                      create a conversation
POST /conversations/{id}/messages        send a message, stream the reply (SSE)
POST /conversations/{id}/retry           re-stream the reply to the last user message (SSE)

Ownership, validation, retry-precondition and persistence failures are
raised before the stream opens and become JSON errors; once the response
has started, failures arrive as a terminal ``error`` event.
"""

from fastapi import APIRouter, status

from chatstream.api.dependencies import OrchestratorDep, RequestIdDep, StoreDep, UserIdDep
from chatstream.api.models import CreateConversationBody, RetryBody, SendMessageBody
from chatstream.api.sse import event_stream_response
from chatstream.core.logging import get_logger, set_request_id

router = APIRouter(prefix="/conversations", tags=["Chat"])
logger = get_logger(__name__)

SSE_RESPONSES = {
    200: {"description": "SSE stream started", "content": {"text/event-stream": {}}},
    400: {"description": "Retry rejected"},
    403: {"description": "Conversation belongs to another user"},
    404: {"description": "Conversation not found"},
    422: {"description": "Invalid message"},
    503: {"description": "Message store unavailable"},
}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_conversation(body: CreateConversationBody, store: StoreDep, user_id: UserIdDep):
    conversation = await store.create_conversation(
        user_id=user_id, title=body.title, model=body.model, system_prompt=body.system_prompt
    )
    return conversation.model_dump(mode="json")


@router.post("/{conversation_id}/messages", responses=SSE_RESPONSES)
async def send_message(
    conversation_id: str,
    body: SendMessageBody,
    orchestrator: OrchestratorDep,
    user_id: UserIdDep,
    request_id: RequestIdDep,
):
    set_request_id(request_id)
    logger.info(
        "Message received",
        conversation_id=conversation_id,
        user_id=user_id,
        content_length=len(body.content),
        image_count=len(body.images),
        use_documents=body.use_documents,
    )
    plan = await orchestrator.prepare_message(body.to_request(conversation_id, user_id, request_id))
    return event_stream_response(orchestrator, plan)


@router.post("/{conversation_id}/retry", responses=SSE_RESPONSES)
async def retry_message(
    conversation_id: str,
    orchestrator: OrchestratorDep,
    user_id: UserIdDep,
    request_id: RequestIdDep,
    body: RetryBody | None = None,
):
    set_request_id(request_id)
    body = body or RetryBody()
    logger.info("Retry received", conversation_id=conversation_id, user_id=user_id)
    plan = await orchestrator.prepare_retry(body.to_request(conversation_id, user_id, request_id))
    return event_stream_response(orchestrator, plan)
