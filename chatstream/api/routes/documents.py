"""
Document Routes

POST /documents    index a pre-split document for the calling user

Text extraction and chunking happen upstream; this route embeds the chunks
and makes them searchable by messages sent with ``use_documents``.
"""

from fastapi import APIRouter, status

from chatstream.api.dependencies import RetrievalDep, UserIdDep
from chatstream.api.models import IndexDocumentBody
from chatstream.core.config.constants import DocumentStatus
from chatstream.core.logging import get_logger

router = APIRouter(prefix="/documents", tags=["Documents"])
logger = get_logger(__name__)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    responses={503: {"description": "Retrieval not configured or embedding failed"}},
)
async def index_document(body: IndexDocumentBody, retrieval: RetrievalDep, user_id: UserIdDep):
    logger.info("Document received", user_id=user_id, filename=body.filename,
                chunk_count=len(body.chunks))
    document_id = await retrieval.index_document(user_id, body.filename, body.to_chunks())
    return {
        "id": document_id,
        "filename": body.filename,
        "status": DocumentStatus.INDEXED.value,
        "chunk_count": len(body.chunks),
    }
