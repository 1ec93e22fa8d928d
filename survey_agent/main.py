import base64
import binascii
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Response
from fastapi.responses import StreamingResponse

from survey_agent.core.logging import get_logger, new_request_id
from survey_agent.schemas.conversation import ChatRequest, DocxDownloadRequest
from survey_agent.services.agent import build_context, start_turn
from survey_agent.services.conversation_store import get_conversation, init_db, list_conversations
from survey_agent.services.instructions import update_default_instruction
from survey_agent.services.progress import SSE_DONE, ProgressChannel, encode_sse
from survey_agent.services.protocol_docx import DOCX_MEDIA_TYPE

logger = get_logger(__name__)

app = FastAPI(title="Survey Protocol Agent", version="0.1.0")


@app.on_event("startup")
def _startup():
    init_db()


@app.get("/health")
def health():
    return {"status": "ok"}


# -------------------------
# Chat (SSE)
# -------------------------
@app.post("/v1/chat")
async def chat(req: ChatRequest):
    request_id = new_request_id()

    if req.new_system_prompt:
        update_default_instruction(req.new_system_prompt, user_id=req.user_id)
        logger.info(f"[{request_id}] /v1/chat instruction_updated user_id={req.user_id or 'anon'}")
        return {"success": True}

    try:
        context = build_context(req, request_id=request_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        f"[{request_id}] /v1/chat START turns={len(context.turns)} user_id={req.user_id or 'anon'} "
        f"conversation_id={req.conversation_id or 'none'} has_document={context.has_existing_document}"
    )

    async def event_stream():
        channel = ProgressChannel()
        producer = start_turn(context, channel)
        try:
            async for event in channel:
                yield encode_sse(event)
            yield SSE_DONE
        finally:
            # client gone: stop in-flight model calls, no retry
            if not producer.done():
                producer.cancel()
                logger.info(f"[{request_id}] /v1/chat cancelled")
            else:
                logger.info(f"[{request_id}] /v1/chat END events={len(channel.events)}")

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no", "X-Request-Id": request_id},
    )


# -------------------------
# Document download
# -------------------------
@app.post("/v1/download-docx")
def download_docx(req: DocxDownloadRequest):
    if not req.content or not req.filename:
        raise HTTPException(status_code=400, detail="Missing content or filename")

    try:
        data = base64.b64decode(req.content, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="content is not valid base64")

    return Response(
        content=data,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(req.filename)}"},
    )


# -------------------------
# Conversation history
# -------------------------
@app.get("/v1/conversations")
def conversations(user_id: str, limit: int = 50):
    return [
        {"id": c.id, "title": c.title, "updated_at_utc": c.updated_at_utc}
        for c in list_conversations(user_id, limit=limit)
    ]


@app.get("/v1/conversations/{conversation_id}")
def conversation(conversation_id: str):
    conv = get_conversation(conversation_id)
    if conv is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {
        "id": conv.id,
        "user_id": conv.user_id,
        "title": conv.title,
        "messages": conv.messages,
        "document_content": conv.document_content,
        "created_at_utc": conv.created_at_utc,
        "updated_at_utc": conv.updated_at_utc,
    }
