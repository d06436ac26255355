"""Chat endpoints: one dialogue turn, plain or streamed over SSE."""
import json
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
from vibetrader.agents.decision_engine import SnapshotSurfaced, TextChunk, TurnOutcome
from vibetrader.api.deps import get_components, get_identity
from vibetrader.core.error_codes import GenerationError, PipelineErrorCode, get_error_message
from vibetrader.core.ids import new_conversation_id
from vibetrader.core.logging import get_logger
from vibetrader.services.token_snapshot import snapshot_preview
from vibetrader.services.trade_pipeline import SWAP_FAILED_NOTE

logger = get_logger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    conversationId: Optional[str] = Field(None, max_length=128)


def _quota_payload(request: Request) -> Optional[Dict[str, Any]]:
    quota = getattr(request.state, "quota", None)
    return quota.to_dict() if quota is not None else None


def _sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _error_body(request: Request, code: PipelineErrorCode) -> Dict[str, Any]:
    return {
        "status": "ERROR",
        "error": {
            "code": code.value,
            "message": get_error_message(code),
            "request_id": getattr(request.state, "request_id", ""),
        },
    }


@router.post("")
async def chat(
    body: ChatRequest,
    request: Request,
    components=Depends(get_components),
    identity=Depends(get_identity),
):
    """Run one turn and return the full reply."""
    conversation_id = body.conversationId or new_conversation_id()
    user_id, user_type = identity

    try:
        outcome = await components.engine.advance(conversation_id, body.message)
    except GenerationError as e:
        logger.error(f"Generation failed for {conversation_id}: {e.message}")
        return JSONResponse(status_code=500, content=_error_body(request, e.error_code))

    settlement = await components.pipeline.settle(outcome, user_id=user_id, user_type=user_type)

    response: Dict[str, Any] = {
        "message": settlement.message,
        "conversationId": conversation_id,
    }
    decision = settlement.to_decision_payload()
    if decision is not None:
        response["decision"] = decision
    rate_limit = _quota_payload(request)
    if rate_limit is not None:
        response["rateLimit"] = rate_limit
    return response


@router.post("/stream")
async def chat_stream(
    body: ChatRequest,
    request: Request,
    components=Depends(get_components),
    identity=Depends(get_identity),
):
    """Run one turn as SSE: token?, chunk*, decision?, then done (or error)."""
    conversation_id = body.conversationId or new_conversation_id()
    user_id, user_type = identity
    rate_limit = _quota_payload(request)

    async def event_generator():
        try:
            async for event in components.engine.advance_streaming(conversation_id, body.message):
                if isinstance(event, SnapshotSurfaced):
                    await components.pipeline.announce_snapshot(event.snapshot)
                    yield _sse({"type": "token", "tokenPreview": snapshot_preview(event.snapshot)})
                elif isinstance(event, TextChunk):
                    yield _sse({"type": "chunk", "content": event.content})
                elif isinstance(event, TurnOutcome):
                    settlement = await components.pipeline.settle(
                        event, user_id=user_id, user_type=user_type, snapshot_announced=True
                    )
                    if settlement.error is not None:
                        yield _sse({"type": "chunk", "content": SWAP_FAILED_NOTE})
                    decision = settlement.to_decision_payload()
                    if decision is not None:
                        yield _sse({"type": "decision", "decision": decision})
            yield _sse({"type": "done", "conversationId": conversation_id, "rateLimit": rate_limit})
        except GenerationError as e:
            logger.error(f"Streaming generation failed for {conversation_id}: {e.message}")
            yield _sse({"type": "error", "error": get_error_message(e.error_code)})
        except Exception as e:
            logger.error("Streaming turn failed for %s: %s", conversation_id, type(e).__name__, exc_info=True)
            yield _sse({"type": "error", "error": get_error_message(PipelineErrorCode.INTERNAL_ERROR)})

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"}
    )


@router.get("/{conversation_id}/history")
async def get_history(conversation_id: str, components=Depends(get_components)):
    """Stored turns (original human text, full agent replies)."""
    return {
        "conversationId": conversation_id,
        "messages": components.engine.get_history(conversation_id),
    }


@router.delete("/{conversation_id}")
async def clear_conversation(conversation_id: str, components=Depends(get_components)):
    return {"conversationId": conversation_id, "cleared": components.engine.clear(conversation_id)}
