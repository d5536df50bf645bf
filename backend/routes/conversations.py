"""Incoming messages, direct turns, and cached window inspection."""

from fastapi import APIRouter, Depends, HTTPException

from bot_configs import AI_NOT_CONFIGURED_NOTICE
from deps import get_gateway
from gateway import Gateway
from schemas import IncomingMessage, ReplyResponse, TurnRequest, TurnResult, WindowResponse

router = APIRouter(prefix="/api", tags=["conversations"])


@router.post("/messages", response_model=ReplyResponse)
async def handle_message(message: IncomingMessage, gateway: Gateway = Depends(get_gateway)):
    """Dispatch one parsed platform message; ``messages`` are the replies to send, in order."""
    return await gateway.handle_message(message)


@router.post("/conversations/{conversation_id}/turns", response_model=TurnResult)
async def post_turn(conversation_id: str, request: TurnRequest, gateway: Gateway = Depends(get_gateway)):
    if not request.content.strip():
        raise HTTPException(status_code=400, detail="content is required")
    if not gateway.config.generation_configured:
        raise HTTPException(status_code=503, detail=AI_NOT_CONFIGURED_NOTICE)
    return await gateway.orchestrator.respond(
        conversation_id,
        request.author_name,
        request.content,
        request.scope_id,
    )


@router.get("/conversations/{conversation_id}/window", response_model=WindowResponse)
async def get_window(conversation_id: str, gateway: Gateway = Depends(get_gateway)):
    window = await gateway.history.get_or_load(conversation_id)
    return WindowResponse(conversation_id=conversation_id, size=len(window.turns), turns=window.turns)
