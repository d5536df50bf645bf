"""Bot utility routes: direct search, unprompted-message outbox, telemetry."""

from fastapi import APIRouter, Depends

from deps import get_gateway
from gateway import Gateway
from schemas import SearchResponse

router = APIRouter(prefix="/api", tags=["bots"])


@router.get("/search", response_model=SearchResponse)
async def search(q: str = "", gateway: Gateway = Depends(get_gateway)):
    query = q.strip()
    return SearchResponse(query=query, result=await gateway.search_command(query))


@router.get("/outbox")
async def drain_outbox(gateway: Gateway = Depends(get_gateway)):
    """Unprompted channel messages for the platform adapter to send."""
    return {"messages": gateway.drain_outbox()}


@router.get("/telemetry/summary")
async def telemetry_summary(hours: int = 24, limit: int = 6, gateway: Gateway = Depends(get_gateway)):
    return gateway.telemetry.summary(hours=hours, limit=limit)
