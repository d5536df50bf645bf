"""Moderation admin surface: add, remove, and list filtered words per scope."""

from fastapi import APIRouter, Depends, HTTPException

from deps import get_gateway
from errors import StoreUnavailable
from gateway import Gateway
from filter_cache import normalize_term
from policy import add_reply, can_manage_filters, list_reply, permission_denied_message, remove_reply
from schemas import FilterRequest, FilterResponse

router = APIRouter(prefix="/api/filters", tags=["filters"])


def _authorize(request: FilterRequest, gateway: Gateway) -> None:
    in_guild = request.scope_id is not None
    if not can_manage_filters(request.user_id, request.guild_owner_id, in_guild, gateway.config.owner_bypass_id):
        raise HTTPException(status_code=403, detail=permission_denied_message(in_guild))


def _term(request: FilterRequest) -> str:
    try:
        return normalize_term(request.term or "")
    except ValueError:
        raise HTTPException(status_code=400, detail="term is required")


@router.post("/add", response_model=FilterResponse)
async def add_filter(request: FilterRequest, gateway: Gateway = Depends(get_gateway)):
    _authorize(request, gateway)
    term = _term(request)
    try:
        result = await gateway.filters.add(request.scope_id, term)
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail=f"Failed to add \"{term}\" to the filter list.")
    return FilterResponse(result=result.value, message=add_reply(result, term, request.scope_id))


@router.post("/remove", response_model=FilterResponse)
async def remove_filter(request: FilterRequest, gateway: Gateway = Depends(get_gateway)):
    _authorize(request, gateway)
    term = _term(request)
    try:
        result = await gateway.filters.remove(request.scope_id, term)
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail=f"Failed to remove \"{term}\" from the filter list.")
    return FilterResponse(result=result.value, message=remove_reply(result, term, request.scope_id))


@router.post("/list", response_model=FilterResponse)
async def list_filters(request: FilterRequest, gateway: Gateway = Depends(get_gateway)):
    _authorize(request, gateway)
    try:
        terms = sorted(await gateway.filters.list(request.scope_id))
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Failed to retrieve filtered words.")
    return FilterResponse(result="ok", message=list_reply(terms, request.scope_id), terms=terms)
