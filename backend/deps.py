"""Shared FastAPI dependencies used across route modules."""

from fastapi import Request

from gateway import Gateway


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway
