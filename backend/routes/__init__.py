from .conversations import router as conversations_router
from .filters import router as filters_router
from .bots import router as bots_router

__all__ = ["conversations_router", "filters_router", "bots_router"]
