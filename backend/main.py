import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from bot_configs import GatewayConfig, load_config
from gateway import Gateway, build_gateway
from routes import bots_router, conversations_router, filters_router


def create_app(config: Optional[GatewayConfig] = None, gateway: Optional[Gateway] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        gw = gateway or build_gateway(config or load_config())
        await gw.startup()
        app.state.gateway = gw

        unprompted_task = None
        if gw.config.channels_to_message and gw.config.random_interval_sec > 0:
            unprompted_task = asyncio.create_task(gw.run_unprompted_loop())
        logger.info("Conversation gateway ready.")
        try:
            yield
        finally:
            if unprompted_task is not None:
                unprompted_task.cancel()
                try:
                    await unprompted_task
                except asyncio.CancelledError:
                    pass
            await gw.shutdown()

    app = FastAPI(
        title="Conversation Gateway API",
        description="Conversation history, moderation, and response orchestration for chat bots",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:8000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(conversations_router)
    app.include_router(filters_router)
    app.include_router(bots_router)

    @app.middleware("http")
    async def utf8_charset_middleware(request: Request, call_next):
        response = await call_next(request)
        ct = response.headers.get("content-type", "")
        if "application/json" in ct and "charset" not in ct:
            response.headers["content-type"] = ct + "; charset=utf-8"
        return response

    @app.get("/")
    async def root():
        return {
            "message": "Conversation Gateway API",
            "version": "1.0.0",
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
