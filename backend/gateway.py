"""Wires the store, caches, clients and orchestrator together and dispatches platform messages."""

import asyncio
import random
from collections import deque
from typing import Optional

import httpx
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from bot_configs import DM_AI_NOT_CONFIGURED_NOTICE, GatewayConfig
from database import init_db, make_engine, make_session_factory
from durable_store import DurableStore
from filter_cache import FilterCache
from history_cache import HistoryCache
from intent import (
    MessageAction,
    classify_message,
    conversation_id_for,
    first_image,
    resolve_image_prompt,
    search_command_query,
)
from llama_service import LLaMAConfig, LLaMAService
from orchestrator import ResponseOrchestrator
from realtime_tools import WebSearchClient
from schemas import IncomingMessage, ReplyResponse, TurnResult
from telemetry import TelemetryLog

OUTBOX_LIMIT = 100


class Gateway:
    def __init__(
        self,
        config: GatewayConfig,
        store: DurableStore,
        history: HistoryCache,
        filters: FilterCache,
        llm: LLaMAService,
        search: WebSearchClient,
        telemetry: TelemetryLog,
        engine=None,
    ):
        self.config = config
        self.store = store
        self.history = history
        self.filters = filters
        self.llm = llm
        self.search = search
        self.telemetry = telemetry
        self.engine = engine
        self.orchestrator = ResponseOrchestrator(
            store=store,
            history=history,
            filters=filters,
            llm=llm,
            search=search,
            config=config,
            telemetry=telemetry,
        )
        # unprompted channel messages waiting for the platform adapter to send
        self.outbox: deque = deque(maxlen=OUTBOX_LIMIT)

    async def startup(self) -> None:
        """Filters must be hydrated before the first moderation check."""
        await self.filters.load_all()

    async def shutdown(self) -> None:
        await self.orchestrator.flush()
        if self.engine is not None:
            self.engine.dispose()

    async def search_command(self, query: str) -> str:
        if not query:
            return "Please provide a search query after !search."
        result = await self.search.search_as_text(query)
        return f"Search result for \"{query}\": {result}"

    @staticmethod
    def _reply(conversation_id: str, result: TurnResult, prefix: Optional[list[str]] = None) -> ReplyResponse:
        return ReplyResponse(
            conversation_id=conversation_id,
            replied=True,
            messages=[*(prefix or []), result.text],
            outcome=result.outcome,
        )

    async def handle_message(self, message: IncomingMessage) -> ReplyResponse:
        action = classify_message(message)
        if action == MessageAction.IGNORE:
            return ReplyResponse()

        conversation_id = conversation_id_for(message)
        window = await self.orchestrator.ingest(conversation_id, message.author_name, message.content)

        if action == MessageAction.DIRECT_REPLY:
            logger.info(f"Received DM from {message.author_name}: {message.content}")
            if not self.config.generation_configured:
                return ReplyResponse(conversation_id=conversation_id, replied=True, messages=[DM_AI_NOT_CONFIGURED_NOTICE])
            result = await self.orchestrator.complete(conversation_id, window, message.content, None)
            return self._reply(conversation_id, result)

        if action == MessageAction.IMAGE_ANALYSIS:
            attachment = first_image(message)
            prompt, used_default = resolve_image_prompt(message, self.config.image_prompt)
            notices = []
            if used_default:
                notices.append(f"No specific prompt provided, using default prompt: '{prompt}'")
            notices.append(f"Analyzing image with prompt: \"{prompt}\"...")
            result = await self.orchestrator.respond_to_image(
                conversation_id, window, message.content, prompt, attachment.data_base64, message.guild_id
            )
            return self._reply(conversation_id, result, notices)

        if action == MessageAction.MENTION_REPLY:
            if not self.config.generation_configured:
                return ReplyResponse(conversation_id=conversation_id)
            result = await self.orchestrator.complete(conversation_id, window, message.content, message.guild_id)
            return self._reply(conversation_id, result)

        if action == MessageAction.SEARCH_COMMAND:
            text = await self.search_command(search_command_query(message.content) or "")
            return ReplyResponse(conversation_id=conversation_id, replied=True, messages=[text])

        return ReplyResponse(conversation_id=conversation_id)

    async def send_unprompted_once(self) -> Optional[dict]:
        if not self.config.channels_to_message or not self.config.generation_configured:
            return None
        channel_id = random.choice(self.config.channels_to_message)
        text = await self.orchestrator.compose_unprompted(channel_id)
        if text is None:
            return None
        item = {"channel_id": channel_id, "text": text}
        self.outbox.append(item)
        return item

    async def run_unprompted_loop(self) -> None:
        interval = self.config.random_interval_sec
        while True:
            await asyncio.sleep(interval)
            await self.send_unprompted_once()

    def drain_outbox(self) -> list[dict]:
        items = list(self.outbox)
        self.outbox.clear()
        return items


def build_gateway(
    config: GatewayConfig,
    llm_transport: Optional[httpx.AsyncBaseTransport] = None,
    search_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Gateway:
    engine = make_engine(config.database_url)
    try:
        init_db(engine)
    except SQLAlchemyError as exc:
        logger.error(f"Error initialising database, running with in-memory history only: {exc}")
    store = DurableStore(make_session_factory(engine))
    return Gateway(
        config=config,
        store=store,
        history=HistoryCache(store, config.window_size, config.max_cached_conversations),
        filters=FilterCache(store),
        llm=LLaMAService(LLaMAConfig.from_gateway(config), transport=llm_transport),
        search=WebSearchClient(
            config.google_cse_api_key,
            config.google_cse_id,
            timeout_sec=config.search_timeout_sec,
            transport=search_transport,
        ),
        telemetry=TelemetryLog(config.telemetry_log, enabled=config.telemetry_enabled),
        engine=engine,
    )
