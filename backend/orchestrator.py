"""Drives one incoming turn to a final, moderated response.

Ingest -> Generate -> (at most one) Augment -> Moderate -> Deliver | Suppressed.
"""

import asyncio
from typing import Optional, Sequence, Union

from loguru import logger

from bot_configs import (
    GENERATION_APOLOGY,
    IMAGE_APOLOGY,
    WITHHELD_NOTICE,
    GatewayConfig,
)
from durable_store import DurableStore
from errors import GenerationFailed, StoreUnavailable
from filter_cache import FilterCache
from history_cache import HistoryCache
from llama_service import LLaMAService, is_llm_error, parse_llm_error
from prompt_builder import build, build_followup
from realtime_tools import WebSearchClient, search_error
from schemas import ConversationWindow, Turn, TurnOutcome, TurnResult
from telemetry import TelemetryLog
from text_utils import extract_search_directive, preview, strip_thoughts


class ResponseOrchestrator:
    def __init__(
        self,
        store: DurableStore,
        history: HistoryCache,
        filters: FilterCache,
        llm: LLaMAService,
        search: WebSearchClient,
        config: Optional[GatewayConfig] = None,
        telemetry: Optional[TelemetryLog] = None,
    ):
        self.store = store
        self.history = history
        self.filters = filters
        self.llm = llm
        self.search = search
        self.config = config or GatewayConfig()
        self.telemetry = telemetry or TelemetryLog(enabled=False)
        self._pending: set[asyncio.Task] = set()

    # -- persistence ---------------------------------------------------------

    async def _persist(self, conversation_id: str, turn: Turn) -> bool:
        try:
            await asyncio.to_thread(self.store.append_turn, conversation_id, turn)
            return True
        except StoreUnavailable as exc:
            logger.error(f"Error saving {turn.speaker_role.value} turn for {conversation_id}: {exc}")
            return False

    def _persist_later(self, conversation_id: str, turn: Turn) -> None:
        # the window stays cached until the store holds this turn
        self.history.write_started(conversation_id)
        task = asyncio.create_task(self._persist(conversation_id, turn))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(lambda _t: self.history.write_finished(conversation_id))

    async def flush(self) -> None:
        """Wait for background transcript writes scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # -- external calls ------------------------------------------------------

    async def _generate(self, prompt: str, stage: str) -> str:
        try:
            raw = await asyncio.wait_for(self.llm.generate(prompt), timeout=self.config.generation_timeout_sec)
        except asyncio.TimeoutError as exc:
            raise GenerationFailed("timeout", f"{stage} exceeded {self.config.generation_timeout_sec}s") from exc
        if is_llm_error(raw):
            err = parse_llm_error(raw)
            raise GenerationFailed(err.get("type") or "unknown", err.get("detail") or "")
        return strip_thoughts(raw)

    async def _describe_image(self, prompt: str, image: Union[bytes, str]) -> str:
        try:
            raw = await asyncio.wait_for(
                self.llm.generate_vision(prompt, image),
                timeout=self.config.generation_timeout_sec,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationFailed("timeout", f"vision exceeded {self.config.generation_timeout_sec}s") from exc
        if is_llm_error(raw):
            err = parse_llm_error(raw)
            raise GenerationFailed(err.get("type") or "unknown", err.get("detail") or "")
        return raw

    async def _retrieve(self, query: str) -> str:
        logger.info(f"[Search Process] Performing search for: \"{query}\"")
        try:
            results = await asyncio.wait_for(
                self.search.search_as_text(query),
                timeout=self.config.search_timeout_sec,
            )
        except asyncio.TimeoutError:
            results = search_error(f"Search request timed out after {self.config.search_timeout_sec}s.")
        logger.info(f"[Search Process] Search complete. Results: {preview(results)}")
        return results

    # -- state machine -------------------------------------------------------

    async def ingest(self, conversation_id: str, author: str, text: str) -> ConversationWindow:
        """Append the user turn in memory, schedule its durable write, return the window."""
        turn = Turn.user(author, text)
        window = await self.history.append(conversation_id, turn)
        self._persist_later(conversation_id, turn)
        return window

    async def respond(
        self,
        conversation_id: str,
        author: str,
        text: str,
        scope_id: Optional[str] = None,
    ) -> TurnResult:
        window = await self.ingest(conversation_id, author, text)
        return await self.complete(conversation_id, window, text, scope_id)

    async def complete(
        self,
        conversation_id: str,
        window: ConversationWindow,
        text: str,
        scope_id: Optional[str] = None,
    ) -> TurnResult:
        """Run generation/augmentation/moderation for a turn already ingested into ``window``."""
        history = window.turns[:-1]
        warnings = [window.load_warning] if window.load_warning else []
        template = self.config.triggered_prompt

        try:
            first = await self._generate(build(history, text, template), "initial")
            candidate, query = await self._augment(history, text, first)
        except GenerationFailed as exc:
            logger.error(f"Error generating response for {conversation_id}: {exc}")
            self.telemetry.append("turn_failed", {"conversation_id": conversation_id, "kind": exc.kind})
            return TurnResult(outcome=TurnOutcome.FAILED, text=GENERATION_APOLOGY, warnings=warnings)

        return await self._moderate_and_deliver(conversation_id, scope_id, candidate, query, warnings)

    async def _augment(self, history: Sequence[Turn], text: str, first: str) -> tuple[str, Optional[str]]:
        match = extract_search_directive(first)
        if not match:
            return first, None

        query = match.group(1).strip()
        logger.info(f"[Search Process] Detected search query: \"{query}\"")
        results = await self._retrieve(query)
        followup = build_followup(history, text, self.config.triggered_prompt, first, query, results)
        logger.info("[Search Process] Sending follow-up prompt to AI.")
        # Single round: a directive inside this answer is delivered as text, never searched.
        final = await self._generate(followup, "followup")
        self.telemetry.append("augmentation_round", {"query": query})
        return final, query

    async def _moderate_and_deliver(
        self,
        conversation_id: str,
        scope_id: Optional[str],
        candidate: str,
        query: Optional[str],
        warnings: list[str],
    ) -> TurnResult:
        await self.filters.ensure_loaded()
        if self.filters.contains_filtered_term(candidate, scope_id):
            logger.info(f"Final response for {conversation_id} filtered (scope {scope_id}).")
            self.telemetry.append("turn_suppressed", {"conversation_id": conversation_id, "scope_id": scope_id})
            return TurnResult(
                outcome=TurnOutcome.SUPPRESSED,
                text=WITHHELD_NOTICE,
                augmented=query is not None,
                search_query=query,
                warnings=warnings,
            )

        turn = Turn.assistant(self.config.bot_name, candidate)
        await self.history.append(conversation_id, turn)
        self._persist_later(conversation_id, turn)
        self.telemetry.append(
            "turn_delivered",
            {"conversation_id": conversation_id, "augmented": query is not None},
        )
        return TurnResult(
            outcome=TurnOutcome.DELIVERED,
            text=candidate,
            augmented=query is not None,
            search_query=query,
            warnings=warnings,
        )

    async def respond_to_image(
        self,
        conversation_id: str,
        window: ConversationWindow,
        text: str,
        image_prompt: str,
        image: Union[bytes, str],
        scope_id: Optional[str] = None,
    ) -> TurnResult:
        """Image turn: vision analysis feeds one generation call; directives are resolved inline."""
        history = window.turns[:-1]
        warnings = [window.load_warning] if window.load_warning else []

        try:
            analysis = await self._describe_image(image_prompt, image)
            # the annotation only lives in this prompt, not in the cached window
            combined = [*history, Turn.annotation(self.config.bot_name, analysis)]
            candidate = await self._generate(build(combined, text, self.config.triggered_prompt), "image")
        except GenerationFailed as exc:
            logger.error(f"Error processing image for {conversation_id}: {exc}")
            self.telemetry.append("turn_failed", {"conversation_id": conversation_id, "kind": exc.kind})
            return TurnResult(outcome=TurnOutcome.FAILED, text=IMAGE_APOLOGY, warnings=warnings)

        query = None
        match = extract_search_directive(candidate)
        if match:
            query = match.group(1).strip()
            logger.info(f"[Search Process - Image] AI requested search for: \"{query}\" after image analysis.")
            results = await self._retrieve(query)
            candidate = candidate.replace(match.group(0), f"(Search Result: {results})", 1)

        return await self._moderate_and_deliver(conversation_id, scope_id, candidate, query, warnings)

    async def compose_unprompted(self, channel_id: str) -> Optional[str]:
        """Unprompted channel message from the random-message prompt; None when nothing is sent."""
        try:
            text = await self._generate(self.config.random_prompt, "unprompted")
        except GenerationFailed as exc:
            logger.error(f"Error generating random AI message for channel {channel_id}: {exc}")
            return None

        await self.filters.ensure_loaded()
        if self.filters.contains_filtered_term(text, None):
            logger.info(f"Random message for channel {channel_id} filtered.")
            return None

        turn = Turn.assistant(self.config.bot_name, text)
        await self.history.append(channel_id, turn)
        self._persist_later(channel_id, turn)
        return text
