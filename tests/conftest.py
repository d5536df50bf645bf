import pytest

from bot_configs import GatewayConfig
from database import init_db, make_engine, make_session_factory
from durable_store import DurableStore
from filter_cache import FilterCache
from history_cache import HistoryCache
from orchestrator import ResponseOrchestrator


class StubLLM:
    """Scripted generation endpoint; records every prompt it receives."""

    def __init__(self, responses=None, vision_response="a cat on a sofa"):
        self.responses = list(responses or [])
        self.vision_response = vision_response
        self.prompts: list[str] = []
        self.vision_calls: list[tuple] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            return "__LLM_ERR__exhausted|no scripted response left"
        return self.responses.pop(0)

    async def generate_vision(self, prompt, image) -> str:
        self.vision_calls.append((prompt, image))
        return self.vision_response


class StubSearch:
    def __init__(self, result="1. Tokyo weather: https://example.com - Sunny, 22C"):
        self.result = result
        self.queries: list[str] = []

    async def search_as_text(self, query: str) -> str:
        self.queries.append(query)
        return self.result


class BrokenStore:
    """Durable store whose every operation fails like an unreachable database."""

    def __getattr__(self, name):
        from errors import StoreUnavailable

        def _fail(*args, **kwargs):
            raise StoreUnavailable(f"{name} unavailable")

        return _fail


@pytest.fixture
def config():
    return GatewayConfig(
        database_url="sqlite://",
        window_size=5,
        bot_name="Miku",
        telemetry_enabled=False,
        triggered_prompt="Respond to the user message based on the conversation history.",
    )


@pytest.fixture
def store():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield DurableStore(make_session_factory(engine))
    engine.dispose()


@pytest.fixture
def make_orchestrator(store, config):
    def _make(llm=None, search=None, filters=None, history=None, cfg=None):
        cfg = cfg or config
        return ResponseOrchestrator(
            store=store,
            history=history if history is not None else HistoryCache(store, cfg.window_size),
            filters=filters if filters is not None else FilterCache(store),
            llm=llm or StubLLM(),
            search=search or StubSearch(),
            config=cfg,
        )

    return _make
