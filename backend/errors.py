"""Error kinds raised inside the conversation core.

None of these should reach the hosting process: call sites convert them
into a logged warning, a degraded result, or a fixed reply.
"""


class GatewayError(Exception):
    """Base class for core failures."""


class StoreUnavailable(GatewayError):
    """Durable store unreachable; callers fall back to in-memory state."""


class GenerationFailed(GatewayError):
    """Generation or vision endpoint failed or timed out; the turn aborts."""

    def __init__(self, kind: str, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind}: {detail}" if detail else kind)


class RetrievalFailed(GatewayError):
    """Retrieval endpoint failed; rendered in-band as an error marker."""
