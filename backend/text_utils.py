"""Low-level text helpers used across the orchestration core.

No dependency on schemas, models, or any other project module except bot_configs constants.
"""

import re
from typing import Optional

from bot_configs import EMPTY_THOUGHT_FALLBACK, THOUGHT_CLOSE, THOUGHT_OPEN

_THOUGHT_RE = re.compile(rf"{re.escape(THOUGHT_OPEN)}.*?{re.escape(THOUGHT_CLOSE)}", re.DOTALL)
SEARCH_DIRECTIVE_RE = re.compile(r"\[SEARCH:(.*?)\]", re.IGNORECASE | re.DOTALL)


def normalize_whitespace(text: str) -> str:
    return " ".join((text or "").split()).strip()


def strip_thoughts(text: Optional[str]) -> str:
    """Drop <think>...</think> blocks, trim, and never hand back an empty reply."""
    if text is None or not isinstance(text, str):
        return EMPTY_THOUGHT_FALLBACK
    cleaned = _THOUGHT_RE.sub("", text).strip()
    if not cleaned:
        return EMPTY_THOUGHT_FALLBACK
    return cleaned


def extract_search_directive(text: str) -> Optional[re.Match]:
    """First [SEARCH: query] directive with a non-empty query, if any."""
    for match in SEARCH_DIRECTIVE_RE.finditer(text or ""):
        if match.group(1).strip():
            return match
    return None


def extract_search_query(text: str) -> Optional[str]:
    match = extract_search_directive(text)
    return match.group(1).strip() if match else None


def truncate(text: str, limit: int, marker: str = "...") -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - len(marker))] + marker


def preview(text: Optional[str], limit: int = 100) -> str:
    if not text:
        return "No results"
    return text[:limit] + "..." if len(text) > limit else text


def strip_mention(text: str, user_id: Optional[str]) -> str:
    """Remove <@id> / <@!id> mentions of ``user_id``."""
    if not user_id:
        return (text or "").strip()
    return re.sub(rf"<@!?{re.escape(str(user_id))}>", "", text or "").strip()


def strip_command_prefix(text: str, prefix: str) -> Optional[str]:
    """Remainder after ``prefix`` (case-insensitive), or None if absent."""
    raw = text or ""
    if raw.lower().startswith(prefix.lower()):
        return raw[len(prefix):].strip()
    return None
