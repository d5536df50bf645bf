"""Render a conversation window plus the current turn into a single text prompt."""

from typing import Iterable, Optional

from bot_configs import ANNOTATION_LABEL, ASSISTANT_LABEL, USER_LABEL
from schemas import SpeakerRole, Turn

ROLE_LABELS = {
    SpeakerRole.USER: USER_LABEL,
    SpeakerRole.ASSISTANT: ASSISTANT_LABEL,
    SpeakerRole.ASSISTANT_ANNOTATION: ANNOTATION_LABEL,
}

INITIAL_RESPONSE_LABEL = f"{ASSISTANT_LABEL} (Initial Response)"
FINAL_RESPONSE_LABEL = f"{ASSISTANT_LABEL} (Final Response)"


def render_turn(turn: Turn) -> str:
    return f"{ROLE_LABELS[turn.speaker_role]}: {turn.text}"


def format_history(window: Iterable[Turn]) -> list[str]:
    return [render_turn(t) for t in window]


def format_search_block(query: str, results: str) -> str:
    return (
        f"--- SEARCH RESULTS FOR \"{query}\" ---\n"
        f"{results}\n"
        "--- END SEARCH RESULTS ---"
    )


def build(window: Iterable[Turn], current_turn_text: str, system_prompt_template: Optional[str]) -> str:
    """Template, every window turn in order, the current user turn, then an empty assistant cue.

    Never drops turns; window sizing belongs to the history cache.
    """
    lines = [system_prompt_template] if system_prompt_template else []
    lines.extend(format_history(window))
    lines.append(f"{USER_LABEL}: {current_turn_text}")
    lines.append(f"{ASSISTANT_LABEL}:")
    return "\n".join(lines)


def build_followup(
    window: Iterable[Turn],
    current_turn_text: str,
    system_prompt_template: Optional[str],
    initial_response: str,
    query: str,
    results: str,
) -> str:
    """Second-round prompt: conversation context, first answer, delimited retrieval block."""
    lines = [system_prompt_template] if system_prompt_template else []
    lines.extend(format_history(window))
    lines.append(f"{USER_LABEL}: {current_turn_text}")
    lines.append(f"{INITIAL_RESPONSE_LABEL}: {initial_response}")
    lines.append("")
    lines.append(format_search_block(query, results))
    lines.append("")
    lines.append(f"{FINAL_RESPONSE_LABEL}:")
    return "\n".join(lines)
