"""Classify an incoming platform message into the action the gateway should take.

Depends only on text_utils and schemas.
"""

from enum import Enum
from typing import Optional

from schemas import Attachment, IncomingMessage
from text_utils import strip_command_prefix, strip_mention

ANALYZE_PREFIX = "!analyze"
SEARCH_PREFIX = "!search"


class MessageAction(str, Enum):
    IGNORE = "ignore"
    DIRECT_REPLY = "direct_reply"
    IMAGE_ANALYSIS = "image_analysis"
    MENTION_REPLY = "mention_reply"
    SEARCH_COMMAND = "search_command"
    RECORD_ONLY = "record_only"


def conversation_id_for(message: IncomingMessage) -> str:
    # DMs are keyed by the author, guild channels by the channel
    return message.author_id if message.is_direct else message.channel_id


def first_image(message: IncomingMessage) -> Optional[Attachment]:
    for attachment in message.attachments:
        if (attachment.content_type or "").lower().startswith("image/"):
            return attachment
    return None


def is_analyze_command(content: str) -> bool:
    return (content or "").lower().startswith(ANALYZE_PREFIX)


def search_command_query(content: str) -> Optional[str]:
    """Query after ``!search``; "" for a bare command, None when not a search command."""
    raw = (content or "").strip()
    if raw.lower() == SEARCH_PREFIX:
        return ""
    return strip_command_prefix(raw, SEARCH_PREFIX + " ")


def classify_message(message: IncomingMessage) -> MessageAction:
    if message.author_is_bot:
        return MessageAction.IGNORE
    if message.is_direct:
        return MessageAction.DIRECT_REPLY
    if first_image(message) is not None and (message.mentions_bot or is_analyze_command(message.content)):
        return MessageAction.IMAGE_ANALYSIS
    if message.mentions_bot:
        return MessageAction.MENTION_REPLY
    if search_command_query(message.content) is not None:
        return MessageAction.SEARCH_COMMAND
    return MessageAction.RECORD_ONLY


def resolve_image_prompt(message: IncomingMessage, default_prompt: str) -> tuple[str, bool]:
    """(prompt, used_default) for an image turn."""
    if is_analyze_command(message.content):
        prompt = strip_command_prefix(message.content, ANALYZE_PREFIX) or ""
    else:
        prompt = strip_mention(message.content, message.bot_user_id)
    if not prompt:
        return default_prompt, True
    return prompt, False
