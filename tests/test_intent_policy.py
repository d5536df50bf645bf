from intent import (
    MessageAction,
    classify_message,
    conversation_id_for,
    resolve_image_prompt,
    search_command_query,
)
from policy import add_reply, can_manage_filters, list_reply, permission_denied_message, remove_reply
from schemas import Attachment, FilterAddResult, FilterRemoveResult, IncomingMessage

IMAGE = Attachment(filename="cat.png", content_type="image/png", data_base64="AAAA")


def _msg(**kw):
    data = {"author_id": "u1", "author_name": "alice", "channel_id": "ch1", "guild_id": "g1"}
    data.update(kw)
    return IncomingMessage(**data)


def test_classification():
    assert classify_message(_msg(author_is_bot=True, is_direct=True)) == MessageAction.IGNORE
    assert classify_message(_msg(is_direct=True, guild_id=None)) == MessageAction.DIRECT_REPLY
    assert classify_message(_msg(mentions_bot=True, attachments=[IMAGE])) == MessageAction.IMAGE_ANALYSIS
    assert classify_message(_msg(content="!analyze colors?", attachments=[IMAGE])) == MessageAction.IMAGE_ANALYSIS
    assert classify_message(_msg(mentions_bot=True, content="<@9> hi")) == MessageAction.MENTION_REPLY
    assert classify_message(_msg(content="!search cats")) == MessageAction.SEARCH_COMMAND
    assert classify_message(_msg(content="just chatting")) == MessageAction.RECORD_ONLY
    # an image without mention or command is only recorded
    assert classify_message(_msg(content="look", attachments=[IMAGE])) == MessageAction.RECORD_ONLY


def test_conversation_ids():
    assert conversation_id_for(_msg(is_direct=True)) == "u1"
    assert conversation_id_for(_msg()) == "ch1"


def test_search_command_query():
    assert search_command_query("!search  cats and dogs") == "cats and dogs"
    assert search_command_query("!search") == ""
    assert search_command_query("!searching") is None
    assert search_command_query("hello") is None


def test_resolve_image_prompt():
    assert resolve_image_prompt(_msg(content="!analyze what colors?"), "Describe.") == ("what colors?", False)
    assert resolve_image_prompt(_msg(content="!analyze"), "Describe.") == ("Describe.", True)
    mention = _msg(content="<@9> is this a cat?", bot_user_id="9")
    assert resolve_image_prompt(mention, "Describe.") == ("is this a cat?", False)
    assert resolve_image_prompt(_msg(content="<@!9>", bot_user_id="9"), "Describe.") == ("Describe.", True)


def test_can_manage_filters():
    assert can_manage_filters("owner", None, False, "owner")
    assert can_manage_filters("owner", "someone", True, "owner")
    assert can_manage_filters("guildowner", "guildowner", True, "owner")
    assert not can_manage_filters("guildowner", "guildowner", False, "owner")
    assert not can_manage_filters("random", "guildowner", True, "owner")
    assert not can_manage_filters("random", None, False, None)


def test_replies():
    assert "this server" in add_reply(FilterAddResult.ADDED, "bad", "g1")
    assert "already" in add_reply(FilterAddResult.ALREADY_PRESENT, "bad", None)
    assert "direct messages" in add_reply(FilterAddResult.ALREADY_PRESENT, "bad", None)
    assert "not found" in remove_reply(FilterRemoveResult.NOT_FOUND, "bad", "g1")
    assert list_reply([], "g1") == "There are no filtered words for this server."
    assert list_reply(["a", "b"], None) == "Filtered words for direct messages: a, b"
    assert permission_denied_message(True) != permission_denied_message(False)
