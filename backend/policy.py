"""Who may manage moderation filters, and the replies for each filter command outcome."""

from typing import Optional

from schemas import FilterAddResult, FilterRemoveResult

PERMISSION_DENIED = "You do not have permission to use this command."
DM_PERMISSION_DENIED = (
    "This command can only be used by the bot owner in DMs, "
    "or by the bot owner/server owner in a server."
)


def can_manage_filters(
    user_id: str,
    guild_owner_id: Optional[str],
    in_guild: bool,
    owner_bypass_id: Optional[str],
) -> bool:
    """Bot owner always; guild owner inside their guild; nobody else."""
    if owner_bypass_id and user_id == owner_bypass_id:
        return True
    if in_guild:
        return bool(guild_owner_id) and user_id == guild_owner_id
    return False


def permission_denied_message(in_guild: bool) -> str:
    return PERMISSION_DENIED if in_guild else DM_PERMISSION_DENIED


def scope_label(scope_id: Optional[str]) -> str:
    return "this server" if scope_id else "direct messages"


def add_reply(result: FilterAddResult, term: str, scope_id: Optional[str]) -> str:
    where = scope_label(scope_id)
    if result == FilterAddResult.ADDED:
        return f"Added \"{term}\" to the filter list for {where}."
    return f"\"{term}\" is already in the filter list for {where}."


def remove_reply(result: FilterRemoveResult, term: str, scope_id: Optional[str]) -> str:
    where = scope_label(scope_id)
    if result == FilterRemoveResult.REMOVED:
        return f"Removed \"{term}\" from the filter list for {where}."
    return f"\"{term}\" was not found in the filter list for {where}."


def list_reply(terms: list[str], scope_id: Optional[str]) -> str:
    where = scope_label(scope_id)
    if terms:
        return f"Filtered words for {where}: {', '.join(terms)}"
    return f"There are no filtered words for {where}."
