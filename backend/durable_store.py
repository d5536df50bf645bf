"""Transcript log and filter word-list persistence.

Methods block on the database; async callers go through ``asyncio.to_thread``.
Every SQLAlchemy failure surfaces as ``StoreUnavailable``.
"""

from datetime import timezone
from typing import Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import StoreUnavailable
from models import FilterTerm, Message
from schemas import FilterEntry, SpeakerRole, Turn

GLOBAL_SCOPE = ""


def scope_key(scope_id: Optional[str]) -> str:
    return GLOBAL_SCOPE if scope_id is None else str(scope_id)


def scope_from_key(key: str) -> Optional[str]:
    return None if key == GLOBAL_SCOPE else key


def _turn_from_row(row: Message) -> Turn:
    created = row.created_at
    if created is not None and created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    try:
        role = SpeakerRole(row.role)
    except ValueError:
        role = SpeakerRole.USER
    data = {
        "speaker_role": role,
        "author_label": row.author or "",
        "text": row.content or "",
    }
    if created is not None:
        data["created_at"] = created
    return Turn(**data)


class DurableStore:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    def append_turn(self, conversation_id: str, turn: Turn) -> None:
        try:
            with self.session_factory() as db:
                db.add(
                    Message(
                        conversation_id=conversation_id,
                        author=turn.author_label,
                        content=turn.text,
                        role=turn.speaker_role.value,
                        created_at=turn.created_at,
                    )
                )
                db.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"append_turn failed for {conversation_id}: {exc}") from exc

    def load_recent(self, conversation_id: str, limit: int) -> list[Turn]:
        """Most recent ``limit`` turns, oldest first."""
        try:
            with self.session_factory() as db:
                rows = (
                    db.query(Message)
                    .filter(Message.conversation_id == conversation_id)
                    .order_by(Message.created_at.desc(), Message.id.desc())
                    .limit(limit)
                    .all()
                )
                turns = [_turn_from_row(r) for r in rows]
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"load_recent failed for {conversation_id}: {exc}") from exc
        turns.reverse()
        return turns

    def count_turns(self, conversation_id: str) -> int:
        try:
            with self.session_factory() as db:
                return db.query(Message).filter(Message.conversation_id == conversation_id).count()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"count_turns failed for {conversation_id}: {exc}") from exc

    def load_all_filters(self) -> list[FilterEntry]:
        try:
            with self.session_factory() as db:
                rows = db.query(FilterTerm.scope_id, FilterTerm.term).all()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"load_all_filters failed: {exc}") from exc
        return [FilterEntry(scope_id=scope_from_key(s), term=t) for s, t in rows]

    def load_filters(self, scope_id: Optional[str]) -> list[str]:
        try:
            with self.session_factory() as db:
                rows = (
                    db.query(FilterTerm.term)
                    .filter(FilterTerm.scope_id == scope_key(scope_id))
                    .order_by(FilterTerm.id.asc())
                    .all()
                )
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"load_filters failed for scope {scope_id}: {exc}") from exc
        return [t for (t,) in rows]

    def insert_filter(self, scope_id: Optional[str], term: str) -> bool:
        """Idempotent insert; False when the pair already exists."""
        key = scope_key(scope_id)
        try:
            with self.session_factory() as db:
                exists = (
                    db.query(FilterTerm.id)
                    .filter(FilterTerm.scope_id == key, FilterTerm.term == term)
                    .first()
                )
                if exists:
                    return False
                db.add(FilterTerm(scope_id=key, term=term))
                try:
                    db.commit()
                except IntegrityError:
                    # lost a race against another writer for the same pair
                    db.rollback()
                    logger.debug(f"Filter '{term}' for scope {scope_id} inserted concurrently")
                    return False
                return True
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"insert_filter failed for scope {scope_id}: {exc}") from exc

    def delete_filter(self, scope_id: Optional[str], term: str) -> bool:
        """True when a row was actually deleted."""
        try:
            with self.session_factory() as db:
                deleted = (
                    db.query(FilterTerm)
                    .filter(FilterTerm.scope_id == scope_key(scope_id), FilterTerm.term == term)
                    .delete(synchronize_session=False)
                )
                db.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"delete_filter failed for scope {scope_id}: {exc}") from exc
        return deleted > 0
