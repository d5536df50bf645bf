from sqlalchemy import Column, Integer, String, Text, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from database import Base


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(String(64), nullable=False, index=True)
    author = Column(String(150), nullable=False)
    content = Column(Text, nullable=False)
    role = Column(String(32), nullable=False)  # user | assistant | assistant_annotation
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class FilterTerm(Base):
    __tablename__ = "filters"
    __table_args__ = (UniqueConstraint("scope_id", "term", name="uq_filters_scope_term"),)

    id = Column(Integer, primary_key=True, index=True)
    # "" is the global (DM) scope; NULL would slip past the unique constraint.
    scope_id = Column(String(64), nullable=False, default="", index=True)
    term = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
