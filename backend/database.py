from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def make_engine(url: str):
    # SQLite by default (production can point DATABASE_URL at PostgreSQL).
    if "sqlite" not in url:
        return create_engine(url, pool_pre_ping=True)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise each thread sees its own empty DB.
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def make_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


def init_db(bind) -> None:
    """Create the messages/filters tables if they are missing."""
    import models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=bind)
