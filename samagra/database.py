from fastapi import Request
from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .db import models  # noqa: F401  registers tables on SQLModel.metadata


def build_engine(db_url: str, echo: bool = False) -> Engine:
    """Create the engine for ``db_url``; the caller owns its lifecycle."""
    engine_kwargs = {}

    if db_url.startswith("sqlite"):
        # SQLite specific connect args
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False}
        })
        if ":memory:" in db_url or db_url in ("sqlite://", "sqlite:///"):
            # one shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
    else:
        # Better resiliency for managed Postgres
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "pool_size": 5,
            "max_overflow": 10,
        })

    return create_engine(db_url, echo=echo, **engine_kwargs)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


def check_database(engine: Engine) -> bool:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return True


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session
