"""
draftgraph Database Session Management.

Single entry point for graph DB initialisation plus a context manager for
unit-of-work access. Engines live in the global EngineRegistry; every
SqlGraphStore opened from a URL registers its own name there.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.orm import Session, sessionmaker

from draftgraph.db.base import Base, engine_registry

GRAPH_ENGINE_NAME = "graph"


def init_graph_db(
    db_url: str,
    create_tables: bool = True,
    name: str = GRAPH_ENGINE_NAME,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    pool_pre_ping: bool = True,
) -> sessionmaker:
    """
    Register the graph engine and return a session factory bound to it.

    Args:
        db_url:        SQLAlchemy URL (sqlite:///graph.db, postgresql://...).
        create_tables: Run Base.metadata.create_all() (idempotent).
        name:          Engine name in the global EngineRegistry.

    Returns:
        A plain ``sessionmaker`` bound to the initialised engine.
    """
    # Importing the models registers their tables on Base.metadata
    from draftgraph.db import graph_models  # noqa: F401

    engine = engine_registry.register(
        name, db_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
    )

    if create_tables:
        Base.metadata.create_all(engine)

    return sessionmaker(bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for sessions with auto-commit/rollback.

    Usage:
        with session_scope(factory) as session:
            node = session.get(GraphNode, node_id)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_graph_db(name: Optional[str] = None) -> None:
    """Dispose one graph engine, or every registered engine when ``name`` is None."""
    engine_registry.dispose(name)
