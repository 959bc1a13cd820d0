"""
draftgraph Database Base — Declarative base and named engines.

The graph store normally runs on a single engine ("graph"); the registry
keeps that engine and its session factory together so that shutdown and
tests can dispose them by name.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    """Declarative base shared by the graph tables."""
    pass


class EngineRegistry:
    """
    Engines and session factories keyed by name.

    Registering a name that is already taken disposes the old engine first.

    Usage:
        registry = EngineRegistry()
        registry.register("graph", "sqlite:///graph.db")
        session = registry.get_session("graph")
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[Engine, sessionmaker]] = {}

    def register(
        self,
        name: str,
        url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
        pool_pre_ping: bool = True,
        **kwargs: Any,
    ) -> Engine:
        options: Dict[str, Any] = dict(kwargs)
        # SQLite uses a single-connection pool that rejects sizing options
        if make_url(url).get_backend_name() != "sqlite":
            options.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=pool_pre_ping,
            )
        engine = create_engine(url, **options)
        self.dispose(name)
        self._entries[name] = (engine, sessionmaker(bind=engine))
        return engine

    def _lookup(self, name: str) -> Tuple[Engine, sessionmaker]:
        try:
            return self._entries[name]
        except KeyError:
            known = ", ".join(sorted(self._entries)) or "none"
            raise KeyError(f"No graph engine named '{name}' (registered: {known})") from None

    def get(self, name: str) -> Engine:
        return self._lookup(name)[0]

    def get_session(self, name: str) -> Session:
        return self._lookup(name)[1]()

    def dispose(self, name: Optional[str] = None) -> None:
        """Dispose ``name``, or every engine when no name is given."""
        for key in ([name] if name else list(self._entries)):
            entry = self._entries.pop(key, None)
            if entry is not None:
                entry[0].dispose()

    @property
    def registered_names(self) -> List[str]:
        return sorted(self._entries)


engine_registry = EngineRegistry()
