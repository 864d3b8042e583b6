from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from importlib import import_module
from typing import Any


@dataclass
class PostgresPool:
    """Lazily opened psycopg connection pool shared by the store adapters.

    Every store operation checks out its own connection, so a transaction
    opened by one request never spans statements of another. Connections
    get the pgvector type adapters registered when they are created.
    """

    dsn: str
    max_size: int = 10
    vector_types: bool = True
    pool: Any | None = None  # injected pool (tests) or opened on first use
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _configure(self, conn: Any) -> None:
        import_module("pgvector.psycopg").register_vector(conn)

    def get(self) -> Any:
        if self.pool is None:
            with self._lock:
                if self.pool is None:
                    self.pool = import_module("psycopg_pool").ConnectionPool(
                        self.dsn,
                        min_size=1,
                        max_size=self.max_size,
                        kwargs={"autocommit": True},
                        configure=self._configure if self.vector_types else None,
                        open=True,
                    )
        return self.pool

    @contextmanager
    def connection(self) -> Iterator[Any]:
        with self.get().connection() as conn:
            yield conn

    def close(self) -> None:
        if self.pool is not None:
            self.pool.close()
            self.pool = None
