"""Database client and connection management."""

import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from castolin.config import get_settings

logger = logging.getLogger(__name__)

DB_NAME = "PostgreSQL"

_engine = None
_session_factory = None


@dataclass
class QueryStats:
    """Track query statistics for a database."""
    total_queries: int = 0
    total_time_ms: float = 0.0
    slow_queries: int = 0
    by_operation: dict = field(default_factory=lambda: defaultdict(lambda: {"count": 0, "total_ms": 0.0}))
    slowest_query_ms: float = 0.0
    slowest_query_stmt: str = ""
    slow_threshold_ms: float = 100.0

    def record(self, op_type: str, elapsed_ms: float, statement: str):
        """Record a query execution."""
        self.total_queries += 1
        self.total_time_ms += elapsed_ms
        self.by_operation[op_type]["count"] += 1
        self.by_operation[op_type]["total_ms"] += elapsed_ms
        if elapsed_ms > self.slow_threshold_ms:
            self.slow_queries += 1
        if elapsed_ms > self.slowest_query_ms:
            self.slowest_query_ms = elapsed_ms
            self.slowest_query_stmt = statement[:100] if len(statement) > 100 else statement

    @property
    def avg_time_ms(self) -> float:
        """Average query time in milliseconds."""
        return self.total_time_ms / self.total_queries if self.total_queries > 0 else 0.0

    def to_dict(self) -> dict:
        """Summarize as a JSON-serializable dict."""
        return {
            "total_queries": self.total_queries,
            "total_time_ms": round(self.total_time_ms, 2),
            "avg_time_ms": round(self.avg_time_ms, 2),
            "slow_queries": self.slow_queries,
            "slowest_query_ms": round(self.slowest_query_ms, 2),
            "slowest_query": self.slowest_query_stmt,
            "by_operation": {
                op: {
                    "count": data["count"],
                    "total_ms": round(data["total_ms"], 2),
                    "avg_ms": round(data["total_ms"] / data["count"], 2) if data["count"] > 0 else 0,
                }
                for op, data in self.by_operation.items()
            },
        }


_query_stats: dict[str, QueryStats] = {}


def get_query_stats(db_name: str = DB_NAME) -> QueryStats:
    """Get query statistics for a database."""
    if db_name not in _query_stats:
        _query_stats[db_name] = QueryStats(slow_threshold_ms=get_settings().slow_query_threshold_ms)
    return _query_stats[db_name]


def _get_operation_type(statement: str) -> str:
    """Determine the operation type from a SQL statement."""
    stmt_upper = statement.strip().upper()
    for op in ("SELECT", "INSERT", "UPDATE", "DELETE"):
        if stmt_upper.startswith(op):
            return op
    return "QUERY"


def _setup_query_logging(engine, db_name: str):
    """Set up query logging with execution time for an engine."""
    sync_engine = engine.sync_engine
    stats = get_query_stats(db_name)

    @event.listens_for(sync_engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(sync_engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_times = conn.info.get("query_start_time", [])
        if not start_times:
            return
        elapsed = (time.perf_counter() - start_times.pop()) * 1000
        stmt_display = " ".join(statement.split())
        if len(stmt_display) > 200:
            stmt_display = stmt_display[:200] + "..."
        op_type = _get_operation_type(statement)

        stats.record(op_type, elapsed, stmt_display)

        if elapsed > stats.slow_threshold_ms:
            logger.warning(
                "[%s] [%s] SLOW QUERY %.2fms (threshold: %dms): %s | params=%s",
                db_name,
                op_type,
                elapsed,
                stats.slow_threshold_ms,
                stmt_display,
                parameters,
            )
        else:
            logger.debug(
                "[%s] [%s] %.2fms: %s | params=%s",
                db_name,
                op_type,
                elapsed,
                stmt_display,
                parameters,
            )


def get_engine():
    """Get or create the PostgreSQL engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.pg_dsn,
            echo=settings.log_level == "DEBUG",
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
        _setup_query_logging(_engine, DB_NAME)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the PostgreSQL session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def get_pg_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a PostgreSQL session that commits on success and rolls back on error."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_connections():
    """Close all database connections."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
