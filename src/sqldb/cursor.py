"""
Scoped use of a cached compiled statement.

A StatementBorrow acquires a handle from the StatementCache when it is
created. However the borrow ends (normal exit, early return, exception) the
statement's bindings are cleared, it is reset and the reference is released,
so the next acquire of the same SQL starts from a clean slate.
"""
import logging
import time
from collections.abc import Iterable
from functools import wraps
from typing import Any, Self

from sqldb.cache import StatementCache
from sqldb.types import Row, Value, decode_value

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging the statement, its arguments and timing."""
    @wraps(func)
    def wrapper(self, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{self.sql}\nargs: {self.parameters}')
        try:
            return func(self, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{self.sql}\nargs: {self.parameters}')
            raise
        finally:
            logger.debug(f'Query time: {time.time() - start:.4f}s')
    return wrapper


class StatementBorrow:
    """Borrowed compiled statement, released on every exit path.

    Examples
        with StatementBorrow(cache, sql) as stmt:
            stmt.bind_all(params)
            rows = stmt.fetchall()
    """

    def __init__(self, cache: StatementCache, sql: str) -> None:
        self.sql = sql
        self.parameters: list[Value] = []
        self._handle = cache.acquire(sql)
        try:
            self._handle.claim()
        except Exception:
            self._handle.release()
            raise
        self._released = False

    @property
    def statement(self):
        return self._handle.statement

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.release()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self.statement.clear_bindings()
            self.statement.reset()
        finally:
            self._handle.unclaim()
            self._handle.release()

    def bind_all(self, params: Iterable[Any]) -> Self:
        self.parameters = [Value.of(p) for p in params]
        for index, value in enumerate(self.parameters, start=1):
            self.statement.bind(index, value)
        return self

    def step(self) -> tuple | None:
        return self.statement.step()

    @dumpsql
    def fetchall(self) -> list[Row]:
        """Step to completion, decoding each tuple into a Row."""
        rows = []
        while (raw := self.statement.step()) is not None:
            names = self.statement.column_names
            rows.append(Row(dict(zip(names, (decode_value(v) for v in raw)))))
        logger.debug(f'Query returned {len(rows)} rows')
        return rows

    @dumpsql
    def execute(self) -> int:
        """Step to completion and return the affected row count."""
        while self.statement.step() is not None:
            pass
        return self.statement.rowcount
