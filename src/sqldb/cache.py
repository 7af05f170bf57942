"""
Compiled-statement cache.

The index is a cachetools LRUCache from SQL text to a reference-counted
StatementHandle. The index owns one reference per entry and every borrower
owns one more; a handle is finalized only when its last reference drops, so
evicting an entry never invalidates a handle that is still borrowed.
"""
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Self

import cachetools
from sqldb.engine import CompiledStatement
from sqldb.exceptions import ExecutionError

logger = logging.getLogger(__name__)


class StatementHandle:
    """Shared ownership of a CompiledStatement.

    Created with one reference. Finalizes the statement when the count
    reaches zero.
    """

    def __init__(self, statement: CompiledStatement) -> None:
        self.statement = statement
        self._refs = 1
        self._claimed = False
        self._lock = threading.Lock()

    @property
    def sql(self) -> str:
        return self.statement.sql

    @property
    def refcount(self) -> int:
        return self._refs

    @property
    def finalized(self) -> bool:
        return self.statement.finalized

    def retain(self) -> Self:
        with self._lock:
            if self._refs <= 0:
                raise RuntimeError(f'Handle already released: {self.sql}')
            self._refs += 1
        return self

    def release(self) -> None:
        with self._lock:
            if self._refs <= 0:
                raise RuntimeError(f'Handle released too many times: {self.sql}')
            self._refs -= 1
            last = self._refs == 0
        if last:
            self.statement.finalize()

    def claim(self) -> None:
        """Mark the handle as in use by a single borrower."""
        with self._lock:
            if self._claimed:
                raise ExecutionError('borrow', f'statement is already borrowed: {self.sql}')
            self._claimed = True

    def unclaim(self) -> None:
        with self._lock:
            self._claimed = False

    def __repr__(self) -> str:
        return f'StatementHandle(sql={self.sql!r}, refs={self._refs})'


class _StatementIndex(cachetools.LRUCache):
    """LRUCache that drops the index reference of whatever it evicts."""

    def __init__(self, maxsize: int, on_evict: Callable[[str, StatementHandle], None]) -> None:
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self):
        sql, handle = super().popitem()
        self._on_evict(sql, handle)
        return sql, handle


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0


class StatementCache:
    """Size-bounded LRU index from SQL text to compiled statements.

    Args:
        compiler: compiles SQL text, raising PrepareError on failure
        capacity: maximum number of indexed statements
        lock: lock shared with the owning connection
    """

    def __init__(self, compiler: Callable[[str], CompiledStatement], capacity: int = 100,
                 lock: 'threading.RLock | None' = None) -> None:
        if capacity < 1:
            raise ValueError('capacity must be at least 1')
        self._compiler = compiler
        self._lock = lock or threading.RLock()
        self._index = _StatementIndex(capacity, self._evicted)
        self.capacity = capacity
        self.stats = CacheStats()

    def _evicted(self, sql: str, handle: StatementHandle) -> None:
        self.stats.evictions += 1
        logger.debug(f'Evicted statement (refs before release: {handle.refcount}): {sql}')
        handle.release()

    def acquire(self, sql: str) -> StatementHandle:
        """Return a new reference to the compiled statement for `sql`.

        The caller owns the returned reference and must release it.

        Raises
            PrepareError: if the SQL does not compile; the index is unchanged
        """
        with self._lock:
            handle = self._index.get(sql)
            if handle is not None:
                self.stats.hits += 1
                logger.debug(f'Statement cache hit: {sql}')
                return handle.retain()

            self.stats.misses += 1
            logger.debug(f'Statement cache miss: {sql}')
            handle = StatementHandle(self._compiler(sql))
            self._index[sql] = handle
            return handle.retain()

    def __contains__(self, sql: str) -> bool:
        return sql in self._index

    def __len__(self) -> int:
        return len(self._index)

    def clear(self) -> None:
        """Drop every index entry; borrowed handles survive until released."""
        with self._lock:
            while self._index:
                self._index.popitem()
        logger.debug('Cleared statement cache')
