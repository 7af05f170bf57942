"""
Database facade.

This module provides the primary interfaces for using a database:
1. The `connect()` function for opening a database
2. The `Database` class that owns the connection, the statement cache and
   the table definitions

Every operation holds the connection lock for its full duration, so SQL
issued through one Database is serialized whatever the number of caller
threads.
"""
import logging
import threading
import weakref
from collections.abc import Iterable, Mapping
from typing import Any, Self, TypeVar

from sqldb.cache import StatementCache
from sqldb.cursor import StatementBorrow
from sqldb.engine import SqliteEngine
from sqldb.exceptions import SchemaError
from sqldb.options import DatabaseOptions, load_options
from sqldb.orm import get_mapping, row_to_struct, struct_to_row
from sqldb.query import Condition, QueryOptions, build_delete, build_insert
from sqldb.query import build_select, build_update
from sqldb.table import Table
from sqldb.transaction import Transaction
from sqldb.types import Row

__all__ = ['Database', 'connect']

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Database:
    """An open database: connection, statement cache and table registry.

    Supports the context manager protocol; leaving the block closes the
    connection.
    """

    def __init__(self, options: DatabaseOptions) -> None:
        self.options = options
        self.lock = threading.RLock()
        self.engine = SqliteEngine.open(options)
        self.statement_cache = StatementCache(self.engine.compile,
                                              options.statement_cache_size, self.lock)
        self._tables: dict[str, Table] = {}
        self._active_transaction: weakref.ref | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self.engine.closed

    def close(self) -> None:
        """Roll back any open guard, drop cached statements, close the connection.
        """
        with self.lock:
            if self.engine.closed:
                return
            tx = self.active_transaction
            if tx is not None:
                tx.close()
            self.statement_cache.clear()
            self.engine.close()

    # Schema

    def define_table(self, name: str) -> Table:
        """Start defining a new table.

        Raises
            SchemaError: if a table with this name is already defined
        """
        with self.lock:
            if name in self._tables:
                raise SchemaError(f'Table already defined: {name}')
            table = Table(self, name)
            self._tables[name] = table
            return table

    def get_table(self, name: str) -> Table:
        """Retrieve a table defined earlier.

        Raises
            SchemaError: if the table was never defined
        """
        with self.lock:
            try:
                return self._tables[name]
            except KeyError:
                raise SchemaError(f'Table not defined: {name}') from None

    @property
    def tables(self) -> list[str]:
        with self.lock:
            return list(self._tables)

    # Execution

    def execute_immediate(self, sql: str) -> None:
        with self.lock:
            self.engine.execute_immediate(sql)

    def _execute(self, sql: str, params: Iterable[Any]) -> int:
        with self.lock, StatementBorrow(self.statement_cache, sql) as stmt:
            return stmt.bind_all(params).execute()

    def _fetch(self, sql: str, params: Iterable[Any]) -> list[Row]:
        with self.lock, StatementBorrow(self.statement_cache, sql) as stmt:
            return stmt.bind_all(params).fetchall()

    def execute(self, sql: str, *args: Any) -> int:
        """Execute a SQL statement through the statement cache and return
        the affected row count.
        """
        return self._execute(sql, args)

    def select(self, sql: str, *args: Any) -> list[Row]:
        """Execute a query through the statement cache and return its rows.
        """
        return self._fetch(sql, args)

    def insert_row(self, table: str, row: Mapping[str, Any]) -> int:
        sql, params = build_insert(table, row)
        with self.lock:
            self._execute(sql, params)
            return self.engine.last_insert_rowid()

    def select_rows(self, table: str, where: Iterable[Condition] | None = None,
                    options: QueryOptions | None = None) -> list[Row]:
        sql, params = build_select(table, where, options)
        return self._fetch(sql, params)

    def update_rows(self, table: str, values: Mapping[str, Any],
                    where: Iterable[Condition] | None = None) -> int:
        sql, params = build_update(table, values, where)
        return self._execute(sql, params)

    def delete_rows(self, table: str, where: Iterable[Condition] | None = None) -> int:
        sql, params = build_delete(table, where)
        return self._execute(sql, params)

    # Typed

    def query(self, cls: type[T], where: Iterable[Condition] | None = None,
              options: QueryOptions | None = None) -> list[T]:
        """Select from the table `cls` is mapped to, marshaling each row.
        """
        descriptor = get_mapping(cls)
        rows = self.select_rows(descriptor.table, where, options)
        return [row_to_struct(cls, row) for row in rows]

    def insert(self, instance: Any) -> int:
        """Insert a mapped instance into its table and return the row id.
        """
        descriptor = get_mapping(type(instance))
        return self.insert_row(descriptor.table, struct_to_row(instance))

    # Transactions

    @property
    def active_transaction(self) -> Transaction | None:
        ref = self._active_transaction
        return ref() if ref is not None else None

    @active_transaction.setter
    def active_transaction(self, tx: Transaction | None) -> None:
        self._active_transaction = weakref.ref(tx) if tx is not None else None

    def begin_transaction(self) -> None:
        self.execute_immediate('BEGIN')

    def commit(self) -> None:
        self.execute_immediate('COMMIT')

    def rollback(self) -> None:
        self.execute_immediate('ROLLBACK')

    def transaction(self) -> Transaction:
        """Begin a transaction scoped to the returned guard.
        """
        return Transaction(self)

    @property
    def in_transaction(self) -> bool:
        return self.engine.in_transaction


def connect(options: DatabaseOptions | Mapping[str, Any] | str | None = None,
            **kw: Any) -> Database:
    """Open a database.

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - Database file path (or ':memory:')
        **kw: Option overrides (enable_foreign_keys, enable_wal, synchronous, ...)

    Returns
        Database object
    """
    return Database(load_options(options, **kw))
