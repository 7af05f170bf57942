"""
Narrow interface to the embedded SQLite engine.

SQLAlchemy manages opening the connection and applies the connection
pragmas through a `connect` event listener. Everything after that goes
through the raw DB-API connection:

- compile SQL text into a CompiledStatement
- bind typed values to positional slots, step for rows, reset, finalize
- execute SQL immediately (DDL, pragmas, transaction control)
- read the last auto-generated row id
"""
import logging
import sqlite3
from typing import Any, Self

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.pool import NullPool
from sqldb.exceptions import ConnectionOpenError, ExecutionError, PrepareError
from sqldb.options import DatabaseOptions
from sqldb.sql import count_placeholders
from sqldb.types import Value, bind_value

logger = logging.getLogger(__name__)


def statement_operation(sql: str) -> str:
    """Leading keyword of a statement, used to label its errors."""
    words = sql.split(None, 1)
    return words[0].upper() if words else 'EXECUTE'


def create_url_from_options(options: DatabaseOptions) -> sa.URL:
    """Convert DatabaseOptions to a SQLAlchemy URL.
    """
    return sa.URL.create(drivername='sqlite', database=options.database)


def configure_connection(dbapi_connection: sqlite3.Connection, options: DatabaseOptions) -> None:
    """Apply pragmas and put the connection in autocommit mode.

    Transactions are issued explicitly as BEGIN/COMMIT/ROLLBACK.
    """
    dbapi_connection.isolation_level = None
    fk = 'ON' if options.enable_foreign_keys else 'OFF'
    dbapi_connection.execute(f'PRAGMA foreign_keys = {fk}')
    if options.enable_wal:
        dbapi_connection.execute('PRAGMA journal_mode = WAL')
    dbapi_connection.execute(f'PRAGMA synchronous = {options.synchronous.value}')
    logger.debug(f'Configured connection: foreign_keys={fk}, wal={options.enable_wal}, '
                 f'synchronous={options.synchronous.value}')


def create_engine(options: DatabaseOptions) -> sa.Engine:
    """Create the SQLAlchemy engine for the given options.
    """
    engine = sa.create_engine(
        create_url_from_options(options),
        poolclass=NullPool,
        connect_args={'check_same_thread': False, 'timeout': options.timeout},
        )

    @event.listens_for(engine, 'connect')
    def _on_connect(dbapi_connection, connection_record):
        configure_connection(dbapi_connection, options)

    return engine


class CompiledStatement:
    """Engine-side compiled form of one SQL text.

    Slots are 1-based. step() executes on its first call after a reset and
    then yields one row per call until it returns None.
    """

    def __init__(self, connection: sqlite3.Connection, sql: str) -> None:
        self.sql = sql
        self.param_count = count_placeholders(sql)
        self.operation = statement_operation(sql)
        self._connection = connection
        self._params: list[Any] = [None] * self.param_count
        self._cursor: sqlite3.Cursor | None = None
        self._done = False
        self.rowcount = -1
        self.lastrowid: int | None = None
        self.finalized = False

    def compile(self) -> Self:
        """Have the engine compile the text without running it.

        Raises
            PrepareError: with the engine message and the offending SQL
        """
        try:
            self._connection.execute(f'EXPLAIN {self.sql}', [None] * self.param_count).fetchall()
        except (sqlite3.Error, sqlite3.Warning) as err:
            raise PrepareError(self.sql, str(err)) from err
        return self

    def _check_open(self, operation: str) -> None:
        if self.finalized:
            raise ExecutionError(operation, f'statement already finalized: {self.sql}')

    def bind(self, index: int, value: Value) -> None:
        self._check_open('bind')
        if not 1 <= index <= self.param_count:
            raise ExecutionError('bind', f'slot {index} out of range (1..{self.param_count})')
        self._params[index - 1] = bind_value(value)

    @property
    def bound_parameters(self) -> tuple[Any, ...]:
        return tuple(self._params)

    def clear_bindings(self) -> None:
        self._params = [None] * self.param_count

    def reset(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
        self._cursor = None
        self._done = False

    @property
    def column_names(self) -> list[str]:
        if self._cursor is None or self._cursor.description is None:
            return []
        return [d[0] for d in self._cursor.description]

    def step(self) -> tuple | None:
        """Advance to the next row; None once there are no more rows.
        """
        self._check_open('step')
        if self._done:
            return None
        try:
            if self._cursor is None:
                self._cursor = self._connection.execute(self.sql, self._params)
                self.rowcount = self._cursor.rowcount
                self.lastrowid = self._cursor.lastrowid
            row = self._cursor.fetchone()
        except (sqlite3.Error, sqlite3.Warning, OverflowError) as err:
            self._done = True
            raise ExecutionError(self.operation, str(err)) from err
        if row is None:
            self._done = True
        return row

    def finalize(self) -> None:
        if self.finalized:
            return
        self.reset()
        self.finalized = True
        logger.debug(f'Finalized statement: {self.sql}')


class SqliteEngine:
    """An open connection to the embedded engine.
    """

    def __init__(self, engine: sa.Engine, connection: Any, options: DatabaseOptions) -> None:
        self.engine = engine
        self.options = options
        self._pool_connection = connection
        self.connection: sqlite3.Connection = connection.driver_connection
        self.closed = False

    @classmethod
    def open(cls, options: DatabaseOptions) -> Self:
        """Open (or create) the store and configure the connection.

        Raises
            ConnectionOpenError: if the engine cannot open the store
        """
        engine = create_engine(options)
        try:
            connection = engine.raw_connection()
        except (sa.exc.SQLAlchemyError, sqlite3.Error) as err:
            engine.dispose()
            logger.error(f'Could not open database {options.database!r}: {err}')
            raise ConnectionOpenError(f"Can't open database {options.database!r}: {err}") from err
        logger.debug(f'Opened database {options.database!r}')
        return cls(engine, connection, options)

    def compile(self, sql: str) -> CompiledStatement:
        return CompiledStatement(self.connection, sql).compile()

    def execute_immediate(self, sql: str) -> None:
        """Run SQL with no bound parameters.

        Raises
            ExecutionError: with the engine message
        """
        logger.debug(f'SQL:\n{sql}')
        try:
            self.connection.execute(sql)
        except (sqlite3.Error, sqlite3.Warning) as err:
            logger.error(f'Error with statement:\nSQL:\n{sql}')
            raise ExecutionError(statement_operation(sql), str(err)) from err

    def last_insert_rowid(self) -> int:
        return self.connection.execute('SELECT last_insert_rowid()').fetchone()[0]

    @property
    def in_transaction(self) -> bool:
        return self.connection.in_transaction

    def pragma(self, name: str) -> Any:
        row = self.connection.execute(f'PRAGMA {name}').fetchone()
        return row[0] if row else None

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._pool_connection.close()
        finally:
            self.engine.dispose()
        logger.debug(f'Closed database {self.options.database!r}')
