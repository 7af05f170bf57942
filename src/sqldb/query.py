"""
SQL statement generation from structured filters and options.

Every builder returns `(sql, params)` where params is the ordered list of
`Value` objects to bind. Values never appear in the SQL text. Bind order
follows the order the clauses appear in the text:

- SELECT: WHERE values, then HAVING values
- UPDATE: SET values, then WHERE values
- INSERT: column values in column order
"""
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqldb.exceptions import ValidationError
from sqldb.sql import quote_column, quote_identifier, render_term
from sqldb.types import Value

if TYPE_CHECKING:
    from sqldb.schema import ColumnDef

logger = logging.getLogger(__name__)


class Op(Enum):
    """Comparison operators for WHERE and HAVING conditions."""
    EQ = '='
    NEQ = '!='
    GT = '>'
    LT = '<'
    LIKE = 'LIKE'

    @property
    def sql(self) -> str:
        return self.value


class JoinType(Enum):
    """Join kinds. RIGHT is passed through; the engine decides support."""
    INNER = 'INNER'
    LEFT = 'LEFT'
    RIGHT = 'RIGHT'
    CROSS = 'CROSS'


@dataclass
class Condition:
    """`column <op> ?` with the value bound as a parameter."""
    column: str
    op: Op
    value: Any = None

    def __post_init__(self):
        if not isinstance(self.op, Op):
            self.op = Op(self.op)
        self.value = Value.of(self.value)


@dataclass
class JoinClause:
    """`<type> JOIN "table" ON <on>`.

    The ON predicate is caller-trusted SQL and is emitted verbatim.
    """
    type: JoinType
    table: str
    on: str = ''


@dataclass
class QueryOptions:
    """Projection, joins, grouping, ordering and paging for a SELECT.

    limit and offset are emitted only when non-negative.
    """
    columns: list[str] = field(default_factory=list)
    joins: list[JoinClause] = field(default_factory=list)
    group_by: list[str] = field(default_factory=list)
    having: list[Condition] = field(default_factory=list)
    order_by: str | None = None
    order_desc: bool = False
    limit: int = -1
    offset: int = -1


def _paging_value(name: str, value: int | None) -> int:
    if value is None:
        return -1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{name} must be an integer, got {value!r}')
    return value


def _where_clause(conditions: Sequence[Condition], params: list[Value]) -> str:
    parts = []
    for cond in conditions:
        parts.append(f'{quote_column(cond.column)} {cond.op.sql} ?')
        params.append(cond.value)
    return ' AND '.join(parts)


def _having_clause(conditions: Sequence[Condition], params: list[Value]) -> str:
    parts = []
    for cond in conditions:
        parts.append(f'{render_term(cond.column)} {cond.op.sql} ?')
        params.append(cond.value)
    return ' AND '.join(parts)


def _join_clause(join: JoinClause) -> str:
    kind = JoinType(join.type)
    sql = f'{kind.value} JOIN {quote_identifier(join.table)}'
    if join.on:
        sql += f' ON {join.on}'
    return sql


def build_select(table: str, where: Iterable[Condition] | None = None,
                 options: QueryOptions | None = None) -> tuple[str, list[Value]]:
    """Generate a SELECT statement.

    Clause order: SELECT-list, FROM, JOINs, WHERE, GROUP BY, HAVING,
    ORDER BY, LIMIT, OFFSET.
    """
    options = options or QueryOptions()
    where = list(where or ())
    limit = _paging_value('limit', options.limit)
    offset = _paging_value('offset', options.offset)
    params: list[Value] = []

    columns = ', '.join(render_term(c) for c in options.columns) or '*'
    sql = f'SELECT {columns} FROM {quote_identifier(table)}'

    for join in options.joins:
        sql += f' {_join_clause(join)}'

    if where:
        sql += f' WHERE {_where_clause(where, params)}'

    if options.group_by:
        sql += ' GROUP BY ' + ', '.join(render_term(g) for g in options.group_by)

    if options.having:
        sql += f' HAVING {_having_clause(options.having, params)}'

    if options.order_by:
        direction = 'DESC' if options.order_desc else 'ASC'
        sql += f' ORDER BY {render_term(options.order_by)} {direction}'

    if limit >= 0:
        sql += f' LIMIT {limit}'
    elif offset >= 0:
        # the engine grammar only accepts OFFSET after a LIMIT
        sql += ' LIMIT -1'

    if offset >= 0:
        sql += f' OFFSET {offset}'

    return sql, params


def build_insert(table: str, row: Mapping[str, Any]) -> tuple[str, list[Value]]:
    """Generate an INSERT statement with one placeholder per column.
    """
    quoted_table = quote_identifier(table)
    if not row:
        return f'INSERT INTO {quoted_table} DEFAULT VALUES', []

    columns = ', '.join(quote_identifier(col) for col in row)
    placeholders = ', '.join(['?'] * len(row))
    params = [Value.of(v) for v in row.values()]
    return f'INSERT INTO {quoted_table} ({columns}) VALUES ({placeholders})', params


def build_update(table: str, values: Mapping[str, Any],
                 where: Iterable[Condition] | None = None) -> tuple[str, list[Value]]:
    """Generate an UPDATE statement. SET values bind before WHERE values.

    Raises
        ValidationError: if there is nothing to set
    """
    if not values:
        raise ValidationError(f'UPDATE of {table!r} requires at least one column to set')

    where = list(where or ())
    params = [Value.of(v) for v in values.values()]
    assignments = ', '.join(f'{quote_identifier(col)} = ?' for col in values)
    sql = f'UPDATE {quote_identifier(table)} SET {assignments}'

    if where:
        sql += f' WHERE {_where_clause(where, params)}'

    return sql, params


def build_delete(table: str, where: Iterable[Condition] | None = None) -> tuple[str, list[Value]]:
    """Generate a DELETE statement.
    """
    where = list(where or ())
    params: list[Value] = []
    sql = f'DELETE FROM {quote_identifier(table)}'
    if where:
        sql += f' WHERE {_where_clause(where, params)}'
    return sql, params


def build_create_table(table: str, columns: Sequence['ColumnDef']) -> str:
    """Generate CREATE TABLE IF NOT EXISTS with table-level foreign keys.
    """
    if not columns:
        raise ValidationError(f'Table {table!r} has no columns')

    clauses = []
    for col in columns:
        clause = f'{quote_identifier(col.name)} {col.type.ddl}'
        if col.primary_key:
            clause += ' PRIMARY KEY'
        if col.auto_increment:
            clause += ' AUTOINCREMENT'
        if col.not_null:
            clause += ' NOT NULL'
        clauses.append(clause)

    for col in columns:
        fk = col.foreign_key
        if fk is None:
            continue
        clause = (f'FOREIGN KEY({quote_identifier(col.name)}) '
                  f'REFERENCES {quote_identifier(fk.table)}({quote_identifier(fk.column)})')
        if fk.on_delete_cascade:
            clause += ' ON DELETE CASCADE'
        clauses.append(clause)

    return f'CREATE TABLE IF NOT EXISTS {quote_identifier(table)} ({", ".join(clauses)})'


def build_create_index(index: str, table: str, column: str, unique: bool = False) -> str:
    """Generate CREATE [UNIQUE] INDEX IF NOT EXISTS.
    """
    kind = 'UNIQUE INDEX' if unique else 'INDEX'
    return (f'CREATE {kind} IF NOT EXISTS {quote_identifier(index)} '
            f'ON {quote_identifier(table)} ({quote_identifier(column)})')
