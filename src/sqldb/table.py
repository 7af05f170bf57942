"""
Table facade: schema definition plus data operations on one table.
"""
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Self, TypeVar

import pandas as pd
from sqldb.exceptions import SchemaError
from sqldb.options import pandas_data_loader
from sqldb.orm import get_mapping, row_to_struct, struct_to_row
from sqldb.query import Condition, QueryOptions, build_create_index
from sqldb.query import build_create_table
from sqldb.schema import ColumnDef, ForeignKey
from sqldb.types import Row, SQLType

if TYPE_CHECKING:
    from sqldb.connection import Database

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Table:
    """A table defined through `Database.define_table`.

    Columns are added with the chainable `add_column`/`add_foreign_key` and
    become fixed once `create()` has run.
    """

    def __init__(self, db: 'Database', name: str) -> None:
        self.db = db
        self.name = name
        self._columns: list[ColumnDef] = []
        self.created = False

    def __repr__(self) -> str:
        return f'Table({self.name!r}, columns={[c.name for c in self._columns]})'

    @property
    def columns(self) -> tuple[ColumnDef, ...]:
        return tuple(self._columns)

    def column(self, name: str) -> ColumnDef:
        for col in self._columns:
            if col.name == name:
                return col
        raise SchemaError(f'Column {name!r} not defined on table {self.name!r}')

    def _add(self, col: ColumnDef) -> Self:
        with self.db.lock:
            if self.created:
                raise SchemaError(f'Table {self.name!r} already created; cannot add {col.name!r}')
            if any(c.name == col.name for c in self._columns):
                raise SchemaError(f'Duplicate column {col.name!r} on table {self.name!r}')
            self._columns.append(col)
        return self

    def add_column(self, name: str, type: SQLType, primary_key: bool = False,
                   auto_increment: bool = False, not_null: bool = False) -> Self:
        return self._add(ColumnDef(name, type, primary_key, auto_increment, not_null))

    def add_foreign_key(self, name: str, type: SQLType, ref_table: str, ref_column: str,
                        on_delete_cascade: bool = False) -> Self:
        fk = ForeignKey(ref_table, ref_column, on_delete_cascade)
        return self._add(ColumnDef(name, type, foreign_key=fk))

    def create(self) -> Self:
        """Run CREATE TABLE IF NOT EXISTS for the defined columns.
        """
        with self.db.lock:
            sql = build_create_table(self.name, self._columns)
            self.db.execute_immediate(sql)
            self.created = True
        logger.info(f'Created table {self.name}')
        return self

    def create_index(self, index_name: str, column: str, unique: bool = False) -> Self:
        with self.db.lock:
            self.db.execute_immediate(build_create_index(index_name, self.name, column, unique))
        logger.debug(f'Created index {index_name} on {self.name}({column})')
        return self

    def insert(self, row: Mapping[str, Any]) -> int:
        """Insert a row and return its row id.
        """
        return self.db.insert_row(self.name, row)

    def insert_object(self, instance: Any) -> int:
        """Insert the mapped columns of `instance` into this table.
        """
        return self.db.insert_row(self.name, struct_to_row(instance))

    def select(self, where: Iterable[Condition] | None = None,
               options: QueryOptions | None = None) -> list[Row]:
        return self.db.select_rows(self.name, where, options)

    def select_frame(self, where: Iterable[Condition] | None = None,
                     options: QueryOptions | None = None) -> pd.DataFrame:
        """select() loaded into a pandas DataFrame."""
        rows = self.select(where, options)
        if rows:
            columns = list(rows[0])
        elif options and options.columns:
            columns = list(options.columns)
        else:
            columns = [c.name for c in self._columns]
        return pandas_data_loader(rows, columns)

    def update(self, values: Mapping[str, Any], where: Iterable[Condition] | None = None) -> int:
        return self.db.update_rows(self.name, values, where)

    def remove(self, where: Iterable[Condition] | None = None) -> int:
        return self.db.delete_rows(self.name, where)

    def query(self, cls: type[T], where: Iterable[Condition] | None = None,
              options: QueryOptions | None = None) -> list[T]:
        """select() with each row marshaled into `cls`."""
        get_mapping(cls)
        return [row_to_struct(cls, row) for row in self.select(where, options)]
