"""
Schema metadata for tables defined through the facade.
"""
from dataclasses import dataclass

from sqldb.types import SQLType


@dataclass(frozen=True)
class ForeignKey:
    """Reference target of a foreign-key column."""
    table: str
    column: str
    on_delete_cascade: bool = False


@dataclass(frozen=True)
class ColumnDef:
    """One column of a table definition."""
    name: str
    type: SQLType
    primary_key: bool = False
    auto_increment: bool = False
    not_null: bool = False
    foreign_key: ForeignKey | None = None

    def __post_init__(self):
        if not isinstance(self.type, SQLType):
            object.__setattr__(self, 'type', SQLType(str(self.type).upper()))
