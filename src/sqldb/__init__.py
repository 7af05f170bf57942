"""
Thread-safe SQLite access layer: compiled-statement cache, injection-safe
query builder, tagged value coercion and declarative object mapping.

    import sqldb
    from sqldb import Condition, Op, SQLType

    db = sqldb.connect(':memory:')
    users = db.define_table('users')
    users.add_column('id', SQLType.INTEGER, True, True) \\
         .add_column('name', SQLType.TEXT) \\
         .add_column('score', SQLType.REAL) \\
         .create()
    users.insert({'name': 'Alice', 'score': 95.5})
    users.select([Condition('score', Op.GT, 90.0)])
"""
__version__ = '0.1.0'

from sqldb.cache import StatementCache, StatementHandle
from sqldb.connection import Database, connect
from sqldb.cursor import StatementBorrow
from sqldb.exceptions import ConnectionOpenError, DatabaseError, ExecutionError
from sqldb.exceptions import IntegrityError, MappingError, MappingNotFoundError
from sqldb.exceptions import PrepareError, SchemaError, TransactionError
from sqldb.exceptions import TypeMismatchError, ValidationError
from sqldb.options import DatabaseOptions, Synchronous
from sqldb.orm import FieldMapping, MappingDescriptor, get_mapping, mapped
from sqldb.orm import register, row_to_struct, struct_to_row
from sqldb.query import Condition, JoinClause, JoinType, Op, QueryOptions
from sqldb.schema import ColumnDef, ForeignKey
from sqldb.table import Table
from sqldb.transaction import Transaction, TransactionState
from sqldb.types import Row, SQLType, Value, ValueType, coerce

transaction = Transaction

__all__ = [
    'connect',
    'Database',
    'Table',
    'DatabaseOptions',
    'Synchronous',
    'transaction',
    'Transaction',
    'TransactionState',
    'StatementCache',
    'StatementHandle',
    'StatementBorrow',
    'Condition',
    'JoinClause',
    'JoinType',
    'Op',
    'QueryOptions',
    'ColumnDef',
    'ForeignKey',
    'Row',
    'SQLType',
    'Value',
    'ValueType',
    'coerce',
    'FieldMapping',
    'MappingDescriptor',
    'get_mapping',
    'mapped',
    'register',
    'row_to_struct',
    'struct_to_row',
    'DatabaseError',
    'ConnectionOpenError',
    'PrepareError',
    'ExecutionError',
    'TypeMismatchError',
    'SchemaError',
    'ValidationError',
    'TransactionError',
    'MappingError',
    'MappingNotFoundError',
    'IntegrityError',
]
