"""
Database-specific exception classes.
"""
import sqlite3


class DatabaseError(Exception):
    """Base class for all sqldb errors.
    """


class ConnectionOpenError(DatabaseError):
    """The engine failed to open or create the store.
    """


class PrepareError(DatabaseError):
    """SQL text failed to compile.
    """

    def __init__(self, sql: str, message: str) -> None:
        self.sql = sql
        self.message = message
        super().__init__(f'Prepare failed: {message} [sql: {sql}]')


class ExecutionError(DatabaseError):
    """Bind, step or immediate execution failed.

    Constraint violations reported by the engine land here with the engine
    message forwarded verbatim.
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f'{operation} failed: {message}')


class TypeMismatchError(DatabaseError):
    """A value could not be coerced to the requested type.
    """

    def __init__(self, column: str | None, requested_type: object) -> None:
        self.column = column
        self.requested_type = requested_type
        name = getattr(requested_type, 'name', requested_type)
        super().__init__(f'Type mismatch for column {column!r}: cannot read as {name}')


class SchemaError(DatabaseError):
    """Duplicate definition or use of an undefined table.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class TransactionError(DatabaseError):
    """Transaction guard misuse.
    """


class MappingError(DatabaseError):
    """Invalid or duplicate ORM mapping.
    """


class MappingNotFoundError(MappingError, LookupError):
    """No ORM mapping registered for a type.
    """


IntegrityError = (
    sqlite3.IntegrityError,
    )
