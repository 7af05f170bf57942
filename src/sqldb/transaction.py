"""
Transaction guard.
"""
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Self

from sqldb.exceptions import DatabaseError, TransactionError

if TYPE_CHECKING:
    from sqldb.connection import Database

logger = logging.getLogger(__name__)


class TransactionState(Enum):
    ACTIVE = 'active'
    COMMITTED = 'committed'
    ROLLED_BACK = 'rolled_back'


class Transaction:
    """Scoped BEGIN/COMMIT/ROLLBACK.

    BEGIN is issued on construction. commit() and rollback() are idempotent:
    the first call runs the engine command, later calls do nothing. A guard
    that goes out of scope while still active rolls back; a failure of that
    implicit rollback is logged, never raised.

    Only one guard may be active per database; nested transactions are not
    supported.

    Examples
        with db.transaction() as tx:
            users.insert({'name': 'Alice'})
            tx.commit()
    """

    def __init__(self, db: 'Database') -> None:
        self.db = db
        self.state: TransactionState | None = None
        with db.lock:
            current = db.active_transaction
            if current is not None and current.active:
                raise TransactionError('Nested transactions are not supported')
            db.execute_immediate('BEGIN')
            self.state = TransactionState.ACTIVE
            db.active_transaction = self
        logger.debug(f'Started transaction for database {id(db)}')

    @property
    def active(self) -> bool:
        return self.state is TransactionState.ACTIVE

    def _finish(self, command: str, state: TransactionState) -> None:
        with self.db.lock:
            if not self.active:
                return
            self.db.execute_immediate(command)
            self.state = state
            if self.db.active_transaction is self:
                self.db.active_transaction = None
        logger.debug(f'{command} for database {id(self.db)}')

    def commit(self) -> None:
        self._finish('COMMIT', TransactionState.COMMITTED)

    def rollback(self) -> None:
        self._finish('ROLLBACK', TransactionState.ROLLED_BACK)

    def close(self) -> None:
        """Roll back if still active, logging any failure."""
        if not self.active:
            return
        try:
            self.rollback()
            logger.warning('Rolled back uncommitted transaction')
        except DatabaseError as err:
            logger.error(f'Implicit rollback failed: {err}')
            with self.db.lock:
                if self.db.active_transaction is self:
                    self.db.active_transaction = None
            self.state = TransactionState.ROLLED_BACK

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __del__(self):
        if getattr(self, 'state', None) is TransactionState.ACTIVE:
            self.close()
