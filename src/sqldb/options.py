from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

import pandas as pd

__all__ = [
    'DatabaseOptions',
    'Synchronous',
    'load_options',
    'pandas_data_loader',
]


class Synchronous(Enum):
    """Values of the engine's synchronous pragma."""
    OFF = 'OFF'
    NORMAL = 'NORMAL'
    FULL = 'FULL'
    EXTRA = 'EXTRA'


def pandas_data_loader(rows, columns, **kwargs) -> pd.DataFrame:
    """pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not rows:
        return pd.DataFrame(columns=list(columns))
    return pd.DataFrame.from_records([dict(row) for row in rows], columns=list(columns))


@dataclass
class DatabaseOptions:
    """Options applied when the connection is opened.

    - database: file path, or `:memory:`
    - enable_foreign_keys: foreign_keys pragma (default: True)
    - enable_wal: journal_mode=WAL when True (default: False)
    - synchronous: OFF, NORMAL, FULL or EXTRA (default: FULL)
    - statement_cache_size: compiled statements kept per connection (default: 100)
    - timeout: seconds to wait on a locked database (default: 5.0)
    """
    database: str = ':memory:'
    enable_foreign_keys: bool = True
    enable_wal: bool = False
    synchronous: Synchronous | str = Synchronous.FULL
    statement_cache_size: int = 100
    timeout: float = 5.0

    def __post_init__(self):
        if not self.database:
            raise ValueError('database must be a file path or :memory:')
        if isinstance(self.synchronous, str):
            try:
                self.synchronous = Synchronous(self.synchronous.upper())
            except ValueError:
                available = [s.value for s in Synchronous]
                raise ValueError(f'synchronous must be one of: {available}') from None
        if not isinstance(self.synchronous, Synchronous):
            raise ValueError(f'Invalid synchronous setting: {self.synchronous!r}')
        if self.statement_cache_size < 1:
            raise ValueError('statement_cache_size must be at least 1')
        if self.timeout < 0:
            raise ValueError('timeout must not be negative')


def load_options(options: 'DatabaseOptions | Mapping[str, Any] | str | None' = None,
                 **kw: Any) -> DatabaseOptions:
    """Build DatabaseOptions from an options object, a dict or a database path.

    Keyword arguments override the supplied values.
    """
    if isinstance(options, DatabaseOptions):
        values = {f.name: getattr(options, f.name) for f in fields(options)}
    elif isinstance(options, str):
        values = {'database': options}
    elif options is None:
        values = {}
    else:
        values = dict(options)

    values.update(kw)
    known = {f.name for f in fields(DatabaseOptions)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f'Unknown options: {sorted(unknown)}')
    return DatabaseOptions(**values)
