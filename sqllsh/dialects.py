"""
Backend dialects.

A dialect bundles the few things that differ between database backends:
the positional parameter token and the CREATE INDEX template. It also
describes how transactions are opened and how to detect an open one.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class Dialect:
    """
    SQL differences between backends.

    Attributes:
        name: Short name used by get_dialect().
        placeholder: Maps a zero-based parameter position to its token.
        index_fmt: CREATE INDEX template with ``{index}``, ``{table}`` and
            ``{columns}`` fields.
        begin: Statement that opens a transaction, or None when the driver
            opens one implicitly.
        in_transaction: Reports whether a connection has an uncommitted
            transaction, or None when the driver cannot tell.
    """

    name: str
    placeholder: Callable[[int], str]
    index_fmt: str
    begin: Optional[str] = None
    in_transaction: Optional[Callable[[Any], bool]] = None


# sqlite3 runs DDL in autocommit mode unless a transaction is already open.
SQLITE = Dialect(
    name="sqlite",
    placeholder=lambda i: "?",
    index_fmt="CREATE INDEX {index} ON {table} ({columns})",
    begin="BEGIN",
    in_transaction=lambda conn: conn.in_transaction,
)

# psycopg2.extensions.TRANSACTION_STATUS_IDLE
PSYCOPG2_TRANSACTION_STATUS_IDLE = 0

# psycopg2 uses the pyformat paramstyle and opens transactions on first execute.
POSTGRES = Dialect(
    name="postgres",
    placeholder=lambda i: "%s",
    index_fmt="CREATE INDEX {index} ON {table} USING BTREE ({columns})",
    in_transaction=lambda conn: (
        conn.get_transaction_status() != PSYCOPG2_TRANSACTION_STATUS_IDLE
    ),
)

DIALECTS = {d.name: d for d in (SQLITE, POSTGRES)}


def get_dialect(name: str) -> Dialect:
    """Look up a predefined dialect by name."""
    try:
        return DIALECTS[name]
    except KeyError:
        raise ValueError(
            f"Unknown dialect {name!r}, expected one of {sorted(DIALECTS)}"
        ) from None
