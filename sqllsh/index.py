"""
LSHIndex - On-disk LSH index stored in a relational database.

This module binds caller data to the statements generated by
sqllsh.schema and streams results back. Hash functions are not part of
this package: signatures are computed by the caller and stored as-is.
"""

import logging
import operator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Sequence

import numpy as np

from sqllsh import schema
from sqllsh.dialects import POSTGRES, SQLITE, Dialect
from sqllsh.errors import (
    BatchSizeError,
    DecodeError,
    SignatureSizeError,
    SignatureValueError,
    TransactionError,
)

logger = logging.getLogger(__name__)

# Both SQLite INTEGER and PostgreSQL BIGINT are signed 64-bit.
MAX_HASH_VALUE = 2**63 - 1


@dataclass(frozen=True)
class Entry:
    """A stored signature together with its id."""

    id: int
    signature: tuple[int, ...]


class LSHIndex:
    """
    An LSH index kept in a single database table.

    Each signature of k * l hash values is one row. Hash table i is the band
    of columns ``hv_{i*k} .. hv_{i*k+k-1}``. A query returns the ids of all
    rows that agree with the query signature on every column of at least one
    band.

    The connection is any open DB-API 2.0 connection. It stays owned by the
    caller and is never closed here.

    Writes run in transactions of their own, so the caller must not have an
    uncommitted transaction open on the connection when writing.

    Example:
        >>> import sqlite3
        >>> conn = sqlite3.connect("lsh.db")
        >>> index = LSHIndex(2, 2, "lshtable", conn)
        >>> index.insert(1, [0, 1, 2, 3])
        >>> list(index.query([0, 1, 9, 9]))
        [1]
    """

    def __init__(
        self,
        k: int,
        l: int,
        table_name: str,
        conn: Any,
        dialect: Dialect = SQLITE,
    ):
        """
        Create the index table and build its statements.

        Args:
            k: Number of hash values that form one hash key.
            l: Number of hash tables.
            table_name: Table to create. Used verbatim in the generated SQL.
            conn: Open DB-API connection.
            dialect: SQL differences of the backend behind conn.

        Raises:
            ValueError: If k or l is smaller than one.
            TransactionError: If conn has an uncommitted transaction.
        """
        schema.validate_params(k, l)
        self._k = k
        self._l = l
        self._table_name = table_name
        self._dialect = dialect
        self.conn = conn

        create_sql = schema.build_create_table(k, l, table_name)
        with self._transaction() as cursor:
            cursor.execute(create_sql)
        logger.debug("Created LSH table %s with k=%d, l=%d", table_name, k, l)

        self._insert_sql = schema.build_insert(k, l, table_name, dialect.placeholder)
        self._query_sql = schema.build_query(k, l, table_name, dialect.placeholder)
        self._scan_sql = schema.build_scan(k, l, table_name)
        self._index_sqls = schema.build_create_indexes(k, l, table_name, dialect.index_fmt)

    @classmethod
    def sqlite(cls, k: int, l: int, table_name: str, conn: Any) -> "LSHIndex":
        """Create an index on a sqlite3 connection."""
        return cls(k, l, table_name, conn, dialect=SQLITE)

    @classmethod
    def postgres(cls, k: int, l: int, table_name: str, conn: Any) -> "LSHIndex":
        """Create an index on a psycopg2 connection."""
        return cls(k, l, table_name, conn, dialect=POSTGRES)

    @property
    def k(self) -> int:
        return self._k

    @property
    def l(self) -> int:
        return self._l

    @property
    def size(self) -> int:
        """Number of hash values in every signature."""
        return self._k * self._l

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    def _in_transaction(self) -> bool:
        if self._dialect.in_transaction is None:
            return False
        return bool(self._dialect.in_transaction(self.conn))

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        """
        Run the body in one transaction, rolling everything back on error.

        The transaction must be our own: committing or rolling back would
        otherwise also settle the caller's pending work on the connection.

        Raises:
            TransactionError: If the connection already has an open
                transaction. Nothing is executed in that case.
        """
        if self._in_transaction():
            raise TransactionError(
                f"Connection has an uncommitted transaction; commit or roll it "
                f"back before writing to {self._table_name}"
            )
        cursor = self.conn.cursor()
        try:
            if self._dialect.begin:
                cursor.execute(self._dialect.begin)
            yield cursor
            self.conn.commit()
        except Exception:
            logger.error("Transaction on %s failed, rolling back", self._table_name)
            self.conn.rollback()
            raise
        finally:
            cursor.close()

    def _to_row(self, signature: Sequence[int]) -> list[int]:
        """Validate a signature and convert it to plain ints for the driver."""
        try:
            arr = np.asarray(signature)
        except ValueError as e:
            raise SignatureSizeError(f"Signature size mismatch: {e}") from e
        if arr.ndim != 1 or arr.shape[0] != self.size:
            raise SignatureSizeError(
                f"Signature size mismatch: expected {self.size} hash values, "
                f"got shape {arr.shape}"
            )
        if arr.dtype.kind not in "iu":
            raise SignatureValueError(
                f"Hash values must be integers, got dtype {arr.dtype}"
            )
        values = arr.tolist()
        if any(v < 0 or v > MAX_HASH_VALUE for v in values):
            raise SignatureValueError(
                f"Hash values must be in [0, {MAX_HASH_VALUE}]"
            )
        return values

    def index(self) -> None:
        """
        Build one B-tree index per hash table.

        All l indexes are created in one transaction. Calling this twice
        fails because the index names already exist.
        """
        with self._transaction() as cursor:
            for sql in self._index_sqls:
                cursor.execute(sql)
        logger.debug("Built %d hash table indexes on %s", self._l, self._table_name)

    def insert(self, id: int, signature: Sequence[int]) -> None:
        """
        Add one signature to the table.

        Args:
            id: Identifier of the signature. Must be unique in the table.
            signature: k * l non-negative hash values.

        Raises:
            SignatureSizeError: If the signature does not have k * l values.
            SignatureValueError: If a value is not a storable integer.
            TransactionError: If conn has an uncommitted transaction.
        """
        row = [operator.index(id)] + self._to_row(signature)
        with self._transaction() as cursor:
            cursor.execute(self._insert_sql, row)

    def batch_insert(self, ids: Sequence[int], signatures: Sequence[Sequence[int]]) -> None:
        """
        Add many signatures in a single transaction.

        Every signature is validated before anything is written, and a
        failure while writing rolls back the whole batch.

        Args:
            ids: Identifiers, one per signature.
            signatures: Signatures in the same order as ids. A 2-D integer
                array of shape (len(ids), k * l) is accepted.

        Raises:
            BatchSizeError: If ids and signatures differ in length.
            SignatureSizeError: If any signature does not have k * l values.
            SignatureValueError: If any value is not a storable integer.
            TransactionError: If conn has an uncommitted transaction.
        """
        if len(ids) != len(signatures):
            raise BatchSizeError(
                f"Number of ids ({len(ids)}) must match "
                f"number of signatures ({len(signatures)})"
            )
        if len(ids) == 0:
            return

        rows = [
            [operator.index(entry_id)] + self._to_row(sig)
            for entry_id, sig in zip(ids, signatures)
        ]
        with self._transaction() as cursor:
            for row in rows:
                cursor.execute(self._insert_sql, row)
        logger.debug("Inserted %d signatures into %s", len(rows), self._table_name)

    def query(self, signature: Sequence[int]) -> Iterator[int]:
        """
        Find the ids of signatures that collide with the given one.

        A stored signature collides when it is equal to the query on all k
        values of at least one hash table. Each id is produced once.

        The signature is validated immediately; the database is queried
        lazily as the returned iterator is consumed.

        Returns:
            Single-pass iterator over matching ids.

        Raises:
            SignatureSizeError: If the signature does not have k * l values.
            SignatureValueError: If a value is not a storable integer.
        """
        params = self._to_row(signature)
        return self._iter_ids(params)

    def _iter_ids(self, params: list[int]) -> Iterator[int]:
        with self._reading() as cursor:
            cursor.execute(self._query_sql, params)
            for row in cursor:
                yield row[0]

    @contextmanager
    def _reading(self) -> Iterator[Any]:
        """
        Cursor for a read.

        Drivers that open a transaction implicitly (psycopg2) would leave the
        connection idle in transaction after a SELECT. A transaction opened by
        the read is rolled back once it ends; one the caller had open is left
        alone.
        """
        opened = not self._in_transaction()
        cursor = self.conn.cursor()
        try:
            yield cursor
        finally:
            cursor.close()
            if opened and self._in_transaction():
                self.conn.rollback()

    def scan(self) -> Iterator[Entry]:
        """
        Iterate over every stored entry.

        Raises:
            DecodeError: While iterating, if a stored value is not an integer.
        """
        with self._reading() as cursor:
            cursor.execute(self._scan_sql)
            for row in cursor:
                yield self._decode(row)

    def _decode(self, row: Sequence[Any]) -> Entry:
        values = tuple(row)
        if len(values) != self.size + 1:
            raise DecodeError(
                f"Expected {self.size + 1} columns, got {len(values)}"
            )
        for col, value in zip(["id"] + schema.column_names(self._k, self._l), values):
            if isinstance(value, bool) or not isinstance(value, int):
                raise DecodeError(
                    f"Column {col} of {self._table_name} holds "
                    f"{type(value).__name__} value {value!r}, expected int"
                )
        return Entry(id=values[0], signature=values[1:])
