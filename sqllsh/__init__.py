"""
sqllsh - On-disk Locality-Sensitive Hashing index for relational databases.

sqllsh stores precomputed LSH signatures in a SQL table, one column per hash
value, and finds candidates with a query that ANDs the columns of each hash
table and ORs the hash tables together. SQLite and PostgreSQL are supported.
"""

from sqllsh.__version__ import __version__
from sqllsh.dialects import POSTGRES, SQLITE, Dialect, get_dialect
from sqllsh.errors import (
    BatchSizeError,
    DecodeError,
    LSHError,
    SignatureSizeError,
    SignatureValueError,
    TransactionError,
)
from sqllsh.index import Entry, LSHIndex

__all__ = [
    "LSHIndex",
    "Entry",
    "Dialect",
    "SQLITE",
    "POSTGRES",
    "get_dialect",
    "LSHError",
    "SignatureSizeError",
    "SignatureValueError",
    "BatchSizeError",
    "DecodeError",
    "TransactionError",
    "__version__",
]
