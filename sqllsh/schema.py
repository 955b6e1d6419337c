"""
SQL generation for the LSH table.

An index with parameters k and l is stored as one wide table: an ``id``
primary key followed by ``hv_0 .. hv_{k*l-1}``. The columns are split into l
bands of k contiguous columns; band i is hash table i and covers
``hv_{i*k} .. hv_{i*k+k-1}``.

A stored row is a candidate for a query signature when every column of at
least one band is equal to the query (AND within a band, OR across bands).
"""

from typing import Callable

PlaceholderFn = Callable[[int], str]


def validate_params(k: int, l: int) -> None:
    """Reject hash key sizes and table counts below one."""
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")
    if l < 1:
        raise ValueError(f"l must be at least 1, got {l}")


def column_name(position: int) -> str:
    return f"hv_{position}"


def column_names(k: int, l: int) -> list[str]:
    """Names of the hash value columns in signature order."""
    return [column_name(i) for i in range(k * l)]


def band_columns(i: int, k: int) -> list[str]:
    """Names of the k columns that form the hash key of band i."""
    return [column_name(k * i + j) for j in range(k)]


def index_name(i: int) -> str:
    return f"ht_{i}"


def build_create_table(k: int, l: int, table_name: str) -> str:
    """
    Build the CREATE TABLE statement for an index.

    The table name is used verbatim; quoting it is up to the caller.

    Args:
        k: Number of hash values per hash key.
        l: Number of hash tables.
        table_name: Name of the table to create.

    Returns:
        The DDL string.
    """
    validate_params(k, l)
    col_defs = ["id INTEGER PRIMARY KEY"]
    col_defs += [f"{col} BIGINT" for col in column_names(k, l)]
    return f"CREATE TABLE {table_name} (\n    " + ",\n    ".join(col_defs) + "\n)"


def build_create_index(i: int, k: int, table_name: str, index_fmt: str) -> str:
    """
    Build the CREATE INDEX statement for band i.

    Args:
        i: Band number, in [0, l).
        k: Number of hash values per hash key.
        table_name: Name of the indexed table.
        index_fmt: Dialect template with ``{index}``, ``{table}`` and
            ``{columns}`` fields.

    Returns:
        The DDL string.
    """
    if i < 0:
        raise ValueError(f"Band number must be non-negative, got {i}")
    return index_fmt.format(
        index=index_name(i),
        table=table_name,
        columns=", ".join(band_columns(i, k)),
    )


def build_create_indexes(k: int, l: int, table_name: str, index_fmt: str) -> list[str]:
    """One CREATE INDEX statement per band, in band order."""
    validate_params(k, l)
    return [build_create_index(i, k, table_name, index_fmt) for i in range(l)]


def build_insert(k: int, l: int, table_name: str, placeholder: PlaceholderFn) -> str:
    """
    Build the INSERT statement for one entry.

    Parameters are the id first, then the k * l hash values in column order,
    so the statement takes k * l + 1 parameters.
    """
    validate_params(k, l)
    placeholders = ", ".join(placeholder(i) for i in range(k * l + 1))
    return f"INSERT INTO {table_name} VALUES ({placeholders})"


def build_query(k: int, l: int, table_name: str, placeholder: PlaceholderFn) -> str:
    """
    Build the candidate query.

    Each band becomes a parenthesized conjunction of k equality predicates
    and the bands are joined with OR. The k * l parameters are bound in the
    same order as the query signature. DISTINCT keeps each id once even when
    it matches in several bands.
    """
    validate_params(k, l)
    bands = []
    for i in range(l):
        predicates = []
        for j in range(k):
            position = k * i + j
            predicates.append(f"{column_name(position)} = {placeholder(position)}")
        bands.append("(" + " AND ".join(predicates) + ")")
    return f"SELECT DISTINCT id FROM {table_name} WHERE " + " OR ".join(bands)


def build_scan(k: int, l: int, table_name: str) -> str:
    """Build the unconditional SELECT over id and every hash value column."""
    validate_params(k, l)
    cols = ", ".join(["id"] + column_names(k, l))
    return f"SELECT {cols} FROM {table_name}"
