"""
Key Macros
"""

import hashlib

import polars as pl

# Stands in for null key parts so that (1, null) and (null, 1) hash differently
NULL_KEY_PART = "_surrogate_key_null_"


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def surrogate_key(*columns: str) -> pl.Expr:
    """
    Deterministic md5 key over the given columns.

    Each part is cast to string, nulls are replaced by a sentinel, and the
    parts are joined with ``-`` before hashing.
    """
    if not columns:
        raise ValueError("surrogate_key needs at least one column")

    parts = [pl.col(c).cast(pl.Utf8).fill_null(NULL_KEY_PART) for c in columns]
    return pl.concat_str(parts, separator="-").map_elements(_md5, return_dtype=pl.Utf8)
