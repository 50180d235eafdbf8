"""
Warehouse Module
"""
from .relations import Materialization, Relation, Warehouse
from .connection import init_database, close_database, get_db
from .loader import FileFormat, LoadResult, SourceLoader

__all__ = [
    "Materialization",
    "Relation",
    "Warehouse",
    "init_database",
    "close_database",
    "get_db",
    "FileFormat",
    "LoadResult",
    "SourceLoader",
]
