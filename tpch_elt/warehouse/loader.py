"""
Source Loader

Loads the raw TPC-H tables into the warehouse from CSV/Parquet files or from
the source database, checking each against its declared columns and casting
those columns to their declared types.

A missing column raises SchemaError: the run cannot continue without it.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

import polars as pl
import structlog
from pydantic import BaseModel
from sqlalchemy import text

from tpch_elt.exceptions import SchemaError
from tpch_elt.models.sources import TPCH_SOURCES, SourceTable
from tpch_elt.warehouse.connection import get_db
from tpch_elt.warehouse.relations import Warehouse

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported source file formats"""
    CSV = "csv"
    PARQUET = "parquet"


class LoadResult(BaseModel):
    """Result of loading one source table"""
    source: str
    origin: str
    rows_loaded: int
    started_at: datetime
    completed_at: datetime

    @property
    def load_duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


class SourceLoader:
    """
    Loads declared source tables into a Warehouse.

    Example:
        loader = SourceLoader(warehouse)
        results = loader.load_directory("data/raw")
    """

    def __init__(
        self,
        warehouse: Warehouse,
        sources: Optional[Dict[str, SourceTable]] = None,
        null_values: Optional[List[str]] = None,
    ):
        self.warehouse = warehouse
        self.sources = sources or TPCH_SOURCES
        self.null_values = null_values or ["", "NULL", "null", "None", "NA", "N/A"]

    def _source(self, name: str) -> SourceTable:
        try:
            return self.sources[name]
        except KeyError:
            raise ValueError(f"Unknown source: {name}") from None

    def _conform(self, df: pl.DataFrame, source: SourceTable) -> pl.DataFrame:
        """Check declared columns exist and cast them to their declared types"""
        missing = set(source.columns) - set(df.columns)
        if missing:
            raise SchemaError(f"{self.warehouse.source_schema}.{source.name}", missing)

        casts = []
        for column, dtype in source.columns.items():
            actual = df.schema[column]
            if actual == dtype:
                continue
            if actual == pl.Utf8 and dtype == pl.Date:
                casts.append(pl.col(column).str.to_date("%Y-%m-%d"))
            else:
                casts.append(pl.col(column).cast(dtype))

        return df.with_columns(casts) if casts else df

    def _register(self, source: SourceTable, df: pl.DataFrame, origin: str, started_at: datetime) -> LoadResult:
        df = self._conform(df, source)
        self.warehouse.register_source(source.name, df, required_columns=source.columns)
        result = LoadResult(
            source=source.name,
            origin=origin,
            rows_loaded=df.height,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )
        logger.info(
            "Source loaded",
            source=source.name,
            origin=origin,
            rows=result.rows_loaded,
            duration_seconds=result.load_duration_seconds,
        )
        return result

    def load_frame(self, name: str, df: pl.DataFrame) -> LoadResult:
        """Load an in-memory frame as a source table"""
        return self._register(self._source(name), df, origin="memory", started_at=datetime.utcnow())

    def load_file(self, name: str, path: Union[str, Path]) -> LoadResult:
        """
        Load one source table from a file.

        Raises:
            FileNotFoundError: If path does not exist
            SchemaError: If declared columns are missing
        """
        path = Path(path)
        started_at = datetime.utcnow()
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        file_format = FileFormat(path.suffix.lstrip(".").lower())
        if file_format == FileFormat.CSV:
            df = pl.read_csv(path, null_values=self.null_values, try_parse_dates=True)
        else:
            df = pl.read_parquet(path)

        return self._register(self._source(name), df, origin=str(path), started_at=started_at)

    def load_directory(self, directory: Union[str, Path]) -> List[LoadResult]:
        """
        Load every declared source from ``<directory>/<name>.parquet`` or ``.csv``.

        Parquet wins when both exist.
        """
        directory = Path(directory)
        results = []
        for name in self.sources:
            candidates = [directory / f"{name}.{fmt.value}" for fmt in (FileFormat.PARQUET, FileFormat.CSV)]
            path = next((p for p in candidates if p.exists()), None)
            if path is None:
                raise FileNotFoundError(f"No file for source '{name}' in {directory}")
            results.append(self.load_file(name, path))
        return results

    async def load_from_database(self, schema: Optional[str] = None) -> List[LoadResult]:
        """
        Load every declared source from the source database.

        Requires init_database() to have been called.
        """
        schema = self.warehouse.source_schema if schema is None else schema
        results = []
        async with get_db() as db:
            for source in self.sources.values():
                started_at = datetime.utcnow()
                table = f"{schema}.{source.table_name}" if schema else source.table_name
                result = await db.execute(text(f"SELECT * FROM {table}"))
                columns = [str(c).lower() for c in result.keys()]
                rows = result.fetchall()
                df = pl.DataFrame([tuple(r) for r in rows], schema=columns, orient="row")
                results.append(self._register(source, df, origin=table, started_at=started_at))
        return results
