"""
In-Process Warehouse

Holds every relation a pipeline run reads or writes: source tables loaded
from files or a database, and the models built on top of them.

Materializations:
- view: the model's plan is stored and re-evaluated on every read
- table: the plan is collected once per run and stored
- incremental: new rows replace existing rows with the same unique key;
  the first build behaves like a table

Tables are optionally persisted as parquet under
``<target_dir>/<schema>/<name>.parquet`` so a later process (or an
incremental build) can pick them up.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

import polars as pl
import structlog

from tpch_elt.exceptions import RelationNotFoundError, SchemaError

logger = structlog.get_logger(__name__)

Plan = Callable[[], pl.LazyFrame]


class Materialization(str, Enum):
    """Physical storage strategy of a relation"""
    SOURCE = "source"
    VIEW = "view"
    TABLE = "table"
    INCREMENTAL = "incremental"


@dataclass
class Relation:
    """A named relation held by the warehouse"""
    name: str
    schema: str
    materialization: Materialization
    data: Optional[pl.DataFrame] = None
    plan: Optional[Plan] = None
    path: Optional[Path] = None
    built_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"

    @property
    def row_count(self) -> Optional[int]:
        """Stored rows; None for views, which hold no data"""
        if self.data is None:
            return None
        return self.data.height

    def scan(self) -> pl.LazyFrame:
        if self.plan is not None:
            return self.plan()
        return self.data.lazy()


class Warehouse:
    """
    Relation store with view/table/incremental materializations.

    Example:
        warehouse = Warehouse(schema="dbt_schema")
        warehouse.register_source("orders", orders_df, required_columns=["o_orderkey"])
        warehouse.materialize("stg_orders", plan, Materialization.VIEW)
        df = warehouse.fetch("stg_orders")
    """

    def __init__(
        self,
        database: str = "dbt_db",
        schema: str = "dbt_schema",
        source_schema: str = "tpch_sf1",
        target_dir: Optional[Union[str, Path]] = None,
    ):
        self.database = database
        self.schema = schema
        self.source_schema = source_schema
        self.target_dir = Path(target_dir) if target_dir else None
        self._relations: Dict[str, Relation] = {}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def exists(self, name: str) -> bool:
        return name in self._relations

    def get(self, name: str) -> Relation:
        try:
            return self._relations[name]
        except KeyError:
            raise RelationNotFoundError(
                f"Relation '{name}' not found in {self.database}; "
                f"available: {', '.join(sorted(self._relations)) or 'none'}"
            ) from None

    def read(self, name: str) -> pl.LazyFrame:
        """Lazy scan of a relation; views are re-evaluated"""
        return self.get(name).scan()

    def fetch(self, name: str) -> pl.DataFrame:
        """Collect a relation into memory"""
        return self.read(name).collect()

    @property
    def relations(self) -> List[Relation]:
        return list(self._relations.values())

    def drop(self, name: str) -> None:
        relation = self._relations.pop(name, None)
        if relation is not None:
            logger.info("Dropped relation", relation=relation.qualified_name)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def register_source(
        self,
        name: str,
        df: pl.DataFrame,
        required_columns: Optional[Iterable[str]] = None,
    ) -> Relation:
        """
        Register an externally supplied table.

        Raises:
            SchemaError: If any of required_columns is absent
        """
        if required_columns is not None:
            missing = set(required_columns) - set(df.columns)
            if missing:
                raise SchemaError(f"{self.source_schema}.{name}", missing)

        relation = Relation(
            name=name,
            schema=self.source_schema,
            materialization=Materialization.SOURCE,
            data=df,
        )
        self._relations[name] = relation
        logger.info("Registered source", relation=relation.qualified_name, rows=df.height)
        return relation

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def materialize(
        self,
        name: str,
        plan: Plan,
        materialization: Materialization,
        unique_key: Optional[List[str]] = None,
        schema: Optional[str] = None,
    ) -> Relation:
        """
        Build a model relation from its plan.

        The relation is only replaced once the new one is fully computed, so
        a failing build leaves the previous snapshot in place.

        Raises:
            SchemaError: If the plan references columns its inputs lack
        """
        materialization = Materialization(materialization)
        schema = schema or self.schema

        try:
            if materialization == Materialization.VIEW:
                # Resolving the schema surfaces missing columns at build time
                plan().collect_schema()
                relation = Relation(name=name, schema=schema, materialization=materialization, plan=plan)
            elif materialization == Materialization.TABLE:
                df = plan().collect()
                relation = Relation(name=name, schema=schema, materialization=materialization, data=df)
            elif materialization == Materialization.INCREMENTAL:
                if not unique_key:
                    raise ValueError(f"Incremental model '{name}' requires a unique_key")
                df = self._merge_incremental(name, plan().collect(), unique_key)
                relation = Relation(name=name, schema=schema, materialization=materialization, data=df)
            else:
                raise ValueError(f"Cannot materialize '{name}' as {materialization.value}")
        except pl.exceptions.ColumnNotFoundError as e:
            raise SchemaError(f"{schema}.{name}", [], detail=str(e).splitlines()[0]) from e

        if relation.data is not None and self.target_dir is not None:
            relation.path = self._persist(relation)

        self._relations[name] = relation
        logger.info(
            "Materialized relation",
            relation=relation.qualified_name,
            materialization=materialization.value,
            rows=relation.row_count,
        )
        return relation

    def _merge_incremental(self, name: str, new: pl.DataFrame, unique_key: List[str]) -> pl.DataFrame:
        existing = self._existing_table(name)
        if existing is None:
            logger.info("Incremental model has no prior snapshot, building in full", relation=name)
            return new

        kept = existing.join(new.select(unique_key), on=unique_key, how="anti")
        merged = pl.concat([kept, new.select(existing.columns)], how="vertical_relaxed")
        logger.info(
            "Merged incremental rows",
            relation=name,
            existing_rows=existing.height,
            new_rows=new.height,
            result_rows=merged.height,
        )
        return merged

    def _existing_table(self, name: str) -> Optional[pl.DataFrame]:
        relation = self._relations.get(name)
        if relation is not None and relation.data is not None:
            return relation.data
        path = self._path_for(self.schema, name)
        if path is not None and path.exists():
            return pl.read_parquet(path)
        return None

    def _path_for(self, schema: str, name: str) -> Optional[Path]:
        if self.target_dir is None:
            return None
        return self.target_dir / schema / f"{name}.parquet"

    def _persist(self, relation: Relation) -> Path:
        path = self._path_for(relation.schema, relation.name)
        path.parent.mkdir(parents=True, exist_ok=True)
        relation.data.write_parquet(path)
        logger.debug("Persisted relation", relation=relation.qualified_name, path=str(path))
        return path

    def attach(
        self,
        name: str,
        materialization: Materialization = Materialization.TABLE,
        schema: Optional[str] = None,
    ) -> Optional[Relation]:
        """
        Load a table persisted by an earlier run back into the warehouse.

        ``materialization`` is how the relation was built: table or incremental.

        Returns None when nothing is persisted under that name.
        """
        materialization = Materialization(materialization)
        if materialization not in (Materialization.TABLE, Materialization.INCREMENTAL):
            raise ValueError(f"Cannot attach '{name}' as {materialization.value}; only tables are persisted")
        schema = schema or self.schema
        path = self._path_for(schema, name)
        if path is None or not path.exists():
            return None

        relation = Relation(
            name=name,
            schema=schema,
            materialization=materialization,
            data=pl.read_parquet(path),
            path=path,
        )
        self._relations[name] = relation
        logger.info("Attached persisted relation", relation=relation.qualified_name, rows=relation.row_count)
        return relation
