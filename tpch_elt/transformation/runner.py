"""
ELT Pipeline Runner

Runs the registered models against a warehouse in dependency order and
tests the results. The three entry points mirror the transformation tool's
own commands:

- run:   build the selected models
- test:  run the data tests of the selected models
- build: run, then test the models that built
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

import polars as pl
import structlog

from tpch_elt.config import Settings, get_settings
from tpch_elt.exceptions import ModelExecutionError, RelationNotFoundError, SchemaError
from tpch_elt.models import ModelContext, ModelRegistry, registry as default_registry
from tpch_elt.orchestration.graph import ModelGraph, NodeResult, NodeStatus
from tpch_elt.quality.suite import TestRunResult, run_data_tests
from tpch_elt.warehouse.loader import LoadResult, SourceLoader
from tpch_elt.warehouse.relations import Materialization, Warehouse

logger = structlog.get_logger(__name__)


@dataclass
class RunResult:
    """Result of building models"""
    results: List[NodeResult]
    started_at: datetime
    completed_at: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def _names(self, status: NodeStatus) -> List[str]:
        return [r.name for r in self.results if r.status == status]

    @property
    def succeeded(self) -> List[str]:
        return self._names(NodeStatus.SUCCESS)

    @property
    def failed(self) -> List[str]:
        return self._names(NodeStatus.ERROR)

    @property
    def skipped(self) -> List[str]:
        return self._names(NodeStatus.SKIPPED)

    @property
    def success(self) -> bool:
        return not self.failed

    def get(self, name: str) -> NodeResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(name)

    def raise_on_failure(self) -> None:
        """Raise ModelExecutionError if any model failed"""
        if not self.success:
            raise ModelExecutionError(self.failed, self.skipped)


@dataclass
class BuildResult:
    """Result of a run followed by tests"""
    run: RunResult
    tests: TestRunResult = field(default_factory=TestRunResult)

    @property
    def success(self) -> bool:
        return self.run.success and self.tests.success

    def raise_on_failure(self) -> None:
        self.run.raise_on_failure()
        self.tests.raise_on_failure()


class ELTPipeline:
    """
    Model runner over a warehouse.

    Example:
        pipeline = ELTPipeline()
        pipeline.load_sources("data/raw")
        result = pipeline.build()
        result.raise_on_failure()
    """

    def __init__(
        self,
        warehouse: Optional[Warehouse] = None,
        registry: Optional[ModelRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.warehouse = warehouse or Warehouse(
            database=self.settings.warehouse.database,
            schema=self.settings.warehouse.schema_name,
            source_schema=self.settings.warehouse.source_schema,
            target_dir=self.settings.warehouse.target_dir,
        )
        self.registry = registry if registry is not None else default_registry
        self.graph = ModelGraph(self.registry.dependencies())

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def load_sources(self, source_dir: Optional[Union[str, Path]] = None) -> List[LoadResult]:
        """Load source tables from files in source_dir (configured dir by default)"""
        loader = SourceLoader(self.warehouse)
        return loader.load_directory(source_dir or self.settings.warehouse.source_dir)

    def load_frames(self, **frames: pl.DataFrame) -> List[LoadResult]:
        """Load in-memory frames as source tables, keyed by source name"""
        loader = SourceLoader(self.warehouse)
        return [loader.load_frame(name, df) for name, df in frames.items()]

    def restore(self) -> List[str]:
        """
        Re-attach the models an earlier process built.

        Persisted tables are read back from the target directory and views
        are re-defined over them. Models that cannot be restored are left
        out; their tests then report the relation as missing.
        """
        restored = []
        for name in self.graph.order():
            node = self.registry.get(name)
            materialization = node.resolve_materialization(self.settings.materialization)
            if materialization == Materialization.VIEW:
                try:
                    self._build_model(name)
                except (RelationNotFoundError, SchemaError) as e:
                    logger.warning("Cannot restore view", model=name, error=str(e))
                    continue
            elif self.warehouse.attach(name, materialization) is None:
                continue
            restored.append(name)

        logger.info("Restored models", restored=len(restored), total=len(self.graph.nodes))
        return restored

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _build_model(self, name: str) -> Optional[int]:
        node = self.registry.get(name)
        context = ModelContext(self.warehouse, node)
        relation = self.warehouse.materialize(
            name,
            plan=lambda: node.build(context),
            materialization=node.resolve_materialization(self.settings.materialization),
            unique_key=list(node.unique_key),
        )
        return relation.row_count

    def run(self, select: Optional[Iterable[str]] = None) -> RunResult:
        """
        Build the selected models (all by default) in dependency order.

        A failing model is recorded as an error and its downstream models are
        skipped; the other models still build.
        """
        select = list(select) if select is not None else None
        started_at = datetime.utcnow()
        logger.info(
            "Starting model run",
            select=select if select is not None else "all",
            warehouse=self.warehouse.database,
            schema=self.warehouse.schema,
        )

        results = self.graph.execute(self._build_model, selectors=select)
        run = RunResult(results=results, started_at=started_at, completed_at=datetime.utcnow())

        logger.info(
            "Model run complete",
            succeeded=len(run.succeeded),
            failed=len(run.failed),
            skipped=len(run.skipped),
            duration_seconds=round(run.duration_seconds, 3),
        )
        return run

    def test(
        self,
        select: Optional[Iterable[str]] = None,
        run_date: Optional[date] = None,
    ) -> TestRunResult:
        """Run the data tests of the selected models against the warehouse"""
        models = self.graph.select(select) if select is not None else None
        return run_data_tests(
            self.warehouse,
            models=models,
            run_date=run_date,
            quality=self.settings.quality,
        )

    def build(
        self,
        select: Optional[Iterable[str]] = None,
        run_date: Optional[date] = None,
    ) -> BuildResult:
        """Run the selected models, then test those that built"""
        run = self.run(select)
        tests = run_data_tests(
            self.warehouse,
            models=run.succeeded,
            run_date=run_date,
            quality=self.settings.quality,
        )
        return BuildResult(run=run, tests=tests)
