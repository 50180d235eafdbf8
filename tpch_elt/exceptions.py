"""
Exception hierarchy for the TPC-H ELT pipeline.

Errors are grouped by how the run reacts to them: schema and graph errors are
fatal, model failures skip downstream models, data test failures fail the run
after all tests have reported.
"""

from typing import Iterable, List, Optional


class ELTError(Exception):
    """
    Base exception for all pipeline errors.

    Catch this at the orchestrator boundary to distinguish pipeline failures
    from unexpected bugs.
    """


class SchemaError(ELTError):
    """
    Raised when a source table or an upstream relation lacks columns a model reads.

    Fatal: fixed by updating the staging definitions, never retried.
    """

    def __init__(self, relation: str, missing_columns: Iterable[str], detail: Optional[str] = None):
        self.relation = relation
        self.missing_columns = sorted(missing_columns)
        message = f"Relation '{relation}' is missing columns: {', '.join(self.missing_columns) or '?'}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RelationNotFoundError(ELTError):
    """Raised when ref() or source() names a relation the warehouse does not hold."""


class GraphError(ELTError):
    """Base class for invalid model graphs."""


class UnknownModelError(GraphError):
    """Raised when a model depends on, or a selector names, a model that is not registered."""


class DependencyCycleError(GraphError):
    """Raised when model dependencies form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"Dependency cycle detected: {' -> '.join(cycle)}")


class ModelExecutionError(ELTError):
    """Raised after a run in which at least one model failed."""

    def __init__(self, failed: List[str], skipped: Optional[List[str]] = None):
        self.failed = failed
        self.skipped = skipped or []
        message = f"{len(failed)} model(s) failed: {', '.join(failed)}"
        if self.skipped:
            message += f"; {len(self.skipped)} skipped: {', '.join(self.skipped)}"
        super().__init__(message)


class DataTestFailure(ELTError):
    """
    Raised after a test run in which at least one error-severity test failed.

    The failing test results are attached for inspection.
    """

    def __init__(self, failures: list):
        self.failures = failures
        names = ", ".join(f.name for f in failures)
        super().__init__(f"{len(failures)} data test(s) failed: {names}")


class WarehouseConnectionError(ELTError):
    """Raised when the source database cannot be reached. Retry is the orchestrator's call."""
