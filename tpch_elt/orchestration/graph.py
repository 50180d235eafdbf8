"""
Model Dependency Graph

Directed acyclic graph of models built from their declared upstream
dependencies. Provides topological order, tiers of mutually independent
models, dbt-style selection, and execution in which a failed model causes
every model downstream of it to be skipped.

Selectors:
    name      the model alone
    +name     the model and everything upstream of it
    name+     the model and everything downstream of it
    +name+    both directions
"""

import time
from dataclasses import dataclass
from enum import Enum
from graphlib import CycleError, TopologicalSorter
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

import structlog

from tpch_elt.exceptions import DependencyCycleError, UnknownModelError

logger = structlog.get_logger(__name__)


class NodeStatus(str, Enum):
    """Outcome of a node in a run"""
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class NodeResult:
    """Result of executing one node"""
    name: str
    status: NodeStatus
    duration_seconds: float = 0.0
    rows: Optional[int] = None
    message: Optional[str] = None


class ModelGraph:
    """
    Dependency graph over model names.

    Example:
        graph = ModelGraph({"stg": (), "fct": ("stg",)})
        graph.order()            # ["stg", "fct"]
        graph.select(["fct+"])   # {"fct"}
    """

    def __init__(self, dependencies: Mapping[str, Iterable[str]]):
        self._upstream: Dict[str, Set[str]] = {name: set(deps) for name, deps in dependencies.items()}
        self._downstream: Dict[str, Set[str]] = {name: set() for name in self._upstream}

        for name, deps in self._upstream.items():
            for dep in deps:
                if dep not in self._upstream:
                    raise UnknownModelError(f"Model '{name}' depends on unknown model '{dep}'")
                self._downstream[dep].add(name)

        self._order = self._topological_order()

    def _sorter(self) -> TopologicalSorter:
        return TopologicalSorter({name: sorted(deps) for name, deps in self._upstream.items()})

    def _topological_order(self) -> List[str]:
        sorter = self._sorter()
        try:
            return list(sorter.static_order())
        except CycleError as e:
            raise DependencyCycleError(list(e.args[1])) from e

    @property
    def nodes(self) -> List[str]:
        return list(self._order)

    def upstream(self, name: str) -> Set[str]:
        self._require(name)
        return set(self._upstream[name])

    def downstream(self, name: str) -> Set[str]:
        self._require(name)
        return set(self._downstream[name])

    def ancestors(self, name: str) -> Set[str]:
        return self._walk(name, self._upstream)

    def descendants(self, name: str) -> Set[str]:
        return self._walk(name, self._downstream)

    def _walk(self, name: str, edges: Dict[str, Set[str]]) -> Set[str]:
        self._require(name)
        seen: Set[str] = set()
        stack = list(edges[name])
        while stack:
            current = stack.pop()
            if current not in seen:
                seen.add(current)
                stack.extend(edges[current])
        return seen

    def _require(self, name: str) -> None:
        if name not in self._upstream:
            raise UnknownModelError(f"Model '{name}' is not in the graph")

    def order(self, nodes: Optional[Iterable[str]] = None) -> List[str]:
        """Topological order, optionally restricted to a subset"""
        if nodes is None:
            return list(self._order)
        wanted = set(nodes)
        for name in wanted:
            self._require(name)
        return [name for name in self._order if name in wanted]

    def tiers(self) -> List[List[str]]:
        """Generations of models whose upstreams are all in earlier generations"""
        sorter = self._sorter()
        sorter.prepare()
        tiers = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready())
            tiers.append(ready)
            sorter.done(*ready)
        return tiers

    def select(self, selectors: Optional[Iterable[str]] = None) -> Set[str]:
        """Resolve selectors into model names; None selects everything"""
        if selectors is None:
            return set(self._upstream)

        selected: Set[str] = set()
        for selector in selectors:
            name = selector.strip("+")
            self._require(name)
            selected.add(name)
            if selector.startswith("+"):
                selected |= self.ancestors(name)
            if selector.endswith("+"):
                selected |= self.descendants(name)
        return selected

    def execute(
        self,
        run_node: Callable[[str], Optional[int]],
        selectors: Optional[Iterable[str]] = None,
    ) -> List[NodeResult]:
        """
        Run selected nodes in topological order.

        ``run_node`` builds one node and returns its row count (or None). If it
        raises, the node is recorded as an error and every selected node
        downstream of it is skipped without being called. Unselected
        upstreams are assumed to exist already.
        """
        results: List[NodeResult] = []
        blocked: Dict[str, str] = {}

        for name in self.order(self.select(selectors)):
            failed_upstream = sorted(dep for dep in self._upstream[name] if dep in blocked)
            if failed_upstream:
                blocked[name] = blocked[failed_upstream[0]]
                logger.warning("Skipping model", model=name, because_of=blocked[name])
                results.append(NodeResult(
                    name=name,
                    status=NodeStatus.SKIPPED,
                    message=f"Skipped because upstream '{blocked[name]}' failed",
                ))
                continue

            started = time.perf_counter()
            logger.info("Running model", model=name)
            try:
                rows = run_node(name)
            except Exception as e:
                duration = time.perf_counter() - started
                blocked[name] = name
                logger.error(
                    "Model failed",
                    model=name,
                    error=str(e),
                    error_type=type(e).__name__,
                    duration_seconds=round(duration, 3),
                )
                results.append(NodeResult(
                    name=name,
                    status=NodeStatus.ERROR,
                    duration_seconds=duration,
                    message=f"{type(e).__name__}: {e}",
                ))
                continue

            duration = time.perf_counter() - started
            logger.info("Model finished", model=name, rows=rows, duration_seconds=round(duration, 3))
            results.append(NodeResult(
                name=name,
                status=NodeStatus.SUCCESS,
                duration_seconds=duration,
                rows=rows,
            ))

        return results
