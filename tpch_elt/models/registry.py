"""
Model Registry

A model is a function that receives a ModelContext and returns a polars
LazyFrame. It declares the models (``depends_on``) and sources it reads;
those declarations are the edges of the dependency graph, and ``ref()`` /
``source()`` refuse anything undeclared so the graph cannot drift from the
code.

Example:
    registry = ModelRegistry()

    @registry.model(layer="staging", sources=("orders",))
    def stg_orders(ctx):
        return ctx.source("orders").select(pl.col("o_orderkey").alias("order_key"))
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Sequence, Tuple

import polars as pl

from tpch_elt.exceptions import UnknownModelError
from tpch_elt.warehouse.relations import Materialization, Warehouse

LAYERS = ("staging", "intermediate", "marts")


@dataclass(frozen=True)
class ModelNode:
    """A registered model"""
    name: str
    build: Callable[["ModelContext"], pl.LazyFrame]
    layer: str
    depends_on: Tuple[str, ...] = ()
    sources: Tuple[str, ...] = ()
    materialized: Optional[Materialization] = None
    unique_key: Tuple[str, ...] = ()
    description: str = ""

    def resolve_materialization(self, defaults) -> Materialization:
        """Own setting first, then the layer default from MaterializationSettings"""
        if self.materialized is not None:
            return Materialization(self.materialized)
        return Materialization(getattr(defaults, self.layer))


class ModelContext:
    """What a model can see while it builds: its declared refs and sources"""

    def __init__(self, warehouse: Warehouse, node: ModelNode):
        self.warehouse = warehouse
        self.node = node

    def ref(self, name: str) -> pl.LazyFrame:
        if name not in self.node.depends_on:
            raise UnknownModelError(
                f"Model '{self.node.name}' refs '{name}' without declaring it in depends_on"
            )
        return self.warehouse.read(name)

    def source(self, name: str) -> pl.LazyFrame:
        if name not in self.node.sources:
            raise UnknownModelError(
                f"Model '{self.node.name}' reads source '{name}' without declaring it in sources"
            )
        return self.warehouse.read(name)


class ModelRegistry:
    """Named collection of models, in registration order"""

    def __init__(self):
        self._models: Dict[str, ModelNode] = {}

    def register(self, node: ModelNode) -> ModelNode:
        if node.layer not in LAYERS:
            raise ValueError(f"Unknown layer '{node.layer}' for model '{node.name}'; expected one of {LAYERS}")
        if node.name in self._models:
            raise ValueError(f"Model '{node.name}' is already registered")
        self._models[node.name] = node
        return node

    def model(
        self,
        name: Optional[str] = None,
        *,
        layer: str,
        depends_on: Sequence[str] = (),
        sources: Sequence[str] = (),
        materialized: Optional[str] = None,
        unique_key: Sequence[str] = (),
    ) -> Callable:
        """Decorator registering a model function under its own name"""
        def decorator(func: Callable[[ModelContext], pl.LazyFrame]) -> Callable:
            self.register(ModelNode(
                name=name or func.__name__,
                build=func,
                layer=layer,
                depends_on=tuple(depends_on),
                sources=tuple(sources),
                materialized=Materialization(materialized) if materialized else None,
                unique_key=tuple(unique_key),
                description=(func.__doc__ or "").strip(),
            ))
            return func
        return decorator

    def get(self, name: str) -> ModelNode:
        try:
            return self._models[name]
        except KeyError:
            raise UnknownModelError(f"Model '{name}' is not registered") from None

    def __contains__(self, name: str) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[ModelNode]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._models)

    @property
    def sources(self) -> Tuple[str, ...]:
        """Every source any model reads"""
        seen: Dict[str, None] = {}
        for node in self._models.values():
            for source in node.sources:
                seen.setdefault(source)
        return tuple(seen)

    def dependencies(self) -> Dict[str, Tuple[str, ...]]:
        """Model name to upstream model names"""
        return {node.name: node.depends_on for node in self._models.values()}


# Default registry populated by tpch_elt.models.staging/intermediate/marts
registry = ModelRegistry()
model = registry.model
