"""
Transformation Models

Importing this package registers the TPC-H models on the default registry.
"""
from .registry import ModelContext, ModelNode, ModelRegistry, model, registry
from .sources import LINEITEM, ORDERS, TPCH_SOURCES, SourceTable
from . import staging, intermediate, marts  # noqa: F401  (registration)

__all__ = [
    "ModelContext",
    "ModelNode",
    "ModelRegistry",
    "model",
    "registry",
    "SourceTable",
    "ORDERS",
    "LINEITEM",
    "TPCH_SOURCES",
]
