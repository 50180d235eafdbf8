"""
Model Orchestration
"""
from .graph import ModelGraph, NodeResult, NodeStatus

__all__ = [
    "ModelGraph",
    "NodeResult",
    "NodeStatus",
]
