"""
Transformation Module
"""
from .runner import BuildResult, ELTPipeline, RunResult

__all__ = [
    "BuildResult",
    "ELTPipeline",
    "RunResult",
]
