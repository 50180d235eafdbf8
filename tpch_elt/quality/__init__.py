"""
Data Quality Module
"""
from .validators import (
    CheckStatus,
    DataValidator,
    ValidationCheck,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
)
from .suite import TestRunResult, build_test_suite, run_data_tests

__all__ = [
    "CheckStatus",
    "DataValidator",
    "ValidationCheck",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationStatus",
    "TestRunResult",
    "build_test_suite",
    "run_data_tests",
]
