"""
Data Validation Module

Rule-based data tests run against built models.

Two kinds of checks:
- Column constraints: not null, unique, accepted values, relationships
- Row-producing assertions: a query over the model that must return no rows

Each check carries its own severity. An ERROR check that fails fails the
run; a WARNING check that fails is reported and the run continues, unless
the validator runs in strict mode.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

# Offending rows kept on a check for inspection
FAILING_ROWS_LIMIT = 100


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Critical - fails the run
    WARNING = "warning"  # Non-critical - logged but continues

    @classmethod
    def parse(cls, value: str) -> "ValidationSeverity":
        """Accept the short forms used in configuration ("warn", "error")"""
        aliases = {"warn": cls.WARNING, "warning": cls.WARNING, "error": cls.ERROR}
        try:
            return aliases[str(value).lower()]
        except KeyError:
            raise ValueError(f"Unknown severity: {value}") from None


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


class CheckStatus(str, Enum):
    """Outcome of a single check"""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    ERROR = "error"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0
    failing_rows: Optional[pl.DataFrame] = None
    error: Optional[str] = None

    @property
    def status(self) -> CheckStatus:
        if self.error is not None:
            return CheckStatus.ERROR
        if self.passed:
            return CheckStatus.PASS
        if self.severity == ValidationSeverity.WARNING:
            return CheckStatus.WARN
        return CheckStatus.FAIL


@dataclass
class ValidationResult:
    """Complete validation suite result for one model"""
    model: str
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def get(self, name: str) -> ValidationCheck:
        for check in self.checks:
            if check.name == name:
                return check
        raise KeyError(name)


Check = Callable[[pl.DataFrame], ValidationCheck]


class DataValidator:
    """
    Data test suite for one model.

    Example:
        validator = DataValidator("fct_orders")
        validator.add_not_null_check("order_key")
        validator.add_accepted_values_check("status_code", ["P", "O", "F"])
        result = validator.validate(df)
    """

    def __init__(self, model: str = "", strict_mode: bool = False):
        self.model = model
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Tuple[str, Check]] = []

    @staticmethod
    def _missing_column(name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column '{column}' not found",
            error=f"Column '{column}' not found",
        )

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        name = f"not_null_{self.model}_{column}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            offending = df.filter(pl.col(column).is_null())
            null_count = offending.height
            total = df.height
            passed = null_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"null_count": null_count, "null_percentage": (null_count / total) * 100 if total > 0 else 0},
                failed_rows=null_count,
                total_rows=total,
                failing_rows=offending.head(FAILING_ROWS_LIMIT) if not passed else None,
            )

        self._checks.append((name, check))
        return self

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for uniqueness of non-null column values"""
        name = f"unique_{self.model}_{column}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            duplicates = (
                df.filter(pl.col(column).is_not_null())
                .group_by(column)
                .agg(pl.len().alias("n_records"))
                .filter(pl.col("n_records") > 1)
            )
            duplicate_count = duplicates.height
            passed = duplicate_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {duplicate_count} duplicated values" if not passed else f"Column '{column}' values are unique",
                details={"duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=df.height,
                failing_rows=duplicates.head(FAILING_ROWS_LIMIT) if not passed else None,
            )

        self._checks.append((name, check))
        return self

    def add_accepted_values_check(
        self,
        column: str,
        allowed_values: List[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for non-null values in an allowed set"""
        name = f"accepted_values_{self.model}_{column}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            offending = (
                df.filter(~pl.col(column).is_in(allowed_values) & pl.col(column).is_not_null())
                .group_by(column)
                .agg(pl.len().alias("n_records"))
            )
            invalid = int(offending["n_records"].sum()) if offending.height else 0
            passed = invalid == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {invalid} values outside {allowed_values}" if not passed else "All values are accepted",
                details={"allowed_values": list(allowed_values), "invalid_count": invalid},
                failed_rows=invalid,
                total_rows=df.height,
                failing_rows=offending if not passed else None,
            )

        self._checks.append((name, check))
        return self

    def add_relationship_check(
        self,
        column: str,
        to: str,
        to_column: str,
        reference: Callable[[], pl.DataFrame],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """
        Add referential integrity check.

        Every non-null value of ``column`` must exist in ``to.to_column``. The
        reference frame is resolved when the check runs, so it reflects the
        warehouse at test time.
        """
        name = f"relationships_{self.model}_{column}__{to_column}__{to}"

        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            parents = reference().select(pl.col(to_column).alias(column)).unique()
            orphans = (
                df.filter(pl.col(column).is_not_null())
                .select(column)
                .join(parents, on=column, how="anti")
            )
            orphan_count = orphans.height
            passed = orphan_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {orphan_count} values missing from {to}.{to_column}" if not passed else "Referential integrity maintained",
                details={"to": to, "to_column": to_column, "orphan_count": orphan_count},
                failed_rows=orphan_count,
                total_rows=df.height,
                failing_rows=orphans.head(FAILING_ROWS_LIMIT) if not passed else None,
            )

        self._checks.append((name, check))
        return self

    def add_assertion(
        self,
        name: str,
        query: Callable[[pl.LazyFrame], pl.LazyFrame],
        description: str = "",
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """
        Add a row-producing assertion.

        ``query`` selects the rows that violate a business rule; the check
        fails if it returns any.
        """
        def check(df: pl.DataFrame) -> ValidationCheck:
            offending = query(df.lazy()).collect()
            failed = offending.height
            passed = failed == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"{failed} rows violate: {description or name}" if not passed else "No offending rows",
                details={"description": description},
                failed_rows=failed,
                total_rows=df.height,
                failing_rows=offending.head(FAILING_ROWS_LIMIT) if not passed else None,
            )

        self._checks.append((name, check))
        return self

    @staticmethod
    def _run_check(name: str, check_func: Check, df: pl.DataFrame) -> ValidationCheck:
        try:
            return check_func(df)
        except Exception as e:
            # A check that cannot run is reported, not raised, so the rest still run
            return ValidationCheck(
                name=name,
                passed=False,
                severity=ValidationSeverity.ERROR,
                message=f"Check failed with error: {e}",
                error=f"{type(e).__name__}: {e}",
            )

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on a model's rows.

        Args:
            df: Collected model output

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.utcnow()
        results = []

        logger.info("Running data tests", model=self.model, checks=len(self._checks), rows=df.height)

        for name, check_func in self._checks:
            result = self._run_check(name, check_func, df)
            results.append(result)

            if not result.passed:
                log = logger.warning if result.status == CheckStatus.WARN else logger.error
                log(
                    "Data test did not pass",
                    test=result.name,
                    status=result.status.value,
                    message=result.message,
                    failures=result.failed_rows,
                )

        completed_at = datetime.utcnow()

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if r.status in (CheckStatus.FAIL, CheckStatus.ERROR))
        warning_count = sum(1 for r in results if r.status == CheckStatus.WARN)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        validation_result = ValidationResult(
            model=self.model,
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=completed_at,
        )

        logger.info(
            "Data tests complete",
            model=self.model,
            status=status.value,
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return validation_result
