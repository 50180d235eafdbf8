"""
Data Test Suite

Declares the tests of each model and runs them against a warehouse.

fct_orders:
- order_key unique and not null
- order_key found in stg_tpch_orders (severity configurable, warn by default)
- status_code within the accepted status codes
- no positive discount (fct_orders_discount)
- order_date between the minimum order date and the run date (fct_orders_date_valid)

stg_tpch_line_items:
- order_item_key unique and not null
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

import structlog

from tpch_elt.config import get_settings
from tpch_elt.config.settings import QualitySettings
from tpch_elt.exceptions import DataTestFailure, RelationNotFoundError
from tpch_elt.quality.assertions import order_dates_out_of_range, positive_discounts
from tpch_elt.quality.validators import (
    CheckStatus,
    DataValidator,
    ValidationCheck,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
)
from tpch_elt.warehouse.relations import Warehouse

logger = structlog.get_logger(__name__)


@dataclass
class TestRunResult:
    """Results of every model's data tests in one test run"""
    results: List[ValidationResult] = field(default_factory=list)
    strict: bool = False
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    __test__ = False  # not a pytest class

    @property
    def checks(self) -> List[ValidationCheck]:
        return [check for result in self.results for check in result.checks]

    @property
    def failures(self) -> List[ValidationCheck]:
        """Checks that fail the run"""
        failing = {CheckStatus.FAIL, CheckStatus.ERROR}
        if self.strict:
            failing.add(CheckStatus.WARN)
        return [check for check in self.checks if check.status in failing]

    @property
    def warnings(self) -> List[ValidationCheck]:
        return [check for check in self.checks if check.status == CheckStatus.WARN]

    @property
    def success(self) -> bool:
        return not self.failures

    def for_model(self, model: str) -> ValidationResult:
        for result in self.results:
            if result.model == model:
                return result
        raise KeyError(model)

    def raise_on_failure(self) -> None:
        """Raise DataTestFailure if any check failed the run"""
        if not self.success:
            raise DataTestFailure(self.failures)


def build_test_suite(
    warehouse: Warehouse,
    run_date: Optional[date] = None,
    quality: Optional[QualitySettings] = None,
) -> Dict[str, DataValidator]:
    """
    Build the validators of every tested model.

    Args:
        warehouse: Warehouse the relationship tests resolve against
        run_date: Upper bound for order dates; defaults to today
        quality: Quality settings; defaults to the configured ones
    """
    quality = quality or get_settings().quality
    run_date = run_date or date.today()

    fct_orders = (
        DataValidator("fct_orders", strict_mode=quality.strict)
        .add_unique_check("order_key")
        .add_not_null_check("order_key")
        .add_relationship_check(
            "order_key",
            to="stg_tpch_orders",
            to_column="order_key",
            reference=lambda: warehouse.fetch("stg_tpch_orders"),
            severity=ValidationSeverity.parse(quality.relationship_severity),
        )
        .add_accepted_values_check("status_code", list(quality.accepted_status_codes))
        .add_assertion(
            "fct_orders_discount",
            positive_discounts,
            description="item_discount_amount must never be positive",
        )
        .add_assertion(
            "fct_orders_date_valid",
            order_dates_out_of_range(quality.min_order_date, run_date),
            description=f"order_date must fall within [{quality.min_order_date}, {run_date}]",
        )
    )

    stg_tpch_line_items = (
        DataValidator("stg_tpch_line_items", strict_mode=quality.strict)
        .add_unique_check("order_item_key")
        .add_not_null_check("order_item_key")
    )

    return {
        "stg_tpch_line_items": stg_tpch_line_items,
        "fct_orders": fct_orders,
    }


def _missing_relation_result(model: str, error: RelationNotFoundError) -> ValidationResult:
    check = ValidationCheck(
        name=f"relation_exists_{model}",
        passed=False,
        severity=ValidationSeverity.ERROR,
        message=str(error),
        error=str(error),
    )
    return ValidationResult(
        model=model,
        status=ValidationStatus.FAILED,
        total_checks=1,
        passed_checks=0,
        failed_checks=1,
        warning_count=0,
        checks=[check],
        completed_at=datetime.utcnow(),
    )


def run_data_tests(
    warehouse: Warehouse,
    models: Optional[Iterable[str]] = None,
    run_date: Optional[date] = None,
    quality: Optional[QualitySettings] = None,
) -> TestRunResult:
    """
    Run the data tests of the given models (all tested models by default).

    A model that is not in the warehouse yields a single errored check.
    """
    quality = quality or get_settings().quality
    suite = build_test_suite(warehouse, run_date=run_date, quality=quality)
    wanted = set(models) if models is not None else set(suite)

    run = TestRunResult(strict=quality.strict)
    for model, validator in suite.items():
        if model not in wanted:
            continue
        try:
            df = warehouse.fetch(model)
        except RelationNotFoundError as e:
            logger.error("Cannot test missing model", model=model)
            run.results.append(_missing_relation_result(model, e))
            continue
        run.results.append(validator.validate(df))

    run.completed_at = datetime.utcnow()
    logger.info(
        "Test run complete",
        models=len(run.results),
        checks=len(run.checks),
        failures=len(run.failures),
        warnings=len(run.warnings),
    )
    return run
