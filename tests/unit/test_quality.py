"""
Unit Tests - Data Quality
"""
from datetime import date
from decimal import Decimal

import pytest
import polars as pl

from tpch_elt.config.settings import QualitySettings
from tpch_elt.exceptions import DataTestFailure
from tpch_elt.quality import (
    CheckStatus,
    DataValidator,
    ValidationSeverity,
    ValidationStatus,
    run_data_tests,
)
from tpch_elt.quality.assertions import order_dates_out_of_range, positive_discounts


class TestDataValidator:
    """Tests for DataValidator"""

    def test_not_null_check_passes(self):
        """Test not null check with valid data"""
        df = pl.DataFrame({"id": [1, 2, 3], "name": ["a", "b", "c"]})

        validator = DataValidator("things")
        validator.add_not_null_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.PASSED
        assert result.passed_checks == 1
        assert result.checks[0].name == "not_null_things_id"

    def test_not_null_check_fails(self):
        """Test not null check with null values"""
        df = pl.DataFrame({"id": [1, None, 3]})

        validator = DataValidator()
        validator.add_not_null_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.failed_checks == 1
        assert result.checks[0].failed_rows == 1
        assert result.checks[0].failing_rows.height == 1

    def test_unique_check_passes(self):
        """Test unique check with unique values, nulls ignored"""
        df = pl.DataFrame({"id": [1, 2, 3, None, None]})

        validator = DataValidator()
        validator.add_unique_check("id")

        result = validator.validate(df)

        assert result.status == ValidationStatus.PASSED

    def test_unique_check_fails(self):
        """Test unique check with duplicates"""
        df = pl.DataFrame({"id": [1, 2, 1, 1]})

        validator = DataValidator()
        validator.add_unique_check("id")

        check = validator.validate(df).checks[0]

        assert check.status == CheckStatus.FAIL
        assert check.failed_rows == 1
        assert check.failing_rows["n_records"].to_list() == [3]

    def test_accepted_values(self):
        """Test values outside the accepted set"""
        df = pl.DataFrame({"status": ["P", "O", "X", "X", None]})

        validator = DataValidator()
        validator.add_accepted_values_check("status", ["P", "O", "F"])

        check = validator.validate(df).checks[0]

        assert check.status == CheckStatus.FAIL
        assert check.failed_rows == 2

    def test_relationship(self):
        """Test values missing from the referenced relation"""
        df = pl.DataFrame({"order_key": [1, 2, 5]})
        parents = pl.DataFrame({"key": [1, 2, 3]})

        validator = DataValidator("facts")
        validator.add_relationship_check("order_key", to="orders", to_column="key", reference=lambda: parents)

        check = validator.validate(df).checks[0]

        assert check.name == "relationships_facts_order_key__key__orders"
        assert check.failed_rows == 1
        assert check.failing_rows["order_key"].to_list() == [5]

    def test_warning_severity(self):
        """Test a failing warning check gives a partial result"""
        df = pl.DataFrame({"id": [1, None]})

        validator = DataValidator()
        validator.add_not_null_check("id", severity=ValidationSeverity.WARNING)

        result = validator.validate(df)

        assert result.status == ValidationStatus.PARTIAL
        assert result.warning_count == 1
        assert result.checks[0].status == CheckStatus.WARN

    def test_strict_mode(self):
        """Test strict mode fails on warnings"""
        df = pl.DataFrame({"id": [1, None]})

        validator = DataValidator(strict_mode=True)
        validator.add_not_null_check("id", severity=ValidationSeverity.WARNING)

        assert validator.validate(df).status == ValidationStatus.FAILED

    def test_missing_column(self):
        """Test a check on an absent column errors"""
        df = pl.DataFrame({"id": [1]})

        validator = DataValidator()
        validator.add_not_null_check("other")

        check = validator.validate(df).checks[0]

        assert check.status == CheckStatus.ERROR

    def test_assertion(self):
        """Test a row-producing assertion"""
        df = pl.DataFrame({"amount": [-1.0, 2.0, 3.0]})

        validator = DataValidator()
        validator.add_assertion("no_positive", lambda lf: lf.filter(pl.col("amount") > 0))

        check = validator.validate(df).checks[0]

        assert check.name == "no_positive"
        assert check.failed_rows == 2

    def test_broken_check_reported(self):
        """Test an exception inside a check becomes an error result"""
        df = pl.DataFrame({"amount": [1.0]})

        validator = DataValidator()
        validator.add_assertion("broken", lambda lf: lf.select("missing"))
        validator.add_not_null_check("amount")

        result = validator.validate(df)

        assert result.checks[0].status == CheckStatus.ERROR
        assert result.checks[1].status == CheckStatus.PASS

    def test_severity_parse(self):
        """Test configuration spellings of severity"""
        assert ValidationSeverity.parse("warn") == ValidationSeverity.WARNING
        assert ValidationSeverity.parse("ERROR") == ValidationSeverity.ERROR
        with pytest.raises(ValueError):
            ValidationSeverity.parse("fatal")


class TestAssertions:
    """Tests for the fct_orders business rules"""

    def test_positive_discounts(self):
        """Test only positive discount totals are returned"""
        lf = pl.DataFrame({
            "order_key": [1, 2, 3],
            "item_discount_amount": [Decimal("-1.00"), Decimal("0.00"), Decimal("0.01")],
        }).lazy()

        assert positive_discounts(lf).collect()["order_key"].to_list() == [3]

    def test_order_dates_out_of_range(self):
        """Test dates before the minimum or after the run date"""
        lf = pl.DataFrame({
            "order_key": [1, 2, 3, 4],
            "order_date": [date(1989, 12, 31), date(1990, 1, 1), date(2024, 1, 1), date(2024, 1, 2)],
        }).lazy()

        query = order_dates_out_of_range(date(1990, 1, 1), date(2024, 1, 1))

        assert query(lf).collect()["order_key"].to_list() == [1, 4]


class TestDataTestSuite:
    """Tests for the model test suite"""

    def test_all_pass(self, built_pipeline):
        """Test the built models pass their tests"""
        result = run_data_tests(built_pipeline.warehouse, run_date=date(2024, 1, 1))

        assert result.success
        assert {r.model for r in result.results} == {"stg_tpch_line_items", "fct_orders"}
        assert {c.name for c in result.checks} >= {
            "unique_fct_orders_order_key",
            "not_null_fct_orders_order_key",
            "accepted_values_fct_orders_status_code",
            "relationships_fct_orders_order_key__order_key__stg_tpch_orders",
            "fct_orders_discount",
            "fct_orders_date_valid",
            "unique_stg_tpch_line_items_order_item_key",
            "not_null_stg_tpch_line_items_order_item_key",
        }
        result.raise_on_failure()

    def test_future_order_fails(self, built_pipeline):
        """Test an order dated after the run date fails the run"""
        result = run_data_tests(built_pipeline.warehouse, run_date=date(1996, 1, 1))

        check = result.for_model("fct_orders").get("fct_orders_date_valid")
        assert check.status == CheckStatus.FAIL
        assert check.failing_rows["order_key"].to_list() == [3]
        assert not result.success
        with pytest.raises(DataTestFailure):
            result.raise_on_failure()

    def test_unknown_status_fails(self, pipeline, orders_df, lineitem_df):
        """Test a status code outside P/O/F fails"""
        pipeline.load_frames(orders=orders_df.with_columns(pl.lit("X").alias("o_orderstatus")))
        pipeline.run().raise_on_failure()

        result = pipeline.test(run_date=date(2024, 1, 1))

        check = result.for_model("fct_orders").get("accepted_values_fct_orders_status_code")
        assert check.status == CheckStatus.FAIL
        assert not result.success

    def test_relationship_warns_by_default(self, built_pipeline):
        """Test an orphaned fact key only warns"""
        built_pipeline.warehouse.register_source(
            "fct_orders",
            built_pipeline.warehouse.fetch("fct_orders").with_columns(pl.col("order_key") + 1000),
        )

        result = run_data_tests(built_pipeline.warehouse, models=["fct_orders"], run_date=date(2024, 1, 1))

        check = result.for_model("fct_orders").get(
            "relationships_fct_orders_order_key__order_key__stg_tpch_orders"
        )
        assert check.status == CheckStatus.WARN
        assert result.success
        assert len(result.warnings) == 1

    def test_relationship_error_severity(self, built_pipeline):
        """Test relationship severity can be raised to error"""
        built_pipeline.warehouse.register_source(
            "fct_orders",
            built_pipeline.warehouse.fetch("fct_orders").with_columns(pl.col("order_key") + 1000),
        )

        result = run_data_tests(
            built_pipeline.warehouse,
            models=["fct_orders"],
            run_date=date(2024, 1, 1),
            quality=QualitySettings(relationship_severity="error"),
        )

        assert not result.success

    def test_strict_promotes_warnings(self, built_pipeline):
        """Test strict mode turns warnings into failures"""
        built_pipeline.warehouse.register_source(
            "fct_orders",
            built_pipeline.warehouse.fetch("fct_orders").with_columns(pl.col("order_key") + 1000),
        )

        result = run_data_tests(
            built_pipeline.warehouse,
            models=["fct_orders"],
            run_date=date(2024, 1, 1),
            quality=QualitySettings(strict=True),
        )

        assert not result.success
        assert len(result.failures) == 1

    def test_missing_model_errors(self, warehouse):
        """Test testing a model that was never built"""
        result = run_data_tests(warehouse, models=["fct_orders"])

        check = result.for_model("fct_orders").get("relation_exists_fct_orders")
        assert check.status == CheckStatus.ERROR
        assert not result.success
