"""
Unit Tests - Daily ELT Flow
"""
from datetime import date, timedelta

import pytest
import polars as pl
from prefect.testing.utilities import prefect_test_harness

import workflows.daily_elt as daily_elt
from tpch_elt.config import Settings
from tpch_elt.config.settings import ScheduleSettings
from tpch_elt.exceptions import DataTestFailure


@pytest.fixture(autouse=True, scope="module")
def prefect_backend():
    """Temporary Prefect database for flow runs"""
    with prefect_test_harness():
        yield


@pytest.fixture
def alerts(monkeypatch):
    """Record alerts instead of sending them"""
    sent = []

    async def record_alert(alert_type, message, severity="info"):
        sent.append((alert_type, severity))

    monkeypatch.setattr(daily_elt, "send_alert", record_alert)
    return sent


@pytest.fixture
def source_dir(tmp_path, orders_df, lineitem_df):
    """Directory holding orders and lineitem as parquet"""
    orders_df.write_parquet(tmp_path / "orders.parquet")
    lineitem_df.write_parquet(tmp_path / "lineitem.parquet")
    return tmp_path


def _use_schedule(monkeypatch, **schedule):
    monkeypatch.setattr(
        daily_elt,
        "settings",
        Settings(app_env="testing", schedule=ScheduleSettings(**schedule)),
    )


class TestDailyFlow:
    """Tests for daily_tpch_elt"""

    @pytest.mark.asyncio
    async def test_skips_before_start_date(self, monkeypatch, alerts):
        """Test run dates before the start date do nothing, catchup or not"""
        _use_schedule(monkeypatch, start_date=date(2023, 9, 10), catchup=True)

        result = await daily_elt.daily_tpch_elt(run_date=date(2023, 9, 9))

        assert result == {"run_date": "2023-09-09", "status": "skipped"}
        assert alerts == []

    @pytest.mark.asyncio
    async def test_skips_past_date_without_catchup(self, monkeypatch, alerts):
        """Test past run dates are not back-filled when catchup is off"""
        _use_schedule(monkeypatch, start_date=date(2023, 9, 10), catchup=False)
        yesterday = date.today() - timedelta(days=1)

        result = await daily_elt.daily_tpch_elt(run_date=yesterday)

        assert result["status"] == "skipped"

    @pytest.mark.asyncio
    async def test_successful_run(self, source_dir, alerts):
        """Test a run over clean sources builds and tests every model"""
        result = await daily_elt.daily_tpch_elt(source_dir=str(source_dir))

        assert result["status"] == "success"
        assert result["run_date"] == date.today().isoformat()
        assert result["steps"]["load_sources"] == {"orders": 3, "lineitem": 4}
        assert result["steps"]["run_models"]["failed"] == []
        assert len(result["steps"]["run_models"]["succeeded"]) == 5
        assert result["steps"]["run_data_tests"]["failures"] == []
        assert alerts == [("ELT Complete", "info")]

    @pytest.mark.asyncio
    async def test_catchup_runs_past_date(self, monkeypatch, source_dir, alerts):
        """Test past run dates after the start date run when catchup is on"""
        _use_schedule(monkeypatch, start_date=date(2023, 9, 10), catchup=True)

        result = await daily_elt.daily_tpch_elt(
            source_dir=str(source_dir),
            run_date=date(2024, 1, 1),
        )

        assert result["status"] == "success"
        assert result["run_date"] == "2024-01-01"

    @pytest.mark.asyncio
    async def test_failing_data_test(self, tmp_path, orders_df, lineitem_df, alerts):
        """Test a failing data test fails the flow and sends a critical alert"""
        orders = orders_df.with_columns(
            pl.when(pl.col("o_orderkey") == 1)
            .then(pl.lit("X"))
            .otherwise(pl.col("o_orderstatus"))
            .alias("o_orderstatus")
        )
        orders.write_parquet(tmp_path / "orders.parquet")
        lineitem_df.write_parquet(tmp_path / "lineitem.parquet")

        with pytest.raises(DataTestFailure):
            await daily_elt.daily_tpch_elt(source_dir=str(tmp_path))

        assert alerts == [("ELT Failed", "critical")]
