"""
Prefect Workflow Orchestration - Daily TPC-H ELT

Daily workflow that loads the TPC-H sources, builds the models and runs the
data tests, with:
- Cron schedule from settings.schedule (midnight by default)
- Retries owned by the flow, never by the pipeline
- Alerting on failure
"""

from datetime import date
from typing import List, Optional

from prefect import flow, get_run_logger, task
from prefect.cache_policies import NONE

from tpch_elt.config import get_settings
from tpch_elt.quality.suite import TestRunResult
from tpch_elt.transformation import ELTPipeline, RunResult
from tpch_elt.warehouse import SourceLoader, close_database, init_database

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="load_sources",
    description="Load orders/lineitem into the warehouse",
    cache_policy=NONE,
)
async def load_sources(
    pipeline: ELTPipeline,
    source_dir: Optional[str] = None,
    from_database: bool = False,
) -> dict:
    """Load source tables from files or from the source database"""
    logger = get_run_logger()

    if from_database:
        await init_database()
        try:
            results = await SourceLoader(pipeline.warehouse).load_from_database()
        finally:
            await close_database()
    else:
        results = pipeline.load_sources(source_dir)

    logger.info(f"Loaded {len(results)} sources: " + ", ".join(f"{r.source}={r.rows_loaded}" for r in results))
    return {r.source: r.rows_loaded for r in results}


@task(
    name="run_models",
    description="Build models in dependency order",
    cache_policy=NONE,
)
async def run_models(pipeline: ELTPipeline, select: Optional[List[str]] = None) -> RunResult:
    """Build the selected models"""
    logger = get_run_logger()

    run = pipeline.run(select)

    logger.info(
        f"Model run complete: {len(run.succeeded)} succeeded, "
        f"{len(run.failed)} failed, {len(run.skipped)} skipped"
    )
    return run


@task(
    name="run_data_tests",
    description="Run data tests on built models",
    cache_policy=NONE,
)
async def run_data_tests(
    pipeline: ELTPipeline,
    models: Optional[List[str]] = None,
    run_date: Optional[date] = None,
) -> TestRunResult:
    """Run the data tests of the given models"""
    logger = get_run_logger()

    tests = pipeline.test(models, run_date=run_date)

    logger.info(
        f"Data tests complete: {len(tests.checks)} checks, "
        f"{len(tests.failures)} failures, {len(tests.warnings)} warnings"
    )
    return tests


@task(
    name="send_alert",
    description="Send alert notification",
)
async def send_alert(
    alert_type: str,
    message: str,
    severity: str = "info",
) -> None:
    """Send alert notification"""
    logger = get_run_logger()
    # Routed through the flow run logs; notification blocks attach to these
    logger.warning(f"[{severity.upper()}] {alert_type}: {message}")


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="daily_tpch_elt",
    description="Daily TPC-H ELT: load sources, build models, run data tests",
    retries=settings.schedule.retries,
    retry_delay_seconds=settings.schedule.retry_delay_seconds,
)
async def daily_tpch_elt(
    source_dir: Optional[str] = None,
    from_database: bool = False,
    select: Optional[List[str]] = None,
    run_date: Optional[date] = None,
) -> dict:
    """
    Daily TPC-H ELT pipeline.

    Steps:
    1. Load orders and lineitem
    2. Build the selected models (all by default)
    3. Test the models that built
    4. Alert and fail the flow if any model or test failed
    """
    logger = get_run_logger()
    today = date.today()
    run_date = run_date or today
    schedule = settings.schedule

    if run_date < schedule.start_date:
        logger.info(f"Run date {run_date} precedes start date {schedule.start_date}; nothing to do")
        return {"run_date": run_date.isoformat(), "status": "skipped"}
    if run_date < today and not schedule.catchup:
        logger.info(f"Run date {run_date} is in the past and catchup is off; nothing to do")
        return {"run_date": run_date.isoformat(), "status": "skipped"}

    logger.info(f"Starting daily TPC-H ELT for {run_date}")

    pipeline = ELTPipeline()
    results = {
        "run_date": run_date.isoformat(),
        "steps": {},
    }

    try:
        results["steps"]["load_sources"] = await load_sources(pipeline, source_dir, from_database)

        run = await run_models(pipeline, select)
        results["steps"]["run_models"] = {
            "succeeded": run.succeeded,
            "failed": run.failed,
            "skipped": run.skipped,
            "duration_seconds": run.duration_seconds,
        }

        tests = await run_data_tests(pipeline, run.succeeded, run_date)
        results["steps"]["run_data_tests"] = {
            "checks": len(tests.checks),
            "failures": [check.name for check in tests.failures],
            "warnings": [check.name for check in tests.warnings],
        }

        run.raise_on_failure()
        tests.raise_on_failure()

        await send_alert(
            alert_type="ELT Complete",
            message=f"Daily TPC-H ELT completed successfully for {run_date}",
            severity="info",
        )
        results["status"] = "success"

    except Exception as e:
        logger.error(f"ELT pipeline failed: {e}")

        await send_alert(
            alert_type="ELT Failed",
            message=f"Daily TPC-H ELT failed: {str(e)}",
            severity="critical",
        )

        results["status"] = "failed"
        results["error"] = str(e)
        raise

    return results


# =============================================================================
# DEPLOYMENT CONFIGURATION
# =============================================================================

if __name__ == "__main__":
    import argparse
    import asyncio

    parser = argparse.ArgumentParser(description="Daily TPC-H ELT flow")
    parser.add_argument("--serve", action="store_true", help="Serve the flow on its cron schedule")
    parser.add_argument("--source-dir", help="Directory holding orders/lineitem files")
    parser.add_argument("--from-database", action="store_true", help="Load sources from the source database")
    args = parser.parse_args()

    if args.serve:
        daily_tpch_elt.serve(
            name="daily-tpch-elt",
            cron=settings.schedule.cron,
            parameters={"source_dir": args.source_dir, "from_database": args.from_database},
        )
    else:
        asyncio.run(daily_tpch_elt(source_dir=args.source_dir, from_database=args.from_database))
