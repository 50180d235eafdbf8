"""
Command Line Entry Point

Usage:
    tpch-elt run   [--select MODEL ...] [--source-dir DIR] [--target-dir DIR]
    tpch-elt test  [--select MODEL ...] [--source-dir DIR] [--target-dir DIR] [--run-date YYYY-MM-DD]
    tpch-elt build [--select MODEL ...] [--source-dir DIR] [--target-dir DIR] [--run-date YYYY-MM-DD]
    tpch-elt generate --orders N --output DIR

Exit code is 0 on success and 1 when a model or data test fails.
"""

import argparse
import sys
from datetime import date
from typing import List, Optional

import structlog

from tpch_elt.config import get_settings
from tpch_elt.config.logging import configure_logging
from tpch_elt.data import TPCHGenerator
from tpch_elt.exceptions import ELTError
from tpch_elt.quality.suite import TestRunResult
from tpch_elt.transformation import ELTPipeline, RunResult
from tpch_elt.warehouse import Warehouse

logger = structlog.get_logger(__name__)


def _add_pipeline_arguments(parser: argparse.ArgumentParser, with_run_date: bool) -> None:
    parser.add_argument(
        "-s", "--select",
        nargs="+",
        metavar="MODEL",
        help="Models to include: name, +name (with upstream), name+ (with downstream)",
    )
    parser.add_argument("--source-dir", help="Directory holding orders/lineitem files")
    parser.add_argument("--target-dir", help="Directory to persist built tables in")
    if with_run_date:
        parser.add_argument(
            "--run-date",
            type=date.fromisoformat,
            help="Upper bound for valid order dates (default: today)",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tpch-elt", description="TPC-H ELT pipeline")
    parser.add_argument("--log-level", help="Override log level")
    parser.add_argument("--log-format", choices=["json", "console"], help="Override log format")

    commands = parser.add_subparsers(dest="command", required=True)

    _add_pipeline_arguments(commands.add_parser("run", help="Build models"), with_run_date=False)
    _add_pipeline_arguments(commands.add_parser("test", help="Run data tests on built models"), with_run_date=True)
    _add_pipeline_arguments(commands.add_parser("build", help="Build models, then test them"), with_run_date=True)

    generate = commands.add_parser("generate", help="Write sample source files")
    generate.add_argument("--orders", type=int, default=1000, help="Number of orders")
    generate.add_argument("--output", required=True, help="Output directory")
    generate.add_argument("--format", choices=["parquet", "csv"], default="parquet", dest="file_format")
    generate.add_argument("--seed", type=int, default=42)

    return parser


def _pipeline(args: argparse.Namespace) -> ELTPipeline:
    settings = get_settings()
    warehouse = Warehouse(
        database=settings.warehouse.database,
        schema=settings.warehouse.schema_name,
        source_schema=settings.warehouse.source_schema,
        target_dir=args.target_dir or settings.warehouse.target_dir,
    )
    pipeline = ELTPipeline(warehouse=warehouse, settings=settings)
    pipeline.load_sources(args.source_dir)
    return pipeline


def _report_run(run: RunResult) -> None:
    for result in run.results:
        print(f"{result.status.value.upper():8} {result.name}" + (f"  ({result.message})" if result.message else ""))


def _report_tests(tests: TestRunResult) -> None:
    for check in tests.checks:
        print(f"{check.status.value.upper():8} {check.name}" + (f"  ({check.message})" if not check.passed else ""))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(log_level=args.log_level, log_format=args.log_format)

    if args.command == "generate":
        paths = TPCHGenerator(seed=args.seed).write(args.output, n_orders=args.orders, file_format=args.file_format)
        for path in paths.values():
            print(path)
        return 0

    try:
        pipeline = _pipeline(args)

        if args.command == "run":
            run = pipeline.run(args.select)
            _report_run(run)
            success = run.success
        elif args.command == "test":
            pipeline.restore()
            tests = pipeline.test(args.select, run_date=args.run_date)
            _report_tests(tests)
            success = tests.success
        else:
            result = pipeline.build(args.select, run_date=args.run_date)
            _report_run(result.run)
            _report_tests(result.tests)
            success = result.success
    except (ELTError, FileNotFoundError) as e:
        logger.error("Pipeline aborted", command=args.command, error=str(e), error_type=type(e).__name__)
        return 1

    logger.info("Command complete", command=args.command, success=success)
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
