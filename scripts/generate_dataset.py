"""
TPC-H Sample Dataset Generator
Writes orders/lineitem source files for local pipeline runs
"""

import argparse
from pathlib import Path

import polars as pl

from tpch_elt.data import TPCHGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "raw"


def main():
    parser = argparse.ArgumentParser(description="Generate TPC-H sample data")
    parser.add_argument("--orders", type=int, default=100_000, help="Number of orders")
    parser.add_argument("--output", default=str(OUTPUT_DIR), help="Output directory")
    parser.add_argument("--format", choices=["parquet", "csv"], default="parquet", dest="file_format")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    print("=" * 50)
    print("🚀 TPC-H SAMPLE DATA GENERATOR")
    print("=" * 50)

    print(f"📊 Generating {args.orders:,} orders...")
    paths = TPCHGenerator(seed=args.seed).write(args.output, n_orders=args.orders, file_format=args.file_format)

    for name, path in paths.items():
        scan = pl.scan_parquet if args.file_format == "parquet" else pl.scan_csv
        rows = scan(path).select(pl.len()).collect().item()
        print(f"   ✅ {path.name}: {rows:,} rows")

    print("=" * 50)
    print(f"📁 Files saved to: {args.output}")
    print("=" * 50)


if __name__ == "__main__":
    main()
