"""
Synthetic TPC-H Data Generator

Generates orders/lineitem tables shaped like the TPC-H benchmark for local
runs and tests. Output is deterministic for a given seed.

Follows the benchmark's rules where the models care:
- 1 to 7 line items per order, numbered from 1
- discount in [0.00, 0.10], tax in [0.00, 0.08]
- line status F when shipped on or before 1995-06-17, else O
- order status F / O when all lines are F / O, P otherwise
- total price = sum of extended_price * (1 + tax) * (1 - discount)
"""

from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Tuple, Union

import numpy as np
import polars as pl
import structlog
from faker import Faker

logger = structlog.get_logger(__name__)

START_DATE = date(1992, 1, 1)
END_DATE = date(1998, 8, 2)
CURRENT_DATE = date(1995, 6, 17)

PRIORITIES = ["1-URGENT", "2-HIGH", "3-MEDIUM", "4-NOT SPECIFIED", "5-LOW"]
SHIP_MODES = ["REG AIR", "AIR", "RAIL", "SHIP", "TRUCK", "MAIL", "FOB"]
SHIP_INSTRUCTIONS = ["DELIVER IN PERSON", "COLLECT COD", "NONE", "TAKE BACK RETURN"]


class TPCHGenerator:
    """
    Generate TPC-H-like orders and line items.

    Example:
        orders, lineitem = TPCHGenerator(seed=42).generate(1000)
    """

    def __init__(
        self,
        seed: int = 42,
        n_customers: int = 1500,
        n_parts: int = 2000,
        n_suppliers: int = 100,
        empty_order_fraction: float = 0.0,
    ):
        if not 0.0 <= empty_order_fraction < 1.0:
            raise ValueError("empty_order_fraction must be in [0, 1)")
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.n_customers = n_customers
        self.n_parts = n_parts
        self.n_suppliers = n_suppliers
        self.empty_order_fraction = empty_order_fraction

    def _comments(self, n: int) -> list:
        return [self.fake.sentence(nb_words=6) for _ in range(n)]

    def generate(self, n_orders: int = 1000) -> Tuple[pl.DataFrame, pl.DataFrame]:
        """Generate n_orders orders and their line items"""
        rng = self.rng
        order_keys = np.arange(1, n_orders + 1, dtype=np.int64)

        # Order dates leave room for the longest ship/receipt lag before END_DATE
        span = (END_DATE - START_DATE).days - 151
        order_offsets = rng.integers(0, span, n_orders)
        order_dates = np.array([START_DATE + timedelta(days=int(d)) for d in order_offsets])

        lines_per_order = rng.integers(1, 8, n_orders)
        if self.empty_order_fraction:
            lines_per_order[rng.random(n_orders) < self.empty_order_fraction] = 0

        n_lines = int(lines_per_order.sum())
        l_orderkey = np.repeat(order_keys, lines_per_order)
        l_linenumber = np.concatenate(
            [np.arange(1, k + 1) for k in lines_per_order if k > 0]
        ) if n_lines else np.array([], dtype=np.int64)
        l_orderdate = np.repeat(order_dates, lines_per_order)

        quantity = rng.integers(1, 51, n_lines).astype(np.float64)
        part_price = np.round(rng.uniform(900.0, 2100.0, n_lines), 2)
        extended_price = np.round(quantity * part_price, 2)
        discount = rng.integers(0, 11, n_lines) / 100.0
        tax = rng.integers(0, 9, n_lines) / 100.0

        ship_dates = np.array([d + timedelta(days=int(x)) for d, x in zip(l_orderdate, rng.integers(1, 122, n_lines))])
        commit_dates = np.array([d + timedelta(days=int(x)) for d, x in zip(l_orderdate, rng.integers(30, 91, n_lines))])
        receipt_dates = np.array([d + timedelta(days=int(x)) for d, x in zip(ship_dates, rng.integers(1, 31, n_lines))])
        line_status = np.where(ship_dates <= CURRENT_DATE, "F", "O")
        return_flag = np.where(
            receipt_dates <= CURRENT_DATE,
            rng.choice(["R", "A"], n_lines),
            "N",
        )

        lineitem = pl.DataFrame({
            "l_orderkey": l_orderkey,
            "l_partkey": rng.integers(1, self.n_parts + 1, n_lines),
            "l_suppkey": rng.integers(1, self.n_suppliers + 1, n_lines),
            "l_linenumber": l_linenumber.astype(np.int64),
            "l_quantity": quantity,
            "l_extendedprice": extended_price,
            "l_discount": discount,
            "l_tax": tax,
            "l_returnflag": return_flag,
            "l_linestatus": line_status,
            "l_shipdate": ship_dates.tolist(),
            "l_commitdate": commit_dates.tolist(),
            "l_receiptdate": receipt_dates.tolist(),
            "l_shipinstruct": rng.choice(SHIP_INSTRUCTIONS, n_lines),
            "l_shipmode": rng.choice(SHIP_MODES, n_lines),
            "l_comment": self._comments(n_lines),
        }, schema_overrides={
            "l_shipdate": pl.Date,
            "l_commitdate": pl.Date,
            "l_receiptdate": pl.Date,
        })

        per_order = (
            lineitem.group_by("l_orderkey")
            .agg(
                (pl.col("l_extendedprice") * (1 + pl.col("l_tax")) * (1 - pl.col("l_discount")))
                .sum()
                .round(2)
                .alias("o_totalprice"),
                pl.when((pl.col("l_linestatus") == "F").all())
                .then(pl.lit("F"))
                .when((pl.col("l_linestatus") == "O").all())
                .then(pl.lit("O"))
                .otherwise(pl.lit("P"))
                .alias("o_orderstatus"),
            )
            .rename({"l_orderkey": "o_orderkey"})
        )

        orders = (
            pl.DataFrame({
                "o_orderkey": order_keys,
                "o_custkey": rng.integers(1, self.n_customers + 1, n_orders),
                "o_orderdate": order_dates.tolist(),
                "o_orderpriority": rng.choice(PRIORITIES, n_orders),
                "o_clerk": [f"Clerk#{c:09d}" for c in rng.integers(1, 1001, n_orders)],
                "o_shippriority": np.zeros(n_orders, dtype=np.int64),
                "o_comment": self._comments(n_orders),
            }, schema_overrides={"o_orderdate": pl.Date})
            .join(per_order, on="o_orderkey", how="left")
            .with_columns(
                pl.col("o_totalprice").fill_null(0.0),
                # Orders without lines have nothing shipped yet
                pl.col("o_orderstatus").fill_null("O"),
            )
            .select(
                "o_orderkey",
                "o_custkey",
                "o_orderstatus",
                "o_totalprice",
                "o_orderdate",
                "o_orderpriority",
                "o_clerk",
                "o_shippriority",
                "o_comment",
            )
            .sort("o_orderkey")
        )

        logger.info("Generated TPC-H data", orders=orders.height, line_items=lineitem.height)
        return orders, lineitem

    def write(
        self,
        output_dir: Union[str, Path],
        n_orders: int = 1000,
        file_format: str = "parquet",
    ) -> Dict[str, Path]:
        """Generate and write orders/lineitem files; returns the paths by source name"""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        orders, lineitem = self.generate(n_orders)

        paths = {}
        for name, df in (("orders", orders), ("lineitem", lineitem)):
            path = output_dir / f"{name}.{file_format}"
            if file_format == "parquet":
                df.write_parquet(path)
            elif file_format == "csv":
                df.write_csv(path)
            else:
                raise ValueError(f"Unsupported file format: {file_format}")
            paths[name] = path
            logger.info("Written source file", source=name, path=str(path), rows=df.height)
        return paths
