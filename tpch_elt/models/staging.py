"""
Staging Models

Thin renaming/typing layer over the raw TPC-H tables: one output row per
source row, no filtering, no aggregation.
"""

import polars as pl

from tpch_elt.macros import surrogate_key
from tpch_elt.models.registry import ModelContext, model


@model(layer="staging", sources=("orders",), unique_key=("order_key",))
def stg_tpch_orders(ctx: ModelContext) -> pl.LazyFrame:
    """Orders with stable column names"""
    return ctx.source("orders").select(
        pl.col("o_orderkey").alias("order_key"),
        pl.col("o_custkey").alias("customer_key"),
        pl.col("o_orderstatus").alias("status_code"),
        pl.col("o_totalprice").alias("total_price"),
        pl.col("o_orderdate").cast(pl.Date).alias("order_date"),
    )


@model(layer="staging", sources=("lineitem",), unique_key=("order_item_key",))
def stg_tpch_line_items(ctx: ModelContext) -> pl.LazyFrame:
    """Line items keyed by a hash of order key and line number"""
    return ctx.source("lineitem").select(
        surrogate_key("l_orderkey", "l_linenumber").alias("order_item_key"),
        pl.col("l_orderkey").alias("order_key"),
        pl.col("l_partkey").alias("part_key"),
        pl.col("l_linenumber").alias("line_number"),
        pl.col("l_quantity").alias("quantity"),
        pl.col("l_extendedprice").alias("extended_price"),
        pl.col("l_discount").alias("discount_percentage"),
        pl.col("l_tax").alias("tax_rate"),
    )
