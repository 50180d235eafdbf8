"""
Intermediate Models

Order lines joined to their orders, then rolled up per order. Not exposed to
consumers; fct_orders is built from them.
"""

import polars as pl

from tpch_elt.macros import discounted_amount
from tpch_elt.models.registry import ModelContext, model


@model(
    layer="intermediate",
    depends_on=("stg_tpch_orders", "stg_tpch_line_items"),
    unique_key=("order_item_key",),
)
def int_order_items(ctx: ModelContext) -> pl.LazyFrame:
    """One row per line item whose order exists, with its discount amount"""
    orders = ctx.ref("stg_tpch_orders")
    line_items = ctx.ref("stg_tpch_line_items")

    return (
        orders.join(line_items, on="order_key", how="inner")
        .select(
            pl.col("order_item_key"),
            pl.col("part_key"),
            pl.col("line_number"),
            pl.col("order_key"),
            pl.col("extended_price"),
            pl.col("customer_key"),
            pl.col("order_date"),
            discounted_amount("extended_price", "discount_percentage").alias("item_discount_amount"),
        )
        .sort("order_date", maintain_order=True)
    )


@model(layer="intermediate", depends_on=("int_order_items",), unique_key=("order_key",))
def int_order_items_summary(ctx: ModelContext) -> pl.LazyFrame:
    """Gross sales and total discount per order"""
    return (
        ctx.ref("int_order_items")
        .group_by("order_key", maintain_order=True)
        .agg(
            pl.col("extended_price").sum().alias("gross_item_sales_amount"),
            pl.col("item_discount_amount").sum().alias("item_discount_amount"),
        )
    )
