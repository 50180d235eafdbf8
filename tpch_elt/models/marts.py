"""
Mart Models

Consumer-facing fact tables.
"""

import polars as pl

from tpch_elt.models.registry import ModelContext, model


@model(
    layer="marts",
    depends_on=("stg_tpch_orders", "int_order_items_summary"),
    unique_key=("order_key",),
)
def fct_orders(ctx: ModelContext) -> pl.LazyFrame:
    """
    One row per order that has at least one line item.

    Carries every staged order column plus the order's gross item sales and
    total item discount. Orders without line items are left out on purpose:
    an order only becomes a fact once it has lines.
    """
    orders = ctx.ref("stg_tpch_orders")
    summary = ctx.ref("int_order_items_summary")

    return (
        orders.join(summary, on="order_key", how="inner")
        .sort("order_date", maintain_order=True)
    )
