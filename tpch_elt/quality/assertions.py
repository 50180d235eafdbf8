"""
Business-Rule Assertions

Queries over fct_orders that return the rows breaking a rule. A run fails
if any of them returns a row.
"""

from datetime import date
from typing import Callable

import polars as pl

Assertion = Callable[[pl.LazyFrame], pl.LazyFrame]


def positive_discounts(fct_orders: pl.LazyFrame) -> pl.LazyFrame:
    """Orders whose total discount is above zero; discounts are always deductions"""
    return fct_orders.filter(pl.col("item_discount_amount").cast(pl.Float64) > 0)


def order_dates_out_of_range(min_date: date, max_date: date) -> Assertion:
    """Orders dated after max_date (the run date) or before min_date"""
    def query(fct_orders: pl.LazyFrame) -> pl.LazyFrame:
        return fct_orders.filter(
            (pl.col("order_date") > pl.lit(max_date))
            | (pl.col("order_date") < pl.lit(min_date))
        )

    return query
