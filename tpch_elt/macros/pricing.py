"""
Pricing Macros

Reusable column expressions shared by the order models.
"""

from typing import Optional, Union

import polars as pl

from tpch_elt.config import get_settings

ColumnLike = Union[str, pl.Expr]


def _as_expr(column: ColumnLike) -> pl.Expr:
    return pl.col(column) if isinstance(column, str) else column


def discounted_amount(
    extended_price: ColumnLike,
    discount: ColumnLike,
    scale: Optional[int] = None,
    precision: Optional[int] = None,
) -> pl.Expr:
    """
    Discount of a line as a negative fixed-point amount.

    Computes ``-1 * extended_price * discount`` rounded half away from zero
    to ``scale`` fractional digits, as a numeric cast does, then cast to
    ``Decimal(precision, scale)``. The result is never positive for
    non-negative inputs, since it represents a deduction.

    Args:
        extended_price: Column name or expression of the line's extended price
        discount: Column name or expression of the discount fraction (0.1 = 10%)
        scale: Fractional digits; defaults to settings.pricing.discount_scale
        precision: Total digits; defaults to settings.pricing.decimal_precision
    """
    pricing = get_settings().pricing
    scale = pricing.discount_scale if scale is None else scale
    precision = pricing.decimal_precision if precision is None else precision

    factor = 10.0 ** scale
    scaled = -1 * _as_expr(extended_price) * _as_expr(discount) * factor
    # Clear float noise first so products ending on an exact half stay halves
    amount = scaled.round(6).round(0, mode="half_away_from_zero") / factor
    # Float to decimal casts may truncate; a sub-digit nudge away from zero
    # keeps the rounded value intact either way
    nudge = 10.0 ** -(scale + 3)
    amount = amount + pl.when(amount < 0).then(pl.lit(-nudge)).otherwise(pl.lit(nudge))
    return amount.cast(pl.Decimal(precision=precision, scale=scale))
