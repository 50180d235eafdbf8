"""
Source Definitions

The two externally supplied TPC-H tables and the columns the staging models
read from them. Extra columns are allowed; missing ones are a schema error.
"""

from dataclasses import dataclass, field
from typing import Dict

import polars as pl


@dataclass(frozen=True)
class SourceTable:
    """A raw table supplied by the source system"""
    name: str
    description: str
    columns: Dict[str, pl.DataType] = field(default_factory=dict)
    identifier: str = ""

    @property
    def table_name(self) -> str:
        """Physical name in the source database"""
        return self.identifier or self.name


ORDERS = SourceTable(
    name="orders",
    description="One row per customer order",
    columns={
        "o_orderkey": pl.Int64,
        "o_custkey": pl.Int64,
        "o_orderstatus": pl.Utf8,
        "o_totalprice": pl.Float64,
        "o_orderdate": pl.Date,
    },
)

LINEITEM = SourceTable(
    name="lineitem",
    description="One row per order line",
    columns={
        "l_orderkey": pl.Int64,
        "l_partkey": pl.Int64,
        "l_linenumber": pl.Int64,
        "l_quantity": pl.Float64,
        "l_extendedprice": pl.Float64,
        "l_discount": pl.Float64,
        "l_tax": pl.Float64,
    },
)

TPCH_SOURCES: Dict[str, SourceTable] = {
    ORDERS.name: ORDERS,
    LINEITEM.name: LINEITEM,
}
