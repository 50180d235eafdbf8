"""
Test Suite Configuration
"""
from datetime import date

import pytest
import polars as pl

from tpch_elt.config import Settings
from tpch_elt.transformation import ELTPipeline
from tpch_elt.warehouse import Warehouse


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(app_env="testing")


@pytest.fixture
def orders_df() -> pl.DataFrame:
    """
    Raw orders.

    Order 1 has two lines at 10% discount, order 2 has no lines, order 3 has
    one undiscounted line.
    """
    return pl.DataFrame({
        "o_orderkey": [1, 2, 3],
        "o_custkey": [10, 20, 30],
        "o_orderstatus": ["O", "F", "P"],
        "o_totalprice": [300.0, 50.0, 120.0],
        "o_orderdate": [date(1995, 3, 1), date(1994, 1, 1), date(1996, 6, 15)],
        "o_orderpriority": ["1-URGENT", "5-LOW", "3-MEDIUM"],
    })


@pytest.fixture
def lineitem_df() -> pl.DataFrame:
    """Raw line items; the last one belongs to an order that does not exist"""
    return pl.DataFrame({
        "l_orderkey": [1, 1, 3, 99],
        "l_partkey": [501, 502, 503, 504],
        "l_linenumber": [1, 2, 1, 1],
        "l_quantity": [1.0, 2.0, 3.0, 4.0],
        "l_extendedprice": [100.0, 200.0, 120.0, 50.0],
        "l_discount": [0.1, 0.1, 0.0, 0.05],
        "l_tax": [0.02, 0.02, 0.0, 0.08],
    })


@pytest.fixture
def warehouse() -> Warehouse:
    """Empty in-memory warehouse"""
    return Warehouse()


@pytest.fixture
def pipeline(warehouse, test_settings, orders_df, lineitem_df) -> ELTPipeline:
    """Pipeline over the default models with sources loaded"""
    pipeline = ELTPipeline(warehouse=warehouse, settings=test_settings)
    pipeline.load_frames(orders=orders_df, lineitem=lineitem_df)
    return pipeline


@pytest.fixture
def built_pipeline(pipeline) -> ELTPipeline:
    """Pipeline after a full run"""
    pipeline.run().raise_on_failure()
    return pipeline
