"""Sample TPC-H data for local runs and tests"""

from tpch_elt.data.generators import TPCHGenerator

__all__ = ["TPCHGenerator"]
