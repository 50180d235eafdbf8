"""
TPC-H ELT Pipeline

Staging, intermediate and mart models over the TPC-H orders and lineitem
tables, with data tests and a daily schedule.
"""

__version__ = "1.0.0"
