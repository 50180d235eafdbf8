"""
Unit Tests - Macros
"""
import hashlib
from decimal import Decimal

import pytest
import polars as pl

from tpch_elt.macros import discounted_amount, surrogate_key
from tpch_elt.macros.keys import NULL_KEY_PART


class TestDiscountedAmount:
    """Tests for discounted_amount"""

    def test_negative_amount(self):
        """Test discount is price times discount, negated"""
        df = pl.DataFrame({"price": [100.0, 200.0], "discount": [0.1, 0.05]})

        result = df.select(discounted_amount("price", "discount").alias("amount"))

        assert result["amount"].to_list() == [Decimal("-10.00"), Decimal("-10.00")]

    def test_zero_discount(self):
        """Test zero discount yields zero"""
        df = pl.DataFrame({"price": [120.0], "discount": [0.0]})

        result = df.select(discounted_amount("price", "discount").alias("amount"))

        assert result["amount"][0] == Decimal("0")

    def test_decimal_type(self):
        """Test output is Decimal(16, 2) by default"""
        df = pl.DataFrame({"price": [1.0], "discount": [0.1]})

        result = df.select(discounted_amount("price", "discount").alias("amount"))

        assert result.schema["amount"] == pl.Decimal(precision=16, scale=2)

    def test_rounds_to_scale(self):
        """Test fractional digits beyond the scale are rounded"""
        df = pl.DataFrame({"price": [33.33], "discount": [0.07]})

        result = df.select(discounted_amount("price", "discount").alias("amount"))

        # 33.33 * 0.07 = 2.3331
        assert result["amount"][0] == Decimal("-2.33")

    def test_halves_round_away_from_zero(self):
        """Test amounts ending on an exact half cent round away from zero"""
        df = pl.DataFrame({
            "price": [0.5, 2.5, 0.5, 4.5, 12.50, 0.15],
            "discount": [0.25, 0.25, 0.75, 0.5, 0.01, 0.5],
        })

        result = df.select(discounted_amount("price", "discount").alias("amount"))

        assert result["amount"].to_list() == [
            Decimal("-0.13"),
            Decimal("-0.63"),
            Decimal("-0.38"),
            Decimal("-2.25"),
            Decimal("-0.13"),
            Decimal("-0.08"),
        ]

    def test_custom_scale(self):
        """Test explicit scale and precision"""
        df = pl.DataFrame({"price": [33.33], "discount": [0.07]})

        result = df.select(discounted_amount("price", "discount", scale=4, precision=20).alias("amount"))

        assert result.schema["amount"] == pl.Decimal(precision=20, scale=4)
        assert result["amount"][0] == Decimal("-2.3331")

    def test_accepts_expressions(self):
        """Test columns may be passed as expressions"""
        df = pl.DataFrame({"price": [50.0], "discount": [10.0]})

        result = df.select(
            discounted_amount(pl.col("price") * 2, pl.col("discount") / 100).alias("amount")
        )

        assert result["amount"][0] == Decimal("-10.00")

    def test_null_propagates(self):
        """Test a null input gives a null amount"""
        df = pl.DataFrame({"price": [None, 10.0], "discount": [0.1, None]}, schema={"price": pl.Float64, "discount": pl.Float64})

        result = df.select(discounted_amount("price", "discount").alias("amount"))

        assert result["amount"].null_count() == 2

    def test_never_positive(self):
        """Test non-negative inputs never give a positive amount"""
        df = pl.DataFrame({
            "price": [0.0, 1.5, 999.99, 100000.0],
            "discount": [0.1, 0.0, 0.04, 0.1],
        })

        result = df.select(discounted_amount("price", "discount").cast(pl.Float64).alias("amount"))

        assert (result["amount"] <= 0).all()


class TestSurrogateKey:
    """Tests for surrogate_key"""

    def test_md5_of_joined_parts(self):
        """Test key is the md5 of the parts joined by '-'"""
        df = pl.DataFrame({"a": [1], "b": [2]})

        result = df.select(surrogate_key("a", "b").alias("key"))

        assert result["key"][0] == hashlib.md5(b"1-2").hexdigest()

    def test_deterministic(self):
        """Test same inputs always give the same key"""
        df = pl.DataFrame({"a": [7, 7], "b": [3, 3]})

        result = df.select(surrogate_key("a", "b").alias("key"))

        assert result["key"][0] == result["key"][1]

    def test_distinct_inputs_distinct_keys(self):
        """Test different inputs give different keys"""
        df = pl.DataFrame({"a": [1, 12], "b": [23, 3]})

        result = df.select(surrogate_key("a", "b").alias("key"))

        assert result["key"].n_unique() == 2

    def test_null_parts(self):
        """Test nulls are replaced by a sentinel and still hashed"""
        df = pl.DataFrame({"a": [1, None], "b": [None, 1]}, schema={"a": pl.Int64, "b": pl.Int64})

        result = df.select(surrogate_key("a", "b").alias("key"))

        assert result["key"].null_count() == 0
        assert result["key"][0] == hashlib.md5(f"1-{NULL_KEY_PART}".encode()).hexdigest()
        assert result["key"][0] != result["key"][1]

    def test_requires_columns(self):
        """Test at least one column is required"""
        with pytest.raises(ValueError):
            surrogate_key()
