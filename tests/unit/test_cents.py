"""Tests for fm_common.cents — integer arithmetic utilities."""

import pytest

from src.fm_common.cents import calculate_fee, cents_to_display, validate_amount


class TestValidateAmount:
    def test_positive_amounts(self) -> None:
        for a in [1, 50, 1_000_000]:
            validate_amount(a)  # Should not raise

    def test_zero_raises(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            validate_amount(0)

    def test_negative_raises(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            validate_amount(-5)


class TestCentsToDisplay:
    def test_basic(self) -> None:
        assert cents_to_display(6500) == "$65.00"

    def test_zero(self) -> None:
        assert cents_to_display(0) == "$0.00"

    def test_one_cent(self) -> None:
        assert cents_to_display(1) == "$0.01"

    def test_large(self) -> None:
        assert cents_to_display(150000) == "$1,500.00"

    def test_negative(self) -> None:
        assert cents_to_display(-1200) == "-$12.00"


class TestCalculateFee:
    def test_percentage_only(self) -> None:
        # 50000 * 200 / 10000 = 1000
        assert calculate_fee(50000, 200) == 1000

    def test_ceiling_rounds_up(self) -> None:
        # 100 * 290 / 10000 = 2.9 → ceil = 3
        assert calculate_fee(100, 290) == 3

    def test_flat_component_added(self) -> None:
        # ceil(2.9) + 30
        assert calculate_fee(100, 290, flat_fee=30) == 33

    def test_zero_rate_keeps_flat_fee(self) -> None:
        assert calculate_fee(6500, 0, flat_fee=25) == 25

    def test_zero_value(self) -> None:
        assert calculate_fee(0, 290, flat_fee=30) == 0

    def test_small_value(self) -> None:
        # 1 * 200 / 10000 = 0.02 → ceil = 1
        assert calculate_fee(1, 200) == 1
