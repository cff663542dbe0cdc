import pytest
from decimal import Decimal

from amount import AMOUNT_MAX, AMOUNT_MIN, Amount
from errors import AmountOverflowError, InvalidAmountError
from models import Account


class TestConstruction:
    """Test building amounts from decimal literals."""

    def test_scales_by_ten_thousand(self):
        assert Amount.from_decimal(2000.4999) == Amount(20004999)
        assert Amount.from_decimal(1) == Amount(10000)

    def test_rounds_half_away_from_zero(self):
        assert Amount.from_decimal(1.23456) == Amount(12346)
        assert Amount.from_decimal(-1.23456) == Amount(-12346)
        assert Amount.from_decimal(1.23454) == Amount(12345)

    def test_accepts_strings_and_decimals(self):
        assert Amount.from_decimal("1.5") == Amount(15000)
        assert Amount.from_decimal(Decimal("0.0001")) == Amount(1)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf"), "abc", None])
    def test_rejects_non_finite_and_non_numeric(self, value):
        with pytest.raises(InvalidAmountError):
            Amount.from_decimal(value)

    def test_rejects_out_of_range(self):
        with pytest.raises(InvalidAmountError):
            Amount.from_decimal(1e16)
        with pytest.raises(InvalidAmountError):
            Amount.from_decimal(-1e16)

    @pytest.mark.parametrize("value", [0.0, 0.0001, 123.4567, -987.6543, 2000.4999, 99999999.9999])
    def test_round_trip_to_four_places(self, value):
        assert Amount.from_decimal(value).to_decimal() == value


class TestArithmetic:
    """Test overflow-checked arithmetic."""

    def test_checked_add(self):
        assert Amount(5).checked_add(Amount(7)) == Amount(12)

    def test_checked_sub(self):
        assert Amount(5).checked_sub(Amount(7)) == Amount(-2)

    def test_add_overflow(self):
        with pytest.raises(AmountOverflowError):
            Amount(AMOUNT_MAX).checked_add(Amount(1))

    def test_sub_underflow_reports_overflow(self):
        with pytest.raises(AmountOverflowError):
            Amount(AMOUNT_MIN).checked_sub(Amount(1))

    def test_operands_unchanged(self):
        a = Amount(10)
        a.checked_add(Amount(1))
        assert a == Amount(10)


class TestOrderingAndDisplay:
    """Test comparison and rendering."""

    def test_ordering_uses_scaled_integer(self):
        assert Amount(1) < Amount(2)
        assert Amount(-1) < Amount.zero()
        assert max(Amount(3), Amount(9), Amount(4)) == Amount(9)

    def test_equal_amounts_hash_equal(self):
        assert hash(Amount.from_decimal(1.5)) == hash(Amount(15000))

    def test_str_has_four_fraction_digits(self):
        assert str(Amount(20004999)) == "2000.4999"
        assert str(Amount(10000)) == "1.0000"
        assert str(Amount(-5)) == "-0.0005"
        assert str(Amount.zero()) == "0.0000"


class TestAccountTotal:
    """Test the checked account total."""

    def test_total_is_sum(self):
        account = Account(available=Amount(30), held=Amount(12))
        assert account.total() == Amount(42)

    def test_total_none_on_overflow(self):
        account = Account(available=Amount(AMOUNT_MAX), held=Amount(1))
        assert account.total() is None
