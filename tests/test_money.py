from decimal import Decimal

from kidsavings.money import cap_to, ensure_non_negative, format_currency, percentage_of, round_up


def test_round_up_moves_towards_positive_infinity() -> None:
    assert round_up(1.0) == 1
    assert round_up(1.01) == 2
    assert round_up(1.1) == 2
    assert round_up(0.0) == 0
    assert round_up(-0.5) == 0
    assert round_up(Decimal("2.0001")) == 3
    assert round_up("4.2") == 5
    assert round_up(7) == 7


def test_round_up_bounds_hold_for_fractional_inputs() -> None:
    for value in (0.01, 0.5, 0.99, 3.3333, 99.999, -1.75, -0.01, 12.0):
        rounded = round_up(value)
        assert rounded >= value
        assert rounded - value < 1


def test_percentage_of_rounds_up() -> None:
    assert percentage_of(100, 5) == 5
    assert percentage_of(100, 1.5) == 2
    assert percentage_of(100, 0.1) == 1
    assert percentage_of(0, 10) == 0
    assert percentage_of(33, 10) == 4


def test_cap_to_returns_smaller_rounded_value() -> None:
    assert cap_to(150, 100) == 100
    assert cap_to(40, 100) == 40
    assert cap_to(9.2, 9.5) == 10


def test_helpers_for_display() -> None:
    assert ensure_non_negative(-3) == 0
    assert ensure_non_negative(2.2) == 3
    assert format_currency(1250) == "$1,250"
    assert format_currency(-5) == "-$5"
