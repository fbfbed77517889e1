"""Domain Types — verifies identity wrappers, money coercion and enum values.

Tests:
    - NewType wrappers are transparent at runtime
    - to_money never routes through binary float artifacts
    - BalanceMethod values match the wire strings
    - Money scale check rejects anything the balance column would round
"""

from decimal import Decimal

from app.core.domain_types import (
    BalanceMethod, OwnerId, PartitionKey, SequenceNumber, has_money_scale, to_money,
)


def test_identity_types_wrap_primitives():
    assert OwnerId(7) == 7
    assert PartitionKey("20251123") == "20251123"
    assert SequenceNumber(3) == 3


def test_to_money_keeps_decimal_identity():
    value = Decimal("12.34")
    assert to_money(value) is value


def test_to_money_from_float_uses_shortest_repr():
    assert to_money(0.1) == Decimal("0.1")
    assert to_money(100.0) == Decimal("100.0")


def test_to_money_from_int_and_str():
    assert to_money(5) == Decimal("5")
    assert to_money("-2.50") == Decimal("-2.50")


def test_balance_method_wire_values():
    assert BalanceMethod.WITHOUT_TRANSACTION.value == "without-transaction"
    assert BalanceMethod.WITH_TRANSACTION.value == "with-transaction"


def test_has_money_scale_accepts_cents():
    assert has_money_scale(Decimal("10.25"))
    assert has_money_scale(Decimal("-0.01"))
    assert has_money_scale(Decimal("1.000"))
    assert has_money_scale(Decimal("100"))


def test_has_money_scale_rejects_sub_cent_and_non_finite():
    assert not has_money_scale(Decimal("0.004"))
    assert not has_money_scale(to_money(0.1 + 0.2))
    assert not has_money_scale(Decimal("NaN"))
    assert not has_money_scale(Decimal("Infinity"))
