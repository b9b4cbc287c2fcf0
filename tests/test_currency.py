from decimal import Decimal

import pytest

from budgetwise.domain.currency import SUPPORTED_CURRENCIES, CurrencyTable
from budgetwise.errors import DuplicateDefaultError, UnknownCurrencyError
from budgetwise.models import Currency


@pytest.fixture
def table() -> CurrencyTable:
    return CurrencyTable.with_defaults()


def test_defaults_have_single_base(table: CurrencyTable) -> None:
    defaults = [c for c in table.currencies if c.is_default]
    assert len(defaults) == 1
    assert defaults[0].code == "USD"
    assert defaults[0].exchange_rate == 1
    assert table.active.code == "USD"
    assert len(table.currencies) == len(SUPPORTED_CURRENCIES)


@pytest.mark.parametrize("code", [c.code for c in SUPPORTED_CURRENCIES])
def test_convert_same_currency_is_identity(table: CurrencyTable, code: str) -> None:
    amount = Decimal("123.456789")
    assert table.convert(amount, code, code) == amount
    assert table.convert(0.1, code, code) == Decimal("0.1")
    converted = table.convert(7, code, code)
    assert isinstance(converted, Decimal)
    assert converted == Decimal("7")


def test_convert_routes_through_base(table: CurrencyTable) -> None:
    # 85 EUR -> 100 USD -> 73 GBP
    assert table.convert(Decimal("85"), "EUR", "USD") == Decimal("100")
    assert table.convert(Decimal("85"), "EUR", "GBP") == Decimal("73")


@pytest.mark.parametrize(("source", "target"), [("EUR", "JPY"), ("INR", "CHF"), ("KRW", "AUD")])
def test_convert_round_trip_within_display_precision(table: CurrencyTable, source: str, target: str) -> None:
    amount = Decimal("1234.56")
    there = table.convert(amount, source, target)
    back = table.convert(there, target, source)
    places = table.get(source).decimal_places
    assert abs(back - amount) <= Decimal(1).scaleb(-places)


def test_convert_unknown_currency(table: CurrencyTable) -> None:
    with pytest.raises(UnknownCurrencyError):
        table.convert(Decimal("1"), "USD", "XYZ")
    with pytest.raises(UnknownCurrencyError):
        table.convert(Decimal("1"), "XYZ", "USD")


def test_register_second_default_fails(table: CurrencyTable) -> None:
    other_base = Currency(code="BTC", symbol="₿", exchange_rate=Decimal("1"), is_default=True)
    with pytest.raises(DuplicateDefaultError):
        table.register(other_base)
    assert "BTC" not in table


def test_register_overwrites_by_code(table: CurrencyTable) -> None:
    table.register(Currency(code="EUR", name="Euro", symbol="€", exchange_rate=Decimal("0.9")))
    assert table.get("EUR").exchange_rate == Decimal("0.9")


def test_default_currency_requires_unit_rate() -> None:
    with pytest.raises(ValueError):
        Currency(code="USD", symbol="$", exchange_rate=Decimal("2"), is_default=True)


def test_set_active(table: CurrencyTable) -> None:
    table.set_active("EUR")
    assert table.active.code == "EUR"
    with pytest.raises(UnknownCurrencyError):
        table.set_active("XYZ")
    assert table.active.code == "EUR"


def test_format_uses_position_and_places(table: CurrencyTable) -> None:
    assert table.format(Decimal("1234.5")) == "$1,234.50"
    assert table.format(Decimal("1234.5"), "CHF") == "1,234.50 CHF"
    assert table.format(Decimal("1234.5"), "JPY") == "¥1,235"


def test_format_rounds_half_away_from_zero(table: CurrencyTable) -> None:
    assert table.format(Decimal("2.345")) == "$2.35"
    assert table.format(Decimal("2.5"), "JPY") == "¥3"
    assert table.format(Decimal("-2.345")) == "$2.35"


def test_format_uses_active_currency(table: CurrencyTable) -> None:
    table.set_active("GBP")
    assert table.format(Decimal("10")) == "£10.00"


def test_update_rate_and_base_is_fixed(table: CurrencyTable) -> None:
    table.update_exchange_rate("EUR", "0.9")
    assert table.get("EUR").exchange_rate == Decimal("0.9")
    with pytest.raises(ValueError):
        table.update_exchange_rate("USD", "2")
    table.apply_rates({"USD": Decimal("3"), "GBP": Decimal("0.8"), "XYZ": Decimal("1")})
    assert table.get("USD").exchange_rate == 1
    assert table.get("GBP").exchange_rate == Decimal("0.8")


def test_remove_refuses_base(table: CurrencyTable) -> None:
    table.set_active("EUR")
    assert table.remove("USD") is False
    assert table.remove("EUR") is True
    assert table.remove("EUR") is False
    assert table.active.code == "USD"


def test_exchange_rate_relative_to_active(table: CurrencyTable) -> None:
    table.set_active("EUR")
    assert table.exchange_rate("EUR") == 1
    assert table.exchange_rate("USD") == Decimal("1") / Decimal("0.85")


def test_parse_amount(table: CurrencyTable) -> None:
    assert table.parse_amount("$1,234.50") == Decimal("1234.50")
    assert table.parse_amount("1,234.50 CHF", "CHF") == Decimal("1234.50")
    assert table.parse_amount("not money") == Decimal("0")


def test_convert_to_active(table: CurrencyTable) -> None:
    table.set_active("GBP")
    assert table.convert_to_active(Decimal("100"), "USD") == Decimal("73")
    assert table.convert_to_active(Decimal("5"), "GBP") == Decimal("5")
