from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from budgetwise.errors import DuplicateDefaultError, UnknownCurrencyError
from budgetwise.logger import get_logger
from budgetwise.models import Currency

logger = get_logger(__name__)

Amount = Decimal | int | float | str

SUPPORTED_CURRENCIES: tuple[Currency, ...] = (
    Currency(code="USD", name="US Dollar", symbol="$", exchange_rate=Decimal("1"), is_default=True),
    Currency(code="EUR", name="Euro", symbol="€", exchange_rate=Decimal("0.85")),
    Currency(code="GBP", name="British Pound", symbol="£", exchange_rate=Decimal("0.73")),
    Currency(code="INR", name="Indian Rupee", symbol="₹", exchange_rate=Decimal("83.0")),
    Currency(code="JPY", name="Japanese Yen", symbol="¥", exchange_rate=Decimal("150.0"), decimal_places=0),
    Currency(code="CAD", name="Canadian Dollar", symbol="C$", exchange_rate=Decimal("1.35")),
    Currency(code="AUD", name="Australian Dollar", symbol="A$", exchange_rate=Decimal("1.55")),
    Currency(code="CHF", name="Swiss Franc", symbol="CHF", exchange_rate=Decimal("0.88"), position="after"),
    Currency(code="CNY", name="Chinese Yuan", symbol="¥", exchange_rate=Decimal("7.3")),
    Currency(code="KRW", name="South Korean Won", symbol="₩", exchange_rate=Decimal("1340.0"), decimal_places=0),
)


def to_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class CurrencyTable:
    """
    Known currencies, their rates against one base currency, and the
    currency selected for display.

    Every conversion routes through the base: the amount is divided by the
    source rate and multiplied by the target rate. Nothing is rounded until
    ``format`` renders the value.
    """

    def __init__(self, currencies: Iterable[Currency] = (), active: str | None = None):
        self._currencies: dict[str, Currency] = {}
        self._default_code: str | None = None
        self._active_code: str | None = None
        for currency in currencies:
            self.register(currency)
        if active:
            self.set_active(active)

    @classmethod
    def with_defaults(
        cls,
        active: str | None = None,
        rates: Mapping[str, Amount] | None = None,
    ) -> "CurrencyTable":
        table = cls(SUPPORTED_CURRENCIES)
        if rates:
            table.apply_rates(rates)
        if active:
            table.set_active(active)
        return table

    def register(self, currency: Currency) -> None:
        if currency.is_default and self._default_code not in (None, currency.code):
            raise DuplicateDefaultError(currency.code, self._default_code)
        if currency.code == self._default_code and not currency.is_default:
            raise ValueError(f"Cannot replace base currency {currency.code} with a non-base entry.")
        self._currencies[currency.code] = currency
        if currency.is_default:
            self._default_code = currency.code
        logger.debug("[CURRENCY] Registered %s (rate %s).", currency.code, currency.exchange_rate)

    def get(self, code: str) -> Currency:
        currency = self._currencies.get(code)
        if currency is None:
            raise UnknownCurrencyError(code)
        return currency

    def __contains__(self, code: object) -> bool:
        return code in self._currencies

    @property
    def currencies(self) -> list[Currency]:
        return list(self._currencies.values())

    @property
    def default(self) -> Currency | None:
        return self._currencies.get(self._default_code) if self._default_code else None

    @property
    def active(self) -> Currency | None:
        if self._active_code:
            return self._currencies[self._active_code]
        return self.default

    def set_active(self, code: str) -> Currency:
        currency = self.get(code)
        self._active_code = code
        logger.info("[CURRENCY] Display currency set to %s.", code)
        return currency

    def update_exchange_rate(self, code: str, rate: Amount) -> Currency:
        current = self.get(code)
        updated = Currency.model_validate({**current.model_dump(), "exchange_rate": to_decimal(rate)})
        self._currencies[code] = updated
        return updated

    def apply_rates(self, rates: Mapping[str, Amount]) -> None:
        for code, rate in rates.items():
            if code not in self._currencies:
                logger.warning("[CURRENCY] Ignoring rate for unknown currency %s.", code)
                continue
            if code == self._default_code:
                logger.warning("[CURRENCY] Ignoring rate for base currency %s; it is fixed at 1.", code)
                continue
            self.update_exchange_rate(code, rate)

    def rates(self) -> dict[str, Decimal]:
        return {code: currency.exchange_rate for code, currency in self._currencies.items()}

    def remove(self, code: str) -> bool:
        currency = self._currencies.get(code)
        if currency is None or currency.is_default:
            return False
        del self._currencies[code]
        if self._active_code == code:
            self._active_code = None
        return True

    def convert(self, amount: Amount, from_code: str, to_code: str) -> Decimal:
        source = self.get(from_code)
        target = self.get(to_code)
        if source.code == target.code:
            return to_decimal(amount)
        return to_decimal(amount) / source.exchange_rate * target.exchange_rate

    def convert_to_active(self, amount: Amount, from_code: str) -> Decimal:
        active = self.active
        if active is None:
            raise UnknownCurrencyError(from_code)
        return self.convert(amount, from_code, active.code)

    def exchange_rate(self, code: str) -> Decimal:
        currency = self.get(code)
        active = self.active
        if active is None:
            return currency.exchange_rate
        return currency.exchange_rate / active.exchange_rate

    def format(self, amount: Amount, code: str | None = None) -> str:
        currency = self.get(code) if code else self.active
        magnitude = abs(to_decimal(amount))
        if currency is None:
            return f"${magnitude.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,.2f}"

        places = currency.decimal_places
        rounded = magnitude.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
        text = f"{rounded:,.{places}f}"
        if currency.position == "before":
            return f"{currency.symbol}{text}"
        return f"{text} {currency.symbol}"

    def parse_amount(self, text: str, code: str | None = None) -> Decimal:
        currency = self.get(code) if code else self.active
        cleaned = text.strip()
        if currency is not None:
            cleaned = cleaned.replace(currency.symbol, "")
        cleaned = cleaned.replace(",", "").strip()
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return Decimal("0")
