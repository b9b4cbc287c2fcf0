class BudgetwiseError(Exception):
    """Base class for errors raised by the analytics core."""


class UnknownCurrencyError(BudgetwiseError, KeyError):
    """A currency code was used that is not registered in the table."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(code)

    def __str__(self) -> str:
        return f"Unsupported currency: {self.code}"


class DuplicateDefaultError(BudgetwiseError, ValueError):
    """A second currency tried to become the base currency."""

    def __init__(self, code: str, existing: str):
        self.code = code
        self.existing = existing
        super().__init__(
            f"Cannot register {code} as default currency: {existing} is already the base."
        )


class InvalidRangeError(BudgetwiseError, ValueError):
    """A date range whose end lies before its start."""

    def __init__(self, start: object, end: object):
        self.start = start
        self.end = end
        super().__init__(f"Invalid date range: end {end} is before start {start}.")
