import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TypeVar

from dotenv import find_dotenv, load_dotenv

from budgetwise.logger import get_logger

logger = get_logger(__name__)

Number = TypeVar("Number", int, float)

CONFIG_FILENAME = "config.yaml"

CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "DISPLAY_CURRENCY",
    "EXCHANGE_RATES",
    "BUDGET_WARNING_THRESHOLD",
    "ANALYTICS_LOOKBACK_MONTHS",
    "TREND_MONTHS",
    "RECURRING_MIN_OCCURRENCES",
)

DEFAULT_DISPLAY_CURRENCY = "USD"
DEFAULT_WARNING_THRESHOLD = 80.0
DEFAULT_LOOKBACK_MONTHS = 6
DEFAULT_TREND_MONTHS = 6
DEFAULT_RECURRING_MIN_OCCURRENCES = 3

# KEY: value, optionally followed by a comment outside quotes.
_CONFIG_LINE = re.compile(
    r"""^(?P<key>[A-Za-z_][A-Za-z0-9_]*)\s*:\s*
        (?P<value>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|[^#]*?)
        \s*(?:\#.*)?$""",
    re.VERBOSE,
)


@dataclass(frozen=True)
class ConfigSource:
    """
    Snapshot of where configuration came from at startup.

    ``env_keys`` are the variables present before ``config.yaml`` was merged
    in; those win over the file and cannot be edited through the API.
    """

    path: str = ""
    file_values: Mapping[str, str] = field(default_factory=dict)
    env_keys: frozenset[str] = frozenset()

    def is_env_override(self, name: str) -> bool:
        return name in self.env_keys


_source = ConfigSource()


def locate_dotenv(config_dir: str | None) -> str | None:
    if config_dir and os.path.exists(os.path.join(config_dir, ".env")):
        return os.path.join(config_dir, ".env")
    return find_dotenv(usecwd=True) or None


def locate_config_file(config_dir: str | None) -> str:
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    nested = os.path.join(os.getcwd(), "config", CONFIG_FILENAME)
    return nested if os.path.exists(nested) else os.path.join(os.getcwd(), CONFIG_FILENAME)


def _unquote(raw_value: str) -> str:
    if len(raw_value) < 2 or raw_value[0] != raw_value[-1] or raw_value[0] not in "\"'":
        return raw_value
    quote = raw_value[0]
    return raw_value[1:-1].replace(f"\\{quote}", quote).replace("\\\\", "\\")


def read_config_file(path: str | None) -> dict[str, str]:
    """Read the flat ``KEY: value`` config file, skipping comments and blanks."""
    if not path or not os.path.isfile(path):
        return {}
    with open(path, encoding="utf-8") as handle:
        matches = [_CONFIG_LINE.match(line.strip()) for line in handle]
    parsed = {m.group("key"): _unquote(m.group("value").strip()) for m in matches if m}
    return {key: value for key, value in parsed.items() if value}


def load_environment() -> ConfigSource:
    """Load ``.env`` then fill unset keys from ``config.yaml``."""
    global _source

    config_dir = os.getenv("CONFIG_DIR")
    dotenv_path = locate_dotenv(config_dir)
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    env_keys = frozenset(os.environ)
    path = locate_config_file(config_dir)
    file_values = read_config_file(path)
    for key in CONFIG_KEYS:
        if key in file_values:
            os.environ.setdefault(key, file_values[key])

    _source = ConfigSource(path=path, file_values=file_values, env_keys=env_keys)
    return _source


def get_config_path() -> str:
    return _source.path


def is_env_override(name: str) -> bool:
    return _source.is_env_override(name)


def prepare_directories(*paths: str | None) -> None:
    for path in paths:
        if path and os.path.normpath(path) != ".":
            os.makedirs(path, exist_ok=True)


def _env_number(name: str, default: Number, cast: Callable[[str], Number], min_value: Number | None) -> Number:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("[ENV] %s='%s' is not a valid number; falling back to %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("[ENV] %s=%s is below %s; falling back to %s.", name, value, min_value, default)
        return default
    return value


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    return _env_number(name, default, int, min_value)


def get_env_float(name: str, default: float, min_value: float | None = None) -> float:
    return _env_number(name, default, float, min_value)


def parse_rate_map(raw: str | None) -> dict[str, Decimal]:
    """Parse ``EUR=0.85,GBP=0.73`` into a code -> rate mapping."""
    rates: dict[str, Decimal] = {}
    for part in (raw or "").split(","):
        code, sep, value = part.partition("=")
        code = code.strip().upper()
        if not sep or not code:
            continue
        try:
            rate = Decimal(value.strip())
        except InvalidOperation:
            logger.warning("[ENV] Invalid exchange rate for %s: '%s'.", code, value.strip())
            continue
        if rate <= 0:
            logger.warning("[ENV] Exchange rate for %s must be positive, got %s.", code, rate)
            continue
        rates[code] = rate
    return rates


def get_display_currency() -> str:
    return (os.getenv("DISPLAY_CURRENCY") or DEFAULT_DISPLAY_CURRENCY).upper()


def get_exchange_rates() -> dict[str, Decimal]:
    return parse_rate_map(os.getenv("EXCHANGE_RATES"))


def get_lookback_months() -> int:
    return get_env_int("ANALYTICS_LOOKBACK_MONTHS", DEFAULT_LOOKBACK_MONTHS, min_value=1)


def get_trend_months() -> int:
    return get_env_int("TREND_MONTHS", DEFAULT_TREND_MONTHS, min_value=1)


def get_recurring_min_occurrences() -> int:
    return get_env_int(
        "RECURRING_MIN_OCCURRENCES",
        DEFAULT_RECURRING_MIN_OCCURRENCES,
        min_value=DEFAULT_RECURRING_MIN_OCCURRENCES,
    )


def get_warning_threshold() -> float:
    return get_env_float("BUDGET_WARNING_THRESHOLD", DEFAULT_WARNING_THRESHOLD, min_value=0.0)


def log_environment() -> None:
    logger.info("[ENV] Config file: %s", _source.path or "<none>")
    for key in CONFIG_KEYS:
        value = os.getenv(key)
        origin = "env" if _source.is_env_override(key) else "config"
        logger.info("[ENV] %s=%s (%s)", key, "<unset>" if value is None else value.replace("\n", "\\n"), origin)


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
LOG_DIR = os.getenv("LOG_DIR")

prepare_directories(DATA_DIR, LOG_DIR, os.getenv("CONFIG_DIR"))
