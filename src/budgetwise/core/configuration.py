import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from budgetwise.core import settings
from budgetwise.logger import get_logger

logger = get_logger(__name__)

ValueType = Literal["string", "int", "float", "currency", "rates"]
Validated = tuple[str, str | None]


@dataclass(frozen=True)
class ConfigField:
    key: str
    label: str
    description: str
    category: str
    value_type: ValueType = "string"
    options: tuple[str, ...] | None = None
    min_value: float | None = None
    max_value: float | None = None
    restart_required: bool = False


CONFIG_FIELDS: tuple[ConfigField, ...] = (
    ConfigField(
        "DISPLAY_CURRENCY",
        "Display Currency",
        "ISO code of the currency used to display amounts.",
        "Currency",
        value_type="currency",
    ),
    ConfigField(
        "EXCHANGE_RATES",
        "Exchange Rates",
        "Comma-separated CODE=rate overrides relative to USD, e.g. EUR=0.85,GBP=0.73.",
        "Currency",
        value_type="rates",
    ),
    ConfigField(
        "BUDGET_WARNING_THRESHOLD",
        "Budget Warning Threshold",
        "Default percentage of a budget at which it counts as near its limit.",
        "Budgets",
        value_type="float",
        min_value=0,
        max_value=100,
    ),
    ConfigField(
        "ANALYTICS_LOOKBACK_MONTHS",
        "Recommendation Lookback",
        "Months of history averaged for budget recommendations.",
        "Analytics",
        value_type="int",
        min_value=1,
    ),
    ConfigField(
        "TREND_MONTHS",
        "Trend Months",
        "Number of calendar months shown in the monthly trend.",
        "Analytics",
        value_type="int",
        min_value=1,
    ),
    ConfigField(
        "RECURRING_MIN_OCCURRENCES",
        "Recurring Minimum Occurrences",
        "Transactions with the same title needed before a pattern is reported.",
        "Analytics",
        value_type="int",
        min_value=settings.DEFAULT_RECURRING_MIN_OCCURRENCES,
    ),
    ConfigField(
        "DATA_DIR",
        "Data Directory",
        "Directory holding transactions.json and budgets.json.",
        "Storage",
        restart_required=True,
    ),
    ConfigField(
        "LOG_DIR",
        "Log Directory",
        "Directory for the app.log file; console only when empty.",
        "Storage",
        restart_required=True,
    ),
    ConfigField(
        "LOG_LEVEL",
        "Log Level",
        "Root logger level.",
        "Storage",
        options=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        restart_required=True,
    ),
)

FIELDS_BY_KEY: Mapping[str, ConfigField] = {item.key: item for item in CONFIG_FIELDS}

# Matches both "KEY: value" and the commented "# KEY:" placeholder.
_KEY_LINE = re.compile(r"^#?\s*(?P<key>[A-Z][A-Z0-9_]*)\s*:")


def _template_lines() -> list[str]:
    lines = [
        "# BudgetWise configuration",
        "# Environment variables take precedence over values in this file.",
        "",
    ]
    for item in CONFIG_FIELDS:
        lines += [f"# {item.description}", f"# {item.key}:", ""]
    return lines


CONFIG_TEMPLATE = "\n".join(_template_lines())


def get_config_path() -> str:
    return settings.get_config_path() or os.path.join(os.getcwd(), "config", settings.CONFIG_FILENAME)


def build_config_context(known_currencies: set[str] | None = None) -> dict[str, object]:
    """Current value and provenance of every editable setting."""
    path = get_config_path()
    stored = settings.read_config_file(path)
    fields = []
    for item in CONFIG_FIELDS:
        from_env = settings.is_env_override(item.key)
        fields.append({
            "key": item.key,
            "label": item.label,
            "description": item.description,
            "category": item.category,
            "value": os.getenv(item.key, "") if from_env else stored.get(item.key, ""),
            "options": item.options,
            "env_override": from_env,
            "restart_required": item.restart_required,
        })
    return {"config_path": path, "fields": fields, "currencies": sorted(known_currencies or ())}


def _validate_currency(item: ConfigField, value: str, known: set[str] | None) -> Validated:
    code = value.upper()
    if known is not None and code not in known:
        return value, f"Unsupported currency: {code}."
    return code, None


def _validate_rates(item: ConfigField, value: str, known: set[str] | None) -> Validated:
    rates = settings.parse_rate_map(value)
    if not rates:
        return value, "Use CODE=rate pairs separated by commas."
    return ",".join(f"{code}={rate}" for code, rate in rates.items()), None


def _validate_number(item: ConfigField, value: str, known: set[str] | None) -> Validated:
    whole = item.value_type == "int"
    try:
        number = int(value) if whole else float(value)
    except ValueError:
        return value, "Must be a whole number." if whole else "Must be a number."
    if item.min_value is not None and number < item.min_value:
        return value, f"Must be at least {item.min_value}."
    if item.max_value is not None and number > item.max_value:
        return value, f"Must be at most {item.max_value}."
    return str(number), None


def _validate_string(item: ConfigField, value: str, known: set[str] | None) -> Validated:
    if item.options is None:
        return value, None
    choice = value.upper()
    if choice in item.options:
        return choice, None
    return value, f"Must be one of: {', '.join(item.options)}."


_VALIDATORS: dict[str, Callable[[ConfigField, str, set[str] | None], Validated]] = {
    "currency": _validate_currency,
    "rates": _validate_rates,
    "int": _validate_number,
    "float": _validate_number,
    "string": _validate_string,
}


def validate_value(
    item: ConfigField,
    raw_value: str,
    known_currencies: set[str] | None = None,
) -> Validated:
    """Return ``(normalized, error)``; an empty value clears the setting."""
    value = raw_value.strip()
    if not value:
        return "", None
    if any(char in value for char in "\r\n"):
        return value, "Value must be a single line."
    return _VALIDATORS[item.value_type](item, value, known_currencies)


def apply_config_updates(
    form_values: Mapping[str, str],
    known_currencies: set[str] | None = None,
) -> tuple[dict[str, str], dict[str, str]]:
    """
    Validate submitted values and, when all pass, persist and export them.

    Returns ``(errors, updates)``. Nothing is written if any key fails:
    unknown keys and keys pinned by the environment count as failures.
    """
    errors: dict[str, str] = {}
    updates: dict[str, str] = {}
    for key, raw_value in form_values.items():
        item = FIELDS_BY_KEY.get(key)
        if item is None:
            errors[key] = "Unknown setting."
        elif settings.is_env_override(key):
            errors[key] = "Set via environment variable."
        else:
            cleaned, error = validate_value(item, raw_value, known_currencies)
            if error:
                errors[key] = error
            else:
                updates[key] = cleaned
    if errors:
        return errors, {}

    save_config(get_config_path(), updates)
    for key, value in updates.items():
        if value:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)
    return {}, updates


def _quote(value: str) -> str:
    if value == value.strip() and not any(marker in value for marker in ":#\"'"):
        return value
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def render_config(lines: list[str], updates: Mapping[str, str]) -> list[str]:
    """Rewrite the first line naming each key; append keys not yet present."""
    rendered = list(lines)
    pending = dict(updates)
    for index, line in enumerate(rendered):
        match = _KEY_LINE.match(line.strip())
        key = match.group("key") if match else None
        if key in pending:
            value = pending.pop(key)
            rendered[index] = f"{key}: {_quote(value)}" if value else f"# {key}:"
    for key, value in pending.items():
        rendered.append(f"{key}: {_quote(value)}" if value else f"# {key}:")
    return rendered


def save_config(path: str, updates: Mapping[str, str]) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    if os.path.isfile(path):
        with open(path, encoding="utf-8") as handle:
            current = handle.read().splitlines()
    else:
        current = _template_lines()

    text = "\n".join(render_config(current, updates)).rstrip("\n") + "\n"
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text)
    logger.info("[CONFIG] Saved %s to %s.", ", ".join(updates) or "nothing", path)


def apply_runtime_updates(app: Any, updates: Mapping[str, str]) -> None:
    """Push currency settings into the running currency table."""
    table = getattr(getattr(app, "state", None), "currency_table", None)
    if table is None or not updates:
        return
    if updates.get("EXCHANGE_RATES"):
        table.apply_rates(settings.parse_rate_map(updates["EXCHANGE_RATES"]))
        logger.info("[CONFIG] Exchange rates refreshed.")
    if "DISPLAY_CURRENCY" in updates:
        table.set_active(updates["DISPLAY_CURRENCY"] or table.default.code)
