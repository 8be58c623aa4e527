# finance_flow/utils.py
import uuid
from importlib import import_module
from calendar import monthrange
from datetime import date, datetime, timezone


def new_id():
    """Return a fresh random record identifier."""
    return uuid.uuid4().hex[:12]


def parse_timestamp(value):
    """
    Coerce a datetime, date or ISO-8601 string into a naive UTC datetime.
    Aware values are converted to UTC first; a trailing 'Z' is accepted.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise TypeError(f"Unsupported timestamp value: {value!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def shift_months(moment, months):
    """
    Move a date/datetime by whole calendar months, clamping the day to the
    length of the target month (Jan 31 + 1 month -> Feb 28/29).
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def first_of_month(moment):
    """Midnight on the first day of moment's month."""
    return datetime(moment.year, moment.month, 1)


def dedupe_transactions(transactions):
    """
    Remove duplicates based on (date, description, amount, type, account).
    """
    seen = set()
    unique = []
    for tx in transactions:
        key = (tx.date, tx.description.strip().lower(), round(tx.amount, 2), tx.type, tx.account_id)
        if key not in seen:
            seen.add(key)
            unique.append(tx)
    return unique


def import_object(dotted_path):
    """Import ``package.module.Name`` and return ``Name``."""
    module_name, attr = dotted_path.rsplit('.', 1)
    return getattr(import_module(module_name), attr)


def lookup_plugin(config, section, name):
    """Resolve ``name`` in a ``*_modules`` config section to its class."""
    modules = config.get(section) or {}
    if name not in modules:
        raise ValueError(f"Unknown {section[:-8]} '{name}'; choose from: {', '.join(sorted(modules))}")
    return import_object(modules[name])
