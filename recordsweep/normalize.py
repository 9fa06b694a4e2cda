import re
from datetime import date
from typing import Any, Dict, List, Optional

# Legacy rows keep their payload under this key instead of at the top level
NESTED_KEY = "data"

INVALID_DATE_LITERALS = {"undefined", "null"}

_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_TIME_SEP_RE = re.compile(r"[T ]")


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def read_field(record: Dict[str, Any], name: str, default: Any = None) -> Any:
    """Read a field from the top level, falling back to the nested legacy shape."""
    value = record.get(name)
    if not _missing(value):
        return value
    nested = record.get(NESTED_KEY)
    if isinstance(nested, dict):
        value = nested.get(name)
        if not _missing(value):
            return value
    return default


def is_valid_date(value: Any) -> bool:
    """True when value is a YYYY-M-D style string naming a real calendar day."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    if not text or text in INVALID_DATE_LITERALS:
        return False
    match = _DATE_RE.match(text)
    if not match:
        return False
    year, month, day = (int(part) for part in match.groups())
    try:
        date(year, month, day)
    except ValueError:
        return False
    return True


def pad_date(value: str) -> Optional[str]:
    """Zero-pad month and day of a Y-M-D string.

    Only the date part is touched; a time after 'T' or a space is kept as is.
    Returns None unless the date part splits on '-' into exactly three parts.
    """
    match = _TIME_SEP_RE.search(value)
    date_part, rest = (value[:match.start()], value[match.start():]) if match else (value, "")
    parts = date_part.split("-")
    if len(parts) != 3:
        return None
    year, month, day = parts
    return f"{year}-{month.rjust(2, '0')}-{day.rjust(2, '0')}{rest}"


def strip_sentinel(values: List[Any], sentinel: str) -> List[Any]:
    """Drop every case variant of sentinel from a list, keeping order."""
    target = sentinel.lower()
    return [v for v in values if not (isinstance(v, str) and v.lower() == target)]


def canonical_date(value: Any) -> Optional[str]:
    """The YYYY-MM-DD form of a valid date, or None."""
    if not is_valid_date(value):
        return None
    year, month, day = (int(part) for part in _DATE_RE.match(value.strip()).groups())
    return f"{year:04d}-{month:02d}-{day:02d}"
