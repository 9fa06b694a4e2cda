"""
In-memory lookup tables built from a fully loaded secondary collection.

Duplicate keys: with ``tie_break="first"`` the first record in scan order
wins. Scan order is whatever the store returns, so two runs against a store
without a stable sort can infer different values for the same key.
``tie_break="lowest_id"`` keeps the entry whose source record has the
smallest id instead, independent of scan order.
"""

from typing import Any, Callable, Dict, Iterable, Set

from .normalize import read_field
from .storage import Record

TIE_BREAKS = ("first", "lowest_id")


def build_index(
    records: Iterable[Record],
    key_fn: Callable[[Record], Any],
    value_fn: Callable[[Record], Any],
    tie_break: str = "first",
) -> Dict[Any, Any]:
    """
    Map key_fn(record) -> value_fn(record) over records.

    Records with an empty key or value are ignored.
    """
    if tie_break not in TIE_BREAKS:
        raise ValueError(f"tie_break must be one of {TIE_BREAKS}, got {tie_break!r}")

    index: Dict[Any, Any] = {}
    owners: Dict[Any, str] = {}

    for record in records:
        key = key_fn(record)
        value = value_fn(record)
        if not key or not value:
            continue

        if key not in index:
            index[key] = value
            owners[key] = str(record.get("id", ""))
        elif tie_break == "lowest_id":
            record_id = str(record.get("id", ""))
            if record_id < owners[key]:
                index[key] = value
                owners[key] = record_id

    return index


def field_getter(name: str) -> Callable[[Record], Any]:
    """Key/value function reading ``name`` through the legacy-shape accessor."""
    return lambda record: read_field(record, name)


def id_set(records: Iterable[Record]) -> Set[Any]:
    return {r.get("id") for r in records if r.get("id")}
