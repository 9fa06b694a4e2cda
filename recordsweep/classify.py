"""
Per-record verdicts for the reconciliation jobs.

Every classifier is a pure function of one record (plus whatever index or id
set its factory closed over). Classifiers never raise and never touch the
store, so they can be tested against literal dicts.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Set

from .normalize import is_valid_date, pad_date, read_field

SKIP = "skip"
UPDATE = "update"
DELETE = "delete"


@dataclass(frozen=True)
class Verdict:
    action: str
    fields: Dict[str, Any] = field(default_factory=dict)
    reason: str = ""

    @classmethod
    def skip(cls, reason: str = "") -> "Verdict":
        return cls(SKIP, reason=reason)

    @classmethod
    def update(cls, fields: Dict[str, Any], reason: str = "") -> "Verdict":
        return cls(UPDATE, dict(fields), reason)

    @classmethod
    def delete(cls, reason: str = "") -> "Verdict":
        return cls(DELETE, reason=reason)


Classifier = Callable[[Mapping[str, Any]], Verdict]


def classify_org_backfill(index: Mapping[Any, Any], key_field: str = "athlete_id") -> Classifier:
    """
    Backfill a missing organization_id from ``index[record[key_field]]``.

    Records that already have an organization, or whose key does not
    resolve, are skipped. Nothing is ever deleted by this classifier.
    """
    def classify(record):
        if read_field(record, "organization_id"):
            return Verdict.skip("already set")
        key = read_field(record, key_field)
        org_id = index.get(key) if key else None
        if not org_id:
            return Verdict.skip("cannot infer")
        return Verdict.update({"organization_id": org_id}, "backfill")

    return classify


def classify_orphan(known_athlete_ids: Set[Any]) -> Classifier:
    """Delete records whose athlete_id is not a known athlete."""
    def classify(record):
        if read_field(record, "athlete_id") in known_athlete_ids:
            return Verdict.skip("athlete exists")
        return Verdict.delete("unknown athlete")

    return classify


def classify_date(record) -> Verdict:
    """Delete unparseable dates, zero-pad valid ones that need it."""
    value = read_field(record, "recorded_date")
    if not is_valid_date(value):
        return Verdict.delete(f"invalid date: {value!r}")
    padded = pad_date(value.strip())
    if padded is not None and padded != value:
        return Verdict.update({"recorded_date": padded}, f"pad {value} -> {padded}")
    return Verdict.skip("date ok")


def classify_invalid_date(record) -> Verdict:
    """Delete-only variant: valid dates are left alone even if unpadded."""
    value = read_field(record, "recorded_date")
    if not is_valid_date(value):
        return Verdict.delete(f"invalid date: {value!r}")
    return Verdict.skip("date ok")


def classify_date_padding(record) -> Verdict:
    """Padding-only variant: records with unusable dates are skipped, not deleted."""
    value = read_field(record, "recorded_date")
    if not isinstance(value, str) or not is_valid_date(value):
        return Verdict.skip("no usable date")
    padded = pad_date(value.strip())
    if padded is not None and padded != value:
        return Verdict.update({"recorded_date": padded}, f"pad {value} -> {padded}")
    return Verdict.skip("date ok")


def classify_org_scoped_delete(organization_id: str) -> Classifier:
    """Delete every record belonging to ``organization_id``, whatever its state."""
    def classify(record):
        if read_field(record, "organization_id") == organization_id:
            return Verdict.delete(f"organization {organization_id}")
        return Verdict.skip("other organization")

    return classify


def describe(verdict: Verdict, record_id: Optional[str] = None) -> str:
    target = f" {record_id}" if record_id else ""
    if verdict.action == UPDATE:
        return f"update{target} {verdict.fields}"
    return f"{verdict.action}{target} ({verdict.reason})"
