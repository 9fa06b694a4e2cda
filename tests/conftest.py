"""
Pytest configuration and shared fixtures.
"""

from typing import Any, Dict, List

import pytest

from recordsweep.errors import RecordNotFound, ThrottledError
from recordsweep.storage import EntityStore, SqlEntityStore


class FakeStore(EntityStore):
    """
    In-memory store. Records keep insertion order, which stands in for a
    stable sort. Failures can be injected per record id.
    """

    def __init__(self, data: Dict[str, List[Dict[str, Any]]] = None):
        self.data = {entity: [dict(r) for r in records] for entity, records in (data or {}).items()}
        self.calls = []
        self.fail = {}       # record id -> exception raised on every mutation
        self.throttle = {}   # record id -> number of ThrottledErrors before success
        self.list_error = None

    def _find(self, entity, record_id):
        for record in self.data.get(entity, []):
            if record.get("id") == record_id:
                return record
        raise RecordNotFound(f"{entity} {record_id} not found")

    def _check(self, record_id):
        if record_id in self.fail:
            raise self.fail[record_id]
        if self.throttle.get(record_id, 0) > 0:
            self.throttle[record_id] -= 1
            raise ThrottledError("429 Too Many Requests")

    def list(self, entity, sort, limit, offset=0):
        self.calls.append(("list", entity, limit, offset))
        if self.list_error:
            raise self.list_error
        return [dict(r) for r in self.data.get(entity, [])[offset:offset + limit]]

    def filter(self, entity, **criteria):
        self.calls.append(("filter", entity, criteria))
        if self.list_error:
            raise self.list_error
        return [
            dict(r) for r in self.data.get(entity, [])
            if all(r.get(k) == v for k, v in criteria.items())
        ]

    def update(self, entity, record_id, fields):
        self.calls.append(("update", entity, record_id, dict(fields)))
        self._check(record_id)
        self._find(entity, record_id).update(fields)

    def delete(self, entity, record_id):
        self.calls.append(("delete", entity, record_id))
        self._check(record_id)
        record = self._find(entity, record_id)
        self.data[entity].remove(record)

    def create(self, entity, record):
        self.calls.append(("create", entity, record.get("id")))
        self.data.setdefault(entity, []).append(dict(record))
        return dict(record)

    def ops(self, op):
        return [c for c in self.calls if c[0] == op]


@pytest.fixture
def make_store():
    """Factory for FakeStore instances."""
    return FakeStore


@pytest.fixture
def sql_store(tmp_path) -> SqlEntityStore:
    """Empty SQLite-backed store in a temporary directory."""
    return SqlEntityStore(tmp_path / "recordsweep.db")


@pytest.fixture
def no_sleep():
    """Sleep stand-in that records requested delays."""
    delays = []

    def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture
def athletes() -> List[Dict[str, Any]]:
    return [
        {"id": "ath-1", "organization_id": "org-a", "team_ids": ["varsity"]},
        {"id": "ath-2", "organization_id": "org-a", "team_ids": ["unknown", "jv"]},
        {"id": "ath-3", "data": {"organization_id": "org-b", "team_ids": ["Unknown"]}},
        {"id": "ath-4", "organization_id": None},
    ]


@pytest.fixture
def performance_records() -> List[Dict[str, Any]]:
    return [
        {"id": "rec-1", "athlete_id": "ath-1", "metric_id": "m-1", "organization_id": "org-a",
         "recorded_date": "2025-09-05", "value": 4.5},
        {"id": "rec-2", "athlete_id": "ath-1", "metric_id": "m-1", "organization_id": None,
         "recorded_date": "2025-9-5", "value": 4.4},
        {"id": "rec-3", "athlete_id": "ath-3", "metric_id": "m-2",
         "recorded_date": "2025-10-01", "value": 31.0},
        {"id": "rec-4", "data": {"athlete_id": "ath-2", "metric_id": "m-2",
                                 "recorded_date": "undefined", "value": 30.2}},
        {"id": "rec-5", "athlete_id": "ath-4", "metric_id": "m-3", "recorded_date": "", "value": 1.0},
        {"id": "rec-6", "athlete_id": "ath-gone", "metric_id": "m-1", "organization_id": "org-a",
         "recorded_date": "2025-13-40", "value": 5.0},
    ]


@pytest.fixture
def metrics() -> List[Dict[str, Any]]:
    return [
        {"id": "m-1", "organization_id": "org-a", "name": "40 yd dash"},
        {"id": "m-2", "name": "vertical jump"},
        {"id": "m-3", "name": "bench"},
    ]


@pytest.fixture
def seeded_store(make_store, athletes, performance_records, metrics) -> FakeStore:
    return make_store({
        "Athlete": athletes,
        "MetricRecord": performance_records,
        "Metric": metrics,
    })

