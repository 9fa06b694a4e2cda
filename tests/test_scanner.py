"""Tests for exhaustive paged scanning."""

import pytest

from recordsweep.errors import ScanError, ThrottledError
from recordsweep.scanner import load_all, scan_all


def _records(n):
    return [{"id": f"rec-{i:06d}"} for i in range(n)]


class TestScanAll:

    @pytest.mark.parametrize("page_size", [1, 3, 10, 100])
    def test_returns_every_record_once(self, make_store, page_size):
        """3 full pages plus a partial one, whatever the page size."""
        total = 3 * page_size + 7
        store = make_store({"MetricRecord": _records(total)})

        ids = [r["id"] for r in scan_all(store, "MetricRecord", page_size=page_size)]

        assert len(ids) == total
        assert len(set(ids)) == total
        assert set(ids) == {r["id"] for r in _records(total)}

    def test_short_final_page_ends_scan(self, make_store):
        store = make_store({"MetricRecord": _records(12345)})

        records = load_all(store, "MetricRecord", page_size=5000)

        fetches = store.ops("list")
        assert len(records) == 12345
        assert [c[3] for c in fetches] == [0, 5000, 10000]
        assert [len(store.data["MetricRecord"][c[3]:c[3] + 5000]) for c in fetches] == [5000, 5000, 2345]

    def test_exact_multiple_needs_one_empty_page(self, make_store):
        store = make_store({"MetricRecord": _records(10)})

        assert len(load_all(store, "MetricRecord", page_size=5)) == 10
        assert len(store.ops("list")) == 3

    def test_empty_collection(self, make_store):
        store = make_store()

        assert load_all(store, "MetricRecord", page_size=50) == []
        assert len(store.ops("list")) == 1

    def test_where_predicate(self, make_store):
        store = make_store({"MetricRecord": _records(20)})

        evens = load_all(store, "MetricRecord", page_size=7, where=lambda r: int(r["id"][-1]) % 2 == 0)

        assert len(evens) == 10

    def test_is_lazy(self, make_store):
        store = make_store({"MetricRecord": _records(20)})

        scan = scan_all(store, "MetricRecord", page_size=5)
        next(scan)

        assert len(store.ops("list")) == 1

    def test_restart_from_zero(self, make_store):
        store = make_store({"MetricRecord": _records(8)})

        first = load_all(store, "MetricRecord", page_size=5)
        second = load_all(store, "MetricRecord", page_size=5)

        assert first == second
        assert [c[3] for c in store.ops("list")] == [0, 5, 0, 5]

    def test_passes_sort_key(self, make_store):
        store = make_store({"MetricRecord": _records(2)})
        calls = []
        original = store.list

        def spy(entity, sort, limit, offset=0):
            calls.append(sort)
            return original(entity, sort, limit, offset)

        store.list = spy
        load_all(store, "MetricRecord", page_size=5, sort="-recorded_date")

        assert calls == ["-recorded_date"]

    def test_store_error_aborts_scan(self, make_store):
        store = make_store({"MetricRecord": _records(3)})
        store.list_error = ThrottledError("429")

        with pytest.raises(ScanError, match="offset 0"):
            load_all(store, "MetricRecord", page_size=5)

    @pytest.mark.parametrize("page_size", [0, -1, 2.5])
    def test_rejects_bad_page_size(self, make_store, page_size):
        with pytest.raises(ValueError):
            load_all(make_store(), "MetricRecord", page_size=page_size)
