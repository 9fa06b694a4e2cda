"""Tests for the HTTP entity store's routing and error translation."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from recordsweep import remote as remote_module
from recordsweep.auth import Caller
from recordsweep.classify import Verdict
from recordsweep.errors import PermanentStoreError, RecordNotFound, ScanError, StoreError, ThrottledError
from recordsweep.executor import DELETED, MutationExecutor
from recordsweep.jobs import JobContext, run_job
from recordsweep.remote import HttpEntityStore


def _response(status=200, body=None, headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.text = json.dumps(body) if body is not None else ""
    resp.json.return_value = body
    return resp


def _store(*responses, **kwargs):
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = list(responses)
    return HttpEntityStore("https://api.example.com/v1/", session=session, **kwargs), session


class TestRouting:

    def test_list_pages_by_skip(self):
        store, session = _store(_response(body=[{"id": "r1"}]))

        records = store.list("MetricRecord", "-created_date", 5000, 10000)

        assert records == [{"id": "r1"}]
        method, url = session.request.call_args.args
        assert method == "GET"
        assert url == "https://api.example.com/v1/entities/MetricRecord"
        assert session.request.call_args.kwargs["params"] == {"sort": "-created_date", "limit": 5000, "skip": 10000}

    def test_app_scoped_base_and_api_key(self):
        store, session = _store(_response(body=[]), api_key="secret", app_id="app-1")

        store.filter("Athlete", organization_id="org-a")

        method, url = session.request.call_args.args
        assert url == "https://api.example.com/v1/apps/app-1/entities/Athlete"
        assert json.loads(session.request.call_args.kwargs["params"]["q"]) == {"organization_id": "org-a"}
        assert session.headers["api_key"] == "secret"

    def test_update_and_delete(self):
        store, session = _store(_response(body={}), _response(body={}))

        store.update("MetricRecord", "r1", {"recorded_date": "2025-09-05"})
        store.delete("MetricRecord", "r1")

        update_call, delete_call = session.request.call_args_list
        assert update_call.args == ("PUT", "https://api.example.com/v1/entities/MetricRecord/r1")
        assert update_call.kwargs["json"] == {"recorded_date": "2025-09-05"}
        assert delete_call.args == ("DELETE", "https://api.example.com/v1/entities/MetricRecord/r1")

    def test_create(self):
        store, session = _store(_response(status=201, body={"id": "a1"}))

        assert store.create("Athlete", {"id": "a1"}) == {"id": "a1"}
        assert session.request.call_args.args[0] == "POST"


class TestErrorTranslation:

    @pytest.mark.parametrize("status", [408, 429, 502, 503, 504])
    def test_throttling_statuses(self, status):
        store, _ = _store(_response(status=status, body={"error": "slow down"}))

        with pytest.raises(ThrottledError):
            store.delete("MetricRecord", "r1")

    def test_retry_after_header(self):
        store, _ = _store(_response(status=429, headers={"Retry-After": "3"}))

        with pytest.raises(ThrottledError) as excinfo:
            store.delete("MetricRecord", "r1")

        assert excinfo.value.retry_after == 3.0

    def test_not_found(self):
        store, _ = _store(_response(status=404))
        with pytest.raises(RecordNotFound):
            store.delete("MetricRecord", "r1")

    def test_client_error_is_permanent(self):
        store, _ = _store(_response(status=400, body={"error": "bad field"}))
        with pytest.raises(PermanentStoreError, match="400"):
            store.update("MetricRecord", "r1", {"bogus": 1})

    def test_server_error_is_not_throttling(self):
        store, _ = _store(_response(status=500))
        with pytest.raises(StoreError) as excinfo:
            store.delete("MetricRecord", "r1")
        assert not isinstance(excinfo.value, (ThrottledError, PermanentStoreError))

    def test_timeout_and_connection_errors_are_throttling(self):
        store, _ = _store(requests.exceptions.Timeout(), requests.exceptions.ConnectionError("reset"))

        with pytest.raises(ThrottledError, match="timed out"):
            store.list("MetricRecord", "-created_date", 10)
        with pytest.raises(ThrottledError, match="connection error"):
            store.list("MetricRecord", "-created_date", 10)

    def test_other_request_errors(self):
        store, _ = _store(requests.exceptions.InvalidURL("bad"))
        with pytest.raises(StoreError, match="request error"):
            store.list("MetricRecord", "-created_date", 10)


def _html_page():
    resp = _response(status=200)
    resp.text = "<html><body>Maintenance</body></html>"
    resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    return resp


class TestResponseBodies:

    def test_non_json_page_is_a_store_error(self):
        store, _ = _store(_html_page())

        with pytest.raises(StoreError, match="non-JSON body"):
            store.list("MetricRecord", "-created_date", 10)

    def test_list_must_return_a_list(self):
        store, _ = _store(_response(body={"error": "quota"}))

        with pytest.raises(StoreError, match="expected a list"):
            store.filter("Athlete", organization_id="org-a")

    def test_non_json_page_aborts_job_as_scan_error(self, no_sleep):
        store, session = _store(_html_page())
        ctx = JobContext(store=store, caller=Caller("coach-1", role="admin"), sleep=no_sleep)

        with pytest.raises(ScanError, match="offset 0"):
            run_job("fix-dates", ctx)
        assert session.request.call_count == 1


def test_each_http_attempt_counted_once(no_sleep):
    store, session = _store(_response(status=429), _response(body={}))
    before = remote_module.logger.get_metrics()["store_calls"]

    outcome = MutationExecutor(store, "MetricRecord", sleep=no_sleep).apply({"id": "r1"}, Verdict.delete())

    assert outcome.kind == DELETED
    assert session.request.call_count == 2
    assert remote_module.logger.get_metrics()["store_calls"] == before + 2
