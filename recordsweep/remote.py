"""HTTP client for the managed backend's entity API."""

import json
from typing import Optional

import requests

from .errors import PermanentStoreError, RecordNotFound, StoreError, ThrottledError
from .logger import get_logger
from .retry import should_retry_http_status
from .storage import EntityStore

logger = get_logger()

DEFAULT_TIMEOUT = 30


def _retry_after(resp) -> Optional[float]:
    value = resp.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _decode(resp, method: str, url: str, expect_list: bool = False):
    """Parse a JSON body, raising StoreError for anything unusable."""
    try:
        body = resp.json()
    except ValueError as e:
        snippet = resp.text[:200] if resp.text else ""
        raise StoreError(f"{method} {url} returned a non-JSON body: {e} {snippet}".strip()) from e
    if expect_list and not isinstance(body, list):
        raise StoreError(f"{method} {url} returned {type(body).__name__}, expected a list")
    return body


class HttpEntityStore(EntityStore):
    """
    EntityStore backed by the REST entity endpoints.

    Routes:
        GET    {base}/entities/{entity}?sort=&limit=&skip=
        GET    {base}/entities/{entity}?q=<json criteria>
        POST   {base}/entities/{entity}
        PUT    {base}/entities/{entity}/{id}
        DELETE {base}/entities/{entity}/{id}
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        app_id: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        if app_id:
            self.base_url = f"{self.base_url}/apps/{app_id}"
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers.update({"api_key": api_key})

    def _url(self, entity: str, record_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/entities/{entity}"
        if record_id is not None:
            url = f"{url}/{record_id}"
        return url

    def _request(self, method: str, url: str, **kwargs):
        """Issue a request and translate failures into store errors.

        Raises:
            ThrottledError: 429/5xx gateway errors, timeouts, connection drops
            RecordNotFound: 404
            PermanentStoreError: any other 4xx
        """
        logger.record_store_call()
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.warning("Store request timed out", method=method, url=url)
            raise ThrottledError(f"{method} {url} timed out")
        except requests.exceptions.ConnectionError as e:
            logger.warning("Store connection error", method=method, url=url, error=str(e))
            raise ThrottledError(f"{method} {url} connection error: {e}")
        except requests.exceptions.RequestException as e:
            logger.error("Store request error", method=method, url=url, error=str(e))
            raise StoreError(f"{method} {url} request error: {e}")

        status = resp.status_code
        if status < 400:
            return resp

        detail = resp.text[:200] if resp.text else ""
        message = f"{method} {url} failed ({status}) {detail}".strip()
        if should_retry_http_status(status):
            raise ThrottledError(message, retry_after=_retry_after(resp))
        if status == 404:
            raise RecordNotFound(message)
        if 400 <= status < 500:
            raise PermanentStoreError(message)
        raise StoreError(message)

    def list(self, entity, sort, limit, offset=0):
        resp = self._request(
            "GET",
            self._url(entity),
            params={"sort": sort, "limit": limit, "skip": offset},
        )
        return _decode(resp, "GET", self._url(entity), expect_list=True)

    def filter(self, entity, **criteria):
        resp = self._request(
            "GET",
            self._url(entity),
            params={"q": json.dumps(criteria)},
        )
        return _decode(resp, "GET", self._url(entity), expect_list=True)

    def update(self, entity, record_id, fields):
        self._request("PUT", self._url(entity, record_id), json=fields)

    def delete(self, entity, record_id):
        self._request("DELETE", self._url(entity, record_id))

    def create(self, entity, record):
        resp = self._request("POST", self._url(entity), json=record)
        return _decode(resp, "POST", self._url(entity))
