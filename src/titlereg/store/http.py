"""HTTP ledger store backed by aiohttp.

The ledger exposes one resource per key::

    GET    {base_url}/state/{key}   200 + body + ETag, or 404
    PUT    {base_url}/state/{key}   200/201/204; honours If-Match / If-None-Match
    DELETE {base_url}/state/{key}   200/202/204, or 404 for an absent key

A ``412 Precondition Failed`` reply to a conditional PUT is a version
conflict, reported as ``False`` by :meth:`HttpStore.put_if_version`.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from titlereg._constants import DEFAULT_READ_RETRIES, DEFAULT_REQUEST_TIMEOUT
from titlereg.config import RegistryConfig
from titlereg.exceptions import StoreError, TitleRegistryConfigError

_logger = logging.getLogger(__name__)

_OK_WRITE = frozenset({200, 201, 204})
_OK_DELETE = frozenset({200, 202, 204, 404})


class HttpStore:
    """:class:`~titlereg.store.base.VersionedStore` over a REST ledger.

    Usage::

        async with HttpStore("http://ledger:8080") as store:
            registry = TitleRegistry(store)
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        read_retries: int = DEFAULT_READ_RETRIES,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._external_session = session is not None
        self._http = session
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._read_retries = read_retries

    @classmethod
    def from_config(cls, config: RegistryConfig, *, session: aiohttp.ClientSession | None = None) -> HttpStore:
        """Build a store from ``config.store_url`` and its HTTP settings."""
        if not config.store_url:
            raise TitleRegistryConfigError("store_url is required for HttpStore (set TITLEREG_STORE_URL)")
        return cls(
            config.store_url,
            session=session,
            request_timeout=config.request_timeout,
            read_retries=config.read_retries,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> HttpStore:
        if self._http is None:
            self._http = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http is not None:
            await self._http.close()
            self._http = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http is None:
            raise StoreError("Store not initialized. Use 'async with HttpStore(...) as store:'")
        return self._http

    def _url(self, key: str) -> str:
        return f"{self._base_url}/state/{quote(key, safe='')}"

    async def _request(
        self,
        method: str,
        key: str,
        *,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
        retries: int = 0,
    ) -> tuple[int, bytes, str | None]:
        """Send one request, retrying transport failures *retries* times.

        Returns ``(status, body, etag)``.  Only transport-level failures
        are retried; any HTTP status is returned to the caller.
        """
        http = self._require_session()
        url = self._url(key)
        attempts = retries + 1
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            _logger.debug("%s %s", method, url)
            try:
                async with http.request(method, url, data=data, headers=headers, timeout=self._timeout) as resp:
                    body = await resp.read()
                    return resp.status, body, resp.headers.get("ETag")
            except (aiohttp.ClientError, TimeoutError) as exc:
                last_exc = exc
                if attempt < attempts:
                    _logger.debug("%s %s failed (attempt %d/%d): %s", method, url, attempt, attempts, exc)
        raise StoreError(f"{method} {key} failed: {last_exc}", key=key) from last_exc

    @staticmethod
    def _unexpected(method: str, key: str, status: int, body: bytes) -> StoreError:
        text = body[:200].decode("utf-8", errors="replace")
        return StoreError(f"HTTP {status} for {method} {key}: {text}", key=key, status_code=status)

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    async def get(self, key: str) -> bytes | None:
        value, _version = await self._get(key, require_version=False)
        return value

    async def get_versioned(self, key: str) -> tuple[bytes | None, str | None]:
        return await self._get(key, require_version=True)

    async def _get(self, key: str, *, require_version: bool) -> tuple[bytes | None, str | None]:
        status, body, etag = await self._request("GET", key, retries=self._read_retries)
        if status == 404:
            return None, None
        if status != 200:
            raise self._unexpected("GET", key, status, body)
        if require_version and not etag:
            raise StoreError(f"Ledger returned no ETag for {key}; conditional writes unavailable", key=key)
        return body, etag

    async def put(self, key: str, value: bytes) -> None:
        status, body, _etag = await self._request("PUT", key, data=value)
        if status not in _OK_WRITE:
            raise self._unexpected("PUT", key, status, body)

    async def put_if_version(self, key: str, value: bytes, version: str | None) -> bool:
        headers = {"If-Match": version} if version is not None else {"If-None-Match": "*"}
        status, body, _etag = await self._request("PUT", key, data=value, headers=headers)
        if status == 412:
            return False
        if status not in _OK_WRITE:
            raise self._unexpected("PUT", key, status, body)
        return True

    async def delete(self, key: str) -> None:
        status, body, _etag = await self._request("DELETE", key)
        if status not in _OK_DELETE:
            raise self._unexpected("DELETE", key, status, body)
