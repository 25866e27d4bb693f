"""HTTP transport for the Firebase Realtime Database REST API."""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from fishfeeder._constants import ETAG_REQUEST_HEADER, USER_AGENT
from fishfeeder._redact import redact_for_log
from fishfeeder.config import FeederConfig
from fishfeeder.exceptions import StoreError

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class RestResponse:
    """Decoded JSON body plus the entity tag when one was requested."""

    data: Any
    etag: str | None = None


class Transport(Protocol):
    """Structural transport interface used by the store.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`RestTransport`) concrete.
    """

    async def get(self, path: str, *, with_etag: bool = False) -> RestResponse:
        ...

    async def put(self, path: str, value: Any, *, if_match: str | None = None) -> RestResponse:
        ...


class RestTransport:
    """JSON GET/PUT against ``{database_url}/{path}.json``.

    Conditional writes use the ``if-match`` header; a lost race comes back
    as HTTP 412 and is raised as :class:`StoreError` with that status code.
    """

    def __init__(self, config: FeederConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._base_url = config.database_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.strip('/')}.json"

    def _params(self) -> dict[str, str]:
        if self._config.database_auth:
            return {"auth": self._config.database_auth}
        return {}

    async def get(self, path: str, *, with_etag: bool = False) -> RestResponse:
        headers = {ETAG_REQUEST_HEADER: "true"} if with_etag else {}
        return await self._request("GET", path, headers=headers)

    async def put(self, path: str, value: Any, *, if_match: str | None = None) -> RestResponse:
        headers = {"if-match": if_match} if if_match is not None else {}
        return await self._request("PUT", path, body=value, headers=headers, with_etag=if_match is not None)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        with_etag: bool = False,
    ) -> RestResponse:
        request_headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        if headers:
            request_headers.update(headers)
        if with_etag:
            request_headers[ETAG_REQUEST_HEADER] = "true"

        data: str | None = None
        if method != "GET":
            request_headers["content-type"] = "application/json; charset=UTF-8"
            data = json.dumps(body, separators=(",", ":"))

        _logger.debug("%s %s", method, path)
        if self._config.debug_payloads and data is not None:
            _logger.debug("%s %s payload=%s", method, path, redact_for_log(body))

        try:
            async with self._http.request(
                method,
                self._url(path),
                params=self._params(),
                data=data,
                headers=request_headers,
            ) as resp:
                text = await resp.text()
                etag = resp.headers.get("ETag")
                if resp.status != 200:
                    raise StoreError(
                        f"HTTP {resp.status} from {method} {path}: {text[:200]}",
                        path=path,
                        status_code=resp.status,
                    )
        except StoreError:
            raise
        except aiohttp.ClientError as exc:
            raise StoreError(f"{method} {path} failed: {exc}", path=path) from exc

        try:
            decoded = json.loads(text) if text else None
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid JSON from {method} {path}: {text[:200]}", path=path) from exc

        if self._config.debug_payloads and method == "GET":
            _logger.debug("GET %s response=%s", path, redact_for_log(decoded))

        return RestResponse(data=decoded, etag=etag)
