# src/hostcert/services/ssl/client.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, MutableMapping

import httpx

from .errors import AuthorityError
from .models import HostnameRecord

_log = logging.getLogger("hostcert.ssl.client")

DEFAULT_API_BASE = "https://api.cloudflare.com/client/v4"


@dataclass(slots=True)
class AuthorityClient:
    """Async client for the Cloudflare custom hostnames API.

    One network call per operation and no retries; callers decide whether a
    failure is worth repeating. Any non-success response or transport failure
    surfaces as :class:`AuthorityError`.
    """

    zone_id: str
    api_token: str
    base_url: str = DEFAULT_API_BASE
    timeout: float = 15.0
    ssl_method: str = "http"
    ssl_type: str = "dv"
    # applied to the ssl block of every newly created hostname
    ssl_settings: dict[str, Any] = field(default_factory=lambda: {"http2": "on"})
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)

    # ---------- public helpers ------------------------------------------------
    @classmethod
    def from_settings(cls, settings: Any, *, transport: httpx.AsyncBaseTransport | None = None) -> "AuthorityClient":
        """
        Factory reading ``settings.authority`` (see :mod:`hostcert.services.settings`).
        """
        authority = getattr(settings, "authority", settings)
        if not authority.zone_id or not authority.api_token:
            raise ValueError("authority zone_id and api_token must be configured (CF_ZONE_ID / CF_API_TOKEN)")
        return cls(
            zone_id=authority.zone_id,
            api_token=authority.api_token,
            base_url=authority.base_url or DEFAULT_API_BASE,
            timeout=authority.timeout,
            transport=transport,
        )

    @property
    def default_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def __aenter__(self) -> "AuthorityClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url.rstrip("/"),
                timeout=self.timeout,
                headers=self.default_headers,
                transport=self.transport,
            )
        return self._client

    def _path(self, record_id: str | None = None) -> str:
        path = f"/zones/{self.zone_id}/custom_hostnames"
        if record_id:
            path = f"{path}/{record_id}"
        return path

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._http().request(method, path, json=json, params=params)
        except httpx.RequestError as exc:
            _log.warning("authority request failed method=%s path=%s error=%s", method, path, exc)
            raise AuthorityError(f"{method} {path} failed: {exc}", status_code=0, body=str(exc)) from exc

        content: Any | None = None
        if response.content:
            try:
                content = response.json()
            except ValueError:
                content = response.text

        if response.status_code >= 400:
            message = response.text or f"HTTP {response.status_code}"
            if isinstance(content, Mapping):
                errors = content.get("errors")
                if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
                    detail = errors[0].get("message")
                    if isinstance(detail, str):
                        message = detail
            raise AuthorityError(message, status_code=response.status_code, body=content)

        if not isinstance(content, Mapping):
            raise AuthorityError(
                f"{method} {path} returned an unexpected body",
                status_code=response.status_code,
                body=content,
            )
        return content.get("result")

    @staticmethod
    def _record(result: Any, method: str) -> HostnameRecord:
        if not isinstance(result, Mapping):
            raise AuthorityError(f"{method} returned no hostname record", status_code=200, body=result)
        try:
            return HostnameRecord.from_payload(result)
        except ValueError as exc:
            raise AuthorityError(str(exc), status_code=200, body=dict(result)) from exc

    # ------------------------------------------------------------------
    # Custom hostname operations
    # ------------------------------------------------------------------
    async def create(self, hostname: str) -> HostnameRecord:
        ssl_block: MutableMapping[str, Any] = {"method": self.ssl_method, "type": self.ssl_type}
        if self.ssl_settings:
            ssl_block["settings"] = dict(self.ssl_settings)
        payload = {"hostname": hostname, "ssl": ssl_block}
        result = await self._request("POST", self._path(), json=payload)
        return self._record(result, "create")

    async def get(self, record_id: str) -> HostnameRecord:
        result = await self._request("GET", self._path(record_id))
        return self._record(result, "get")

    async def find_by_hostname(self, hostname: str) -> HostnameRecord | None:
        result = await self._request("GET", self._path(), params={"hostname": hostname})
        if isinstance(result, list):
            for item in result:
                if isinstance(item, Mapping):
                    return self._record(item, "find_by_hostname")
        return None

    async def patch(self, record_id: str, settings: Mapping[str, Any] | None) -> HostnameRecord:
        ssl_block: dict[str, Any] = {}
        if settings is not None:
            ssl_block["settings"] = dict(settings)
        payload = {"ssl": ssl_block}
        result = await self._request("PATCH", self._path(record_id), json=payload)
        return self._record(result, "patch")

    async def delete(self, record_id: str) -> dict[str, Any]:
        result = await self._request("DELETE", self._path(record_id))
        return dict(result) if isinstance(result, Mapping) else {}


__all__ = ["AuthorityClient", "DEFAULT_API_BASE"]
