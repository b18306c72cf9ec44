"""In-memory stand-ins for the certificate authority."""
from __future__ import annotations

import asyncio
from typing import Any, Mapping

from hostcert.services.ssl import AuthorityError, HostnameRecord


class FakeAuthority:
    """
    Scriptable authority:
      * ``statuses[id]`` is what ``get`` reports for a record;
      * ``get_failures`` makes the next N ``get`` calls fail;
      * ``gate``, when set, holds every ``get`` until released.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.records: dict[str, dict[str, Any]] = {}
        self.statuses: dict[str, str] = {}
        self.get_failures = 0
        self.gate: asyncio.Event | None = None
        self._next_id = 0

    def add(self, record_id: str, hostname: str, status: str = "pending") -> None:
        self.records[record_id] = {"id": record_id, "hostname": hostname, "status": status, "ssl": {"status": "initializing"}}

    def _record(self, record_id: str) -> HostnameRecord:
        payload = dict(self.records[record_id])
        if record_id in self.statuses:
            payload["status"] = self.statuses[record_id]
        return HostnameRecord.from_payload(payload)

    async def create(self, hostname: str) -> HostnameRecord:
        self.calls.append(f"create:{hostname}")
        self._next_id += 1
        record_id = f"id-{self._next_id}"
        self.add(record_id, hostname, status="provisioning")
        return self._record(record_id)

    async def get(self, record_id: str) -> HostnameRecord:
        self.calls.append(f"get:{record_id}")
        if self.gate is not None:
            await self.gate.wait()
        if self.get_failures > 0:
            self.get_failures -= 1
            raise AuthorityError("unavailable", status_code=503, body={"success": False, "errors": [{"code": 1000}]})
        if record_id not in self.records:
            raise AuthorityError("not found", status_code=404, body={"success": False})
        return self._record(record_id)

    async def find_by_hostname(self, hostname: str) -> HostnameRecord | None:
        self.calls.append(f"find:{hostname}")
        for record_id, payload in self.records.items():
            if payload["hostname"] == hostname:
                return self._record(record_id)
        return None

    async def patch(self, record_id: str, settings: Mapping[str, Any] | None) -> HostnameRecord:
        self.calls.append(f"patch:{record_id}")
        if record_id not in self.records:
            raise AuthorityError("not found", status_code=404, body={"success": False, "errors": [{"code": 1436}]})
        self.records[record_id]["ssl"] = {"settings": dict(settings or {})}
        return self._record(record_id)

    async def delete(self, record_id: str) -> dict[str, Any]:
        self.calls.append(f"delete:{record_id}")
        self.records.pop(record_id, None)
        return {"id": record_id}

    async def aclose(self) -> None:
        pass


async def no_sleep(_: float) -> None:
    await asyncio.sleep(0)
