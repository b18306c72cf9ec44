from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Mapping

from .client import AuthorityClient
from .errors import AuthorityError, NotFound, PollExhausted, StoreError, ValidationError
from .models import PENDING_STATUS, CertificateRecord, HostnameRecord
from .persistence.sqlite import CertificateStore
from .poller import DEFAULT_POLL_ATTEMPTS, StatusPoller

_log = logging.getLogger("hostcert.ssl.engine")


class ReconciliationEngine:
    """
    Keeps the local certificate cache in step with the authority.

    Create answers as soon as the authority accepted the hostname and the
    "pending" row is written; the real status is fetched by a detached task
    whose outcome is only logged. Reads are served from the store and fall
    back to a live lookup that is never written back. Concurrent writers on
    the same hostname are not ordered: the last upsert wins.

    Background tasks cannot be cancelled per record, so a Delete racing an
    in-flight reconciliation may see the row come back.
    """

    def __init__(
        self,
        client: AuthorityClient,
        store: CertificateStore,
        poller: StatusPoller,
        *,
        poll_attempts: int = DEFAULT_POLL_ATTEMPTS,
    ) -> None:
        self._client = client
        self._store = store
        self._poller = poller
        self.poll_attempts = poll_attempts
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------
    async def create(self, hostname: str | None) -> HostnameRecord:
        hostname = (hostname or "").strip()
        if not hostname:
            raise ValidationError("hostname required")

        created = await self._client.create(hostname)
        # the requested hostname stands in when the authority echoes none back
        pending = replace(created, hostname=created.hostname or hostname, status=PENDING_STATUS)
        await self._store.upsert(CertificateRecord.from_authority(pending))
        _log.info("hostname registered id=%s hostname=%s", pending.id, pending.hostname)

        self._spawn(pending.id, pending.hostname)
        return pending

    async def read(self, hostname: str) -> CertificateRecord | HostnameRecord:
        local = await self._store.get_by_hostname(hostname)
        if local is not None:
            return local
        remote = await self._client.find_by_hostname(hostname)
        if remote is None:
            raise NotFound("Not found", hostname=hostname)
        return remote

    async def recheck(self, hostname: str) -> HostnameRecord:
        local = await self._store.get_by_hostname(hostname)
        if local is None:
            raise NotFound("Not found in DB", hostname=hostname)
        updated = await self._poller.poll(local.id, self.poll_attempts)
        await self._store.upsert(self._reconciled_row(local.id, local.hostname, updated))
        return updated

    async def update_settings(self, record_id: str, settings: Mapping[str, Any] | None) -> HostnameRecord:
        updated = await self._client.patch(record_id, settings)
        # an id unknown locally stays unknown: the authority owns that answer
        await self._store.update_status(record_id, updated.status)
        return updated

    async def delete(self, record_id: str) -> dict[str, Any]:
        result = await self._client.delete(record_id)
        await self._store.delete_by_id(record_id)
        _log.info("hostname deleted id=%s", record_id)
        return result

    async def list(self) -> list[CertificateRecord]:
        return await self._store.list()

    # ------------------------------------------------------------------
    # background reconciliation
    # ------------------------------------------------------------------
    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def _spawn(self, record_id: str, hostname: str) -> asyncio.Task:
        task = asyncio.create_task(self._reconcile(record_id, hostname), name=f"hostcert-reconcile-{record_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _reconcile(self, record_id: str, hostname: str) -> None:
        try:
            updated = await self._poller.poll(record_id, self.poll_attempts)
            await self._store.upsert(self._reconciled_row(record_id, hostname, updated))
        except PollExhausted as exc:
            _log.warning("background status fetch gave up hostname=%s id=%s: %s", hostname, record_id, exc)
        except (AuthorityError, StoreError) as exc:
            _log.error("background reconciliation failed hostname=%s id=%s: %s", hostname, record_id, exc)
        except asyncio.CancelledError:
            _log.info("background reconciliation cancelled hostname=%s id=%s", hostname, record_id)
            raise
        except Exception:
            _log.exception("background reconciliation crashed hostname=%s id=%s", hostname, record_id)
        else:
            _log.info("ssl status updated hostname=%s status=%s", hostname, updated.status)

    @staticmethod
    def _reconciled_row(record_id: str, hostname: str, updated: HostnameRecord) -> CertificateRecord:
        # the id is bound at create time and never taken from a later response
        return CertificateRecord(id=record_id, hostname=updated.hostname or hostname, status=updated.status)

    async def wait_idle(self) -> None:
        """Wait until every background reconciliation has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self, timeout: float | None = None) -> None:
        """Drain background work at shutdown; leftovers are cancelled after ``timeout``."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _done, still_running = await asyncio.wait(tasks, timeout=timeout)
        if still_running:
            _log.warning("cancelling %s unfinished reconciliation(s) at shutdown", len(still_running))
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)


__all__ = ["ReconciliationEngine"]
