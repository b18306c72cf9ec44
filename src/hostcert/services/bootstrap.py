from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from hostcert.services.settings import Settings
from hostcert.services.ssl import AuthorityClient, CertificateStore, ReconciliationEngine, StatusPoller

_log = logging.getLogger("hostcert.bootstrap")

# seconds granted to in-flight reconciliations before shutdown cancels them
SHUTDOWN_GRACE = 5.0


@asynccontextmanager
async def open_engine(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    shutdown_grace: float | None = SHUTDOWN_GRACE,
) -> AsyncIterator[ReconciliationEngine]:
    """
    Wire client, store and poller into an engine and release them on exit.
    The store handle is created here and injected; nothing is global.
    """
    client = AuthorityClient.from_settings(settings, transport=transport)
    store = CertificateStore(settings.store.db_path)
    poller = StatusPoller(client, delay=settings.reconcile.poll_delay)
    engine = ReconciliationEngine(client, store, poller, poll_attempts=settings.reconcile.poll_attempts)
    _log.info("engine ready db=%s attempts=%s delay=%ss", settings.store.db_path, engine.poll_attempts, poller.delay)
    try:
        yield engine
    finally:
        try:
            await engine.aclose(timeout=shutdown_grace)
        finally:
            await client.aclose()
            store.close()
