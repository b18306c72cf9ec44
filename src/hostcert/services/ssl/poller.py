from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from .errors import AuthorityError, PollExhausted
from .models import HostnameRecord

_log = logging.getLogger("hostcert.ssl.poller")

DEFAULT_POLL_ATTEMPTS = 3
DEFAULT_POLL_DELAY = 60.0


class RecordSource(Protocol):
    async def get(self, record_id: str) -> HostnameRecord: ...


class StatusPoller:
    """
    Fetches an authority record, surviving short authority outages:
      * the first successful ``get`` wins, whatever status it reports;
      * failed attempts are separated by a fixed delay (no growth, no jitter);
      * after ``max_attempts`` failures the last error is wrapped in
        :class:`PollExhausted`.
    """

    def __init__(
        self,
        source: RecordSource,
        *,
        delay: float = DEFAULT_POLL_DELAY,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if delay < 0:
            raise ValueError("poll delay must be >= 0")
        self._source = source
        self.delay = float(delay)
        self._sleep = sleep

    async def poll(self, record_id: str, max_attempts: int = DEFAULT_POLL_ATTEMPTS) -> HostnameRecord:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        last_error: AuthorityError | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                return await self._source.get(record_id)
            except AuthorityError as exc:
                last_error = exc
                _log.warning(
                    "status poll attempt %s/%s failed id=%s status_code=%s",
                    attempt,
                    max_attempts,
                    record_id,
                    exc.status_code,
                    extra={"record_id": record_id, "body": exc.body},
                )
            if attempt < max_attempts:
                await self._sleep(self.delay)
        raise PollExhausted(record_id, max_attempts, last_error) from last_error


__all__ = ["StatusPoller", "DEFAULT_POLL_ATTEMPTS", "DEFAULT_POLL_DELAY"]
