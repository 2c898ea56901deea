from __future__ import annotations

import logging
from datetime import datetime

from birthday_engine.document_store import DocumentStore
from birthday_engine.errors import ResourceExhaustedError
from birthday_engine.models import RateLimitRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 10
DEFAULT_WINDOW_SECONDS = 60 * 60


def epoch_millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


class RateLimiter:
    """Sliding-window admission per account.

    The read-filter-append-write sequence is not atomic, so concurrent requests from one
    account can briefly exceed ``max_requests``.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be positive")
        if window_seconds < 1:
            raise ValueError("window_seconds must be positive")
        self._store = store
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000

    async def acquire(self, account_id: str, now: datetime) -> RateLimitRecord:
        now_ms = epoch_millis(now)
        document = await self._store.get_rate_limit(account_id)
        record = RateLimitRecord.from_document(document) if document else RateLimitRecord()

        window_start = now_ms - self._window_ms
        recent = [stamp for stamp in record.timestamps if stamp > window_start]
        if len(recent) >= self._max_requests:
            LOGGER.warning("Rate limit reached for account %s (%s requests)", account_id, len(recent))
            raise ResourceExhaustedError("Too many gift suggestion requests. Please try again later.")

        updated = RateLimitRecord(timestamps=[*recent, now_ms])
        await self._store.set_rate_limit(account_id, updated.to_document())
        return updated
