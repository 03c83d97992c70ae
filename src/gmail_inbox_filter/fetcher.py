"""Paged message listing and parallel metadata fetch."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from .constants import FETCH_WORKERS, METADATA_HEADERS, PAGE_SIZE
from .errors import NotFoundError, is_fatal
from .gateway import ProviderGateway
from .models import Message, PhaseReport
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, throttled

logger = logging.getLogger(__name__)


class MessageFetcher:
    """List message ids page by page and fetch their metadata on a thread pool.

    Every call goes through the shared rate limiter and retry policy.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        limiter: RateLimiter,
        retry_policy: RetryPolicy,
        workers: int = FETCH_WORKERS,
    ) -> None:
        self.gateway = gateway
        self.limiter = limiter
        self.retry_policy = retry_policy
        self.workers = workers

    def list_ids(
        self, query: str | None, page_token: str | None, max_messages: int
    ) -> tuple[list[str], str | None]:
        """List up to ``max_messages`` ids; return them with the token of the next page."""
        ids: list[str] = []
        while len(ids) < max_messages:
            want = min(PAGE_SIZE, max_messages - len(ids))
            token = page_token
            page = throttled(
                self.limiter,
                self.retry_policy,
                lambda: self.gateway.list_messages(query or None, token, want),
            )
            if not page.ids:
                # A trailing token can point at an empty page; that is the end.
                page_token = None
                break
            ids.extend(page.ids)
            page_token = page.next_page_token
            if not page_token:
                break
        return ids[:max_messages], page_token

    def _fetch_one(self, message_id: str) -> Message:
        return throttled(
            self.limiter,
            self.retry_policy,
            lambda: self.gateway.get_message_metadata(message_id, METADATA_HEADERS),
        )

    def fetch(self, ids: list[str], phase: str = "classification") -> tuple[list[Message], PhaseReport]:
        """Fetch metadata for ``ids``; messages that cannot be fetched are dropped."""
        report = PhaseReport(phase=phase, attempted=len(ids))
        messages: list[Message] = []
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [(mid, executor.submit(self._fetch_one, mid)) for mid in ids]
            try:
                for message_id, future in futures:
                    try:
                        messages.append(future.result())
                    except NotFoundError as exc:
                        logger.warning("Message %s disappeared: %s", message_id, exc)
                        report.record_failure(message_id, str(exc))
                    except Exception as exc:
                        if is_fatal(exc):
                            raise
                        logger.warning("Could not fetch message %s: %s", message_id, exc)
                        report.record_failure(message_id, str(exc))
            except BaseException:
                for _, future in futures:
                    future.cancel()
                raise
        report.succeeded = len(messages)
        return messages, report
