"""Apply category labels and archiving to existing messages."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, Mapping

from .constants import INBOX_LABEL, MUTATION_CHUNK_SIZE, MUTATION_WORKERS
from .errors import is_fatal
from .gateway import ProviderGateway
from .models import NEVER_ARCHIVE, Category, ClassificationResult, PhaseReport
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, throttled

logger = logging.getLogger(__name__)


def chunked(items: list[str], size: int) -> Iterator[list[str]]:
    """Yield consecutive slices of ``items`` of at most ``size`` elements."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


class BatchMutator:
    """Label (and optionally archive) classified messages in chunks.

    Categories run as parallel tasks sharing one rate limiter; the chunks of a
    single category are applied in list order. A failed chunk is recorded and
    skipped.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        limiter: RateLimiter,
        retry_policy: RetryPolicy,
        chunk_size: int = MUTATION_CHUNK_SIZE,
        workers: int = MUTATION_WORKERS,
    ) -> None:
        self.gateway = gateway
        self.limiter = limiter
        self.retry_policy = retry_policy
        self.chunk_size = chunk_size
        self.workers = workers

    def _apply_chunks(
        self,
        name: str,
        message_ids: list[str],
        add: list[str],
        remove: list[str],
    ) -> PhaseReport:
        report = PhaseReport(phase=f"mutation:{name}")
        chunks = list(chunked(message_ids, self.chunk_size))

        for index, chunk in enumerate(chunks, start=1):
            report.attempted += len(chunk)
            try:
                throttled(
                    self.limiter,
                    self.retry_policy,
                    lambda: self.gateway.batch_mutate_labels(chunk, add, remove),
                )
            except Exception as exc:
                if is_fatal(exc):
                    raise
                logger.warning(
                    "Chunk %d/%d of %s (%d messages) failed: %s",
                    index,
                    len(chunks),
                    name,
                    len(chunk),
                    exc,
                )
                report.record_failure(
                    f"{name} chunk {index}/{len(chunks)} ({len(chunk)} messages)",
                    str(exc),
                )
                continue
            report.succeeded += len(chunk)

        logger.info(
            "%s: %d/%d messages updated (add=%s, remove=%s)",
            name,
            report.succeeded,
            report.attempted,
            add,
            remove,
        )
        return report

    def _apply_category(
        self, category: Category, message_ids: list[str], label_id: str, archive: bool
    ) -> PhaseReport:
        remove = [INBOX_LABEL] if archive else []
        return self._apply_chunks(category.value, message_ids, [label_id], remove)

    def archive(self, message_ids: list[str], name: str = "archive") -> PhaseReport:
        """Take messages out of the inbox without labeling them, in ordered chunks."""
        report = self._apply_chunks(name, message_ids, [], [INBOX_LABEL])
        report.phase = name
        return report

    def apply_category_actions(
        self,
        result: ClassificationResult,
        label_ids: Mapping[Category, str],
        archive_policy: Mapping[Category, bool],
    ) -> PhaseReport:
        """Apply each category's label, archiving where the policy says so.

        Returns a report whose ``attempted``/``succeeded`` count messages.
        """
        tasks: list[tuple[Category, list[str], str, bool]] = []
        for category in Category:
            message_ids = result.message_ids(category)
            label_id = label_ids.get(category)
            if not message_ids or not label_id:
                continue
            archive = bool(archive_policy.get(category, False))
            if archive and category in NEVER_ARCHIVE:
                logger.warning("Refusing to archive %s messages; labeling only", category.value)
                archive = False
            tasks.append((category, message_ids, label_id, archive))

        report = PhaseReport(phase="mutation")
        if not tasks:
            return report

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [executor.submit(self._apply_category, *task) for task in tasks]
            try:
                for future in futures:
                    report.merge(future.result())
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        return report
