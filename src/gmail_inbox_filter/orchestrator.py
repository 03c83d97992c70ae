"""One incremental filtering run: fetch, classify, confirm, mutate, synthesize, checkpoint."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable

from .checkpoint import CheckpointStore
from .classifier import classify_messages
from .config import ProtectedConfiguration
from .constants import DEFAULT_MAX_MESSAGES, FETCH_WORKERS
from .errors import is_fatal
from .fetcher import MessageFetcher
from .gateway import ProviderGateway
from .labels import LabelRegistry
from .models import (
    CATEGORY_ACTIONS,
    Category,
    CategoryAction,
    Checkpoint,
    ClassificationResult,
    Message,
    PhaseReport,
    RunReport,
)
from .mutator import BatchMutator
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, throttled
from .synthesizer import RuleSynthesizer

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[ClassificationResult], bool]


def build_query(base_query: str | None, checkpoint: Checkpoint) -> str:
    """Combine the user's query with the checkpoint's date lower bound."""
    parts = []
    if base_query:
        parts.append(base_query.strip())
    if checkpoint.last_processed_date:
        day = date.fromisoformat(checkpoint.last_processed_date)
        parts.append(f"after:{day:%Y/%m/%d}")
    return " ".join(parts)


class FilterRun:
    """Sequence the phases of a run over one account.

    Classification happens before anything is changed; ``confirm`` sees the
    result and decides whether mutation goes ahead. The checkpoint is written
    once, after mutation and rule synthesis were attempted.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        store: CheckpointStore,
        config: ProtectedConfiguration,
        limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        base_query: str | None = None,
        create_rules: bool = True,
        service_rules: bool = True,
        category_actions: dict[Category, CategoryAction] | None = None,
        fetch_workers: int = FETCH_WORKERS,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.config = config
        self.limiter = limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_messages = max_messages
        self.base_query = base_query
        self.create_rules = create_rules
        self.service_rules = service_rules
        self.category_actions = category_actions or dict(CATEGORY_ACTIONS)
        self.fetch_workers = fetch_workers
        self._today = today

        self.fetcher = MessageFetcher(gateway, self.limiter, self.retry_policy, workers=fetch_workers)
        self.labels = LabelRegistry(gateway, self.limiter, self.retry_policy)
        self.mutator = BatchMutator(gateway, self.limiter, self.retry_policy)
        self.synthesizer = RuleSynthesizer(
            gateway,
            self.limiter,
            self.retry_policy,
            self.labels,
            config,
            category_actions=self.category_actions,
        )

    # --- phases ---

    def list_ids(self, query: str, page_token: str | None) -> tuple[list[str], str | None]:
        return self.fetcher.list_ids(query, page_token, self.max_messages)

    def fetch_messages(self, ids: list[str]) -> tuple[list[Message], PhaseReport]:
        return self.fetcher.fetch(ids)

    def apply(self, result: ClassificationResult, report: RunReport) -> None:
        """Label/archive existing messages, then create filters for future ones."""
        wanted = {
            category: action
            for category, action in self.category_actions.items()
            if result.count(category) > 0
        }
        names, report.labels = self.labels.ensure_all(a.label for a in wanted.values())
        label_ids = {c: names[a.label] for c, a in wanted.items() if a.label in names}
        archive_policy = {c: a.archive for c, a in wanted.items()}

        report.mutation = self.mutator.apply_category_actions(result, label_ids, archive_policy)

        if not (self.create_rules or self.service_rules):
            return
        synthesis = PhaseReport(phase="synthesis")
        report.synthesis = synthesis
        try:
            existing = throttled(self.limiter, self.retry_policy, self.gateway.list_rules)
        except Exception as exc:
            if is_fatal(exc):
                raise
            logger.warning("Could not list existing filters; skipping filter creation: %s", exc)
            synthesis.record_failure("existing filters", str(exc))
            return
        if self.create_rules:
            synthesis.merge(self.synthesizer.synthesize_rules(result, existing))
        if self.service_rules:
            synthesis.merge(self.synthesizer.apply_service_rules(existing))

    # --- entry point ---

    def run(self, confirm: ConfirmCallback = lambda result: True) -> RunReport:
        """Execute one run. Fatal provider errors propagate and leave the checkpoint alone."""
        checkpoint = self.store.load()
        query = build_query(self.base_query, checkpoint)
        logger.info(
            "Listing messages (query=%r, resume token=%s)", query, checkpoint.last_page_token
        )

        try:
            ids, next_token = self.list_ids(query, checkpoint.last_page_token)
        except Exception as exc:
            if is_fatal(exc) or not checkpoint.last_page_token:
                raise
            logger.warning("Stored page token was rejected (%s); listing without it", exc)
            ids, next_token = self.list_ids(query, None)
        messages, fetch_report = self.fetch_messages(ids)
        result = classify_messages(messages, self.config)
        logger.info("Classified %d of %d messages", result.total, len(ids))

        report = RunReport(
            result=result,
            classification=fetch_report,
            has_more=next_token is not None,
            query=query,
        )

        if not ids:
            logger.info("No new messages to process")
            if checkpoint.last_page_token:
                # The stored token led nowhere; the backlog is drained.
                checkpoint = self.store.update(
                    last_page_token=None, last_processed_date=self._today().isoformat()
                )
            report.checkpoint = checkpoint
            return report

        if not confirm(result):
            logger.info("Run declined; nothing was changed")
            report.checkpoint = checkpoint
            return report
        report.confirmed = True

        self.apply(result, report)

        changes: dict = {"total_processed": checkpoint.total_processed + result.total}
        if next_token:
            # Keep the date bound until the backlog under it is drained.
            changes["last_page_token"] = next_token
        else:
            changes["last_page_token"] = None
            changes["last_processed_date"] = self._today().isoformat()
        report.checkpoint = self.store.update(**changes)
        return report
