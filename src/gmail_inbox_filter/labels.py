"""Idempotent label creation."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from .errors import ConflictError, is_fatal
from .gateway import ProviderGateway
from .models import PhaseReport
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, throttled

logger = logging.getLogger(__name__)


class LabelRegistry:
    """Name -> id lookup that creates missing labels on demand.

    Existing labels are listed once, on first use. Safe to share between
    worker threads.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        limiter: RateLimiter,
        retry_policy: RetryPolicy,
    ) -> None:
        self.gateway = gateway
        self.limiter = limiter
        self.retry_policy = retry_policy
        self._lock = threading.Lock()
        self._ids: dict[str, str] | None = None

    def _refresh(self) -> dict[str, str]:
        labels = throttled(self.limiter, self.retry_policy, self.gateway.list_labels)
        self._ids = {label.name: label.label_id for label in labels}
        return self._ids

    def ensure(self, name: str) -> str:
        """Return the id of label ``name``, creating it if it does not exist."""
        with self._lock:
            ids = self._ids if self._ids is not None else self._refresh()
            if name in ids:
                return ids[name]

            try:
                label = throttled(
                    self.limiter, self.retry_policy, lambda: self.gateway.create_label(name)
                )
            except ConflictError:
                # Created by someone else since we listed.
                ids = self._refresh()
                if name in ids:
                    return ids[name]
                raise

            logger.info("Created label %s", name)
            ids[label.name] = label.label_id
            return label.label_id

    def ensure_all(self, names: Iterable[str]) -> tuple[dict[str, str], PhaseReport]:
        """Ensure every label in ``names``; failures are recorded, not raised."""
        report = PhaseReport(phase="labels")
        resolved: dict[str, str] = {}
        for name in dict.fromkeys(names):
            report.attempted += 1
            try:
                resolved[name] = self.ensure(name)
            except Exception as exc:
                if is_fatal(exc):
                    raise
                logger.warning("Could not ensure label %s: %s", name, exc)
                report.record_failure(name, str(exc))
                continue
            report.succeeded += 1
        return resolved, report
