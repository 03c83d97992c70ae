"""Archive inbox mail that has already been read, keeping anything that still matters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Iterable

from .classifier import is_protected
from .config import ProtectedConfiguration
from .constants import (
    ARCHIVE_READ_KEEP_KEYWORDS,
    ARCHIVE_READ_MAX_MESSAGES,
    ARCHIVE_READ_MIN_AGE_DAYS,
    READ_INBOX_QUERY,
)
from .fetcher import MessageFetcher
from .gateway import ProviderGateway
from .models import Message, PhaseReport
from .mutator import BatchMutator
from .rate_limiter import RateLimiter
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

KEEP_VIP = "vip"
KEEP_PROTECTED = "protected"
KEEP_RECENT = "recent"
KEEP_UNDATED = "undated"
KEEP_KEYWORD = "important keyword"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def message_datetime(message: Message) -> datetime | None:
    """Parse the Date header; None when it is missing or malformed."""
    if not message.date:
        return None
    try:
        sent = parsedate_to_datetime(message.date)
    except (TypeError, ValueError):
        return None
    if sent.tzinfo is None:
        sent = sent.replace(tzinfo=timezone.utc)
    return sent


def keep_reason(
    message: Message,
    config: ProtectedConfiguration,
    now: datetime,
    min_age_days: int = ARCHIVE_READ_MIN_AGE_DAYS,
    keywords: Iterable[str] = ARCHIVE_READ_KEEP_KEYWORDS,
) -> str | None:
    """Why a read message must stay in the inbox, or None if it can be archived."""
    if config.is_vip(message.sender_email):
        return KEEP_VIP
    if is_protected(message, config):
        return KEEP_PROTECTED
    sent = message_datetime(message)
    if sent is None:
        return KEEP_UNDATED
    if now - sent < timedelta(days=min_age_days):
        return KEEP_RECENT
    subject = message.subject.lower()
    if any(keyword in subject for keyword in keywords):
        return KEEP_KEYWORD
    return None


@dataclass
class ArchivePlan:
    """Read messages split into those to archive and those to keep, by reason."""

    archivable: list[Message] = field(default_factory=list)
    kept: dict[str, list[Message]] = field(default_factory=dict)
    fetch: PhaseReport | None = None
    has_more: bool = False

    @property
    def kept_count(self) -> int:
        return sum(len(messages) for messages in self.kept.values())


class ReadMailArchiver:
    """Find read inbox mail and take it out of the inbox."""

    def __init__(
        self,
        gateway: ProviderGateway,
        config: ProtectedConfiguration,
        limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        max_messages: int = ARCHIVE_READ_MAX_MESSAGES,
        min_age_days: int = ARCHIVE_READ_MIN_AGE_DAYS,
        keywords: Iterable[str] = ARCHIVE_READ_KEEP_KEYWORDS,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self.max_messages = max_messages
        self.min_age_days = min_age_days
        self.keywords = [k.lower() for k in keywords]
        self._now = now
        limiter = limiter or RateLimiter()
        retry_policy = retry_policy or RetryPolicy()
        self.fetcher = MessageFetcher(gateway, limiter, retry_policy)
        self.mutator = BatchMutator(gateway, limiter, retry_policy)

    def plan(self, query: str = READ_INBOX_QUERY) -> ArchivePlan:
        """List and inspect read inbox mail; nothing is changed."""
        ids, next_token = self.fetcher.list_ids(query, None, self.max_messages)
        messages, fetch_report = self.fetcher.fetch(ids, phase="read mail")

        plan = ArchivePlan(fetch=fetch_report, has_more=next_token is not None)
        now = self._now()
        for message in messages:
            reason = keep_reason(message, self.config, now, self.min_age_days, self.keywords)
            if reason is None:
                plan.archivable.append(message)
            else:
                plan.kept.setdefault(reason, []).append(message)

        logger.info(
            "Read mail: %d to archive, %d kept", len(plan.archivable), plan.kept_count
        )
        return plan

    def archive(self, plan: ArchivePlan) -> PhaseReport:
        """Archive the plan's archivable messages. VIP and protected mail is never sent."""
        ids = []
        for message in plan.archivable:
            if self.config.is_vip(message.sender_email) or is_protected(message, self.config):
                logger.warning("Not archiving protected message %s", message.message_id)
                continue
            ids.append(message.message_id)
        return self.mutator.archive(ids, name="archive-read")
