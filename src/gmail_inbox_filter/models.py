"""Data models for Gmail Inbox Filter."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from .constants import INBOX_LABEL, TRASH_LABEL


class Category(str, Enum):
    """Closed set of classification outcomes, one per message per run."""

    VIP = "vip"
    PROTECTED = "protected"
    NEWSLETTER = "newsletter"
    PROMOTIONAL = "promotional"
    SOCIAL = "social"
    FORUMS = "forums"
    AUTOMATED = "automated"
    RECEIPT = "receipt"
    CONFIRMATION = "confirmation"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Message:
    """Metadata snapshot of a single Gmail message."""

    message_id: str
    sender: str  # Full From header value
    sender_email: str  # Extracted, lowercased email address
    subject: str
    date: str = ""
    labels: frozenset[str] = frozenset()
    has_list_unsubscribe: bool = False
    list_id: str = ""


@dataclass
class ClassificationResult:
    """Messages grouped by category for a single run."""

    groups: dict[Category, list[Message]] = field(
        default_factory=lambda: {category: [] for category in Category}
    )

    def add(self, message: Message, category: Category) -> None:
        self.groups.setdefault(category, []).append(message)

    @property
    def total(self) -> int:
        return sum(len(messages) for messages in self.groups.values())

    def count(self, category: Category) -> int:
        return len(self.groups.get(category, []))

    def message_ids(self, category: Category) -> list[str]:
        return [m.message_id for m in self.groups.get(category, [])]

    def sender_frequency(self, category: Category | None = None) -> Counter[str]:
        """Count messages per sender email within one category, or across all of them."""
        if category is None:
            messages = [m for group in self.groups.values() for m in group]
        else:
            messages = self.groups.get(category, [])
        return Counter(m.sender_email for m in messages if m.sender_email)

    def counts(self) -> dict[str, int]:
        return {category.value: len(messages) for category, messages in self.groups.items()}


@dataclass(frozen=True)
class CategoryAction:
    """Label to apply to a category, and whether to take it out of the inbox."""

    label: str
    archive: bool = False


CATEGORY_ACTIONS: dict[Category, CategoryAction] = {
    Category.NEWSLETTER: CategoryAction("Filtered/Newsletters", archive=True),
    Category.PROMOTIONAL: CategoryAction("Filtered/Promotional", archive=True),
    Category.AUTOMATED: CategoryAction("Filtered/Automated", archive=True),
    Category.SOCIAL: CategoryAction("Filtered/Social"),
    Category.FORUMS: CategoryAction("Filtered/Forums"),
    Category.VIP: CategoryAction("VIP"),
    Category.PROTECTED: CategoryAction("Protected"),
    Category.RECEIPT: CategoryAction("Receipts"),
    Category.CONFIRMATION: CategoryAction("Confirmations"),
}

# Categories whose frequent senders get a persistent rule.
RULE_CATEGORIES = (Category.NEWSLETTER, Category.PROMOTIONAL, Category.AUTOMATED)

# Categories that must stay in the inbox no matter what the archive policy says.
NEVER_ARCHIVE = frozenset({Category.VIP, Category.PROTECTED})


@dataclass(frozen=True)
class Label:
    """A Gmail label."""

    label_id: str
    name: str


@dataclass(frozen=True)
class FilterRule:
    """A persistent Gmail filter."""

    rule_id: str
    criteria: dict = field(default_factory=dict)
    action: dict = field(default_factory=dict)

    @property
    def sender(self) -> str:
        return (self.criteria.get("from") or "").strip().lower()

    @property
    def query(self) -> str:
        return (self.criteria.get("query") or "").strip().lower()

    @property
    def archives(self) -> bool:
        """True when the rule takes matching mail out of the inbox or trashes it."""
        return INBOX_LABEL in self.action.get("removeLabelIds", []) or TRASH_LABEL in self.action.get(
            "addLabelIds", []
        )


@dataclass
class Checkpoint:
    """Resume position and cumulative counters across runs."""

    last_processed_date: str | None = None  # ISO date, inclusive lower bound for the next fetch
    last_page_token: str | None = None
    total_processed: int = 0
    last_run_timestamp: str | None = None


@dataclass(frozen=True)
class ItemFailure:
    """One item (message, chunk, label or rule) that could not be processed."""

    item: str
    reason: str


@dataclass
class PhaseReport:
    """Attempted vs succeeded counts for one phase of a run."""

    phase: str
    attempted: int = 0
    succeeded: int = 0
    skipped: int = 0
    failures: list[ItemFailure] = field(default_factory=list)

    def record_failure(self, item: str, reason: str) -> None:
        self.failures.append(ItemFailure(item=item, reason=reason))

    def merge(self, other: PhaseReport) -> None:
        self.attempted += other.attempted
        self.succeeded += other.succeeded
        self.skipped += other.skipped
        self.failures.extend(other.failures)


@dataclass
class RunReport:
    """Everything a run did, for the end-of-run summary."""

    result: ClassificationResult
    classification: PhaseReport
    labels: PhaseReport | None = None
    mutation: PhaseReport | None = None
    synthesis: PhaseReport | None = None
    checkpoint: Checkpoint | None = None
    confirmed: bool = False
    has_more: bool = False
    query: str = ""

    def phases(self) -> list[PhaseReport]:
        return [
            p
            for p in (self.classification, self.labels, self.mutation, self.synthesis)
            if p is not None
        ]
