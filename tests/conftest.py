"""Shared fixtures for tests."""

from __future__ import annotations

from collections import defaultdict

import pytest

from gmail_inbox_filter.checkpoint import CheckpointStore
from gmail_inbox_filter.config import ProtectedConfiguration
from gmail_inbox_filter.errors import NotFoundError
from gmail_inbox_filter.gateway import MessagePage
from gmail_inbox_filter.labels import LabelRegistry
from gmail_inbox_filter.models import FilterRule, Label, Message
from gmail_inbox_filter.rate_limiter import RateLimiter
from gmail_inbox_filter.retry import RetryPolicy


def make_message(
    message_id: str,
    sender_email: str,
    subject: str = "Hello",
    labels: tuple[str, ...] = ("INBOX",),
    has_list_unsubscribe: bool = False,
    list_id: str = "",
) -> Message:
    return Message(
        message_id=message_id,
        sender=f"Sender <{sender_email}>",
        sender_email=sender_email,
        subject=subject,
        date="Mon, 15 Jan 2024 10:00:00 +0000",
        labels=frozenset(labels),
        has_list_unsubscribe=has_list_unsubscribe,
        list_id=list_id,
    )


class FakeGateway:
    """In-memory ProviderGateway.

    ``failures[method]`` is a list of exceptions raised, in order, by the next
    calls to that method.
    """

    def __init__(self, messages: list[Message] | None = None) -> None:
        self.messages: dict[str, Message] = {m.message_id: m for m in messages or []}
        self.labels: dict[str, Label] = {}
        self.rules: list[FilterRule] = []
        self.failures: dict[str, list[Exception]] = defaultdict(list)
        self.calls: dict[str, int] = defaultdict(int)
        self.batch_calls: list[tuple[list[str], list[str], list[str]]] = []
        self.queries: list[str | None] = []
        self.fetch_failures: dict[str, Exception] = {}

    def _enter(self, method: str) -> None:
        self.calls[method] += 1
        if self.failures[method]:
            raise self.failures[method].pop(0)

    def list_messages(self, query, page_token, max_results) -> MessagePage:
        self._enter("list_messages")
        self.queries.append(query)
        ids = list(self.messages)
        start = int(page_token) if page_token else 0
        end = start + max_results
        next_token = str(end) if end < len(ids) else None
        return MessagePage(ids=ids[start:end], next_page_token=next_token)

    def get_message_metadata(self, message_id, header_names) -> Message:
        self._enter("get_message_metadata")
        if message_id in self.fetch_failures:
            raise self.fetch_failures[message_id]
        if message_id not in self.messages:
            raise NotFoundError(f"message {message_id} not found", 404)
        return self.messages[message_id]

    def batch_mutate_labels(self, ids, add_label_ids, remove_label_ids) -> None:
        self._enter("batch_mutate_labels")
        self.batch_calls.append((list(ids), list(add_label_ids), list(remove_label_ids)))

    def list_labels(self) -> list[Label]:
        self._enter("list_labels")
        return list(self.labels.values())

    def create_label(self, name) -> Label:
        self._enter("create_label")
        label = Label(label_id=f"Label_{len(self.labels) + 1}", name=name)
        self.labels[name] = label
        return label

    def list_rules(self) -> list[FilterRule]:
        self._enter("list_rules")
        return list(self.rules)

    def create_rule(self, criteria, action) -> FilterRule:
        self._enter("create_rule")
        rule = FilterRule(rule_id=f"rule_{len(self.rules) + 1}", criteria=dict(criteria), action=dict(action))
        self.rules.append(rule)
        return rule

    def delete_rule(self, rule_id) -> None:
        self._enter("delete_rule")
        before = len(self.rules)
        self.rules = [r for r in self.rules if r.rule_id != rule_id]
        if len(self.rules) == before:
            raise NotFoundError(f"filter {rule_id} not found", 404)

    def label_id(self, name: str) -> str:
        return self.labels[name].label_id


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def config() -> ProtectedConfiguration:
    return ProtectedConfiguration.build(
        vip_senders=["boss@company.com"],
        protected_senders=["doctor@clinic.org"],
        protected_keywords=["tax return"],
    )


@pytest.fixture
def limiter() -> RateLimiter:
    return RateLimiter(requests_per_second=1000, sleep=lambda seconds: None)


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(sleep=lambda seconds: None)


@pytest.fixture
def labels(gateway, limiter, retry_policy) -> LabelRegistry:
    return LabelRegistry(gateway, limiter, retry_policy)


@pytest.fixture
def store(tmp_path):
    with CheckpointStore(db_path=tmp_path / "checkpoint.db") as s:
        yield s


@pytest.fixture
def newsletter_messages() -> list[Message]:
    return [
        make_message(
            f"nl_{i:03d}",
            "newsletter@x.com",
            subject=f"Issue #{i}",
            has_list_unsubscribe=True,
        )
        for i in range(10)
    ]
