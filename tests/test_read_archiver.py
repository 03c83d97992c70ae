"""Tests for archiving read inbox mail."""

from dataclasses import replace
from datetime import datetime, timezone

import pytest
from conftest import FakeGateway, make_message

from gmail_inbox_filter.errors import AuthorizationError
from gmail_inbox_filter.read_archiver import (
    KEEP_KEYWORD,
    KEEP_PROTECTED,
    KEEP_RECENT,
    KEEP_UNDATED,
    KEEP_VIP,
    ReadMailArchiver,
    keep_reason,
    message_datetime,
)

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _archiver(gateway, config, limiter, retry_policy, **kwargs) -> ReadMailArchiver:
    return ReadMailArchiver(
        gateway, config, limiter=limiter, retry_policy=retry_policy, now=lambda: NOW, **kwargs
    )


def _dated(message, date):
    return replace(message, date=date)


def test_message_datetime():
    msg = make_message("m1", "friend@mail.io")
    assert message_datetime(msg) == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    assert message_datetime(_dated(msg, "")) is None
    assert message_datetime(_dated(msg, "not a date")) is None


def test_naive_date_is_treated_as_utc():
    msg = _dated(make_message("m1", "friend@mail.io"), "Mon, 15 Jan 2024 10:00:00 -0000")
    assert message_datetime(msg).tzinfo is not None


def test_old_plain_mail_can_be_archived(config):
    assert keep_reason(make_message("m1", "friend@mail.io", subject="Lunch?"), config, NOW) is None


@pytest.mark.parametrize(
    "message, reason",
    [
        (make_message("m1", "boss@company.com"), KEEP_VIP),
        (make_message("m2", "alerts@chase.com"), KEEP_PROTECTED),
        (make_message("m3", "Doctor@Clinic.org"), KEEP_PROTECTED),
        (make_message("m4", "friend@mail.io", subject="Your tax return"), KEEP_PROTECTED),
        (_dated(make_message("m5", "friend@mail.io"), "Wed, 28 Feb 2024 09:00:00 +0000"), KEEP_RECENT),
        (_dated(make_message("m6", "friend@mail.io"), ""), KEEP_UNDATED),
        (_dated(make_message("m7", "friend@mail.io"), "yesterday-ish"), KEEP_UNDATED),
        (make_message("m8", "shop@store.io", subject="Your INVOICE #42"), KEEP_KEYWORD),
        (make_message("m9", "hr@work.io", subject="Interview on Friday"), KEEP_KEYWORD),
    ],
)
def test_keep_reasons(config, message, reason):
    assert keep_reason(message, config, NOW) == reason


def test_minimum_age_is_configurable(config):
    msg = _dated(make_message("m1", "friend@mail.io"), "Wed, 28 Feb 2024 09:00:00 +0000")
    assert keep_reason(msg, config, NOW, min_age_days=1) is None


def test_plan_splits_read_mail(config, limiter, retry_policy):
    gateway = FakeGateway(
        [
            make_message("r1", "friend@mail.io", subject="Lunch?"),
            make_message("r2", "boss@company.com"),
            make_message("r3", "alerts@chase.com"),
            make_message("r4", "shop@store.io", subject="Payment received"),
            make_message("r5", "deals@shop.io", subject="Spring sale"),
        ]
    )

    plan = _archiver(gateway, config, limiter, retry_policy).plan()

    assert gateway.queries == ["in:inbox -is:unread"]
    assert [m.message_id for m in plan.archivable] == ["r1", "r5"]
    assert {reason: [m.message_id for m in msgs] for reason, msgs in plan.kept.items()} == {
        KEEP_VIP: ["r2"],
        KEEP_PROTECTED: ["r3"],
        KEEP_KEYWORD: ["r4"],
    }
    assert plan.kept_count == 3
    assert not plan.has_more
    assert gateway.batch_calls == []


def test_plan_respects_max_messages(config, limiter, retry_policy):
    gateway = FakeGateway([make_message(f"r{i}", "friend@mail.io") for i in range(5)])

    plan = _archiver(gateway, config, limiter, retry_policy, max_messages=3).plan()

    assert len(plan.archivable) == 3
    assert plan.has_more


def test_archive_sends_only_archivable_ids(config, limiter, retry_policy):
    gateway = FakeGateway(
        [
            make_message("r1", "friend@mail.io"),
            make_message("r2", "boss@company.com"),
            make_message("r3", "deals@shop.io"),
        ]
    )
    archiver = _archiver(gateway, config, limiter, retry_policy)

    report = archiver.archive(archiver.plan())

    assert gateway.batch_calls == [(["r1", "r3"], [], ["INBOX"])]
    assert report.phase == "archive-read"
    assert report.succeeded == 2


def test_archive_never_sends_vip_or_protected_mail(config, limiter, retry_policy):
    gateway = FakeGateway()
    archiver = _archiver(gateway, config, limiter, retry_policy)
    plan = archiver.plan()
    plan.archivable = [
        make_message("v1", "boss@company.com"),
        make_message("p1", "alerts@chase.com"),
        make_message("ok", "friend@mail.io"),
    ]

    archiver.archive(plan)

    assert gateway.batch_calls == [(["ok"], [], ["INBOX"])]


def test_fatal_error_while_archiving_propagates(config, limiter, retry_policy):
    gateway = FakeGateway([make_message("r1", "friend@mail.io")])
    gateway.failures["batch_mutate_labels"] = [AuthorizationError("token revoked", 401)]
    archiver = _archiver(gateway, config, limiter, retry_policy)

    with pytest.raises(AuthorizationError):
        archiver.archive(archiver.plan())
