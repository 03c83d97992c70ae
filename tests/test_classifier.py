"""Tests for the classifier module."""

from conftest import make_message

from gmail_inbox_filter.classifier import classify, classify_messages
from gmail_inbox_filter.config import ProtectedConfiguration
from gmail_inbox_filter.models import Category


def test_vip_wins_over_everything(config):
    msg = make_message(
        "m1",
        "boss@company.com",
        subject="Weekly digest",
        labels=("CATEGORY_PROMOTIONS",),
        has_list_unsubscribe=True,
    )
    assert classify(msg, config) == Category.VIP


def test_protected_domain_beats_spam_wording(config):
    """A protected domain stays protected even with prize-style wording."""
    msg = make_message("m1", "service@paypal.com", subject="winner!!! claim your prize")
    assert classify(msg, config) == Category.PROTECTED


def test_protected_subdomain():
    config = ProtectedConfiguration.build(protected_domains=["chase.com"], include_default_domains=False)
    msg = make_message("m1", "alerts@billing.chase.com", subject="Statement ready")
    assert classify(msg, config) == Category.PROTECTED


def test_lookalike_domain_not_protected():
    config = ProtectedConfiguration.build(protected_domains=["chase.com"], include_default_domains=False)
    msg = make_message("m1", "alerts@chase.com.evil.net", subject="Verify your account")
    assert classify(msg, config) != Category.PROTECTED


def test_protected_sender_exact_match(config):
    msg = make_message("m1", "doctor@clinic.org", subject="Newsletter", has_list_unsubscribe=True)
    assert classify(msg, config) == Category.PROTECTED


def test_mixed_case_sender_is_still_protected(config):
    """Sender addresses are compared lowercased, whatever the header said."""
    assert classify(make_message("m1", "Doctor@Clinic.org"), config) == Category.PROTECTED
    assert classify(make_message("m2", " Alerts@Chase.COM "), config) == Category.PROTECTED


def test_protected_keyword_case_insensitive(config):
    msg = make_message("m1", "noreply@accounting.io", subject="Your TAX RETURN is ready")
    assert classify(msg, config) == Category.PROTECTED


def test_list_unsubscribe_is_newsletter(config):
    msg = make_message("m1", "noreply@shop.io", labels=("CATEGORY_PROMOTIONS",), has_list_unsubscribe=True)
    assert classify(msg, config) == Category.NEWSLETTER


def test_list_id_is_newsletter(config):
    msg = make_message("m1", "dev@lists.python.org", list_id="<python-dev.python.org>")
    assert classify(msg, config) == Category.NEWSLETTER


def test_provider_taxonomy_labels(config):
    assert classify(make_message("m1", "deals@shop.io", labels=("CATEGORY_PROMOTIONS",)), config) == Category.PROMOTIONAL
    assert classify(make_message("m2", "friend@social.io", labels=("CATEGORY_SOCIAL",)), config) == Category.SOCIAL
    assert classify(make_message("m3", "board@forum.io", labels=("CATEGORY_FORUMS",)), config) == Category.FORUMS


def test_automated_sender(config):
    for sender in ("noreply@x.io", "no-reply@x.io", "donotreply@x.io", "system@x.io", "alerts@x.io"):
        msg = make_message("m1", sender, subject="Hello")
        assert classify(msg, config) == Category.AUTOMATED, sender


def test_automated_beats_receipt_subject(config):
    msg = make_message("m1", "notifications@store.io", subject="Your receipt")
    assert classify(msg, config) == Category.AUTOMATED


def test_newsletter_subject(config):
    msg = make_message("m1", "editor@magazine.io", subject="The Daily Digest for Monday")
    assert classify(msg, config) == Category.NEWSLETTER


def test_receipt_subject(config):
    assert classify(make_message("m1", "orders@store.io", subject="Payment received"), config) == Category.RECEIPT
    assert classify(make_message("m2", "orders@store.io", subject="Your order has shipped"), config) == Category.RECEIPT


def test_receipt_transactional_domain():
    config = ProtectedConfiguration.build(include_default_domains=False)
    msg = make_message("m1", "orders@amazon.com", subject="Something for you")
    assert classify(msg, config) == Category.RECEIPT


def test_confirmation_subject(config):
    msg = make_message("m1", "frontdesk@hotel.io", subject="Reservation for Friday")
    assert classify(msg, config) == Category.CONFIRMATION


def test_unknown(config):
    msg = make_message("m1", "alice@gmail.com", subject="Lunch tomorrow?")
    assert classify(msg, config) == Category.UNKNOWN


def test_empty_sender_is_unknown(config):
    msg = make_message("m1", "", subject="")
    assert classify(msg, config) == Category.UNKNOWN


def test_classify_messages_partitions_input(config):
    """Every message lands in exactly one group."""
    messages = [
        make_message("m1", "boss@company.com"),
        make_message("m2", "news@paper.io", has_list_unsubscribe=True),
        make_message("m3", "alice@gmail.com"),
        make_message("m4", "noreply@x.io"),
        make_message("m5", "news@paper.io", has_list_unsubscribe=True),
    ]
    result = classify_messages(messages, config)
    assert result.total == 5
    assert result.count(Category.NEWSLETTER) == 2
    ids = [mid for category in Category for mid in result.message_ids(category)]
    assert sorted(ids) == ["m1", "m2", "m3", "m4", "m5"]
