"""Rule-based classification of messages into categories."""

from __future__ import annotations

import re
from typing import Iterable

from .addresses import domain_matches, extract_domain
from .config import ProtectedConfiguration
from .constants import (
    AUTOMATED_SENDER_TERMS,
    CONFIRMATION_SUBJECT_PATTERNS,
    NEWSLETTER_SUBJECT_PATTERNS,
    RECEIPT_SUBJECT_PATTERNS,
    TRANSACTIONAL_DOMAINS,
    TRANSACTIONAL_SENDER_TERMS,
)
from .models import Category, ClassificationResult, Message


def _compile(patterns: list[str]) -> re.Pattern[str]:
    return re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE)


_NEWSLETTER_SUBJECT_RE = _compile(NEWSLETTER_SUBJECT_PATTERNS)
_RECEIPT_SUBJECT_RE = _compile(RECEIPT_SUBJECT_PATTERNS)
_CONFIRMATION_SUBJECT_RE = _compile(CONFIRMATION_SUBJECT_PATTERNS)

# Provider taxonomy labels, checked in this order.
_TAXONOMY_LABELS = [
    ("CATEGORY_PROMOTIONS", Category.PROMOTIONAL),
    ("CATEGORY_SOCIAL", Category.SOCIAL),
    ("CATEGORY_FORUMS", Category.FORUMS),
]


def is_protected(message: Message, config: ProtectedConfiguration) -> bool:
    """True if the sender, domain or subject is covered by a protection setting."""
    email = message.sender_email.strip().lower()
    if email in config.protected_senders:
        return True
    if config.has_protected_keyword(message.subject):
        return True
    return config.is_protected_domain(email)


def is_automated_sender(email: str) -> bool:
    return any(term in email for term in AUTOMATED_SENDER_TERMS)


def is_transactional_sender(email: str) -> bool:
    domain = extract_domain(email)
    if any(domain_matches(domain, d) for d in TRANSACTIONAL_DOMAINS):
        return True
    return any(term in email for term in TRANSACTIONAL_SENDER_TERMS)


def classify(message: Message, config: ProtectedConfiguration) -> Category:
    """Assign exactly one category to a message.

    Checks run in a fixed order and the first match wins: VIP, protection,
    list headers, provider taxonomy labels, automated senders, newsletter
    subjects, receipts, confirmations. Anything left over is ``unknown``.
    """
    email = message.sender_email.strip().lower()
    subject = message.subject or ""

    if email and email in config.vip_senders:
        return Category.VIP

    if is_protected(message, config):
        return Category.PROTECTED

    if message.has_list_unsubscribe or message.list_id:
        return Category.NEWSLETTER

    for label, category in _TAXONOMY_LABELS:
        if label in message.labels:
            return category

    if is_automated_sender(email):
        return Category.AUTOMATED

    if _NEWSLETTER_SUBJECT_RE.search(subject):
        return Category.NEWSLETTER

    if _RECEIPT_SUBJECT_RE.search(subject) or is_transactional_sender(email):
        return Category.RECEIPT

    if _CONFIRMATION_SUBJECT_RE.search(subject):
        return Category.CONFIRMATION

    return Category.UNKNOWN


def classify_messages(
    messages: Iterable[Message],
    config: ProtectedConfiguration,
) -> ClassificationResult:
    """Classify every message and fold the outcomes into a result object."""
    result = ClassificationResult()
    for message in messages:
        result.add(message, classify(message, config))
    return result
