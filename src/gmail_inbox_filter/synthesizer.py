"""Create Gmail filters for frequent senders, and audit the ones that exist."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from .addresses import domain_matches, extract_domain, matches_any, matches_sender_pattern
from .config import ProtectedConfiguration
from .constants import INBOX_LABEL, MIN_CATEGORY_SIZE, MIN_SENDER_FREQUENCY, OVERLY_BROAD_PREFIXES
from .errors import NotFoundError, is_fatal
from .gateway import ProviderGateway
from .labels import LabelRegistry
from .models import (
    CATEGORY_ACTIONS,
    RULE_CATEGORIES,
    Category,
    CategoryAction,
    ClassificationResult,
    FilterRule,
    PhaseReport,
)
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, throttled
from .service_rules import SERVICE_RULES, ServiceRule

logger = logging.getLogger(__name__)

PROTECTED_CONFLICT = "protected_conflict"
DUPLICATE = "duplicate"
OVERLY_BROAD = "overly_broad"


def _rule_key(sender: str, query: str = "") -> tuple[str, str]:
    return (sender.strip().lower(), query.strip().lower())


def is_overly_broad(sender: str) -> bool:
    """True for bare prefixes like ``noreply@`` that carry no real domain."""
    sender = sender.strip().lower()
    for prefix in OVERLY_BROAD_PREFIXES:
        if sender == prefix:
            return True
        if sender.startswith(prefix):
            rest = sender[len(prefix) :]
            if "." not in rest or len(rest) < 4:
                return True
    return False


def targets_protected(sender: str, config: ProtectedConfiguration) -> bool:
    """True if a sender address or rule pattern covers a VIP or protected sender."""
    sender = sender.strip().lower()
    if not sender:
        return False
    domain = extract_domain(sender) if "@" in sender else sender
    if any(domain_matches(domain, d) for d in config.protected_domains):
        return True
    personal = config.vip_senders | config.protected_senders
    if sender in personal:
        return True
    return any(matches_sender_pattern(address, sender) for address in personal)


@dataclass(frozen=True)
class RuleIssue:
    """An existing filter that should be removed."""

    rule: FilterRule
    kind: str
    detail: str


def audit_rules(
    rules: Iterable[FilterRule],
    config: ProtectedConfiguration,
) -> list[RuleIssue]:
    """Find existing filters that archive protected mail, repeat another filter,
    or match on a bare address prefix.

    Each filter gets at most one issue. The protection check runs first, so a
    filter that is both overly broad and aimed at a protected sender is
    reported as a protection conflict.
    """
    issues: list[RuleIssue] = []
    seen: set[tuple[str, str]] = set()

    for rule in rules:
        sender = rule.sender
        if not sender:
            continue
        key = _rule_key(sender, rule.query)

        if rule.archives and targets_protected(sender, config):
            issues.append(
                RuleIssue(rule, PROTECTED_CONFLICT, f"archives mail from protected sender {sender}")
            )
        elif key in seen:
            issues.append(RuleIssue(rule, DUPLICATE, f"repeats another filter for {sender}"))
        elif is_overly_broad(sender):
            issues.append(RuleIssue(rule, OVERLY_BROAD, f"{sender} matches any domain"))
        seen.add(key)

    return issues


class RuleSynthesizer:
    """Turn a run's classification into persistent Gmail filters."""

    def __init__(
        self,
        gateway: ProviderGateway,
        limiter: RateLimiter,
        retry_policy: RetryPolicy,
        labels: LabelRegistry,
        config: ProtectedConfiguration,
        min_category_size: int = MIN_CATEGORY_SIZE,
        min_sender_frequency: int = MIN_SENDER_FREQUENCY,
        category_actions: Mapping[Category, CategoryAction] = CATEGORY_ACTIONS,
    ) -> None:
        self.gateway = gateway
        self.limiter = limiter
        self.retry_policy = retry_policy
        self.labels = labels
        self.config = config
        self.min_category_size = min_category_size
        self.min_sender_frequency = min_sender_frequency
        self.category_actions = category_actions
        # (from, query) keys of filters created through this instance.
        self._created: set[tuple[str, str]] = set()

    def _call(self, operation):
        return throttled(self.limiter, self.retry_policy, operation)

    def candidate_senders(self, result: ClassificationResult) -> list[tuple[Category, str]]:
        """Frequent senders from large rule-eligible categories, most frequent first."""
        candidates: list[tuple[Category, str]] = []
        for category in RULE_CATEGORIES:
            if result.count(category) <= self.min_category_size:
                continue
            frequency = result.sender_frequency(category)
            frequent = [s for s, n in frequency.items() if n >= self.min_sender_frequency]
            frequent.sort(key=lambda s: (-frequency[s], s))
            candidates.extend((category, sender) for sender in frequent)
        return candidates

    def is_protected_sender(self, sender: str) -> bool:
        if self.config.is_vip(sender) or self.config.is_protected_domain(sender):
            return True
        return matches_any(sender, self.config.vip_senders | self.config.protected_senders)

    def synthesize_rules(
        self,
        result: ClassificationResult,
        existing_rules: Iterable[FilterRule],
    ) -> PhaseReport:
        """Create a label-and-archive filter for each new frequent sender.

        Senders covered by ``existing_rules`` or by a filter this synthesizer
        already created are skipped. Returns a report whose ``succeeded`` is
        the number of filters created.
        """
        report = PhaseReport(phase="synthesis")
        known = {rule.sender for rule in existing_rules if rule.sender}
        known.update(sender for sender, _ in self._created)

        for category, sender in self.candidate_senders(result):
            if sender in known:
                logger.debug("Filter for %s already exists", sender)
                report.skipped += 1
                continue
            if self.is_protected_sender(sender):
                logger.debug("Not creating a filter for protected sender %s", sender)
                report.skipped += 1
                continue

            action = self.category_actions.get(category)
            if action is None:
                continue

            report.attempted += 1
            try:
                label_id = self.labels.ensure(action.label)
                self._call(
                    lambda: self.gateway.create_rule(
                        {"from": sender},
                        {"addLabelIds": [label_id], "removeLabelIds": [INBOX_LABEL]},
                    )
                )
            except Exception as exc:
                if is_fatal(exc):
                    raise
                logger.warning("Could not create %s filter for %s: %s", category.value, sender, exc)
                report.record_failure(f"{category.value} filter for {sender}", str(exc))
                continue

            known.add(sender)
            self._created.add(_rule_key(sender))
            report.succeeded += 1
            logger.info("Created %s filter for %s", category.value, sender)

        return report

    def apply_service_rules(
        self,
        existing_rules: Iterable[FilterRule],
        service_rules: Iterable[ServiceRule] = SERVICE_RULES,
    ) -> PhaseReport:
        """Create the keep-side and archive-side filters for each named service."""
        report = PhaseReport(phase="service rules")
        known = {_rule_key(rule.sender, rule.query) for rule in existing_rules if rule.sender}
        known.update(self._created)

        for service in service_rules:
            sender = service.sender.lower()
            if self.config.is_vip(sender) or sender in self.config.protected_senders:
                logger.debug("Skipping service filters for protected sender %s", sender)
                report.skipped += 2
                continue

            sides = [
                (service.keep_query, service.keep_label, []),
                (service.archive_query, service.archive_label, [INBOX_LABEL]),
            ]
            for query, label_name, remove in sides:
                key = _rule_key(sender, query)
                if key in known:
                    report.skipped += 1
                    continue

                report.attempted += 1
                try:
                    label_id = self.labels.ensure(label_name)
                    action = {"addLabelIds": [label_id]}
                    if remove:
                        action["removeLabelIds"] = remove
                    self._call(
                        lambda: self.gateway.create_rule({"from": sender, "query": query}, action)
                    )
                except Exception as exc:
                    if is_fatal(exc):
                        raise
                    logger.warning("Could not create service filter %s %s: %s", sender, query, exc)
                    report.record_failure(f"{sender} {query}", str(exc))
                    continue

                known.add(key)
                self._created.add(key)
                report.succeeded += 1

        return report

    def prune_rules(self, issues: Iterable[RuleIssue]) -> PhaseReport:
        """Delete the filters named by ``issues``."""
        report = PhaseReport(phase="pruning")
        for issue in issues:
            rule_id = issue.rule.rule_id
            report.attempted += 1
            try:
                self._call(lambda: self.gateway.delete_rule(rule_id))
            except NotFoundError:
                logger.debug("Filter %s was already gone", rule_id)
            except Exception as exc:
                if is_fatal(exc):
                    raise
                logger.warning("Could not delete filter %s (%s): %s", rule_id, issue.rule.sender, exc)
                report.record_failure(f"filter {rule_id} ({issue.rule.sender})", str(exc))
                continue
            report.succeeded += 1
            logger.info("Deleted filter %s for %s: %s", rule_id, issue.rule.sender, issue.detail)
        return report
