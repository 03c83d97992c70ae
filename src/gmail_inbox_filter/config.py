"""Protection configuration: VIP senders, protected senders, domains and keywords."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from dotenv import load_dotenv

from .addresses import domain_matches, extract_domain
from .constants import DEFAULT_PROTECTED_DOMAINS

logger = logging.getLogger(__name__)

_DELIMITER_RE = re.compile(r"[,;\n]")


def split_list(value: str | None) -> list[str]:
    """Split a delimited string into lowercased, stripped, non-empty items."""
    if not value:
        return []
    return [item.strip().lower() for item in _DELIMITER_RE.split(value) if item.strip()]


def _normalize(values: Iterable[str]) -> frozenset[str]:
    return frozenset(v.strip().lower() for v in values if v and v.strip())


@dataclass(frozen=True)
class ProtectedConfiguration:
    """Read-only protection settings for one run."""

    vip_senders: frozenset[str] = frozenset()
    protected_senders: frozenset[str] = frozenset()
    protected_domains: frozenset[str] = field(
        default_factory=lambda: frozenset(DEFAULT_PROTECTED_DOMAINS)
    )
    protected_keywords: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        vip_senders: Iterable[str] = (),
        protected_senders: Iterable[str] = (),
        protected_domains: Iterable[str] = (),
        protected_keywords: Iterable[str] = (),
        include_default_domains: bool = True,
    ) -> ProtectedConfiguration:
        """Normalize raw lists into a configuration.

        Protected-sender entries that name only a domain (``chase.com`` or
        ``@chase.com``) are treated as protected domains.
        """
        senders: set[str] = set()
        domains: set[str] = set(DEFAULT_PROTECTED_DOMAINS) if include_default_domains else set()
        domains.update(d.lstrip("@") for d in _normalize(protected_domains))

        for entry in _normalize(protected_senders):
            if entry.startswith("@") or "@" not in entry:
                domains.add(entry.lstrip("@"))
            else:
                senders.add(entry)

        return cls(
            vip_senders=_normalize(vip_senders),
            protected_senders=frozenset(senders),
            protected_domains=frozenset(domains),
            protected_keywords=_normalize(protected_keywords),
        )

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        use_dotenv: bool = True,
    ) -> ProtectedConfiguration:
        """Load configuration from VIP_EMAILS, PROTECTED_SENDERS, PROTECTED_DOMAINS
        and PROTECTED_KEYWORDS (comma or semicolon separated).

        A ``.env`` file in the working directory is read first when ``use_dotenv``
        is true; real environment variables win over it.
        """
        if environ is None:
            if use_dotenv:
                load_dotenv()
            environ = os.environ

        config = cls.build(
            vip_senders=split_list(environ.get("VIP_EMAILS")),
            protected_senders=split_list(environ.get("PROTECTED_SENDERS")),
            protected_domains=split_list(environ.get("PROTECTED_DOMAINS")),
            protected_keywords=split_list(environ.get("PROTECTED_KEYWORDS")),
        )
        logger.debug(
            "Loaded configuration: %d VIP senders, %d protected senders, "
            "%d protected domains, %d protected keywords",
            len(config.vip_senders),
            len(config.protected_senders),
            len(config.protected_domains),
            len(config.protected_keywords),
        )
        return config

    def is_vip(self, email: str) -> bool:
        return email.strip().lower() in self.vip_senders

    def is_protected_domain(self, email: str) -> bool:
        domain = extract_domain(email)
        return any(domain_matches(domain, d) for d in self.protected_domains)

    def has_protected_keyword(self, subject: str) -> bool:
        subject = subject.lower()
        return any(keyword in subject for keyword in self.protected_keywords)
