"""Email address parsing and sender/domain matching."""

from __future__ import annotations

import re
from typing import Iterable

_FROM_RE = re.compile(r"^(.*?)\s*<([^>]+)>$")
_BARE_EMAIL_RE = re.compile(r"([^\s<>\"]+@[^\s<>\"]+)")


def parse_from_header(from_value: str) -> tuple[str, str]:
    """Parse a From header into (display name, email address).

    Handles formats like:
      "John Doe <john@example.com>" -> ("John Doe", "john@example.com")
      "<john@example.com>"          -> ("", "john@example.com")
      "john@example.com"            -> ("", "john@example.com")
      "john@example.com (John)"     -> ("", "john@example.com")
    """
    if not from_value:
        return ("", "")
    m = _FROM_RE.match(from_value.strip())
    if m:
        name = m.group(1).strip().strip('"').strip("'")
        return (name, m.group(2).strip())
    bare = _BARE_EMAIL_RE.search(from_value)
    if bare:
        return ("", bare.group(1))
    return ("", from_value.strip().strip("<>"))


def normalize_email(from_value: str) -> str:
    """Return the lowercased address from a From header value."""
    return parse_from_header(from_value)[1].strip().lower()


def extract_domain(email: str) -> str:
    """Return the lowercased domain part of an address, or '' if there is none."""
    _, at, domain = email.strip().lower().rpartition("@")
    if not at:
        return ""
    return domain.strip(">").strip()


def domain_matches(domain: str, suffix: str) -> bool:
    """True if domain equals suffix or is a subdomain of it."""
    domain = domain.lower()
    suffix = suffix.lower().strip().lstrip("@")
    if not domain or not suffix:
        return False
    return domain == suffix or domain.endswith("." + suffix)


def matches_sender_pattern(email: str, pattern: str) -> bool:
    """Match an address against a sender pattern.

    A pattern without "@" (``chase.com``) or starting with "@" (``@chase.com``)
    matches that domain and its subdomains. A full address matches the same
    address or any address on the same domain.
    """
    email = email.strip().lower()
    pattern = pattern.strip().lower()
    if not email or not pattern:
        return False

    domain = extract_domain(email)
    if "@" not in pattern or pattern.startswith("@"):
        return domain_matches(domain, pattern)

    if email == pattern:
        return True
    pattern_domain = extract_domain(pattern)
    return bool(pattern_domain) and domain == pattern_domain


def matches_any(email: str, patterns: Iterable[str]) -> bool:
    return any(matches_sender_pattern(email, p) for p in patterns)
