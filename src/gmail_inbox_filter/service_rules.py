"""Two-sided filters for named services.

Mail from these senders whose subject mentions one of the keywords is
labeled and kept in the inbox; everything else from them is labeled and
archived. This is curated data, edited by hand.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ServiceRule:
    sender: str
    keywords: tuple[str, ...]
    keep_label: str
    archive_label: str

    def _terms(self) -> list[str]:
        return [f'"{k}"' if " " in k else k for k in self.keywords]

    @property
    def keep_query(self) -> str:
        return f"subject:({' OR '.join(self._terms())})"

    @property
    def archive_query(self) -> str:
        return " ".join(f"-subject:{t}" for t in self._terms())


SERVICE_RULES: tuple[ServiceRule, ...] = (
    ServiceRule(
        sender="service@paypal.com",
        keywords=("payment", "received", "sent", "refund", "dispute"),
        keep_label="Receipts",
        archive_label="Filtered/Promotional",
    ),
    ServiceRule(
        sender="no-reply@rippling.com",
        keywords=("payroll", "benefits", "tax", "urgent", "action required"),
        keep_label="Important/HR",
        archive_label="Filtered/Automated",
    ),
)
