"""Provider gateway interface and its Gmail API implementation."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol, TypeVar

from googleapiclient.errors import HttpError

from .addresses import normalize_email
from .constants import METADATA_HEADERS
from .errors import translate_http_error
from .models import FilterRule, Label, Message

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class MessagePage:
    """One page of a message listing."""

    ids: list[str] = field(default_factory=list)
    next_page_token: str | None = None


class ProviderGateway(Protocol):
    """Raw mailbox operations consumed by the filtering engine."""

    def list_messages(
        self, query: str | None, page_token: str | None, max_results: int
    ) -> MessagePage: ...

    def get_message_metadata(self, message_id: str, header_names: list[str]) -> Message: ...

    def batch_mutate_labels(
        self, ids: list[str], add_label_ids: list[str], remove_label_ids: list[str]
    ) -> None: ...

    def list_labels(self) -> list[Label]: ...

    def create_label(self, name: str) -> Label: ...

    def list_rules(self) -> list[FilterRule]: ...

    def create_rule(self, criteria: dict, action: dict) -> FilterRule: ...

    def delete_rule(self, rule_id: str) -> None: ...


def message_from_metadata(message_id: str, response: dict) -> Message:
    """Build a Message from a ``messages.get(format='metadata')`` response."""
    headers = {}
    for h in response.get("payload", {}).get("headers", []):
        headers[h["name"].lower()] = h["value"]

    from_value = headers.get("from", "")
    return Message(
        message_id=message_id,
        sender=from_value,
        sender_email=normalize_email(from_value),
        subject=headers.get("subject", ""),
        date=headers.get("date", ""),
        labels=frozenset(response.get("labelIds", [])),
        has_list_unsubscribe="list-unsubscribe" in headers,
        list_id=headers.get("list-id", ""),
    )


def _translated(fn: Callable[..., T]) -> Callable[..., T]:
    """Re-raise HttpError from the Gmail client as a ProviderError."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except HttpError as exc:
            raise translate_http_error(exc) from exc

    return wrapper


class GmailGateway:
    """ProviderGateway backed by the Gmail v1 API."""

    def __init__(self, service, user_id: str = "me") -> None:
        self.service = service
        self.user_id = user_id

    @_translated
    def list_messages(
        self, query: str | None, page_token: str | None, max_results: int
    ) -> MessagePage:
        kwargs: dict = {
            "userId": self.user_id,
            "maxResults": max_results,
            "fields": "messages/id,nextPageToken",
        }
        if query:
            kwargs["q"] = query
        if page_token:
            kwargs["pageToken"] = page_token

        resp = self.service.users().messages().list(**kwargs).execute()
        ids = [m["id"] for m in resp.get("messages", [])]
        return MessagePage(ids=ids, next_page_token=resp.get("nextPageToken"))

    @_translated
    def get_message_metadata(
        self, message_id: str, header_names: list[str] | None = None
    ) -> Message:
        resp = (
            self.service.users()
            .messages()
            .get(
                userId=self.user_id,
                id=message_id,
                format="metadata",
                metadataHeaders=header_names or METADATA_HEADERS,
            )
            .execute()
        )
        return message_from_metadata(message_id, resp)

    @_translated
    def batch_mutate_labels(
        self, ids: list[str], add_label_ids: list[str], remove_label_ids: list[str]
    ) -> None:
        body: dict = {"ids": ids}
        if add_label_ids:
            body["addLabelIds"] = add_label_ids
        if remove_label_ids:
            body["removeLabelIds"] = remove_label_ids
        self.service.users().messages().batchModify(userId=self.user_id, body=body).execute()

    @_translated
    def list_labels(self) -> list[Label]:
        resp = self.service.users().labels().list(userId=self.user_id).execute()
        return [Label(label_id=l["id"], name=l["name"]) for l in resp.get("labels", [])]

    @_translated
    def create_label(self, name: str) -> Label:
        resp = (
            self.service.users()
            .labels()
            .create(
                userId=self.user_id,
                body={
                    "name": name,
                    "labelListVisibility": "labelShow",
                    "messageListVisibility": "show",
                },
            )
            .execute()
        )
        return Label(label_id=resp["id"], name=resp["name"])

    @_translated
    def list_rules(self) -> list[FilterRule]:
        resp = self.service.users().settings().filters().list(userId=self.user_id).execute()
        return [
            FilterRule(
                rule_id=f["id"],
                criteria=f.get("criteria", {}),
                action=f.get("action", {}),
            )
            for f in resp.get("filter", [])
        ]

    @_translated
    def create_rule(self, criteria: dict, action: dict) -> FilterRule:
        resp = (
            self.service.users()
            .settings()
            .filters()
            .create(userId=self.user_id, body={"criteria": criteria, "action": action})
            .execute()
        )
        return FilterRule(
            rule_id=resp["id"],
            criteria=resp.get("criteria", criteria),
            action=resp.get("action", action),
        )

    @_translated
    def delete_rule(self, rule_id: str) -> None:
        self.service.users().settings().filters().delete(userId=self.user_id, id=rule_id).execute()
