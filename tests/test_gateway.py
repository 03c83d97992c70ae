"""Tests for the Gmail gateway and HTTP error translation."""

from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from gmail_inbox_filter.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    TransientProviderError,
    is_fatal,
    is_retryable,
    translate_http_error,
)
from gmail_inbox_filter.gateway import GmailGateway, message_from_metadata


def _http_error(status: int, message: str = "error") -> HttpError:
    resp = httplib2.Response({"status": str(status), "reason": message})
    content = ('{"error": {"code": %d, "message": "%s"}}' % (status, message)).encode()
    return HttpError(resp, content)


def test_message_from_metadata():
    response = {
        "labelIds": ["INBOX", "CATEGORY_PROMOTIONS"],
        "payload": {
            "headers": [
                {"name": "From", "value": '"Shop" <Deals@Shop.io>'},
                {"name": "Subject", "value": "50% off"},
                {"name": "Date", "value": "Mon, 15 Jan 2024 10:00:00 +0000"},
                {"name": "list-unsubscribe", "value": "<mailto:unsub@shop.io>"},
                {"name": "List-ID", "value": "<deals.shop.io>"},
            ]
        },
    }
    msg = message_from_metadata("abc", response)
    assert msg.message_id == "abc"
    assert msg.sender == '"Shop" <Deals@Shop.io>'
    assert msg.sender_email == "deals@shop.io"
    assert msg.subject == "50% off"
    assert msg.labels == {"INBOX", "CATEGORY_PROMOTIONS"}
    assert msg.has_list_unsubscribe
    assert msg.list_id == "<deals.shop.io>"


def test_message_from_metadata_missing_headers():
    msg = message_from_metadata("abc", {})
    assert msg.sender_email == ""
    assert msg.subject == ""
    assert msg.labels == frozenset()
    assert not msg.has_list_unsubscribe


@pytest.mark.parametrize(
    "status,message,expected",
    [
        (401, "Invalid Credentials", AuthorizationError),
        (404, "Not Found", NotFoundError),
        (409, "Label name exists", ConflictError),
        (429, "Too Many Requests", RateLimitError),
        (403, "User Rate Limit Exceeded", RateLimitError),
        (500, "Backend Error", TransientProviderError),
    ],
)
def test_translate_http_error(status, message, expected):
    translated = translate_http_error(_http_error(status, message))
    assert type(translated) is expected
    assert translated.status == status


def test_raw_http_errors_are_classified():
    assert is_fatal(_http_error(401))
    assert not is_retryable(_http_error(404))
    assert not is_retryable(_http_error(409))
    assert is_retryable(_http_error(503))


def test_list_messages():
    service = MagicMock()
    list_call = service.users.return_value.messages.return_value.list
    list_call.return_value.execute.return_value = {
        "messages": [{"id": "a"}, {"id": "b"}],
        "nextPageToken": "next",
    }
    gateway = GmailGateway(service)

    page = gateway.list_messages("in:inbox", "tok", 50)

    assert page.ids == ["a", "b"]
    assert page.next_page_token == "next"
    kwargs = list_call.call_args.kwargs
    assert kwargs["q"] == "in:inbox"
    assert kwargs["pageToken"] == "tok"
    assert kwargs["maxResults"] == 50


def test_batch_mutate_body():
    service = MagicMock()
    gateway = GmailGateway(service)

    gateway.batch_mutate_labels(["a", "b"], ["Label_1"], ["INBOX"])

    batch = service.users.return_value.messages.return_value.batchModify
    assert batch.call_args.kwargs["body"] == {
        "ids": ["a", "b"],
        "addLabelIds": ["Label_1"],
        "removeLabelIds": ["INBOX"],
    }


def test_http_errors_are_translated():
    service = MagicMock()
    filters = service.users.return_value.settings.return_value.filters.return_value
    filters.delete.return_value.execute.side_effect = _http_error(404, "Filter not found")
    gateway = GmailGateway(service)

    with pytest.raises(NotFoundError) as excinfo:
        gateway.delete_rule("r1")
    assert isinstance(excinfo.value.__cause__, HttpError)


def test_list_rules():
    service = MagicMock()
    filters = service.users.return_value.settings.return_value.filters.return_value
    filters.list.return_value.execute.return_value = {
        "filter": [
            {"id": "f1", "criteria": {"from": "A@x.io"}, "action": {"removeLabelIds": ["INBOX"]}},
        ]
    }
    rules = GmailGateway(service).list_rules()
    assert rules[0].rule_id == "f1"
    assert rules[0].sender == "a@x.io"
    assert rules[0].archives
