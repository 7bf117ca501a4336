"""Slack webhook sink: payload delivery and failure mapping."""

import json

import httpx
import pytest

from ghaudit.application.exceptions import NotificationError
from ghaudit.infrastructure.notify.slack_webhook import SlackWebhookClient

WEBHOOK = "https://hooks.slack.test/services/T000/B000/XXXX"


async def test_post_sends_json_payload():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="ok")

    async with SlackWebhookClient(WEBHOOK, transport=httpx.MockTransport(handler)) as client:
        await client.post({"text": "GitHub Audit: evaluation completed"})

    (request,) = seen
    assert str(request.url) == WEBHOOK
    assert json.loads(request.content) == {"text": "GitHub Audit: evaluation completed"}


async def test_non_success_status_is_notification_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(404, text="no_service"))

    async with SlackWebhookClient(WEBHOOK, transport=transport) as client:
        with pytest.raises(NotificationError) as exc_info:
            await client.post({"text": "hi"})

    assert exc_info.value.context["status_code"] == 404
    assert exc_info.value.context["response"] == "no_service"


async def test_transport_failure_is_notification_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    async with SlackWebhookClient(WEBHOOK, transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(NotificationError):
            await client.post({"text": "hi"})
