"""
Tests for the confirmation notifier.
"""

import json

import httpx
import pytest

from paygate.models.domain import SubscriberData
from paygate.services.notifications import RESEND_EMAILS_URL, ConfirmationNotifier


def make_notifier(handler, api_key: str = "re_test_key") -> ConfirmationNotifier:
    return ConfirmationNotifier(
        api_key=api_key,
        email_from="Paygate <noreply@example.com>",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestConfirmationNotifier:
    """Tests for send_activation_confirmation."""

    async def test_sends_email(self, subscriber_data: SubscriberData):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"id": "email-1"})

        sent = await make_notifier(handler).send_activation_confirmation(subscriber_data)

        assert sent is True
        request = captured[0]
        assert str(request.url) == RESEND_EMAILS_URL
        assert request.headers["Authorization"] == "Bearer re_test_key"
        payload = json.loads(request.content)
        assert payload["to"] == ["jan.kowalski@example.com"]
        assert payload["from"] == "Paygate <noreply@example.com>"
        assert "starter" in payload["text"]
        assert "2026-11-19" in payload["text"]

    async def test_provider_error_is_swallowed(self, subscriber_data: SubscriberData):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"message": "internal"})

        sent = await make_notifier(handler).send_activation_confirmation(subscriber_data)

        assert sent is False

    async def test_transport_error_is_swallowed(self, subscriber_data: SubscriberData):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        sent = await make_notifier(handler).send_activation_confirmation(subscriber_data)

        assert sent is False

    async def test_unexpected_error_is_swallowed(self, subscriber_data: SubscriberData):
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("boom")

        sent = await make_notifier(handler).send_activation_confirmation(subscriber_data)

        assert sent is False

    async def test_skipped_without_api_key(self, subscriber_data: SubscriberData):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        notifier = make_notifier(handler, api_key="")

        assert notifier.enabled is False
        assert await notifier.send_activation_confirmation(subscriber_data) is False
        assert calls == []

    @pytest.mark.parametrize("name", [None, "Jan Kowalski"])
    async def test_greeting(self, subscriber_data: SubscriberData, name: str | None):
        from dataclasses import replace

        captured: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "email-1"})

        await make_notifier(handler).send_activation_confirmation(
            replace(subscriber_data, name=name)
        )

        expected = name or subscriber_data.email
        assert captured[0]["text"].startswith(f"Hello {expected},")
