"""Slack incoming webhook notification sink."""

import json
from typing import Any, Optional

import httpx

from ghaudit.application.exceptions import NotificationError

DEFAULT_TIMEOUT = 10.0


class SlackWebhookClient:
    """Posts a webhook payload; any transport failure or non-2xx answer is a NotificationError."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "SlackWebhookClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post(self, message: dict[str, Any]) -> None:
        try:
            resp = await self._client.post(self._url, json=message)
        except httpx.HTTPError as e:
            raise NotificationError(
                f"failed to post webhook: {e}", body=json.dumps(message)
            ) from e
        if not resp.is_success:
            raise NotificationError(
                "unexpected webhook response",
                status_code=resp.status_code,
                response=resp.text,
                body=json.dumps(message),
            )
