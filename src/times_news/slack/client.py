"""Slack Web API client wrapper.

Provides async methods for the handful of Web API calls the bot needs:
listing channels, members and history, joining and leaving channels,
publishing the home tab, opening modals and posting messages.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Protocol

import httpx

from times_news.constants import SLACK_API_BASE, SLACK_PAGE_LIMIT
from times_news.logging import get_logger
from times_news.models import Channel, HistoryMessage

log = get_logger("times_news.slack.client")

# Fallback wait when a 429 response carries no Retry-After header
DEFAULT_RETRY_AFTER = 1.0


class SlackAPIError(Exception):
    """Raised when a Slack Web API call fails.

    ``error`` is Slack's error code (``not_in_channel``, ``hash_conflict``...)
    or ``http_<status>`` / ``request_failed`` / ``invalid_response`` for
    transport failures.
    """

    def __init__(self, method: str, error: str, detail: str = "") -> None:
        message = f"Slack API {method} failed: {error}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.method = method
        self.error = error


class PlatformClient(Protocol):
    """What the watch/digest logic needs from the messaging platform.

    Page methods return ``(items, next_cursor)``; an empty or ``None``
    cursor means there are no more pages.
    """

    async def list_channels_page(self, cursor: str | None) -> tuple[list[Channel], str | None]: ...

    async def list_members_page(
        self, channel_id: str, cursor: str | None
    ) -> tuple[list[str], str | None]: ...

    async def list_history_page(
        self, channel_id: str, since: datetime, cursor: str | None
    ) -> tuple[list[HistoryMessage], str | None]: ...

    async def join(self, channel_id: str) -> None: ...

    async def leave(self, channel_id: str) -> None: ...

    async def publish_home_view(
        self, user_id: str, view: dict[str, Any], expected_version_token: str = ""
    ) -> None: ...

    async def open_modal(self, trigger_id: str, view: dict[str, Any]) -> None: ...

    async def post_message(self, channel_id: str, text: str) -> None: ...


class SlackClient:
    """Async Slack Web API client.

    Holds only the token and transport settings, so a single instance can be
    shared by every request handled by the process.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = SLACK_API_BASE,
        timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        """Initialize the Slack client.

        Args:
            token: Bot token (``xoxb-...``).
            base_url: Web API base URL.
            timeout: HTTP request timeout in seconds.
            max_retries: How many times a rate-limited call is retried.
        """
        if not token:
            raise ValueError("token is required")
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries

    def _headers(self) -> dict[str, str]:
        """Return authorization headers."""
        return {"Authorization": f"Bearer {self._token}"}

    async def _call(
        self,
        method: str,
        *,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call a Web API method and return the decoded ``ok`` response.

        Read methods use GET with query params, write methods POST a JSON body.
        """
        url = f"{self._base_url}/{method}"
        attempt = 0
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            while True:
                try:
                    if json_data is not None:
                        response = await client.post(url, headers=self._headers(), json=json_data)
                    else:
                        response = await client.get(url, headers=self._headers(), params=params)
                except httpx.RequestError as exc:
                    raise SlackAPIError(method, "request_failed", str(exc)) from exc

                if response.status_code == 429 and attempt < self._max_retries:
                    attempt += 1
                    wait = _retry_after(response)
                    log.warning(
                        "slack_rate_limited", method=method, retry_after=wait, attempt=attempt
                    )
                    await asyncio.sleep(wait)
                    continue

                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError as exc:
                    raise SlackAPIError(
                        method, f"http_{exc.response.status_code}", exc.response.text
                    ) from exc

                try:
                    data = response.json()
                except ValueError as exc:
                    raise SlackAPIError(method, "invalid_response", str(exc)) from exc
                if not isinstance(data, dict):
                    detail = f"expected an object, got {type(data).__name__}"
                    raise SlackAPIError(method, "invalid_response", detail)
                if not data.get("ok", False):
                    raise SlackAPIError(method, data.get("error", "unknown_error"))
                return data

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_channels_page(self, cursor: str | None) -> tuple[list[Channel], str | None]:
        params: dict[str, Any] = {"limit": SLACK_PAGE_LIMIT}
        if cursor:
            params["cursor"] = cursor
        data = await self._call("conversations.list", params=params)
        channels = [Channel.from_api(c) for c in data.get("channels", [])]
        next_cursor = _next_cursor(data)
        log.debug("channels_listed", count=len(channels), has_more=bool(next_cursor))
        return channels, next_cursor

    async def list_members_page(
        self, channel_id: str, cursor: str | None
    ) -> tuple[list[str], str | None]:
        params: dict[str, Any] = {"channel": channel_id, "limit": SLACK_PAGE_LIMIT}
        if cursor:
            params["cursor"] = cursor
        data = await self._call("conversations.members", params=params)
        return list(data.get("members", [])), _next_cursor(data)

    async def list_history_page(
        self, channel_id: str, since: datetime, cursor: str | None
    ) -> tuple[list[HistoryMessage], str | None]:
        params: dict[str, Any] = {
            "channel": channel_id,
            "oldest": str(int(since.timestamp())),
            "inclusive": "true",
            "limit": SLACK_PAGE_LIMIT,
        }
        if cursor:
            params["cursor"] = cursor
        data = await self._call("conversations.history", params=params)
        messages = [HistoryMessage.from_api(m) for m in data.get("messages", [])]
        return messages, _next_cursor(data)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def join(self, channel_id: str) -> None:
        data = await self._call("conversations.join", json_data={"channel": channel_id})
        warnings = list(data.get("response_metadata", {}).get("warnings", []))
        if data.get("warning"):
            warnings.append(data["warning"])
        for warning in warnings:
            log.warning("join_warning", channel_id=channel_id, warning=warning)

    async def leave(self, channel_id: str) -> None:
        await self._call("conversations.leave", json_data={"channel": channel_id})

    async def publish_home_view(
        self, user_id: str, view: dict[str, Any], expected_version_token: str = ""
    ) -> None:
        body: dict[str, Any] = {"user_id": user_id, "view": view}
        if expected_version_token:
            body["hash"] = expected_version_token
        await self._call("views.publish", json_data=body)
        log.debug("home_view_published", user_id=user_id, blocks=len(view.get("blocks", [])))

    async def open_modal(self, trigger_id: str, view: dict[str, Any]) -> None:
        await self._call("views.open", json_data={"trigger_id": trigger_id, "view": view})

    async def post_message(self, channel_id: str, text: str) -> None:
        await self._call("chat.postMessage", json_data={"channel": channel_id, "text": text})
        log.info("message_posted", channel_id=channel_id, length=len(text))


def _next_cursor(data: dict[str, Any]) -> str | None:
    cursor = data.get("response_metadata", {}).get("next_cursor")
    return cursor or None


def _retry_after(response: httpx.Response) -> float:
    try:
        return float(response.headers.get("Retry-After", DEFAULT_RETRY_AFTER))
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER
