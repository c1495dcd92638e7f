"""Routing of inbound Slack events and interactions.

Each call handles exactly one event and keeps no state between calls:
- url_verification: echo the challenge back as plain text
- app_home_opened: list the user's times channels and publish the home tab
- block_actions: toggle a watch, confirm in a modal, patch the home tab
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from times_news.blocks import (
    build_error_modal,
    build_home_blocks,
    build_result_modal,
    home_view,
)
from times_news.constants import SLACK_HASH_CONFLICT
from times_news.directory import ChannelDirectory, select_by_owner_prefix
from times_news.errors import (
    MalformedReferenceError,
    MutationError,
    TimesNewsError,
    TransportDecodeError,
)
from times_news.logging import get_logger
from times_news.models import ChannelProps, ViewSnapshot
from times_news.slack.client import PlatformClient, SlackAPIError
from times_news.view_diff import replace_block
from times_news.watch import WatchStateController

if TYPE_CHECKING:
    from times_news.config import Settings

log = get_logger("times_news.dispatcher")


class EventKind(Enum):
    """Classification of an inbound event envelope."""

    VERIFICATION = "url_verification"
    HOME_OPENED = "app_home_opened"
    UNRECOGNIZED = "unrecognized"


@dataclass
class DispatchResult:
    """What the HTTP layer should answer."""

    status: int = 200
    body: str = ""
    content_type: str | None = None


@dataclass
class ToggleInteraction:
    """A press of one of the home tab's watch buttons."""

    user_id: str
    trigger_id: str
    view: ViewSnapshot
    block_id: str
    action_id: str
    value: str


def classify_event(envelope: Any) -> EventKind:
    """Classify an Events API envelope.

    Raises:
        TransportDecodeError: If the envelope is not a JSON object.
    """
    if not isinstance(envelope, dict):
        raise TransportDecodeError("event envelope must be a JSON object")

    envelope_type = envelope.get("type")
    if envelope_type == "url_verification":
        return EventKind.VERIFICATION
    if envelope_type == "event_callback":
        inner = envelope.get("event")
        if isinstance(inner, dict) and inner.get("type") == "app_home_opened":
            return EventKind.HOME_OPENED
    return EventKind.UNRECOGNIZED


def parse_interaction(raw_payload: str | None) -> ToggleInteraction | None:
    """Decode the ``payload`` form field of an interaction request.

    Returns None for payloads that carry no block action (they are
    acknowledged and ignored).

    Raises:
        TransportDecodeError: If the payload is missing or not a JSON object.
    """
    if not raw_payload:
        raise TransportDecodeError("interaction payload is missing")
    try:
        payload = json.loads(raw_payload)
    except json.JSONDecodeError as exc:
        raise TransportDecodeError(f"interaction payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise TransportDecodeError("interaction payload must be a JSON object")

    actions = payload.get("actions") or []
    if not actions or not isinstance(actions[0], dict):
        return None
    action = actions[0]

    view = payload.get("view") or {}
    return ToggleInteraction(
        user_id=(payload.get("user") or {}).get("id", ""),
        trigger_id=payload.get("trigger_id", ""),
        view=ViewSnapshot.from_api(view) if isinstance(view, dict) else ViewSnapshot(),
        block_id=action.get("block_id", ""),
        action_id=action.get("action_id", ""),
        value=action.get("value", ""),
    )


class EventDispatcher:
    """Runs the handler for one inbound event."""

    def __init__(self, client: PlatformClient, settings: Settings) -> None:
        self._client = client
        self._digest_channel_id = settings.slack_times_news_channel_id
        self._prefix = settings.times_channel_prefix
        self._directory = ChannelDirectory(client)
        self._watch = WatchStateController(client, settings.slack_bot_user_id)

    # ------------------------------------------------------------------
    # Events API
    # ------------------------------------------------------------------

    async def handle_event(self, envelope: Any) -> DispatchResult:
        kind = classify_event(envelope)

        if kind is EventKind.VERIFICATION:
            challenge = envelope.get("challenge")
            if not isinstance(challenge, str):
                raise TransportDecodeError("url_verification without a challenge")
            return DispatchResult(body=challenge, content_type="text/plain")

        if kind is EventKind.HOME_OPENED:
            user_id = envelope["event"].get("user", "")
            try:
                await self.publish_home(user_id)
            except (TimesNewsError, SlackAPIError) as exc:
                log.error("home_open_failed", user_id=user_id, error=str(exc))
                return DispatchResult(status=500)
            return DispatchResult()

        log.debug("event_ignored", type=envelope.get("type"))
        return DispatchResult()

    async def publish_home(self, user_id: str) -> None:
        """Render the user's times channels with their watch state."""
        log.info("app_home_opened", user_id=user_id)
        channels = await self._directory.list_all_channels()
        times_channels = select_by_owner_prefix(
            channels, user_id, self._prefix, self._digest_channel_id
        )
        states = await self._watch.watch_states(times_channels)
        blocks = build_home_blocks(states, prefix=self._prefix)
        await self._client.publish_home_view(user_id, home_view(blocks))
        log.info("home_view_published", user_id=user_id, channels=len(states))

    # ------------------------------------------------------------------
    # Interactivity
    # ------------------------------------------------------------------

    async def handle_interaction(self, interaction: ToggleInteraction | None) -> DispatchResult:
        """Apply a watch toggle.

        Failures only affect this toggle: the user sees an error modal and
        the rest of the home tab is left as it was.
        """
        if interaction is None:
            return DispatchResult()

        log.info(
            "toggle_requested",
            user_id=interaction.user_id,
            block_id=interaction.block_id,
            action_id=interaction.action_id,
            value=interaction.value,
        )

        props: ChannelProps | None = None
        try:
            props = ChannelProps.decode(interaction.value)
            new_block = await self._watch.toggle(interaction.action_id, props)
        except (MalformedReferenceError, MutationError) as exc:
            log.error(
                "watch_toggle_failed",
                action_id=interaction.action_id,
                channel_id=props.id if props else None,
                channel_name=props.name if props else None,
                error=str(exc),
            )
            await self._open_modal(interaction.trigger_id, build_error_modal(props))
            return DispatchResult()

        await self._open_modal(
            interaction.trigger_id, build_result_modal(interaction.action_id, props)
        )

        blocks = replace_block(interaction.view.blocks, interaction.block_id, new_block)
        try:
            await self._client.publish_home_view(
                interaction.user_id, home_view(blocks), interaction.view.version_token
            )
        except SlackAPIError as exc:
            if exc.error == SLACK_HASH_CONFLICT:
                # Another update landed first; the next home open re-renders.
                log.warning("home_view_stale", user_id=interaction.user_id, channel_id=props.id)
            else:
                log.error(
                    "home_view_update_failed",
                    user_id=interaction.user_id,
                    channel_id=props.id,
                    error=exc.error,
                )
        return DispatchResult()

    async def _open_modal(self, trigger_id: str, view: dict[str, Any]) -> None:
        try:
            await self._client.open_modal(trigger_id, view)
        except SlackAPIError as exc:
            log.error("modal_open_failed", error=exc.error)
