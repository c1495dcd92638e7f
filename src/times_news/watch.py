"""Watch state: the bot's membership in a channel.

A channel is "watched" when the bot user is a member of it. Starting or
stopping a watch joins or leaves the channel; the platform treats repeated
joins and leaves as no-ops, so nothing here tracks prior state.
"""

from __future__ import annotations

from contextlib import aclosing

from times_news.blocks import (
    SectionBlock,
    build_approve_watching_block,
    build_stop_watching_block,
)
from times_news.constants import ACTION_APPROVE_WATCHING, ACTION_STOP_WATCHING
from times_news.errors import (
    JoinFailedError,
    LeaveFailedError,
    MembershipQueryError,
    UnknownActionError,
)
from times_news.logging import get_logger
from times_news.models import Channel, ChannelProps, WatchState
from times_news.slack.client import PlatformClient, SlackAPIError
from times_news.slack.pagination import paginate

log = get_logger("times_news.watch")


class WatchStateController:
    """Reads and changes whether the watcher is in a channel."""

    def __init__(self, client: PlatformClient, watcher_id: str) -> None:
        """Initialize the controller.

        Args:
            client: Platform client used for membership calls.
            watcher_id: User ID whose membership marks a channel as watched.
        """
        self._client = client
        self._watcher_id = watcher_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def is_watching(self, channel: Channel) -> bool:
        """Check whether the watcher is a member of ``channel``.

        Raises:
            MembershipQueryError: If any membership page fails. No best-effort
                answer is given since a false "not watched" would mislead the user.
        """

        async def fetch(cursor: str | None) -> tuple[list[str], str | None]:
            return await self._client.list_members_page(channel.id, cursor)

        try:
            async with aclosing(paginate(fetch)) as members:
                async for member_id in members:
                    if member_id == self._watcher_id:
                        return True
        except SlackAPIError as exc:
            log.error(
                "membership_query_failed",
                channel_id=channel.id,
                channel_name=channel.name,
                error=exc.error,
            )
            raise MembershipQueryError(
                f"failed to list members of #{channel.name}: {exc}",
                channel_id=channel.id,
                channel_name=channel.name,
            ) from exc
        return False

    async def watch_states(self, channels: list[Channel]) -> list[WatchState]:
        """Watch state of each channel, in input order."""
        states: list[WatchState] = []
        for channel in channels:
            states.append(WatchState(channel=channel, is_watching=await self.is_watching(channel)))
        return states

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def start_watching(self, props: ChannelProps) -> SectionBlock:
        """Join the channel and return the row offering to stop watching.

        Raises:
            JoinFailedError: If the join call fails; membership may be unchanged.
        """
        try:
            await self._client.join(props.id)
        except SlackAPIError as exc:
            raise JoinFailedError(
                f"failed to join #{props.name}: {exc}",
                channel_id=props.id,
                channel_name=props.name,
            ) from exc
        log.info("watch_started", channel_id=props.id, channel_name=props.name)
        return build_stop_watching_block(props)

    async def stop_watching(self, props: ChannelProps) -> SectionBlock:
        """Leave the channel and return the row offering to start watching.

        Raises:
            LeaveFailedError: If the leave call fails.
        """
        try:
            await self._client.leave(props.id)
        except SlackAPIError as exc:
            raise LeaveFailedError(
                f"failed to leave #{props.name}: {exc}",
                channel_id=props.id,
                channel_name=props.name,
            ) from exc
        log.info("watch_stopped", channel_id=props.id, channel_name=props.name)
        return build_approve_watching_block(props)

    async def toggle(self, action_id: str, props: ChannelProps) -> SectionBlock:
        """Apply the toggle named by a button's action id."""
        if action_id == ACTION_APPROVE_WATCHING:
            return await self.start_watching(props)
        if action_id == ACTION_STOP_WATCHING:
            return await self.stop_watching(props)
        raise UnknownActionError(
            f"invalid action id: {action_id}",
            channel_id=props.id,
            channel_name=props.name,
        )
