"""Channel listing and times-channel selection."""

from __future__ import annotations

from collections.abc import Iterable

from times_news.constants import TIMES_CHANNEL_PREFIX
from times_news.errors import DirectoryUnavailableError
from times_news.logging import get_logger
from times_news.models import Channel
from times_news.slack.client import PlatformClient, SlackAPIError
from times_news.slack.pagination import paginate

log = get_logger("times_news.directory")


class ChannelDirectory:
    """Lists every channel visible to the bot."""

    def __init__(self, client: PlatformClient) -> None:
        self._client = client

    async def list_all_channels(self) -> list[Channel]:
        """Return all channels across every page.

        All-or-nothing: selection downstream depends on a complete listing.

        Raises:
            DirectoryUnavailableError: If any page fails.
        """
        try:
            channels = [c async for c in paginate(self._client.list_channels_page)]
        except SlackAPIError as exc:
            log.error("channel_listing_failed", error=exc.error)
            raise DirectoryUnavailableError(f"failed to list channels: {exc}") from exc

        log.debug("channels_loaded", count=len(channels))
        return channels


def select_by_prefix(
    channels: Iterable[Channel],
    prefix: str = TIMES_CHANNEL_PREFIX,
    exclude_id: str = "",
) -> list[Channel]:
    """Channels whose name starts with ``prefix``, minus ``exclude_id``.

    Used for the workspace-wide digest pass. Input order is kept.
    """
    return [ch for ch in channels if ch.name.startswith(prefix) and ch.id != exclude_id]


def select_by_owner_prefix(
    channels: Iterable[Channel],
    owner_id: str,
    prefix: str = TIMES_CHANNEL_PREFIX,
    exclude_id: str = "",
) -> list[Channel]:
    """Like :func:`select_by_prefix`, restricted to channels created by ``owner_id``."""
    selected = select_by_prefix(channels, prefix, exclude_id)
    return [ch for ch in selected if ch.creator_id == owner_id]
