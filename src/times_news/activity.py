"""Post activity aggregation and the hourly digest.

Counts ordinary user posts per times channel over a trailing window and
posts a summary to the digest channel. Channels the bot has not joined are
skipped; any other read failure aborts the run, since a digest built on
partial data is worse than no digest.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from times_news.constants import SLACK_NOT_IN_CHANNEL
from times_news.directory import ChannelDirectory, select_by_prefix
from times_news.errors import HistoryFetchError, NotMemberError, TimesNewsError
from times_news.logging import get_logger
from times_news.models import Channel, HistoryMessage, TimesActivity
from times_news.slack.client import PlatformClient, SlackAPIError
from times_news.slack.pagination import paginate

if TYPE_CHECKING:
    from times_news.config import Settings

log = get_logger("times_news.activity")


class ActivityAggregator:
    """Counts recent posts in a set of channels."""

    def __init__(self, client: PlatformClient) -> None:
        self._client = client

    async def count_posts_after(self, channel_id: str, since: datetime) -> int:
        """Count user posts in ``channel_id`` from ``since`` (inclusive) onwards.

        Raises:
            NotMemberError: If the bot is not in the channel (it is unwatched).
            HistoryFetchError: On any other history failure.
        """

        async def fetch(cursor: str | None) -> tuple[list[HistoryMessage], str | None]:
            return await self._client.list_history_page(channel_id, since, cursor)

        count = 0
        try:
            async for message in paginate(fetch):
                if message.is_user_post:
                    count += 1
        except SlackAPIError as exc:
            if exc.error == SLACK_NOT_IN_CHANNEL:
                raise NotMemberError(
                    f"not a member of channel {channel_id}", channel_id=channel_id
                ) from exc
            raise HistoryFetchError(
                f"failed to fetch history of channel {channel_id}: {exc}",
                channel_id=channel_id,
            ) from exc
        return count

    async def aggregate(self, channels: list[Channel], since: datetime) -> list[TimesActivity]:
        """Post counts for channels with at least one post, quietest first.

        Raises:
            HistoryFetchError: On the first channel whose history cannot be read.
        """
        activities: list[TimesActivity] = []
        for channel in channels:
            try:
                post_count = await self.count_posts_after(channel.id, since)
            except NotMemberError:
                log.info(
                    "unwatched_channel_skipped", channel_id=channel.id, channel_name=channel.name
                )
                continue
            except HistoryFetchError as exc:
                exc.channel_name = channel.name
                log.error(
                    "history_fetch_failed",
                    channel_id=channel.id,
                    channel_name=channel.name,
                    error=str(exc),
                )
                raise

            if post_count == 0:
                log.debug("no_recent_posts", channel_id=channel.id, channel_name=channel.name)
                continue
            activities.append(TimesActivity(channel_id=channel.id, post_count=post_count))

        # sorted() is stable, so equal counts keep their listing order
        return sorted(activities, key=lambda a: a.post_count)


def describe_window(window: timedelta) -> str:
    """Human wording for the digest window ("hour", "30 minutes", "2 hours")."""
    minutes = int(window.total_seconds() // 60)
    if minutes == 60:
        return "hour"
    if minutes % 60 == 0:
        return f"{minutes // 60} hours"
    return f"{minutes} minutes"


def render_digest(
    activities: list[TimesActivity],
    window: timedelta = timedelta(hours=1),
) -> str | None:
    """Format the digest message, or ``None`` when there is nothing to report."""
    if not activities:
        return None

    lines = [f"Times posts in the last {describe_window(window)}:"]
    for activity in activities:
        unit = "post" if activity.post_count == 1 else "posts"
        lines.append(f"• <#{activity.channel_id}>: *{activity.post_count} {unit}*")
    return "\n".join(lines) + "\n"


# ------------------------------------------------------------------
# Scheduled collection
# ------------------------------------------------------------------


class CollectStatus(str):
    """Outcomes of a collection run."""

    POSTED = "posted"
    EMPTY = "empty"
    ABORTED = "aborted"


@dataclass
class CollectResult:
    """Outcome of one digest run."""

    status: str
    activities: list[TimesActivity] = field(default_factory=list)
    message: str | None = None
    error: str | None = None
    channels_scanned: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "activities": [a.to_dict() for a in self.activities],
            "channels_scanned": self.channels_scanned,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


class DigestRunner:
    """One pass of the scheduled digest: list, count, post."""

    def __init__(self, client: PlatformClient, settings: Settings) -> None:
        self._client = client
        self._digest_channel_id = settings.slack_times_news_channel_id
        self._prefix = settings.times_channel_prefix
        self._window = timedelta(minutes=settings.activity_window_minutes)
        self._directory = ChannelDirectory(client)
        self._aggregator = ActivityAggregator(client)

    async def run(self, now: datetime | None = None) -> CollectResult:
        """Run the digest.

        Failures are logged and reported in the result rather than raised;
        a scheduled trigger has nobody waiting on it. Every outcome ends with
        one ``collect_finished`` log line carrying the status, the number of
        times channels scanned and the elapsed time.
        """
        now = now or datetime.now().astimezone()
        since = now - self._window
        log.info("collect_started", now=now.isoformat(), since=since.isoformat())

        started = time.perf_counter()
        result = await self._collect(since)
        result.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        log.info(
            "collect_finished",
            status=result.status,
            channels_scanned=result.channels_scanned,
            active_channels=len(result.activities),
            duration_ms=result.duration_ms,
        )
        return result

    async def _collect(self, since: datetime) -> CollectResult:
        scanned = 0
        try:
            channels = await self._directory.list_all_channels()
            times_channels = select_by_prefix(channels, self._prefix, self._digest_channel_id)
            scanned = len(times_channels)
            activities = await self._aggregator.aggregate(times_channels, since)
        except TimesNewsError as exc:
            log.error("collect_aborted", error=str(exc))
            return CollectResult(
                status=CollectStatus.ABORTED, error=str(exc), channels_scanned=scanned
            )

        message = render_digest(activities, self._window)
        if message is None:
            log.info("no_times_posts", window_minutes=int(self._window.total_seconds() // 60))
            return CollectResult(status=CollectStatus.EMPTY, channels_scanned=scanned)

        log.info("times_stats", stats=[a.to_dict() for a in activities])
        try:
            await self._client.post_message(self._digest_channel_id, message)
        except SlackAPIError as exc:
            log.error("digest_post_failed", channel_id=self._digest_channel_id, error=exc.error)
            return CollectResult(
                status=CollectStatus.ABORTED,
                activities=activities,
                error=str(exc),
                channels_scanned=scanned,
            )

        return CollectResult(
            status=CollectStatus.POSTED,
            activities=activities,
            message=message,
            channels_scanned=scanned,
        )
