"""Data models for channels, watch state, and digest activity.

All models are plain dataclasses built fresh for each request or trigger;
nothing here is cached or persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from times_news.constants import CHANNEL_PROPS_SEPARATOR
from times_news.errors import MalformedReferenceError

if TYPE_CHECKING:
    from times_news.blocks import Block


@dataclass(frozen=True)
class Channel:
    """A Slack channel as returned by conversations.list."""

    id: str
    name: str
    creator_id: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Channel:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            creator_id=data.get("creator", ""),
        )


@dataclass(frozen=True)
class ChannelProps:
    """Channel reference round-tripped through a button's value.

    Encoded as ``id|name``. Decoding splits on the first separator only,
    so the name may itself contain ``|``.
    """

    id: str
    name: str

    @classmethod
    def from_channel(cls, channel: Channel) -> ChannelProps:
        return cls(id=channel.id, name=channel.name)

    def encode(self) -> str:
        return f"{self.id}{CHANNEL_PROPS_SEPARATOR}{self.name}"

    @classmethod
    def decode(cls, value: str) -> ChannelProps:
        """Parse an encoded reference.

        Raises:
            MalformedReferenceError: If the value has no separator.
        """
        channel_id, sep, name = value.partition(CHANNEL_PROPS_SEPARATOR)
        if not sep:
            raise MalformedReferenceError(f"can't be parsed as a channel reference: {value!r}")
        return cls(id=channel_id, name=name)

    def __str__(self) -> str:
        return self.encode()


@dataclass(frozen=True)
class WatchState:
    """Whether the watcher is currently a member of a channel."""

    channel: Channel
    is_watching: bool


@dataclass(frozen=True)
class TimesActivity:
    """Number of user posts in a channel over the digest window."""

    channel_id: str
    post_count: int

    def __post_init__(self) -> None:
        if self.post_count < 0:
            raise ValueError("post_count must be >= 0")

    def to_dict(self) -> dict[str, Any]:
        return {"channel_id": self.channel_id, "post_count": self.post_count}


@dataclass(frozen=True)
class HistoryMessage:
    """The parts of a conversations.history message the digest looks at."""

    type: str
    subtype: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> HistoryMessage:
        return cls(type=data.get("type", ""), subtype=data.get("subtype") or "")

    @property
    def is_user_post(self) -> bool:
        """Ordinary posts have no subtype (joins, leaves, edits all do)."""
        return self.type == "message" and not self.subtype


@dataclass
class ViewSnapshot:
    """The home tab as the user saw it when they pressed a button."""

    blocks: list[Block] = field(default_factory=list)
    version_token: str = ""
    view_id: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ViewSnapshot:
        from times_news.blocks import block_from_dict

        return cls(
            blocks=[block_from_dict(b) for b in data.get("blocks", [])],
            version_token=data.get("hash", ""),
            view_id=data.get("id", ""),
        )
