"""Block Kit builders for the home tab and result modals.

Every block type exposes a ``block_id`` attribute (``None`` when absent) and
``to_dict()``. Code that patches a rendered view relies on nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from times_news.constants import (
    ACTION_APPROVE_WATCHING,
    ACTION_STOP_WATCHING,
    TIMES_CHANNEL_PREFIX,
)
from times_news.models import ChannelProps, WatchState

PLAIN_TEXT = "plain_text"
MARKDOWN = "mrkdwn"

BUTTON_STYLE_PRIMARY = "primary"
BUTTON_STYLE_DANGER = "danger"

APP_TITLE = "Times News :newspaper:"
APP_DESCRIPTION = (
    "Checks everyone's times channels every hour and posts what's new "
    "to the digest channel."
)
NO_CHANNELS_TEXT = (
    "No times channel of yours was found :thinking_face: "
    'Try creating a channel whose name starts with "{prefix}".'
)
CHANNELS_INTRO_TEXT = (
    "These are your times channels. Use the button on the right to change their watch state."
)


def text_object(text: str, *, kind: str = MARKDOWN, emoji: bool = False) -> dict[str, Any]:
    """Build a Block Kit text object."""
    obj: dict[str, Any] = {"type": kind, "text": text}
    if kind == PLAIN_TEXT and emoji:
        obj["emoji"] = True
    return obj


# ------------------------------------------------------------------
# Block variants
# ------------------------------------------------------------------


class Block:
    """Base class for display blocks."""

    block_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass
class ButtonElement:
    """A button accessory carrying an action id and an opaque value."""

    action_id: str
    text: str
    value: str = ""
    style: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": "button",
            "action_id": self.action_id,
            "text": text_object(self.text, kind=PLAIN_TEXT),
            "value": self.value,
        }
        if self.style:
            data["style"] = self.style
        return data


@dataclass
class HeaderBlock(Block):
    text: str
    block_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": "header",
            "text": text_object(self.text, kind=PLAIN_TEXT, emoji=True),
        }
        if self.block_id:
            data["block_id"] = self.block_id
        return data


@dataclass
class SectionBlock(Block):
    text: str
    accessory: ButtonElement | None = None
    block_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": "section", "text": text_object(self.text)}
        if self.block_id:
            data["block_id"] = self.block_id
        if self.accessory is not None:
            data["accessory"] = self.accessory.to_dict()
        return data


@dataclass
class DividerBlock(Block):
    block_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": "divider"}
        if self.block_id:
            data["block_id"] = self.block_id
        return data


@dataclass
class RawBlock(Block):
    """A block received from Slack, passed back verbatim."""

    data: dict[str, Any] = field(default_factory=dict)

    @property  # type: ignore[override]
    def block_id(self) -> str | None:
        value = self.data.get("block_id")
        return value if isinstance(value, str) and value else None

    def to_dict(self) -> dict[str, Any]:
        return dict(self.data)


def block_from_dict(data: dict[str, Any]) -> Block:
    """Wrap an inbound Slack block."""
    return RawBlock(data=dict(data))


# ------------------------------------------------------------------
# Watch toggles
# ------------------------------------------------------------------


def watch_block_id(channel_id: str) -> str:
    """Stable block id for a channel's toggle row."""
    return f"watch_toggle:{channel_id}"


def build_stop_watching_block(props: ChannelProps) -> SectionBlock:
    """Row for a channel that is currently watched."""
    return SectionBlock(
        text=f"#{props.name}: *Watching* :eyes:",
        accessory=ButtonElement(
            action_id=ACTION_STOP_WATCHING,
            text="Stop watching",
            value=props.encode(),
            style=BUTTON_STYLE_DANGER,
        ),
        block_id=watch_block_id(props.id),
    )


def build_approve_watching_block(props: ChannelProps) -> SectionBlock:
    """Row for a channel that is not currently watched."""
    return SectionBlock(
        text=f"#{props.name}: *Not watched* :see_no_evil:",
        accessory=ButtonElement(
            action_id=ACTION_APPROVE_WATCHING,
            text="Allow watching",
            value=props.encode(),
            style=BUTTON_STYLE_PRIMARY,
        ),
        block_id=watch_block_id(props.id),
    )


def build_watch_toggle_blocks(watch_states: list[WatchState]) -> list[Block]:
    blocks: list[Block] = []
    for state in watch_states:
        props = ChannelProps.from_channel(state.channel)
        if state.is_watching:
            blocks.append(build_stop_watching_block(props))
        else:
            blocks.append(build_approve_watching_block(props))
    return blocks


# ------------------------------------------------------------------
# Views
# ------------------------------------------------------------------


def home_view(blocks: list[Block]) -> dict[str, Any]:
    """Wrap blocks in a home tab view payload."""
    return {"type": "home", "blocks": [b.to_dict() for b in blocks]}


def build_home_blocks(
    watch_states: list[WatchState],
    *,
    prefix: str = TIMES_CHANNEL_PREFIX,
) -> list[Block]:
    """Blocks of the home tab: intro, then one toggle row per channel."""
    if watch_states:
        intro = CHANNELS_INTRO_TEXT
    else:
        intro = NO_CHANNELS_TEXT.format(prefix=prefix)

    blocks: list[Block] = [
        HeaderBlock(text=APP_TITLE),
        SectionBlock(text=APP_DESCRIPTION),
        DividerBlock(),
        SectionBlock(text=intro),
    ]
    blocks.extend(build_watch_toggle_blocks(watch_states))
    return blocks


def _modal(title: str, body: str) -> dict[str, Any]:
    return {
        "type": "modal",
        "title": text_object(title, kind=PLAIN_TEXT),
        "close": text_object("Close", kind=PLAIN_TEXT),
        "blocks": [SectionBlock(text=body).to_dict()],
    }


def build_result_modal(action_id: str, props: ChannelProps) -> dict[str, Any]:
    """Modal confirming a successful toggle."""
    if action_id == ACTION_APPROVE_WATCHING:
        body = f"Started watching #{props.name} :eyes:"
    else:
        body = f"Stopped watching #{props.name} :see_no_evil:"
    return _modal("Succeeded!", body)


def build_error_modal(props: ChannelProps | None) -> dict[str, Any]:
    """Modal shown when a toggle failed.

    ``props`` is None when the button value itself could not be decoded.
    """
    if props is None:
        return _modal("Error", "Failed to change the watch state :dizzy_face:")
    return _modal("Error", f"Failed to change the watch state of #{props.name} :dizzy_face:")
