"""Tests for event and interaction dispatch."""

from __future__ import annotations

import json

import pytest

from times_news.blocks import build_approve_watching_block, watch_block_id
from times_news.constants import ACTION_APPROVE_WATCHING, ACTION_STOP_WATCHING
from times_news.dispatcher import (
    EventDispatcher,
    EventKind,
    ToggleInteraction,
    classify_event,
    parse_interaction,
)
from times_news.errors import TransportDecodeError
from times_news.models import Channel, ChannelProps, ViewSnapshot
from times_news.slack.client import SlackAPIError

OWNER_ID = "UOWNER"
PROPS = ChannelProps("CA", "times-a")


def home_event(user_id: str = OWNER_ID) -> dict:
    return {
        "type": "event_callback",
        "event": {"type": "app_home_opened", "user": user_id, "tab": "home"},
    }


def rendered_view() -> ViewSnapshot:
    """Home tab as Slack sends it back: a header row and one toggle row."""
    return ViewSnapshot.from_api(
        {
            "id": "V1",
            "hash": "1700000000.abc",
            "blocks": [
                {"type": "header", "block_id": "hdr", "text": {"type": "plain_text", "text": "h"}},
                build_approve_watching_block(PROPS).to_dict(),
            ],
        }
    )


def toggle(action_id: str = ACTION_APPROVE_WATCHING, value: str = "CA|times-a"):
    return ToggleInteraction(
        user_id=OWNER_ID,
        trigger_id="trig-1",
        view=rendered_view(),
        block_id=watch_block_id("CA"),
        action_id=action_id,
        value=value,
    )


@pytest.fixture
def dispatcher(mock_client, settings):
    return EventDispatcher(mock_client, settings)


class TestClassifyEvent:
    def test_verification(self):
        assert classify_event({"type": "url_verification", "challenge": "c"}) is (
            EventKind.VERIFICATION
        )

    def test_home_opened(self):
        assert classify_event(home_event()) is EventKind.HOME_OPENED

    @pytest.mark.parametrize(
        "envelope",
        [
            {},
            {"type": "event_callback"},
            {"type": "event_callback", "event": {"type": "message"}},
            {"type": "event_callback", "event": "app_home_opened"},
            {"type": "app_rate_limited"},
        ],
    )
    def test_unrecognized(self, envelope):
        assert classify_event(envelope) is EventKind.UNRECOGNIZED

    @pytest.mark.parametrize("envelope", [None, [], "url_verification", 3])
    def test_non_object_rejected(self, envelope):
        with pytest.raises(TransportDecodeError):
            classify_event(envelope)


class TestParseInteraction:
    def test_block_action(self):
        payload = {
            "type": "block_actions",
            "user": {"id": OWNER_ID},
            "trigger_id": "trig-1",
            "view": {"id": "V1", "hash": "h1", "blocks": [{"type": "divider"}]},
            "actions": [
                {
                    "block_id": "watch_toggle:CA",
                    "action_id": ACTION_STOP_WATCHING,
                    "value": "CA|times-a",
                }
            ],
        }

        interaction = parse_interaction(json.dumps(payload))

        assert interaction.user_id == OWNER_ID
        assert interaction.trigger_id == "trig-1"
        assert interaction.block_id == "watch_toggle:CA"
        assert interaction.action_id == ACTION_STOP_WATCHING
        assert interaction.value == "CA|times-a"
        assert interaction.view.version_token == "h1"
        assert len(interaction.view.blocks) == 1

    def test_no_actions_is_ignored(self):
        assert parse_interaction(json.dumps({"type": "view_submission"})) is None

    @pytest.mark.parametrize("raw", [None, "", "{not json", "[1, 2]"])
    def test_malformed(self, raw):
        with pytest.raises(TransportDecodeError):
            parse_interaction(raw)


class TestHandleEvent:
    async def test_verification_echoes_challenge(self, dispatcher, mock_client):
        result = await dispatcher.handle_event({"type": "url_verification", "challenge": "abc123"})

        assert result.status == 200
        assert result.body == "abc123"
        assert result.content_type == "text/plain"
        mock_client.list_channels_page.assert_not_awaited()

    async def test_verification_without_challenge(self, dispatcher):
        with pytest.raises(TransportDecodeError):
            await dispatcher.handle_event({"type": "url_verification"})

    async def test_unrecognized_is_acknowledged(self, dispatcher, mock_client):
        result = await dispatcher.handle_event({"type": "event_callback", "event": {}})
        assert result.status == 200
        mock_client.list_channels_page.assert_not_awaited()

    async def test_home_opened_lists_only_own_times_channels(self, dispatcher, mock_client):
        mock_client.list_channels_page.return_value = (
            [
                Channel("CA", "times-a", OWNER_ID),
                Channel("CB", "times-b", "USOMEONE"),
                Channel("CG", "general", OWNER_ID),
            ],
            None,
        )
        mock_client.list_members_page.return_value = ([OWNER_ID], None)

        result = await dispatcher.handle_event(home_event())

        assert result.status == 200
        mock_client.list_members_page.assert_awaited_once_with("CA", None)
        user_id, view = mock_client.publish_home_view.await_args.args
        assert user_id == OWNER_ID
        assert view["type"] == "home"
        rows = [b for b in view["blocks"] if b.get("accessory")]
        assert len(rows) == 1
        assert rows[0]["block_id"] == watch_block_id("CA")
        assert rows[0]["accessory"]["action_id"] == ACTION_APPROVE_WATCHING
        assert rows[0]["accessory"]["value"] == "CA|times-a"

    async def test_home_opened_watched_channel_offers_stop(self, dispatcher, mock_client):
        mock_client.list_channels_page.return_value = (
            [Channel("CA", "times-a", OWNER_ID)],
            None,
        )
        mock_client.list_members_page.return_value = ([OWNER_ID, "UBOT"], None)

        await dispatcher.handle_event(home_event())

        _, view = mock_client.publish_home_view.await_args.args
        rows = [b for b in view["blocks"] if b.get("accessory")]
        assert rows[0]["accessory"]["action_id"] == ACTION_STOP_WATCHING

    async def test_home_opened_without_channels(self, dispatcher, mock_client):
        result = await dispatcher.handle_event(home_event())

        assert result.status == 200
        _, view = mock_client.publish_home_view.await_args.args
        assert not [b for b in view["blocks"] if b.get("accessory")]

    async def test_home_opened_listing_failure(self, dispatcher, mock_client):
        mock_client.list_channels_page.side_effect = SlackAPIError(
            "conversations.list", "invalid_auth"
        )

        result = await dispatcher.handle_event(home_event())

        assert result.status == 500
        mock_client.publish_home_view.assert_not_awaited()

    async def test_home_opened_membership_failure(self, dispatcher, mock_client):
        mock_client.list_channels_page.return_value = (
            [Channel("CA", "times-a", OWNER_ID)],
            None,
        )
        mock_client.list_members_page.side_effect = SlackAPIError(
            "conversations.members", "internal_error"
        )

        result = await dispatcher.handle_event(home_event())

        assert result.status == 500
        mock_client.publish_home_view.assert_not_awaited()

    async def test_home_publish_failure(self, dispatcher, mock_client):
        mock_client.publish_home_view.side_effect = SlackAPIError("views.publish", "invalid_blocks")
        result = await dispatcher.handle_event(home_event())
        assert result.status == 500


class TestHandleInteraction:
    async def test_none_is_acknowledged(self, dispatcher, mock_client):
        result = await dispatcher.handle_interaction(None)
        assert result.status == 200
        mock_client.join.assert_not_awaited()

    async def test_start_watching(self, dispatcher, mock_client):
        result = await dispatcher.handle_interaction(toggle())

        assert result.status == 200
        mock_client.join.assert_awaited_once_with("CA")

        trigger_id, modal = mock_client.open_modal.await_args.args
        assert trigger_id == "trig-1"
        assert modal["title"]["text"] == "Succeeded!"

        user_id, view, token = mock_client.publish_home_view.await_args.args
        assert user_id == OWNER_ID
        assert token == "1700000000.abc"
        assert view["blocks"][0]["block_id"] == "hdr"
        assert view["blocks"][1]["block_id"] == watch_block_id("CA")
        assert view["blocks"][1]["accessory"]["action_id"] == ACTION_STOP_WATCHING

    async def test_stop_watching(self, dispatcher, mock_client):
        await dispatcher.handle_interaction(toggle(action_id=ACTION_STOP_WATCHING))

        mock_client.leave.assert_awaited_once_with("CA")
        _, view, _ = mock_client.publish_home_view.await_args.args
        assert view["blocks"][1]["accessory"]["action_id"] == ACTION_APPROVE_WATCHING

    async def test_join_failure_shows_error(self, dispatcher, mock_client):
        mock_client.join.side_effect = SlackAPIError("conversations.join", "is_archived")

        result = await dispatcher.handle_interaction(toggle())

        assert result.status == 200
        _, modal = mock_client.open_modal.await_args.args
        assert modal["title"]["text"] == "Error"
        assert "#times-a" in modal["blocks"][0]["text"]["text"]
        mock_client.publish_home_view.assert_not_awaited()

    async def test_unknown_action_shows_error(self, dispatcher, mock_client):
        result = await dispatcher.handle_interaction(toggle(action_id="explode"))

        assert result.status == 200
        _, modal = mock_client.open_modal.await_args.args
        assert modal["title"]["text"] == "Error"
        mock_client.join.assert_not_awaited()
        mock_client.publish_home_view.assert_not_awaited()

    async def test_malformed_value_shows_error(self, dispatcher, mock_client):
        result = await dispatcher.handle_interaction(toggle(value="no-separator"))

        assert result.status == 200
        _, modal = mock_client.open_modal.await_args.args
        assert modal["title"]["text"] == "Error"
        mock_client.join.assert_not_awaited()

    async def test_stale_view_is_not_fatal(self, dispatcher, mock_client):
        mock_client.publish_home_view.side_effect = SlackAPIError("views.publish", "hash_conflict")
        result = await dispatcher.handle_interaction(toggle())
        assert result.status == 200
        mock_client.join.assert_awaited_once_with("CA")

    async def test_modal_failure_still_patches_home(self, dispatcher, mock_client):
        mock_client.open_modal.side_effect = SlackAPIError("views.open", "expired_trigger_id")

        result = await dispatcher.handle_interaction(toggle())

        assert result.status == 200
        mock_client.publish_home_view.assert_awaited_once()
