"""Tests for bot/member_events.py and the delivery helpers in bot/helpers.py."""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from bot.helpers import DiscordMessenger, render_message, send_private, send_to_channel
from bot.member_events import (
    COOLDOWN_KINDS,
    MemberEvent,
    MemberEventKind,
    from_discord_member,
    is_reconnect,
    is_room_switch,
)


def make_member(user_id: int = 42, display_name: str = "Alice", system_channel_id=100) -> MagicMock:
    member = MagicMock()
    member.id = user_id
    member.name = "alice"
    member.display_name = display_name
    member.guild.id = 1
    member.guild.system_channel.id = system_channel_id
    return member


def http_response(status: int) -> MagicMock:
    return MagicMock(status=status, reason="error")


# ========================================================================
# EVENT KINDS
# ========================================================================


class TestMemberEventKind:

    @pytest.mark.parametrize("text", ["add", "ADD", "  Add "])
    def test_parse_case_insensitive(self, text) -> None:
        assert MemberEventKind.parse(text) is MemberEventKind.ADD

    @pytest.mark.parametrize("text", ["join", "", None])
    def test_parse_unknown(self, text) -> None:
        with pytest.raises(ValueError, match="Unknown member event"):
            MemberEventKind.parse(text)

    def test_switch_room_has_no_cooldown(self) -> None:
        assert MemberEventKind.SWITCH_ROOM not in COOLDOWN_KINDS
        assert len(COOLDOWN_KINDS) == 3


class TestMemberEvent:

    def test_is_self(self) -> None:
        assert MemberEvent(MemberEventKind.ADD, "1", "bot", self_id="1").is_self
        assert not MemberEvent(MemberEventKind.ADD, "2", "bob", self_id="1").is_self
        assert not MemberEvent(MemberEventKind.ADD, "2", "bob").is_self

    def test_is_guest(self) -> None:
        assert MemberEvent(MemberEventKind.ADD, "Xa1", "guest").is_guest
        assert not MemberEvent(MemberEventKind.ADD, "a1", "user").is_guest

    def test_with_content_copies(self) -> None:
        event = MemberEvent(MemberEventKind.REMOVE, "1", "bob", content="remove")
        changed = event.with_content("leave room public")

        assert changed.content == "leave room public"
        assert event.content == "remove"
        assert changed.user_id == "1"


# ========================================================================
# DISCORD ADAPTERS
# ========================================================================


class TestFromDiscordMember:

    def test_builds_event(self) -> None:
        event = from_discord_member(MemberEventKind.ADD, make_member(), self_id=999)

        assert event == MemberEvent(
            kind=MemberEventKind.ADD,
            user_id="42",
            username="Alice",
            guild_id=1,
            channel_id=100,
            platform="discord",
            self_id="999",
            content="add",
        )

    def test_channel_override(self) -> None:
        event = from_discord_member(
            MemberEventKind.REMOVE, make_member(), self_id=None, channel_override=555
        )
        assert event.channel_id == 555
        assert event.self_id is None

    def test_falls_back_to_name(self) -> None:
        event = from_discord_member(MemberEventKind.ADD, make_member(display_name=""), self_id=1)
        assert event.username == "alice"

    def test_plain_user_without_guild(self) -> None:
        user = MagicMock(spec=["id", "name"])
        user.id = 7
        user.name = "bob"

        event = from_discord_member(MemberEventKind.REMOVE, user, self_id=1)

        assert event.username == "bob"
        assert event.guild_id is None
        assert event.channel_id is None


class TestStateChanges:

    @pytest.mark.parametrize(
        "before, after, expected",
        [
            (discord.Status.offline, discord.Status.online, True),
            (discord.Status.offline, discord.Status.idle, True),
            (discord.Status.online, discord.Status.offline, False),
            (discord.Status.online, discord.Status.idle, False),
            (discord.Status.offline, discord.Status.offline, False),
        ],
    )
    def test_is_reconnect(self, before, after, expected) -> None:
        assert is_reconnect(MagicMock(status=before), MagicMock(status=after)) is expected

    def test_is_room_switch(self) -> None:
        a = MagicMock(id=1)
        b = MagicMock(id=2)

        assert is_room_switch(MagicMock(channel=a), MagicMock(channel=b)) is True
        assert is_room_switch(MagicMock(channel=a), MagicMock(channel=a)) is False
        assert is_room_switch(MagicMock(channel=None), MagicMock(channel=b)) is False
        assert is_room_switch(MagicMock(channel=a), MagicMock(channel=None)) is False


# ========================================================================
# HELPERS
# ========================================================================


class TestRenderMessage:

    def test_replaces_every_placeholder(self) -> None:
        assert render_message("(@) hi (@)", 5) == "<@5> hi <@5>"

    def test_without_placeholder(self) -> None:
        assert render_message("hello", 5) == "hello"


class TestSendToChannel:

    @pytest.mark.asyncio
    async def test_cached_channel(self) -> None:
        channel = MagicMock(spec=discord.TextChannel)
        channel.send = AsyncMock()
        bot = MagicMock()
        bot.get_channel.return_value = channel

        assert await send_to_channel(bot, 100, "hi") is True
        channel.send.assert_awaited_once_with("hi")

    @pytest.mark.asyncio
    async def test_fetches_uncached_channel(self) -> None:
        channel = MagicMock(spec=discord.TextChannel)
        channel.send = AsyncMock()
        bot = MagicMock()
        bot.get_channel.return_value = None
        bot.fetch_channel = AsyncMock(return_value=channel)

        assert await send_to_channel(bot, 100, "hi") is True
        bot.fetch_channel.assert_awaited_once_with(100)

    @pytest.mark.asyncio
    async def test_no_channel_id(self) -> None:
        bot = MagicMock()
        assert await send_to_channel(bot, None, "hi") is False
        bot.get_channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_messageable(self) -> None:
        bot = MagicMock()
        bot.get_channel.return_value = MagicMock(spec=discord.CategoryChannel)

        assert await send_to_channel(bot, 100, "hi") is False

    @pytest.mark.asyncio
    async def test_forbidden(self) -> None:
        channel = MagicMock(spec=discord.TextChannel)
        channel.send = AsyncMock(side_effect=discord.Forbidden(http_response(403), "nope"))
        bot = MagicMock()
        bot.get_channel.return_value = channel

        assert await send_to_channel(bot, 100, "hi") is False


class TestSendPrivate:

    @pytest.mark.asyncio
    async def test_sends_dm(self) -> None:
        user = MagicMock()
        user.send = AsyncMock()
        bot = MagicMock()
        bot.get_user.return_value = user

        assert await send_private(bot, "42", "psst") is True
        bot.get_user.assert_called_once_with(42)
        user.send.assert_awaited_once_with("psst")

    @pytest.mark.asyncio
    async def test_dm_closed(self) -> None:
        user = MagicMock()
        user.send = AsyncMock(side_effect=discord.Forbidden(http_response(403), "closed"))
        bot = MagicMock()
        bot.get_user.return_value = None
        bot.fetch_user = AsyncMock(return_value=user)

        assert await send_private(bot, 42, "psst") is False

    @pytest.mark.asyncio
    async def test_messenger_delegates(self) -> None:
        channel = MagicMock(spec=discord.TextChannel)
        channel.send = AsyncMock()
        bot = MagicMock()
        bot.get_channel.return_value = channel

        assert await DiscordMessenger(bot).send_channel(100, "hi") is True
