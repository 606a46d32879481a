"""Tests for the check-in notification dispatcher."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from paddock.core.notifications import NotificationDispatcher, build_notification_text
from paddock.models.checkin import EventSummary, TransitionKind
from paddock.models.teams import CONSTRUCTORS, Constructor

SUMMARY = EventSummary(season=3, round=7, track="Monza")


@pytest.fixture
def sender() -> AsyncMock:
    return AsyncMock(return_value="msg-1")


@pytest.fixture
def dispatcher(engine: AsyncEngine, sender: AsyncMock) -> NotificationDispatcher:
    return NotificationDispatcher(engine, sender)


class TestBuildNotificationText:
    def test_checked_in(self):
        text = build_notification_text(
            "Lewis", Constructor.MERCEDES, TransitionKind.CHECKED_IN, SUMMARY, 1700000000
        )
        emoji = CONSTRUCTORS[Constructor.MERCEDES].emoji
        assert text == (
            f"✅ **Lewis** checked-in to {emoji} for Season 3, Round 7 at Monza <t:1700000000:R>"
        )

    def test_checked_out_and_updated_status_markers(self):
        out = build_notification_text(
            "Lewis", Constructor.DECLINE, TransitionKind.CHECKED_OUT, SUMMARY, 1
        )
        updated = build_notification_text(
            "Lewis", Constructor.DECLINE, TransitionKind.UPDATED_STATUS, SUMMARY, 1
        )
        assert out.startswith("❌ **Lewis** checked-out")
        assert updated.startswith("\U0001f504 **Lewis** updated-status")


class TestNotify:
    async def test_no_channel_is_silent(
        self, dispatcher: NotificationDispatcher, sender: AsyncMock
    ):
        result = await dispatcher.notify(
            "g1", "u1", "Lewis", Constructor.MERCEDES, TransitionKind.CHECKED_IN, SUMMARY
        )
        assert result is None
        sender.assert_not_awaited()

    async def test_sends_once_to_configured_channel(
        self, dispatcher: NotificationDispatcher, sender: AsyncMock
    ):
        await dispatcher.set_channel("g1", "c9")
        result = await dispatcher.notify(
            "g1",
            "u1",
            "Lewis",
            Constructor.MERCEDES,
            TransitionKind.CHECKED_IN,
            SUMMARY,
            "1001",
            timestamp=42,
        )
        sender.assert_awaited_once()
        channel_id, content = sender.await_args.args
        assert channel_id == "c9"
        assert content == result
        assert content.endswith("<t:42:R>")

    async def test_send_failure_is_swallowed(
        self, dispatcher: NotificationDispatcher, sender: AsyncMock
    ):
        await dispatcher.set_channel("g1", "c9")
        sender.side_effect = RuntimeError("discord down")
        result = await dispatcher.notify(
            "g1", "u1", "Lewis", Constructor.FERRARI, TransitionKind.CHECKED_OUT, SUMMARY
        )
        assert result is None

    async def test_channel_is_per_guild(self, dispatcher: NotificationDispatcher):
        await dispatcher.set_channel("g1", "c1")
        assert await dispatcher.get_channel("g1") == "c1"
        assert await dispatcher.get_channel("g2") is None
