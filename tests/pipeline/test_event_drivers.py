"""Goal completion and duo invites."""

import pytest
from pydantic import ValidationError

from stepquest.pipeline.context import RunStatus
from stepquest.pipeline.goals import crossed_goal, notify_daily_goal_completed
from stepquest.pipeline.invites import send_invite_notification

# The ctx clock reads 2026-03-10 15:00 in Karachi
DAY = "2026-03-10"


def _snapshot(steps: int, **extra) -> dict:
    return {"fcmToken": "tok-1", "daily_steps": {DAY: steps}, **extra}


def test_crossed_goal():
    assert crossed_goal(9999, 10050, 10000)
    assert crossed_goal(9999, 10000, 10000)
    assert not crossed_goal(10000, 10050, 10000)
    assert not crossed_goal(5000, 9999, 10000)


class TestGoalCompletion:
    @pytest.mark.asyncio
    async def test_crossing_notifies_once(self, ctx, store, gateway) -> None:
        before, after = _snapshot(9999), _snapshot(10050)
        store.docs = {"u1": after}

        first = await notify_daily_goal_completed(ctx, "u1", before, after)
        redelivered = await notify_daily_goal_completed(ctx, "u1", before, after)

        assert first.status is RunStatus.COMMITTED
        assert redelivered.status is RunStatus.SKIPPED
        assert gateway.types_sent() == ["daily_goal_completed"]
        assert store.docs["u1"]["dailyGoalCompletedDate"] == DAY

    @pytest.mark.asyncio
    async def test_later_updates_same_day_do_not_fire(self, ctx, store, gateway) -> None:
        store.docs = {"u1": _snapshot(12000)}
        await notify_daily_goal_completed(ctx, "u1", _snapshot(9000), _snapshot(11000))
        result = await notify_daily_goal_completed(ctx, "u1", _snapshot(11000), _snapshot(12000))

        assert result.status is RunStatus.SKIPPED
        assert len(gateway.sent) == 1

    @pytest.mark.asyncio
    async def test_monthly_goal_override(self, ctx, store, gateway) -> None:
        goals = {"2026-03": {"goalSteps": 5000}}
        store.docs = {"u1": _snapshot(5200, monthlyGoals=goals)}
        result = await notify_daily_goal_completed(
            ctx, "u1", _snapshot(4000, monthlyGoals=goals), _snapshot(5200, monthlyGoals=goals)
        )

        assert result.status is RunStatus.COMMITTED
        assert gateway.sent[0].data["goal"] == 5000

    @pytest.mark.asyncio
    async def test_created_document_counts_from_zero(self, ctx, store, gateway) -> None:
        store.docs = {"u1": _snapshot(10000)}
        result = await notify_daily_goal_completed(ctx, "u1", None, _snapshot(10000))
        assert result.status is RunStatus.COMMITTED

    @pytest.mark.asyncio
    async def test_no_token_no_marker(self, ctx, store, gateway) -> None:
        after = {"daily_steps": {DAY: 10050}}
        store.docs = {"u1": after}
        result = await notify_daily_goal_completed(ctx, "u1", {"daily_steps": {DAY: 9999}}, after)

        assert result.status is RunStatus.SKIPPED
        assert "dailyGoalCompletedDate" not in store.docs["u1"]

    @pytest.mark.asyncio
    async def test_malformed_snapshot_raises(self, ctx, store) -> None:
        with pytest.raises(ValidationError):
            await notify_daily_goal_completed(ctx, "u1", None, {"daily_steps": "lots"})


class TestDuoInvite:
    @pytest.mark.asyncio
    async def test_invite_names_inviter(self, ctx, store, gateway) -> None:
        store.docs = {"from": {"username": "alice"}, "to": {"fcmToken": "tok-to"}}
        result = await send_invite_notification(ctx, "inv-1", "from", "to")

        assert result.status is RunStatus.COMMITTED
        assert gateway.sent[0].body == "alice is inviting you to a Duo Challenge!"
        assert gateway.sent[0].data["inviteId"] == "inv-1"

    @pytest.mark.asyncio
    async def test_unknown_inviter_falls_back(self, ctx, store, gateway) -> None:
        store.docs = {"to": {"fcmToken": "tok-to"}}
        await send_invite_notification(ctx, "inv-2", "ghost", "to")
        assert gateway.sent[0].body.startswith("Someone ")

    @pytest.mark.asyncio
    async def test_recipient_without_token(self, ctx, store, gateway) -> None:
        store.docs = {"from": {"username": "alice"}, "to": {}}
        result = await send_invite_notification(ctx, "inv-3", "from", "to")
        assert result.status is RunStatus.SKIPPED
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_rejected_token_is_cleared(self, ctx, store, gateway) -> None:
        store.docs = {"to": {"fcmToken": "stale"}}
        gateway.invalid_tokens.add("stale")
        result = await send_invite_notification(ctx, "inv-4", "from", "to")
        assert result.pruned == 1
        assert store.docs["to"]["fcmToken"] is None
