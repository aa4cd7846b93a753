"""Admin endpoints and the maintenance operations behind them."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_list_jobs(client: AsyncClient) -> None:
    response = await client.get("/api/v1/admin/jobs")
    assert "distribute_daily_rewards" in response.json()["jobs"]


@pytest.mark.asyncio
async def test_unknown_job(client: AsyncClient) -> None:
    response = await client.post("/api/v1/admin/jobs/send_weekly_digest")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_trigger_daily_rewards(client: AsyncClient, store) -> None:
    # The context clock reads 2026-03-10, so yesterday is settled
    store.docs = {"a": {"daily_steps": {"2026-03-09": 900}, "coins": 1}}
    response = await client.post("/api/v1/admin/jobs/distribute_daily_rewards")
    body = response.json()
    assert body["status"] == "committed"
    assert body["period_key"] == "2026-03-09"
    assert store.docs["a"]["coins"] == 101

    again = await client.post("/api/v1/admin/jobs/distribute_daily_rewards")
    assert again.json()["status"] == "skipped"


@pytest.mark.asyncio
async def test_bootstrap_new_user(client: AsyncClient, store) -> None:
    response = await client.post("/api/v1/admin/users/new-user/bootstrap")
    assert response.json()["status"] == "committed"
    assert store.docs["new-user"] == {
        "daily_steps": {},
        "weekly_steps": 0,
        "coins": 0,
        "lastWeekRewarded": None,
    }


@pytest.mark.asyncio
async def test_bootstrap_keeps_existing_values(client: AsyncClient, store) -> None:
    store.docs = {"u1": {"coins": 640, "weekly_steps": 3200}}
    await client.post("/api/v1/admin/users/u1/bootstrap")
    assert store.docs["u1"]["coins"] == 640
    assert store.docs["u1"]["weekly_steps"] == 3200
    assert store.docs["u1"]["daily_steps"] == {}


@pytest.mark.asyncio
async def test_remove_daily_step_goal(client: AsyncClient, store) -> None:
    store.docs = {"a": {"dailyStepGoal": 8000, "coins": 3}, "b": {"coins": 1}}
    response = await client.post("/api/v1/admin/migrations/remove-daily-step-goal")
    assert response.json()["processed"] == 1
    assert store.docs["a"] == {"coins": 3}
    assert len(store.commits) == 1

    again = await client.post("/api/v1/admin/migrations/remove-daily-step-goal")
    assert again.json()["status"] == "skipped"
