"""Tests for the automation scheduler."""
import logging
from unittest.mock import AsyncMock

import pytest

import app.core.scheduler as scheduler_module
from app.core.scheduler import CURRENT_SEASON_JOB_ID, AutomationScheduler
from app.models.schemas import SyncResult


class TestAutomationScheduler:

    @pytest.mark.asyncio
    async def test_start_registers_daily_job(self):
        """Should schedule the current-season sync at the configured hour."""
        scheduler = AutomationScheduler(timezone="UTC", cron_hour="3")
        await scheduler.start()
        try:
            job = scheduler.scheduler.get_job(CURRENT_SEASON_JOB_ID)
            assert job is not None
            assert job.name == "Sync Current Season Matches"
            assert str(job.trigger.fields[5]) == "3"  # hour field
        finally:
            await scheduler.stop()

        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self):
        scheduler = AutomationScheduler(timezone="UTC", cron_hour="3")
        await scheduler.start()
        first = scheduler.scheduler
        await scheduler.start()
        try:
            assert scheduler.scheduler is first
            assert len(first.get_jobs()) == 1
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_job_runs_one_year_through_lock(self, monkeypatch, kv_store):
        calls = []

        async def fake_sync_if_idle(years_to_sync, lock, session_factory=None):
            calls.append((years_to_sync, lock.store))
            return SyncResult(total_matches=10, synced_matches=2, skipped_matches=8)

        monkeypatch.setattr(scheduler_module, "sync_if_idle", fake_sync_if_idle)
        monkeypatch.setattr(scheduler_module, "get_kv_store", lambda: kv_store)

        await AutomationScheduler.run_current_season_sync()

        assert calls == [(1, kv_store)]

    @pytest.mark.asyncio
    async def test_job_failure_is_logged_not_raised(self, monkeypatch, kv_store, caplog):
        failing_sync = AsyncMock(side_effect=RuntimeError("provider down"))
        monkeypatch.setattr(scheduler_module, "sync_if_idle", failing_sync)
        monkeypatch.setattr(scheduler_module, "get_kv_store", lambda: kv_store)

        with caplog.at_level(logging.ERROR, logger="app.core.scheduler"):
            await AutomationScheduler.run_current_season_sync()

        failing_sync.assert_awaited_once()
        assert "Current-season sync failed: provider down" in caplog.text
