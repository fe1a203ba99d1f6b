"""
Unit tests for the slot completion scheduler
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from musicroom import config
from musicroom.services import scheduler


class TestSchedulerJobs:

    def test_sweep_job_registered(self):
        scheduler.configure_scheduler()

        job = scheduler.scheduler.get_job("slot_completion_sweep")
        assert job is not None
        assert job.trigger.interval.total_seconds() == config.SLOT_SWEEP_INTERVAL_MINUTES * 60
        assert job.max_instances == 1

        scheduler.scheduler.remove_job("slot_completion_sweep")

    @pytest.mark.asyncio
    async def test_sweep_calls_slot_service(self):
        service = MagicMock()
        service.complete_past_slots = AsyncMock(return_value={
            "slots_completed": 2,
            "enrollments_completed": 5,
            "waitlist_released": 1,
            "duration_ms": 3.2,
        })

        with patch.object(scheduler, "get_slot_service", return_value=service):
            await scheduler.complete_finished_slots()

        service.complete_past_slots.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sweep_failure_is_logged_not_raised(self, caplog):
        service = MagicMock()
        service.complete_past_slots = AsyncMock(side_effect=RuntimeError("database unavailable"))

        with patch.object(scheduler, "get_slot_service", return_value=service):
            await scheduler.complete_finished_slots()

        assert "Slot completion sweep failed" in caplog.text

    def test_stop_when_not_running(self):
        assert not scheduler.scheduler.running
        scheduler.stop_scheduler()
