"""Tests for the scheduled normalization task."""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from api.services.normalization import NormalizationResult
from core.errors import NormalizationInProgressError
from workers.celery_config import task_routes
from workers.tasks import normalization as task_module
from workers.tasks.normalization import run_normalization


@pytest.fixture
def summary():
    return NormalizationResult(
        global_avg=5.12,
        global_std_dev=2.3,
        reviewers_processed=3,
        applications_updated=8,
    ).to_dict()


class TestRunNormalization:

    def test_success_summary(self, summary):
        with patch.object(task_module, "_normalize", AsyncMock(return_value=summary)):
            result = run_normalization.apply().get()

        assert result == {
            "status": "success",
            "reviewers_processed": 3,
            "applications_updated": 8,
            "global_avg": 5.12,
            "global_std_dev": 2.3,
        }

    def test_skipped_while_lock_held(self):
        held = AsyncMock(side_effect=NormalizationInProgressError("busy"))
        with patch.object(task_module, "_normalize", held):
            result = run_normalization.apply().get()

        assert result == {"status": "skipped", "reason": "in_progress"}

    def test_routed_to_normalization_queue(self):
        assert run_normalization.name == "workers.tasks.normalization.run_normalization"
        assert task_routes["workers.tasks.normalization.*"] == {"queue": "normalization"}


class TestNormalizeRunner:

    def test_runs_normalization_and_releases_resources(self, summary):
        result = NormalizationResult(
            global_avg=5.12,
            global_std_dev=2.3,
            reviewers_processed=3,
            applications_updated=8,
        )
        normalize = AsyncMock(return_value=result)
        dispose = AsyncMock()

        with patch.object(task_module.settings, "normalization_lock_enabled", False), \
             patch.object(task_module, "normalize_ratings", normalize), \
             patch.object(task_module, "db_engine", MagicMock(dispose=dispose)):
            output = asyncio.run(task_module._normalize())

        assert output == summary
        normalize.assert_awaited_once()
        dispose.assert_awaited_once()

    def test_engine_disposed_on_failure(self):
        dispose = AsyncMock()
        failing = AsyncMock(side_effect=RuntimeError("database gone"))

        with patch.object(task_module.settings, "normalization_lock_enabled", False), \
             patch.object(task_module, "normalize_ratings", failing), \
             patch.object(task_module, "db_engine", MagicMock(dispose=dispose)):
            with pytest.raises(RuntimeError):
                asyncio.run(task_module._normalize())

        dispose.assert_awaited_once()
