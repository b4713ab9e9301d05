"""Tests for the cron orchestrator"""
from unittest.mock import Mock, patch

from schedulers import cron_orchestrator
from models.pipeline import BatchResult
from models.scheduled_task import SchedulerRunResult


def test_defaults_when_table_empty(fake_db):
    jobs = cron_orchestrator.load_job_config(fake_db)

    assert [(j["name"], j["interval_minutes"]) for j in jobs] == [("pipeline", 5), ("task_scheduler", 1)]


def test_defaults_when_table_unreadable():
    db = Mock()
    db.get_cron_jobs.side_effect = RuntimeError("relation cron_jobs does not exist")

    jobs = cron_orchestrator.load_job_config(db)

    assert {j["name"] for j in jobs} == {"pipeline", "task_scheduler"}


def test_rows_with_unknown_jobs_are_ignored(fake_db):
    fake_db.cron_jobs = [
        {"name": "hourly-pipeline", "job": "pipeline", "interval_minutes": 60, "enabled": True, "version": 3},
        {"name": "cleanup", "job": "data_cleanup", "interval_minutes": 1440, "enabled": True, "version": 1},
    ]

    jobs = cron_orchestrator.load_job_config(fake_db)

    assert [j["name"] for j in jobs] == ["hourly-pipeline"]


def test_run_pipeline_job_uses_batch_limit(fake_db):
    fake_db.cron_jobs = [{"name": "pipeline", "job": "pipeline", "interval_minutes": 5, "enabled": True,
                          "batch_limit": 7, "version": 1}]

    with patch.object(cron_orchestrator, "PipelineOrchestrator") as orchestrator_cls:
        orchestrator_cls.return_value.run_batch.return_value = BatchResult(processed_count=2, succeeded=2)
        outcome = cron_orchestrator.run_job("pipeline", fake_db)

    assert outcome["status"] == "success"
    orchestrator_cls.return_value.run_batch.assert_called_once_with(limit=7)


def test_run_task_scheduler_job(fake_db):
    with patch.object(cron_orchestrator, "TaskScheduler") as scheduler_cls:
        scheduler_cls.return_value.run_due_tasks.return_value = SchedulerRunResult(processed_count=1, completed=1)
        outcome = cron_orchestrator.run_job("task_scheduler", fake_db)

    assert outcome["status"] == "success"
    assert outcome["result"]["completed"] == 1


def test_disabled_job_is_skipped_at_trigger_time(fake_db):
    """The row is re-read on every tick"""
    fake_db.cron_jobs = [{"name": "pipeline", "job": "pipeline", "interval_minutes": 5, "enabled": False, "version": 2}]

    with patch.object(cron_orchestrator, "PipelineOrchestrator") as orchestrator_cls:
        outcome = cron_orchestrator.run_job("pipeline", fake_db)

    assert outcome == {"status": "skipped", "reason": "disabled"}
    orchestrator_cls.assert_not_called()


def test_removed_job_is_skipped(fake_db):
    fake_db.cron_jobs = [{"name": "task_scheduler", "job": "task_scheduler", "interval_minutes": 1, "enabled": True}]

    outcome = cron_orchestrator.run_job("pipeline", fake_db)

    assert outcome["reason"] == "not_configured"


def test_job_failure_is_contained(fake_db):
    with patch.object(cron_orchestrator, "PipelineOrchestrator") as orchestrator_cls:
        orchestrator_cls.return_value.run_batch.side_effect = RuntimeError("database unreachable")
        outcome = cron_orchestrator.run_job("pipeline", fake_db)

    assert outcome == {"status": "error", "error": "database unreachable"}


def test_start_scheduler_adds_interval_jobs(fake_db):
    with patch.object(cron_orchestrator, "BackgroundScheduler") as scheduler_cls:
        scheduler = cron_orchestrator.start_scheduler(fake_db)

    assert scheduler is scheduler_cls.return_value
    calls = scheduler.add_job.call_args_list
    assert [c.kwargs["id"] for c in calls] == ["cron_pipeline", "cron_task_scheduler"]
    assert calls[0].kwargs["args"] == ["pipeline", fake_db]
    assert calls[0].kwargs["trigger"].interval.total_seconds() == 300
    assert calls[0].kwargs["max_instances"] == 1
    scheduler.start.assert_called_once()


def test_stop_scheduler():
    scheduler = Mock()

    cron_orchestrator.stop_scheduler(scheduler)

    scheduler.shutdown.assert_called_once_with(wait=False)
