"""
Cron Orchestrator

Runs the periodic jobs in-process with APScheduler:
- pipeline: drain raw events (summaries + action suggestions)
- task_scheduler: dispatch due ScheduledTasks

The job list comes from the `cron_jobs` table. Each trigger re-reads its
own row, so disabling a job or changing its batch limit takes effect on
the next tick without a restart. Interval changes need a restart.
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from services.database import DatabaseService
from agents.pipeline_orchestrator import PipelineOrchestrator
from agents.task_scheduler import TaskScheduler
from config import settings
from typing import Dict, List, Optional
import logging
import sys

logger = logging.getLogger(__name__)

JOB_PIPELINE = "pipeline"
JOB_TASK_SCHEDULER = "task_scheduler"


def default_jobs() -> List[Dict]:
    """Used when the cron_jobs table is empty or unreadable"""
    return [
        {
            "name": JOB_PIPELINE,
            "job": JOB_PIPELINE,
            "interval_minutes": settings.PIPELINE_INTERVAL_MINUTES,
            "enabled": True,
            "batch_limit": settings.PIPELINE_BATCH_LIMIT,
            "version": 0,
        },
        {
            "name": JOB_TASK_SCHEDULER,
            "job": JOB_TASK_SCHEDULER,
            "interval_minutes": settings.TASK_SCHEDULER_INTERVAL_MINUTES,
            "enabled": True,
            "batch_limit": None,
            "version": 0,
        },
    ]


def load_job_config(db: Optional[DatabaseService] = None) -> List[Dict]:
    """Read the cron_jobs table, falling back to the defaults"""
    db = db or DatabaseService()
    try:
        rows = [
            row for row in db.get_cron_jobs()
            if row.get("name") and row.get("job") in (JOB_PIPELINE, JOB_TASK_SCHEDULER)
        ]
    except Exception as e:
        logger.warning(f"Could not read cron_jobs, using defaults: {e}")
        return default_jobs()

    if not rows:
        logger.info("cron_jobs is empty, using defaults")
        return default_jobs()
    return rows


def get_job_config(name: str, db: Optional[DatabaseService] = None) -> Optional[Dict]:
    for job in load_job_config(db):
        if job["name"] == name:
            return job
    return None


def run_job(name: str, db: Optional[DatabaseService] = None) -> Dict:
    """
    Run one configured job.

    Called by APScheduler on every tick. Never raises: a failed run is
    logged and the next tick tries again.
    """
    db = db or DatabaseService()
    config = get_job_config(name, db)

    if config is None:
        logger.warning(f"Cron job '{name}' no longer configured, skipping")
        return {"status": "skipped", "reason": "not_configured"}
    if not config.get("enabled", True):
        logger.info(f"Cron job '{name}' is disabled, skipping")
        return {"status": "skipped", "reason": "disabled"}

    logger.info(f"Starting cron job '{name}' ({config['job']}, version {config.get('version')})")

    try:
        if config["job"] == JOB_PIPELINE:
            result = PipelineOrchestrator(db=db).run_batch(limit=config.get("batch_limit") or None)
        else:
            result = TaskScheduler(db=db).run_due_tasks()

        logger.info(f"Cron job '{name}' complete: {result.processed_count} processed")
        return {"status": "success", "result": result.model_dump(mode="json")}

    except Exception as e:
        logger.error(f"Cron job '{name}' failed: {e}", exc_info=True)
        # Don't raise - we don't want to crash the scheduler
        return {"status": "error", "error": str(e)}


def start_scheduler(db: Optional[DatabaseService] = None) -> BackgroundScheduler:
    """
    Start the background scheduler with one interval job per configured row.

    Disabled rows are still scheduled so they can be re-enabled at runtime.

    Returns:
        APScheduler BackgroundScheduler instance
    """
    db = db or DatabaseService()
    scheduler = BackgroundScheduler()

    for job in load_job_config(db):
        interval = max(1, int(job.get("interval_minutes") or 1))
        scheduler.add_job(
            run_job,
            trigger=IntervalTrigger(minutes=interval),
            args=[job["name"], db],
            id=f"cron_{job['name']}",
            name=f"{job['name']} ({job['job']}, every {interval} min)",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"Scheduled cron job '{job['name']}' every {interval} minute(s)")

    scheduler.start()
    logger.info("Cron orchestrator started")
    return scheduler


def stop_scheduler(scheduler: BackgroundScheduler):
    """Stop the background scheduler"""
    scheduler.shutdown(wait=False)
    logger.info("Cron orchestrator stopped")


if __name__ == '__main__':
    """
    Run one job immediately.

    Usage:
        python -m schedulers.cron_orchestrator [pipeline|task_scheduler]
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    job_name = sys.argv[1] if len(sys.argv) > 1 else JOB_PIPELINE
    outcome = run_job(job_name)
    print(outcome)
    sys.exit(1 if outcome.get("status") == "error" else 0)
