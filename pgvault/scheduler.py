"""
APScheduler configuration and job scheduling for pgvault.

Manages:
- The daily backup job (cron expression, 03:00 UTC by default)
- The one-off "run now" trigger used for verification
- Shutdown requests and the process exit code
"""

import logging
import threading
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.executors.pool import ThreadPoolExecutor

from pgvault.backup.executor import execute_backup

logger = logging.getLogger(__name__)

BACKUP_JOB_ID = 'daily_backup'

# Global scheduler instance and the configuration its jobs run with
scheduler = None
backup_config = None
backup_settings = None

_shutdown_event = threading.Event()
_exit_code = 0


def init_scheduler(config: dict, settings):
    """
    Initialize and configure APScheduler.

    Args:
        config: Dict returned by load_config()
        settings: BackupSettings passed to every run
    """
    global scheduler, backup_config, backup_settings

    if scheduler is not None:
        return scheduler

    backup_config = config
    backup_settings = settings

    executors = {
        'default': ThreadPoolExecutor(max_workers=1)
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Never overlap two backup runs
        'misfire_grace_time': 3600
    }

    scheduler = BackgroundScheduler(
        executors=executors,
        job_defaults=job_defaults,
        timezone=config['SCHEDULER_TIMEZONE']
    )

    scheduler.add_job(
        func=_execute_backup_wrapper,
        trigger=CronTrigger.from_crontab(config['BACKUP_CRON'], timezone=config['SCHEDULER_TIMEZONE']),
        id=BACKUP_JOB_ID,
        name='Daily Database Backup',
        replace_existing=True
    )

    return scheduler


def start_scheduler():
    """
    Start the APScheduler.

    Should be called after init_scheduler().
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    if not scheduler.running:
        scheduler.start()
        logger.info("APScheduler started (state=%s)", scheduler.state)

        for job in get_scheduled_jobs():
            logger.info("  - %s: %s (next run: %s)", job['id'], job['name'], job['next_run'] or 'N/A')
    else:
        logger.info("Scheduler already running (state=%s)", scheduler.state)


def stop_scheduler():
    """Stop the APScheduler."""
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")


def _execute_backup_wrapper():
    """
    Run one backup in scheduler context.

    A failed run asks the process to exit with status 1. The executor has
    already removed its temporary files by the time the result is returned.
    """
    logger.info("Scheduler executing backup")
    result = execute_backup(backup_config, backup_settings)

    if result.success:
        logger.info("Backup %s completed", result.date_id)
    else:
        logger.error("Backup %s failed: %s", result.date_id, result.error_message)
        request_shutdown(1)

    return result


def trigger_backup_now():
    """
    Run a backup immediately, in addition to the daily schedule.

    Raises:
        RuntimeError: If the scheduler is not initialized
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized")

    # 1 second delay so the job is added after the scheduler is up
    run_date = datetime.now(timezone.utc) + timedelta(seconds=1)
    scheduler.add_job(
        func=_execute_backup_wrapper,
        trigger=DateTrigger(run_date=run_date),
        id=f"manual_{int(run_date.timestamp())}",
        name='Manual Database Backup',
        replace_existing=False
    )

    logger.info("Manually triggered backup")


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs.

    Returns:
        List of dicts with job information
    """
    if scheduler is None:
        return []

    jobs = []

    for job in scheduler.get_jobs():
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': job.next_run_time.isoformat() if job.next_run_time else None,
            'trigger': str(job.trigger)
        })

    return jobs


def request_shutdown(exit_code: int = 0):
    """
    Ask the main thread to stop the scheduler and exit.

    A non-zero code is never overwritten by a later zero.
    """
    global _exit_code

    if exit_code:
        _exit_code = exit_code
    _shutdown_event.set()


def wait_for_shutdown(timeout=None) -> int:
    """
    Block until request_shutdown() is called.

    Args:
        timeout: Seconds to wait, None for no limit

    Returns:
        Exit code requested so far
    """
    _shutdown_event.wait(timeout)
    return _exit_code
