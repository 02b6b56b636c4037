"""
Job Scheduler - APScheduler-based queue polling

Polls the durable queue on a fixed interval and hands due events to the
workflow runtime.
"""

import logging
from typing import Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
import pytz

from coderevu.jobs.runtime import WorkflowRuntime

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Background poller driving WorkflowRuntime.tick().
    """

    JOB_ID = "workflow_queue_poll"

    def __init__(
        self,
        runtime: WorkflowRuntime,
        poll_interval_seconds: int = 2,
        timezone_str: str = "UTC",
    ):
        """
        Initialize job scheduler.

        Args:
            runtime: Workflow runtime to drive
            poll_interval_seconds: Seconds between queue polls
            timezone_str: Timezone for scheduling (default: UTC)
        """
        self.runtime = runtime
        self.poll_interval_seconds = poll_interval_seconds
        self.scheduler = BackgroundScheduler(timezone=pytz.timezone(timezone_str))

    def _poll(self) -> None:
        try:
            submitted = self.runtime.tick()
            if submitted:
                logger.debug(f"Submitted {submitted} workflow run(s)")
        except Exception as e:
            logger.error(f"Unexpected error polling job queue: {str(e)}", exc_info=True)

    def start(self) -> None:
        """Start the job scheduler."""
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.add_job(
            self._poll,
            IntervalTrigger(seconds=self.poll_interval_seconds),
            id=self.JOB_ID,
            name="Workflow Queue Poll",
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        logger.info("Job scheduler started")

    def stop(self) -> None:
        """Stop the job scheduler."""
        if not self.scheduler.running:
            logger.warning("Scheduler not running")
            return

        self.scheduler.shutdown(wait=True)
        logger.info("Job scheduler stopped")

    def get_status(self) -> Optional[Dict]:
        """Get status of the polling job."""
        job = self.scheduler.get_job(self.JOB_ID)
        if not job:
            return None

        return {
            "name": job.name,
            "id": job.id,
            "trigger": str(job.trigger),
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            "workflows": sorted(w.function_id for w in self.runtime.workflows.values()),
        }
