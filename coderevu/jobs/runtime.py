"""
Workflow Runtime

Runs registered workflows against events from the durable queue.

Features:
- Named steps whose JSON results are memoized per event
- Critical steps abort the run; best-effort steps record a failed outcome
  and let the run continue
- Whole-run retry with exponential backoff; memoized steps are skipped on
  the next attempt
- Per-workflow concurrency limits
- Claims capped by free worker threads; a run whose claim went stale is
  skipped
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from coderevu.database import Database
from coderevu.jobs.queue import JobEvent, JobQueue, JobStatus, StepRun, StepStatus

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    """Result of a best-effort step."""

    name: str
    ok: bool
    value: Any = None
    error: Optional[str] = None


class WorkflowContext:
    """
    Per-run handle passed to Workflow.run.

    Exposes the event payload, a database session and the step helpers.
    """

    def __init__(self, db: Session, event: JobEvent, function_id: str):
        self.db = db
        self.event_id = event.id
        self.attempt = event.attempts
        self.data = event.payload
        self.function_id = function_id
        self.logger = logger.getChild(function_id)

    def _memoized(self, name: str) -> Optional[StepRun]:
        return (
            self.db.query(StepRun)
            .filter(StepRun.event_id == self.event_id, StepRun.step_name == name)
            .first()
        )

    def _record(
        self,
        name: str,
        status: StepStatus,
        output: Any = None,
        error: Optional[str] = None,
    ) -> None:
        self.db.add(
            StepRun(
                event_id=self.event_id,
                step_name=name,
                status=status,
                output=json.dumps(output),
                error_message=error,
            )
        )
        self.db.commit()

    def step(self, name: str, fn: Callable[[], Any]) -> Any:
        """
        Run a critical step once per event.

        The return value must be JSON-serializable; callers always receive
        the JSON round-tripped value so first runs and replays agree.

        Raises:
            Whatever fn raises; the run is then retried by the runtime
        """
        memo = self._memoized(name)
        if memo is not None:
            self.logger.debug(f"[{self.function_id}:{name}] memoized, skipping")
            return json.loads(memo.output)

        self.logger.info(f"[{self.function_id}:{name}] running")
        try:
            value = fn()
        except Exception:
            self.logger.error(f"[{self.function_id}:{name}] failed", exc_info=True)
            self.db.rollback()
            raise

        serialized = json.loads(json.dumps(value))
        self._record(name, StepStatus.COMPLETED, output=serialized)
        return serialized

    def best_effort_step(self, name: str, fn: Callable[[], Any]) -> StepOutcome:
        """
        Run a step whose failure must not fail or retry the run.

        Failures are logged and recorded, so a later attempt of the same
        event does not run the step again either.
        """
        memo = self._memoized(name)
        if memo is not None:
            self.logger.debug(f"[{self.function_id}:{name}] memoized, skipping")
            return StepOutcome(
                name=name,
                ok=memo.status == StepStatus.COMPLETED,
                value=json.loads(memo.output),
                error=memo.error_message,
            )

        try:
            value = json.loads(json.dumps(fn()))
        except Exception as e:
            self.db.rollback()
            self.logger.error(
                f"[{self.function_id}:{name}] best-effort step failed: {str(e)}",
                exc_info=True,
            )
            self._record(name, StepStatus.FAILED_NONFATAL, error=str(e))
            return StepOutcome(name=name, ok=False, error=str(e))

        self._record(name, StepStatus.COMPLETED, output=value)
        return StepOutcome(name=name, ok=True, value=value)


class Workflow(ABC):
    """
    Abstract base class for durable workflows.

    Subclasses set function_id and event_name, and implement run().
    """

    function_id: str = ""
    event_name: str = ""
    concurrency: Optional[int] = None

    @abstractmethod
    def run(self, ctx: WorkflowContext) -> Dict[str, Any]:
        """
        Execute the workflow for one event.

        Returns:
            JSON-serializable result stored on the event

        Raises:
            Exception: If a critical step fails (the run will be retried)
        """
        pass


class WorkflowRuntime:
    """
    Claims due events and executes the workflow registered for them.
    """

    def __init__(
        self,
        database: Database,
        queue: JobQueue,
        max_workers: int = 8,
        stale_after_seconds: int = 900,
    ):
        self.database = database
        self.queue = queue
        self.max_workers = max_workers
        self.stale_after_seconds = stale_after_seconds
        self.workflows: Dict[str, Workflow] = {}
        self._in_flight = 0
        self._slots_lock = threading.Lock()
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="workflow"
        )

    def register(self, workflow: Workflow) -> None:
        """Route events named workflow.event_name to workflow."""
        self.workflows[workflow.event_name] = workflow
        logger.info(
            f"Registered workflow {workflow.function_id} for event {workflow.event_name}"
        )

    def execute(self, event_id: int) -> Optional[JobEvent]:
        """
        Claim and run one event in the calling thread.

        Returns:
            The event after the run, or None if it has no workflow or was
            claimed by someone else
        """
        db = self.database.session()
        try:
            event = self.queue.get(db, event_id)
            if event is None:
                logger.error(f"Event {event_id} not found")
                return None

            workflow = self.workflows.get(event.name)
            if workflow is None:
                logger.warning(f"No workflow registered for event {event.name}")
                return None

            if not self.queue.claim(db, event_id, workflow.function_id):
                logger.debug(f"Event {event_id} already claimed")
                return None

            db.refresh(event)
            return self._run(db, workflow, event)
        finally:
            db.close()

    def _execute_claimed(self, event_id: int, claimed_attempt: int) -> None:
        db = self.database.session()
        try:
            event = self.queue.get(db, event_id)
            if (
                event is None
                or event.status != JobStatus.RUNNING
                or event.attempts != claimed_attempt
            ):
                # Requeued as stale while waiting for a thread and claimed again
                logger.warning(
                    f"Skipping event {event_id}: claim for attempt {claimed_attempt} "
                    f"is no longer current"
                )
                return
            self._run(db, self.workflows[event.name], event)
        except Exception as e:
            logger.error(f"Unexpected error running event {event_id}: {str(e)}", exc_info=True)
        finally:
            db.close()

    def _run(self, db: Session, workflow: Workflow, event: JobEvent) -> JobEvent:
        ctx = WorkflowContext(db, event, workflow.function_id)
        logger.info(
            f"Running {workflow.function_id} for event {event.id} "
            f"(attempt {event.attempts}/{event.max_attempts})"
        )

        try:
            result = workflow.run(ctx)
        except Exception as e:
            db.rollback()
            event.mark_failed(e)
            if event.status == JobStatus.FAILED:
                logger.error(
                    f"Workflow {workflow.function_id} failed permanently for event {event.id}: {str(e)}"
                )
            else:
                logger.warning(
                    f"Workflow {workflow.function_id} will retry event {event.id} "
                    f"at {event.next_run_at.isoformat()}: {str(e)}"
                )
        else:
            event.mark_completed(result)
            logger.info(f"Workflow {workflow.function_id} completed event {event.id}")

        db.commit()
        return event

    def tick(self) -> int:
        """
        Claim due events up to each workflow's concurrency limit and the
        number of free worker threads, and hand them to the thread pool.

        Returns:
            Number of events submitted
        """
        submitted = 0
        db = self.database.session()
        try:
            self.requeue_stale(db)
            for workflow in self.workflows.values():
                if workflow.concurrency:
                    limit = workflow.concurrency - self.queue.running_count(
                        db, workflow.function_id
                    )
                else:
                    limit = self.max_workers
                limit = min(limit, self.free_slots())

                for event in self.queue.due_events(db, workflow.event_name, limit):
                    if self.queue.claim(db, event.id, workflow.function_id):
                        db.refresh(event)
                        self._submit(event.id, event.attempts)
                        submitted += 1
        finally:
            db.close()
        return submitted

    def free_slots(self) -> int:
        """Worker threads not busy with or reserved for a claimed event."""
        with self._slots_lock:
            return self.max_workers - self._in_flight

    def _submit(self, event_id: int, claimed_attempt: int) -> None:
        with self._slots_lock:
            self._in_flight += 1
        try:
            future = self.executor.submit(self._execute_claimed, event_id, claimed_attempt)
        except Exception:
            self._release_slot()
            raise
        future.add_done_callback(lambda f: self._release_slot())

    def _release_slot(self) -> None:
        with self._slots_lock:
            self._in_flight -= 1

    def requeue_stale(self, db: Session) -> int:
        """Return running events abandoned by a dead worker to the queue."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.stale_after_seconds)
        stale = (
            db.query(JobEvent)
            .filter(JobEvent.status == JobStatus.RUNNING, JobEvent.started_at < cutoff)
            .all()
        )
        for event in stale:
            logger.warning(f"Requeueing stale event {event.id}")
            event.mark_failed(RuntimeError("worker stopped before the run finished"))
        if stale:
            db.commit()
        return len(stale)

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
