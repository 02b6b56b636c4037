"""
Durable Job Queue

Events sent by the application are stored as rows and claimed by the
workflow runtime. Completed step results are stored beside them so a
re-run of an event skips the steps that already finished.
"""

import json
import logging
from datetime import datetime, timezone, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
    update,
)
from sqlalchemy.orm import Session

from coderevu.database import Base, Database

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Status of a queued event."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(str, Enum):
    """Recorded outcome of a workflow step."""

    COMPLETED = "completed"
    FAILED_NONFATAL = "failed_nonfatal"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobEvent(Base):
    """Database table for queued events and their execution state."""

    __tablename__ = "job_events"

    id = Column(Integer, primary_key=True, index=True)

    # Event name, e.g. "pr.review.requested"
    name = Column(String(255), nullable=False, index=True)

    # JSON payload
    data = Column(Text, nullable=False)

    status = Column(SQLEnum(JobStatus), default=JobStatus.PENDING, nullable=False, index=True)

    # Function that claimed the event
    function_id = Column(String(255), nullable=True, index=True)

    attempts = Column(Integer, default=0, nullable=False)
    max_attempts = Column(Integer, default=4, nullable=False)

    # Events with a pending twin under the same key are absorbed
    dedup_key = Column(String(255), nullable=True, index=True)

    result = Column(Text, nullable=True)  # JSON result
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)
    next_run_at = Column(DateTime, default=_utcnow, nullable=False, index=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    @property
    def payload(self) -> Dict[str, Any]:
        return json.loads(self.data)

    def can_retry(self) -> bool:
        """Check if another attempt is allowed."""
        return self.attempts < self.max_attempts

    def mark_completed(self, result: Optional[Dict] = None) -> None:
        self.status = JobStatus.COMPLETED
        self.completed_at = _utcnow()
        self.error_message = None
        if result is not None:
            self.result = json.dumps(result)

    def mark_failed(self, error: Exception) -> None:
        """Schedule a retry with exponential backoff, or fail permanently."""
        self.error_message = str(error)
        if self.can_retry():
            # Exponential backoff: 5s, 25s, 125s
            backoff_delay = 5 * (5 ** (self.attempts - 1))
            self.status = JobStatus.PENDING
            self.next_run_at = _utcnow() + timedelta(seconds=backoff_delay)
        else:
            self.status = JobStatus.FAILED
            self.completed_at = _utcnow()

    def __repr__(self) -> str:
        return f"<JobEvent(id={self.id}, name={self.name}, status={self.status})>"


class StepRun(Base):
    """Memoized result of one named step of one event."""

    __tablename__ = "job_steps"
    __table_args__ = (UniqueConstraint("event_id", "step_name"),)

    id = Column(Integer, primary_key=True)
    event_id = Column(
        Integer, ForeignKey("job_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_name = Column(String(255), nullable=False)
    status = Column(SQLEnum(StepStatus), nullable=False)
    output = Column(Text, nullable=True)  # JSON
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class JobQueue:
    """
    Sends events to and claims events from the job_events table.
    """

    def __init__(self, database: Database, max_attempts: int = 4):
        self.database = database
        self.max_attempts = max_attempts

    def send(
        self,
        name: str,
        data: Dict[str, Any],
        dedup_key: Optional[str] = None,
        db: Optional[Session] = None,
    ) -> int:
        """
        Store an event for the workflow runtime.

        Args:
            name: Event name
            data: JSON-serializable payload
            dedup_key: If a pending event already carries this key, no new
                event is stored and the existing id is returned
            db: Session to use; a short-lived one is opened if omitted

        Returns:
            Id of the stored (or absorbing) event
        """
        own_session = db is None
        session = db or self.database.session()
        try:
            if dedup_key:
                existing = (
                    session.query(JobEvent)
                    .filter(
                        JobEvent.dedup_key == dedup_key,
                        JobEvent.status == JobStatus.PENDING,
                    )
                    .first()
                )
                if existing:
                    logger.info(
                        f"Event {name} deduplicated onto pending event {existing.id} ({dedup_key})"
                    )
                    return existing.id

            job_event = JobEvent(
                name=name,
                data=json.dumps(data),
                dedup_key=dedup_key,
                max_attempts=self.max_attempts,
            )
            session.add(job_event)
            session.commit()
            logger.info(f"Sent event {name} (id={job_event.id})")
            return job_event.id
        finally:
            if own_session:
                session.close()

    def claim(self, db: Session, event_id: int, function_id: str) -> bool:
        """
        Atomically move a pending event to running.

        Returns:
            True if this caller won the claim
        """
        result = db.execute(
            update(JobEvent)
            .where(JobEvent.id == event_id, JobEvent.status == JobStatus.PENDING)
            .values(
                status=JobStatus.RUNNING,
                function_id=function_id,
                started_at=_utcnow(),
                attempts=JobEvent.attempts + 1,
            )
        )
        db.commit()
        return result.rowcount == 1

    def due_events(self, db: Session, name: str, limit: int) -> list:
        """Pending events of a name whose next run time has passed, oldest first."""
        if limit <= 0:
            return []
        return (
            db.query(JobEvent)
            .filter(
                JobEvent.name == name,
                JobEvent.status == JobStatus.PENDING,
                JobEvent.next_run_at <= _utcnow(),
            )
            .order_by(JobEvent.created_at)
            .limit(limit)
            .all()
        )

    def running_count(self, db: Session, function_id: str) -> int:
        return (
            db.query(JobEvent)
            .filter(
                JobEvent.function_id == function_id,
                JobEvent.status == JobStatus.RUNNING,
            )
            .count()
        )

    def get(self, db: Session, event_id: int) -> Optional[JobEvent]:
        return db.query(JobEvent).filter(JobEvent.id == event_id).first()
