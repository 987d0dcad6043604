"""
In-process fire-and-forget email dispatch.

Lifecycle emails (game filled, game confirmed, result recorded, month
opened) are queued after the triggering transaction commits and sent by a
background worker, so the request never waits on the email provider.
Failures are logged and kept in a bounded failure log; nothing is retried.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from futbol.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# How often the idle worker wakes up even without new jobs (seconds)
POLL_INTERVAL_SECONDS = 30
FAILURE_LOG_SIZE = 100


@dataclass
class EmailJob:
    """A named, zero-argument coroutine factory that sends one or more emails."""

    description: str
    send: Callable[[], Awaitable[bool]]
    enqueued_at: datetime = field(default_factory=utcnow)


class EmailQueue:
    """Background worker that drains queued email jobs in FIFO order."""

    def __init__(self):
        self._pending: Deque[EmailJob] = deque()
        self._failures: Deque[Dict] = deque(maxlen=FAILURE_LOG_SIZE)
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._wakeup: Optional[asyncio.Event] = None
        self.sent_count = 0
        self.failed_count = 0

    def start(self) -> None:
        """Start the background worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event = asyncio.Event()
            self._wakeup = asyncio.Event()
            self._worker_task = asyncio.create_task(self._worker_loop())
            logger.info("Email queue worker started")

    def stop(self) -> None:
        """Stop the background worker. Pending jobs stay queued."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._wakeup is not None:
            self._wakeup.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info(f"Email queue worker stopped ({len(self._pending)} job(s) pending)")

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def enqueue(self, description: str, send: Callable[[], Awaitable[bool]]) -> None:
        """Queue an email job. Never blocks and never raises."""
        self._pending.append(EmailJob(description=description, send=send))
        if self._wakeup is not None:
            self._wakeup.set()
        logger.debug(f"Queued email job: {description}")

    def pending_count(self) -> int:
        return len(self._pending)

    def recent_failures(self) -> List[Dict]:
        return list(self._failures)

    def stats(self) -> Dict:
        return {
            "worker_running": self.is_running,
            "pending": len(self._pending),
            "sent": self.sent_count,
            "failed": self.failed_count,
            "recent_failures": self.recent_failures(),
        }

    async def drain(self) -> int:
        """Run every pending job now. Returns how many jobs ran."""
        processed = 0
        while self._pending:
            job = self._pending.popleft()
            await self._run_job(job)
            processed += 1
        return processed

    async def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            self._wakeup.clear()
            try:
                await self.drain()
            except Exception as e:
                logger.error(f"Error in email queue worker: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=POLL_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                pass

    async def _run_job(self, job: EmailJob) -> None:
        try:
            ok = await job.send()
            error = None if ok else "provider reported failure"
        except Exception as e:
            ok = False
            error = str(e)
            logger.error(f"Email job '{job.description}' raised: {e}", exc_info=True)

        if ok:
            self.sent_count += 1
            return

        self.failed_count += 1
        logger.error(f"Email job '{job.description}' failed: {error}")
        self._failures.append(
            {
                "description": job.description,
                "error": error,
                "enqueued_at": job.enqueued_at.isoformat(),
                "failed_at": utcnow().isoformat(),
            }
        )


_email_queue: Optional[EmailQueue] = None


def get_email_queue() -> EmailQueue:
    """Get the global email queue instance."""
    global _email_queue
    if _email_queue is None:
        _email_queue = EmailQueue()
    return _email_queue
