"""
Join-meeting queue listener.

Pops one item at a time off the join queue, validates it and asks the
recorder launcher to start a container for it, retrying a fixed number of
times. A job that never launches is logged and dropped; nothing is requeued
and nobody else is told.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from docker_manager.config import (
    LAUNCH_RETRY_DELAY_SECONDS,
    MAX_LAUNCH_ATTEMPTS,
    QUEUE_ERROR_PAUSE_SECONDS,
    QUEUE_POLL_TIMEOUT_SECONDS,
)
from docker_manager.queue_client import JoinMeetQueue
from docker_manager.schemas import JobState, JoinMeetingPayload, QueueItem, looks_like_join_payload

logger = logging.getLogger("docker_manager.listener")


class QueueListener:
    """
    Single worker draining one queue.

    Attributes:
        max_attempts: launch attempts per job, including the first
        retry_delay: seconds between two launch attempts for the same job
        error_pause: seconds to idle after a failed pop before polling again
        poll_timeout: longest single BLPOP before the stop flag is checked again
    """

    def __init__(
        self,
        queue: JoinMeetQueue,
        launcher: Any,
        max_attempts: int = MAX_LAUNCH_ATTEMPTS,
        retry_delay: float = LAUNCH_RETRY_DELAY_SECONDS,
        error_pause: float = QUEUE_ERROR_PAUSE_SECONDS,
        poll_timeout: float = QUEUE_POLL_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if poll_timeout <= 0:
            # 0 would make BLPOP block forever and stop() could never be seen
            raise ValueError("poll_timeout must be positive")
        self.queue = queue
        self.launcher = launcher
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.error_pause = error_pause
        self.poll_timeout = poll_timeout
        self._sleep = sleep

        self._running = False
        self._stop_requested = False
        self._current_job: Optional[JoinMeetingPayload] = None
        self._current_state: Optional[JobState] = None
        self._current_attempt = 0

        self._counters: Dict[str, int] = {
            "received": 0,
            "launched": 0,
            "exhausted": 0,
            "skipped": 0,
            "rejected": 0,
            "launch_failures": 0,
            "transport_errors": 0,
        }

    # -------------------------------------------------------------- #
    # Loop control
    # -------------------------------------------------------------- #

    async def run(self) -> None:
        """Drain the queue until stop() is called. Transport errors never end the loop."""
        self._running = True
        logger.info(f"Starting queue listener for '{self.queue.name}'")
        try:
            while not self._stop_requested:
                try:
                    item = await self.queue.pop(timeout=self.poll_timeout)
                    if item is None:
                        continue
                    await self.handle_item(item)
                except Exception as e:
                    self._counters["transport_errors"] += 1
                    logger.error(f"Queue listener error: {e}. Pausing {self.error_pause}s before polling again.", exc_info=True)
                    await self._sleep(self.error_pause)
        finally:
            self._running = False
            logger.info(f"Queue listener for '{self.queue.name}' stopped.")

    def stop(self) -> None:
        """
        Ask the loop to exit.

        Nothing is cancelled: a listener waiting on the queue notices within
        poll_timeout, and one that is busy with a job finishes that job
        (retries included) first. An item BLPOP has already taken is never
        dropped on the way out.
        """
        if self._stop_requested:
            return
        logger.info("Stopping queue listener...")
        self._stop_requested = True

    @property
    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------- #
    # Per-item processing
    # -------------------------------------------------------------- #

    async def handle_item(self, item: QueueItem) -> JobState:
        self._current_state = JobState.RECEIVED
        try:
            return await self._dispatch(item.decode())
        finally:
            self._current_state = None

    async def _dispatch(self, parsed: Any) -> JobState:
        if not looks_like_join_payload(parsed):
            self._counters["skipped"] += 1
            logger.info(f"Dequeued item: {parsed!r}")
            return JobState.SKIPPED

        self._counters["received"] += 1
        try:
            job = JoinMeetingPayload.model_validate(parsed)
        except ValidationError as e:
            self._counters["rejected"] += 1
            logger.warning(f"Dropping malformed join payload {parsed!r}: {e.errors(include_url=False)}")
            return JobState.REJECTED

        self._current_state = JobState.VALIDATED
        logger.info(f"Dequeued JoinMeetingPayload: user={job.user_id} link={job.link} recording={job.recording_id}")
        return await self.launch_with_retry(job)

    async def launch_with_retry(self, job: JoinMeetingPayload) -> JobState:
        self._current_job = job
        try:
            for attempt in range(1, self.max_attempts + 1):
                self._current_state = JobState.LAUNCHING
                self._current_attempt = attempt
                try:
                    container_id = await asyncio.to_thread(self.launcher.start_recorder, job)
                except Exception as e:
                    self._counters["launch_failures"] += 1
                    logger.error(f"Attempt {attempt}/{self.max_attempts} failed to start recorder for user {job.user_id}: {e}")
                    if attempt < self.max_attempts:
                        await self._sleep(self.retry_delay)
                    continue

                self._counters["launched"] += 1
                logger.info(f"Recorder {container_id} launched for user {job.user_id} on attempt {attempt}")
                return JobState.LAUNCHED

            self._counters["exhausted"] += 1
            logger.error(
                f"All {self.max_attempts} attempts failed to start recorder. Dropping job: "
                f"userId={job.user_id} link={job.link} recordingId={job.recording_id}"
            )
            return JobState.EXHAUSTED
        finally:
            self._current_job = None
            self._current_attempt = 0

    # -------------------------------------------------------------- #
    # Introspection
    # -------------------------------------------------------------- #

    def statistics(self) -> Dict[str, Any]:
        return {
            "is_running": self._running,
            "queue": self.queue.name,
            "current_job": self._current_job.to_wire() if self._current_job else None,
            "current_state": self._current_state.value if self._current_state else None,
            "current_attempt": self._current_attempt,
            **self._counters,
        }
