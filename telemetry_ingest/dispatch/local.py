"""
In-process task dispatcher

Runs handlers on a thread pool with bounded attempts and exponential backoff.
Tasks that exhaust their attempts are dead-lettered: each is passed to the
``on_dead_letter`` callback and only the most recent are kept in memory.
"""

import uuid
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from time import sleep
from typing import Any, Callable, Deque, Dict, Optional

import structlog
from pydantic import BaseModel

from telemetry_ingest.core.exceptions import DispatchError
from telemetry_ingest.dispatch.base import MemoizedStepRunner, SendResult, TaskDispatcher

logger = structlog.get_logger(__name__)


class DeadLetter(BaseModel):
    task_id: str
    event_name: str
    data: Dict[str, Any]
    error: str
    attempts: int


DeadLetterCallback = Callable[[DeadLetter], None]


class LocalDispatcher(TaskDispatcher):
    """
    Thread pool dispatcher.

    Args:
        max_attempts: Total runs per task, first attempt included
        backoff_seconds: Delay before the first retry; doubles on each retry
        workers: Thread pool size
        synchronous: Run tasks inline inside ``send`` (used by tests and scripts)
        on_dead_letter: Called once per task that exhausted its attempts
        dead_letter_limit: Most recent dead letters kept in memory
    """

    def __init__(
        self,
        max_attempts: int = 4,
        backoff_seconds: float = 1.0,
        workers: int = 4,
        synchronous: bool = False,
        on_dead_letter: Optional[DeadLetterCallback] = None,
        dead_letter_limit: int = 100,
    ):
        super().__init__()
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.synchronous = synchronous
        self.on_dead_letter = on_dead_letter
        self.dead_letters: Deque[DeadLetter] = deque(maxlen=dead_letter_limit)
        self._executor = None if synchronous else ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="telemetry-task"
        )
        self._closed = False

    def send(self, event_name: str, data: Dict[str, Any]) -> SendResult:
        if self._closed:
            raise DispatchError("Dispatcher is shut down")

        handler = self.handlers.get(event_name)
        if handler is None:
            raise DispatchError(f"No handler registered for event {event_name}")

        task_id = str(uuid.uuid4())
        logger.info("Task queued", event_name=event_name, task_id=task_id)

        if self._executor is None:
            self._execute(task_id, event_name, handler, data)
        else:
            try:
                future: Future = self._executor.submit(self._execute, task_id, event_name, handler, data)
            except RuntimeError as e:
                raise DispatchError(f"Failed to queue {event_name}: {e}", e) from e
            future.add_done_callback(self._log_crash)

        return SendResult(task_ids=[task_id])

    def _execute(self, task_id: str, event_name: str, handler, data: Dict[str, Any]) -> None:
        step = MemoizedStepRunner()
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_attempts):
            try:
                handler(data, step)
                logger.info("Task completed", event_name=event_name, task_id=task_id, attempt=attempt + 1)
                return
            except Exception as e:
                last_error = e
                if attempt == self.max_attempts - 1:
                    break
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning("Task attempt failed, retrying", event_name=event_name, task_id=task_id,
                               attempt=attempt + 1, retry_in=delay, error=str(e))
                if delay > 0:
                    sleep(delay)

        logger.error("Task failed after all attempts", event_name=event_name, task_id=task_id,
                     attempts=self.max_attempts, error=str(last_error))
        dead = DeadLetter(
            task_id=task_id,
            event_name=event_name,
            data=data,
            error=str(last_error),
            attempts=self.max_attempts,
        )
        self.dead_letters.append(dead)
        if self.on_dead_letter is not None:
            try:
                self.on_dead_letter(dead)
            except Exception as e:
                logger.error("Dead-letter callback failed", task_id=task_id, error=str(e))

    @staticmethod
    def _log_crash(future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error("Task runner crashed", error=str(error))

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
