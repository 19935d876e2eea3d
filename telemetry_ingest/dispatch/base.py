"""
Task dispatcher interface

A dispatcher accepts named events and delivers them at least once to the
handler registered for that name. Handlers receive ``(event_data, step)``;
``step.run(name, fn)`` returns the stored result of a step that already
succeeded in an earlier attempt of the same task instead of running it again.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List

from pydantic import BaseModel

TaskHandler = Callable[[Dict[str, Any], "StepRunner"], Any]


class SendResult(BaseModel):
    task_ids: List[str]


class StepRunner(ABC):
    @abstractmethod
    def run(self, name: str, fn: Callable[[], Any]) -> Any:
        ...


class MemoizedStepRunner(StepRunner):
    """Step runner that keeps successful step results across retries of one task"""

    def __init__(self):
        self.results: Dict[str, Any] = {}

    def run(self, name: str, fn: Callable[[], Any]) -> Any:
        if name in self.results:
            return self.results[name]
        result = fn()
        self.results[name] = result
        return result


class TaskDispatcher(ABC):
    """Queue events for asynchronous handling"""

    def __init__(self):
        self.handlers: Dict[str, TaskHandler] = {}

    def register(self, event_name: str, handler: TaskHandler) -> None:
        self.handlers[event_name] = handler

    @abstractmethod
    def send(self, event_name: str, data: Dict[str, Any]) -> SendResult:
        """Queue one event. Raises DispatchError when it cannot be accepted."""

    def shutdown(self) -> None:
        pass
