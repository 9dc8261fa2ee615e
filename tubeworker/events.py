"""Events

Workers should be observable. The dispatcher and worker emit events describing
each job's progress; a sink decides where they go. The default sink writes each
event as one plain-text log line (or a block of lines, for errors).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
import logging
import os
from typing import Any, Protocol

from tblib import Traceback  # type: ignore[import-untyped]

from tubeworker.utils.logging_config import get_logger

# Shown in place of a job name when the body could not be decoded
MALFORMED_JOB_NAME = "<malformed>"


class WorkerEvent(ABC):
    """Base class for all tubeworker events"""

    level: int = logging.INFO

    @abstractmethod
    def message(self) -> str:
        """Render the event as plain text.

        @return: The log line(s) for this event
        """
        raise NotImplementedError


@dataclass
class WorkerStartedEvent(WorkerEvent):
    """The worker finished preparing and is about to reserve jobs"""

    worker_id: str
    job_names: list[str]

    def message(self) -> str:
        return f"Working {len(self.job_names)} jobs: [ {' '.join(self.job_names)} ]"


@dataclass
class JobStartedEvent(WorkerEvent):
    """A handler is about to run"""

    job_name: str
    args: Mapping[str, Any]

    def message(self) -> str:
        if not self.args:
            return f"Working {self.job_name}"

        args_flat = " ".join(f"{key}={value}" for key, value in self.args.items())
        return f"Working {self.job_name} ({args_flat})"


@dataclass
class JobFinishedEvent(WorkerEvent):
    """A job was resolved, successfully or not"""

    job_name: str | None
    duration_ms: int
    failed: bool = False

    def message(self) -> str:
        name = self.job_name if self.job_name is not None else MALFORMED_JOB_NAME
        line = f"Finished {name} in {self.duration_ms}ms"
        return f"{line} (failed)" if self.failed else line


@dataclass
class JobErrorEvent(WorkerEvent):
    """A job, its before filters, or its decoding raised"""

    job_name: str | None
    error: BaseException

    level = logging.ERROR

    def message(self) -> str:
        return exception_message(self.error)


@dataclass
class BrokerDisconnectedEvent(WorkerEvent):
    """The broker connection was lost; the worker is about to exit"""

    error: BaseException
    url: str

    level = logging.ERROR

    def message(self) -> str:
        return "\n".join([
            exception_message(self.error),
            f"*** Failed connection to {self.url}",
            "*** Check that beanstalkd is running (or set a different BEANSTALK_URL)",
        ])


def exception_message(error: BaseException, base_dir: str | None = None) -> str:
    """Describe an exception and its stack, with paths relative to the working directory.

    @param error: The exception
    @param base_dir: Directory to strip from frame paths; defaults to the cwd
    @return: The header line followed by one indented line per frame
    """

    base = os.path.abspath(base_dir or os.getcwd()) + os.sep
    lines = [f"Exception {type(error).__name__} -> {error}"]

    if error.__traceback__ is None:
        return "\n".join(lines)

    frame = Traceback(error.__traceback__)
    while frame is not None:
        filename = os.path.abspath(frame.tb_frame.f_code.co_filename)
        if filename.startswith(base):
            filename = filename[len(base):]
        lines.append(f"   {filename}:{frame.tb_lineno}:in {frame.tb_frame.f_code.co_name}")
        frame = frame.tb_next

    return "\n".join(lines)


class EventSink(Protocol):
    """Protocol for event sinks to support dependency injection."""

    def handle_event(self, event: WorkerEvent) -> None:
        """Receive an event from the worker or dispatcher."""
        ...


class NoOpSink:
    """A sink that does nothing. Use to silence a worker."""

    def handle_event(self, event: WorkerEvent) -> None:
        pass


class LoggingSink:
    """Write each event's text to the tubeworker logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or get_logger("tubeworker")

    def handle_event(self, event: WorkerEvent) -> None:
        self.logger.log(event.level, event.message())
