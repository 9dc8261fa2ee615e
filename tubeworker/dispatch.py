"""Job dispatch: decode one reserved job, run its handler under a deadline, resolve it.

Every dispatch ends with the job resolved exactly once: deleted by the engine,
left to an explicit-delete handler, buried, or left un-buried for the error
handler to deal with.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
import time
from typing import Any

from tubeworker.broker.base import ReservedJob
from tubeworker.constants import DEADLINE_MARGIN_SECONDS
from tubeworker.envelope import Envelope, StyleOptions, decode
from tubeworker.events import (
    EventSink,
    JobErrorEvent,
    JobFinishedEvent,
    JobStartedEvent,
    LoggingSink,
    exception_message,
)
from tubeworker.exception import BrokerDisconnected, DeadlineExceeded, JobTimeout, UnknownJob
from tubeworker.registry import Handler, JobRegistry
from tubeworker.timeout import deadline
from tubeworker.utils.logging_config import get_logger

log = get_logger(__name__)


class DispatchState(StrEnum):
    """The states one dispatch passes through."""

    DECODING = "decoding"
    UNKNOWN_JOB = "unknown_job"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Resolution(StrEnum):
    """How the reserved job was resolved."""

    DELETED = "deleted"
    # explicit_delete: the handler owns the job's fate
    DEFERRED = "deferred"
    BURIED = "buried"
    # no_bury_for_error_handler: the error handler (or broker redelivery) owns it
    LEFT_FOR_ERROR_HANDLER = "left_for_error_handler"


@dataclass
class DispatchResult:
    """The outcome of dispatching one reserved job."""

    job_name: str | None
    # SUCCEEDED, FAILED, or UNKNOWN_JOB when no handler matched
    state: DispatchState
    resolution: Resolution
    error: BaseException | None = None
    duration_ms: int = 0


@dataclass(frozen=True)
class ExecutionParams:
    """The differences between classic and extended handler execution."""

    # Whether before filters and the engine deadline apply
    bounded: bool

    # Whether the engine deletes the job after a successful run
    auto_delete: bool

    # Builds the JobTimeout message from the job name and deadline
    timeout_message: Callable[[str, float], str]


CLASSIC = ExecutionParams(
    bounded=True,
    auto_delete=True,
    timeout_message=lambda name, seconds: f"{name} hit {seconds:g}s timeout",
)


def extended_params(options: StyleOptions) -> ExecutionParams:
    return ExecutionParams(
        bounded=not options.run_job_outside_of_stalker_timeout,
        auto_delete=not options.explicit_delete,
        timeout_message=lambda name, seconds: f"before filters for job {name} hit {seconds:g}s timeout",
    )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class Dispatcher:
    """Runs reserved jobs against a registry, one at a time."""

    def __init__(self, registry: JobRegistry, sink: EventSink | None = None) -> None:
        self.registry = registry
        self.sink: EventSink = sink or LoggingSink()

    def dispatch_one(self, job: ReservedJob) -> DispatchResult:
        """Decode, run and resolve one reserved job.

        Handler, before-filter, decoding and timeout failures are handled here:
        the job is buried (unless the style options say otherwise) and the error
        handler is called. A failing error handler is logged, not raised.
        Broker disconnection is not handled; it propagates.

        @param job: The reserved job
        @return: The outcome
        @raises BrokerDisconnected: If the broker connection is lost mid-dispatch
        """

        started = time.monotonic()
        state = DispatchState.DECODING
        name: str | None = None
        args: dict[str, Any] = {}
        options = StyleOptions()
        style_opts: dict[str, Any] = {}

        try:
            envelope = decode(job.body)
            name, args, options = envelope.job_name, envelope.args, envelope.options
            style_opts = envelope.style_opts

            handler = self.registry.handler_for(name)
            if handler is None:
                state = DispatchState.UNKNOWN_JOB
                raise UnknownJob(name)

            state = DispatchState.RUNNING
            self.sink.handle_event(JobStartedEvent(job_name=name, args=args))

            resolution = self._run(job, envelope, handler, started)

        except BrokerDisconnected:
            raise
        except Exception as err:
            return self._fail(job, err, name, args, options, style_opts, state, started)

        return DispatchResult(
            job_name=name,
            state=DispatchState.SUCCEEDED,
            resolution=resolution,
            duration_ms=_elapsed_ms(started),
        )

    def _run(self, job: ReservedJob, envelope: Envelope, handler: Handler, started: float) -> Resolution:
        name = envelope.job_name

        if envelope.extended:
            params = extended_params(envelope.options)
            style_opts = envelope.style_opts

            def invoke() -> Any:
                return handler(envelope.args, job, style_opts)
        else:
            params = CLASSIC

            def invoke() -> Any:
                return handler(envelope.args)

        if params.bounded:
            self._run_bounded(job, name, invoke, params)
        else:
            invoke()

        if not params.auto_delete:
            return Resolution.DEFERRED

        job.delete()
        self.sink.handle_event(JobFinishedEvent(job_name=name, duration_ms=_elapsed_ms(started)))
        return Resolution.DELETED

    def _run_bounded(self, job: ReservedJob, name: str, invoke: Callable[[], Any], params: ExecutionParams) -> None:
        """Run the before filters, then the handler, inside the engine deadline."""

        seconds = job.time_to_run - DEADLINE_MARGIN_SECONDS

        try:
            with deadline(seconds):
                for before_filter in self.registry.before_filters:
                    before_filter(name)
                invoke()
        except DeadlineExceeded as err:
            raise JobTimeout(name, seconds, params.timeout_message(name, seconds)) from err

    def _fail(
        self,
        job: ReservedJob,
        error: Exception,
        name: str | None,
        args: Mapping[str, Any],
        options: StyleOptions,
        style_opts: Mapping[str, Any],
        state: DispatchState,
        started: float,
    ) -> DispatchResult:
        """Report a failed job, bury it if appropriate, and hand it to the error handler."""

        self.sink.handle_event(JobErrorEvent(job_name=name, error=error))

        error_handler = self.registry.error_handler

        if options.no_bury_for_error_handler and error_handler is not None:
            resolution = Resolution.LEFT_FOR_ERROR_HANDLER
        else:
            resolution = Resolution.BURIED
            try:
                job.bury()
            except Exception as bury_err:
                log.warning("Could not bury job %s: %s", job.job_id, bury_err)

        duration_ms = _elapsed_ms(started)
        self.sink.handle_event(JobFinishedEvent(job_name=name, duration_ms=duration_ms, failed=True))

        if error_handler is not None:
            try:
                error_handler.call(error, name, args, job, style_opts)
            except BrokerDisconnected:
                raise
            except Exception as handler_err:
                log.error("Error handler failed for %s\n%s", name, exception_message(handler_err))

        return DispatchResult(
            job_name=name,
            state=DispatchState.UNKNOWN_JOB if state is DispatchState.UNKNOWN_JOB else DispatchState.FAILED,
            resolution=resolution,
            error=error,
            duration_ms=duration_ms,
        )
