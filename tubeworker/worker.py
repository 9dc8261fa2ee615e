"""Workers watch the tubes of their registered jobs, reserve one job at a time and
dispatch it. A failing job never stops the loop; losing the broker does."""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from tubeworker.broker.base import Broker
from tubeworker.config import beanstalk_url
from tubeworker.dispatch import DispatchResult, Dispatcher
from tubeworker.events import BrokerDisconnectedEvent, EventSink, LoggingSink, WorkerStartedEvent
from tubeworker.exception import BrokerDisconnected, NoHandlersRegistered, UnknownJob
from tubeworker.registry import JobRegistry
from tubeworker.utils.id_generator import generate_worker_id
from tubeworker.utils.logging_config import get_logger

log = get_logger(__name__)


class Worker:
    """Pulls jobs from a broker and runs them with a registry's handlers."""

    def __init__(
        self,
        registry: JobRegistry,
        broker: Broker,
        sink: EventSink | None = None,
        worker_id: str | None = None,
        url: str | None = None,
    ) -> None:
        """Create a worker.

        @param registry: The handlers, before filters and error handler to use
        @param broker: Where jobs come from
        @param sink: Receives job events; defaults to logging them
        @param worker_id: A name for this worker in log lines
        @param url: The broker URL, used when reporting a lost connection
        """

        self.registry = registry
        self.broker = broker
        self.sink: EventSink = sink or LoggingSink()
        self.worker_id = worker_id or generate_worker_id()
        self.url = beanstalk_url(url)
        self.dispatcher = Dispatcher(registry, self.sink)

    def prepare(self, job_names: Iterable[str] | None = None) -> list[str]:
        """Watch the tubes for the given jobs (or every registered job), and nothing else.

        @param job_names: The jobs to work; defaults to all registered jobs
        @return: The tubes now watched
        @raises NoHandlersRegistered: If the registry is empty
        @raises UnknownJob: If a named job has no handler
        """

        if not self.registry.has_handlers():
            raise NoHandlersRegistered()

        tubes = list(job_names) if job_names is not None else self.registry.all_job_names()

        for name in tubes:
            if self.registry.handler_for(name) is None:
                raise UnknownJob(name)

        with self._fatal_on_disconnect():
            self.sink.handle_event(WorkerStartedEvent(worker_id=self.worker_id, job_names=tubes))

            for tube in tubes:
                self.broker.watch(tube)

            for tube in self.broker.watched_tubes():
                if tube not in tubes:
                    self.broker.ignore(tube)

        log.debug("Worker %s watching %s", self.worker_id, tubes)
        return tubes

    def run_once(self, timeout: float | None = None) -> DispatchResult | None:
        """Reserve and dispatch exactly one job.

        @param timeout: Seconds to wait for a job; None waits forever
        @return: The dispatch outcome, or None if no job arrived in time
        """

        with self._fatal_on_disconnect():
            job = self.broker.reserve(timeout=timeout)
            if job is None:
                return None
            return self.dispatcher.dispatch_one(job)

    def run_forever(self, job_names: Iterable[str] | None = None) -> None:
        """Prepare, then dispatch jobs until the process is told to stop."""

        self.prepare(job_names)
        while True:
            self.run_once()

    @contextmanager
    def _fatal_on_disconnect(self) -> Iterator[None]:
        try:
            yield
        except BrokerDisconnected as err:
            self.failed_connection(err)

    def failed_connection(self, error: BrokerDisconnected) -> None:
        """Report a lost broker connection and exit the process with status 1."""

        self.sink.handle_event(BrokerDisconnectedEvent(error=error, url=self.url))
        raise SystemExit(1) from error
