"""A beanstalkd broker, backed by greenstalk."""

from collections.abc import Iterator
from contextlib import contextmanager
from math import ceil

import greenstalk

from tubeworker.config import beanstalk_host_and_port, beanstalk_url
from tubeworker.constants import DEFAULT_PRIORITY
from tubeworker.exception import BrokerDisconnected
from tubeworker.utils.logging_config import get_logger

log = get_logger(__name__)

DEFAULT_TUBE = "default"


@contextmanager
def connection_errors(address: str) -> Iterator[None]:
    """Report socket-level failures as BrokerDisconnected."""

    try:
        yield
    except OSError as err:
        raise BrokerDisconnected(f"Lost connection to beanstalkd at {address}: {err}") from err


class BeanstalkReservedJob:
    """A reservation held on a beanstalkd connection."""

    def __init__(self, broker: "BeanstalkBroker", job: greenstalk.Job) -> None:
        self._broker = broker
        self._job = job
        self._ttr: int | None = None

    def __repr__(self) -> str:
        return f"BeanstalkReservedJob(job_id={self.job_id})"

    @property
    def job_id(self) -> int:
        return self._job.id

    @property
    def body(self) -> str:
        return self._job.body

    @property
    def time_to_run(self) -> float:
        if self._ttr is None:
            with connection_errors(self._broker.address):
                self._ttr = int(self._broker.client.stats_job(self._job)["ttr"])
        return self._ttr

    def delete(self) -> None:
        with connection_errors(self._broker.address):
            self._broker.client.delete(self._job)

    def bury(self) -> None:
        with connection_errors(self._broker.address):
            self._broker.client.bury(self._job, priority=DEFAULT_PRIORITY)

    def touch(self) -> None:
        with connection_errors(self._broker.address):
            self._broker.client.touch(self._job)

    def release(self, delay: int = 0) -> None:
        with connection_errors(self._broker.address):
            self._broker.client.release(self._job, priority=DEFAULT_PRIORITY, delay=delay)


class BeanstalkBroker:
    """One beanstalkd connection, opened on first use."""

    def __init__(self, host: str = "localhost", port: int = 11300) -> None:
        self.host = host
        self.port = port
        self._client: greenstalk.Client | None = None
        self._using = DEFAULT_TUBE
        # a fresh connection watches only the default tube
        self._watching: list[str] = [DEFAULT_TUBE]

    @classmethod
    def from_url(cls, url: str | None = None) -> "BeanstalkBroker":
        """Build a broker from a beanstalk:// URL, or BEANSTALK_URL when none is given."""

        host, port = beanstalk_host_and_port(beanstalk_url(url))
        return cls(host, port)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def client(self) -> greenstalk.Client:
        if self._client is None:
            log.debug("Connecting to beanstalkd at %s", self.address)
            with connection_errors(self.address):
                self._client = greenstalk.Client((self.host, self.port))
        return self._client

    def put(self, tube: str, body: str, priority: int, delay: int, ttr: int) -> int:
        with connection_errors(self.address):
            if tube != self._using:
                self.client.use(tube)
                self._using = tube
            return self.client.put(body, priority=priority, delay=delay, ttr=ttr)

    def reserve(self, timeout: float | None = None) -> BeanstalkReservedJob | None:
        with connection_errors(self.address):
            try:
                job = self.client.reserve(timeout=None if timeout is None else ceil(timeout))
            except (greenstalk.TimedOutError, greenstalk.DeadlineSoonError):
                return None
        return BeanstalkReservedJob(self, job)

    def watch(self, tube: str) -> None:
        with connection_errors(self.address):
            self.client.watch(tube)
        if tube not in self._watching:
            self._watching.append(tube)

    def ignore(self, tube: str) -> None:
        with connection_errors(self.address):
            try:
                self.client.ignore(tube)
            except greenstalk.NotIgnoredError:
                log.debug("beanstalkd refused to ignore its last watched tube '%s'", tube)
                return
        if tube in self._watching:
            self._watching.remove(tube)

    def watched_tubes(self) -> list[str]:
        return list(self._watching)

    def stats_tube(self, tube: str) -> dict:
        with connection_errors(self.address):
            return self.client.stats_tube(tube)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
