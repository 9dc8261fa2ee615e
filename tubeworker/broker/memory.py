"""An in-process broker with beanstalkd semantics, for tests and embedding."""

from dataclasses import dataclass
from enum import StrEnum
import itertools
from threading import Condition
import time

from tubeworker.exception import BrokerDisconnected, JobNotFound

DEFAULT_TUBE = "default"


class MemoryJobStatus(StrEnum):
    DELAYED = "delayed"
    READY = "ready"
    RESERVED = "reserved"
    BURIED = "buried"
    DELETED = "deleted"


@dataclass
class MemoryJobEntry:
    """A job as the broker stores it"""

    job_id: int
    tube: str
    body: str
    priority: int
    ttr: int
    status: MemoryJobStatus
    # monotonic time a delayed job becomes ready
    ready_at: float = 0.0
    # monotonic time a reservation expires and the job is redelivered
    reserved_until: float = 0.0


class MemoryReservedJob:
    """Handle on a reservation held against a MemoryBroker."""

    def __init__(self, broker: "MemoryBroker", entry: MemoryJobEntry) -> None:
        self._broker = broker
        self._entry = entry

    def __repr__(self) -> str:
        return f"MemoryReservedJob(job_id={self.job_id}, tube={self._entry.tube!r})"

    @property
    def job_id(self) -> int:
        return self._entry.job_id

    @property
    def body(self) -> str:
        return self._entry.body

    @property
    def time_to_run(self) -> float:
        return self._entry.ttr

    def delete(self) -> None:
        self._broker.delete(self.job_id)

    def bury(self) -> None:
        self._broker.bury(self.job_id)

    def touch(self) -> None:
        self._broker.touch(self.job_id)

    def release(self, delay: int = 0) -> None:
        self._broker.release(self.job_id, delay)


class MemoryBroker:
    """Thread-safe in-memory broker.

    Reservations that outlive their time-to-run are handed out again on the
    next reserve, as beanstalkd would.
    """

    def __init__(self) -> None:
        self.jobs: dict[int, MemoryJobEntry] = {}
        self.watching: list[str] = [DEFAULT_TUBE]
        self.connected = True
        self._ids = itertools.count(1)
        self._cond = Condition()

    def _check_connected(self) -> None:
        if not self.connected:
            raise BrokerDisconnected("Not connected to the memory broker")

    def disconnect(self) -> None:
        """Simulate losing the connection; every later call raises BrokerDisconnected."""

        with self._cond:
            self.connected = False
            self._cond.notify_all()

    def put(self, tube: str, body: str, priority: int, delay: int, ttr: int) -> int:
        """Put a job on a tube.

        @param tube: The tube to put the job on
        @param body: The job body
        @param priority: Lower values are reserved first
        @param delay: Seconds before the job becomes ready
        @param ttr: Seconds a reservation lasts; at least 1
        @return: The new job ID
        """

        with self._cond:
            self._check_connected()
            job_id = next(self._ids)
            now = time.monotonic()
            self.jobs[job_id] = MemoryJobEntry(
                job_id=job_id,
                tube=tube,
                body=body,
                priority=priority,
                ttr=max(1, ttr),
                status=MemoryJobStatus.DELAYED if delay > 0 else MemoryJobStatus.READY,
                ready_at=now + delay,
            )
            self._cond.notify_all()

        return job_id

    def _refresh(self, now: float) -> None:
        """Promote delayed jobs that are due and expire stale reservations."""

        for entry in self.jobs.values():
            if entry.status is MemoryJobStatus.DELAYED and entry.ready_at <= now:
                entry.status = MemoryJobStatus.READY
            elif entry.status is MemoryJobStatus.RESERVED and entry.reserved_until <= now:
                entry.status = MemoryJobStatus.READY

    def _next_wakeup(self, now: float) -> float | None:
        pending = [
            entry.ready_at if entry.status is MemoryJobStatus.DELAYED else entry.reserved_until
            for entry in self.jobs.values()
            if entry.status in (MemoryJobStatus.DELAYED, MemoryJobStatus.RESERVED)
        ]
        return max(0.0, min(pending) - now) if pending else None

    def reserve(self, timeout: float | None = None) -> MemoryReservedJob | None:
        """Reserve the most urgent ready job on a watched tube.

        @param timeout: Seconds to wait; None waits forever
        @return: The reserved job, or None if nothing became ready in time
        """

        give_up_at = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            while True:
                self._check_connected()
                now = time.monotonic()
                self._refresh(now)

                ready = [
                    entry
                    for entry in self.jobs.values()
                    if entry.status is MemoryJobStatus.READY and entry.tube in self.watching
                ]
                if ready:
                    entry = min(ready, key=lambda item: (item.priority, item.job_id))
                    entry.status = MemoryJobStatus.RESERVED
                    entry.reserved_until = now + entry.ttr
                    return MemoryReservedJob(self, entry)

                if give_up_at is not None and now >= give_up_at:
                    return None

                waits = [
                    wait
                    for wait in (self._next_wakeup(now), None if give_up_at is None else give_up_at - now)
                    if wait is not None
                ]
                self._cond.wait(min(waits) if waits else None)

    def _reserved(self, job_id: int) -> MemoryJobEntry:
        self._check_connected()
        self._refresh(time.monotonic())

        entry = self.jobs.get(job_id)
        if entry is None or entry.status is not MemoryJobStatus.RESERVED:
            raise JobNotFound(f"Job {job_id} is not reserved")
        return entry

    def delete(self, job_id: int) -> None:
        with self._cond:
            self._check_connected()
            entry = self.jobs.get(job_id)
            if entry is None:
                raise JobNotFound(f"Job {job_id} does not exist")
            del self.jobs[job_id]

    def bury(self, job_id: int) -> None:
        with self._cond:
            self._reserved(job_id).status = MemoryJobStatus.BURIED

    def touch(self, job_id: int) -> None:
        with self._cond:
            entry = self._reserved(job_id)
            entry.reserved_until = time.monotonic() + entry.ttr

    def release(self, job_id: int, delay: int = 0) -> None:
        with self._cond:
            entry = self._reserved(job_id)
            entry.status = MemoryJobStatus.DELAYED if delay > 0 else MemoryJobStatus.READY
            entry.ready_at = time.monotonic() + delay
            self._cond.notify_all()

    def kick(self, tube: str, bound: int) -> int:
        """Move up to `bound` buried jobs on a tube back to ready.

        @return: How many jobs were kicked
        """

        with self._cond:
            self._check_connected()
            buried = sorted(
                (entry for entry in self.jobs.values() if entry.tube == tube and entry.status is MemoryJobStatus.BURIED),
                key=lambda item: item.job_id,
            )[:bound]
            for entry in buried:
                entry.status = MemoryJobStatus.READY
            self._cond.notify_all()
            return len(buried)

    def watch(self, tube: str) -> None:
        with self._cond:
            self._check_connected()
            if tube not in self.watching:
                self.watching.append(tube)
            self._cond.notify_all()

    def ignore(self, tube: str) -> None:
        with self._cond:
            self._check_connected()
            # beanstalkd never lets a connection ignore its last tube
            if tube in self.watching and len(self.watching) > 1:
                self.watching.remove(tube)

    def watched_tubes(self) -> list[str]:
        with self._cond:
            self._check_connected()
            return list(self.watching)

    def job_status(self, job_id: int) -> MemoryJobStatus:
        """A job's current status; deleted jobs are forgotten, so any unknown ID reads as deleted."""

        with self._cond:
            self._refresh(time.monotonic())
            entry = self.jobs.get(job_id)
            return entry.status if entry is not None else MemoryJobStatus.DELETED

    def stats_tube(self, tube: str) -> dict[str, int]:
        """Count a tube's jobs by status, using beanstalkd's stat names."""

        with self._cond:
            self._check_connected()
            self._refresh(time.monotonic())
            entries = [entry for entry in self.jobs.values() if entry.tube == tube]

            def count(status: MemoryJobStatus) -> int:
                return sum(1 for entry in entries if entry.status is status)

            return {
                "current-jobs-ready": count(MemoryJobStatus.READY),
                "current-jobs-reserved": count(MemoryJobStatus.RESERVED),
                "current-jobs-buried": count(MemoryJobStatus.BURIED),
                "current-jobs-delayed": count(MemoryJobStatus.DELAYED),
            }

    def close(self) -> None:
        pass
