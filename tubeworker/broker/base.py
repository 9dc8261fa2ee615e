"""The broker seams: what a worker needs from a queue and from a reserved job."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ReservedJob(Protocol):
    """A job the broker has reserved for this worker.

    The worker borrows it for the length of one dispatch; the broker owns it.
    """

    @property
    def job_id(self) -> int: ...

    @property
    def body(self) -> str: ...

    @property
    def time_to_run(self) -> float:
        """Seconds the reservation lasts before the broker redelivers the job."""
        ...

    def delete(self) -> None: ...

    def bury(self) -> None: ...

    def touch(self) -> None:
        """Restart the reservation's time-to-run clock."""
        ...

    def release(self, delay: int = 0) -> None: ...


@runtime_checkable
class Broker(Protocol):
    """The queue broker operations a worker and a producer rely on.

    Implementations raise BrokerDisconnected when the connection is lost.
    """

    def put(self, tube: str, body: str, priority: int, delay: int, ttr: int) -> int:
        """Put a job on a tube.

        @return: The broker's job ID
        """
        ...

    def reserve(self, timeout: float | None = None) -> ReservedJob | None:
        """Reserve the next ready job from any watched tube.

        @param timeout: Seconds to wait; None waits forever
        @return: The reserved job, or None if the wait timed out
        """
        ...

    def watch(self, tube: str) -> None: ...

    def ignore(self, tube: str) -> None: ...

    def watched_tubes(self) -> list[str]: ...

    def close(self) -> None: ...
