"""Hard deadlines for handler execution, via SIGALRM.

The alarm interrupts whatever Python code is running (including blocking
sleeps and socket reads) by raising DeadlineExceeded from the signal handler.
"""

from collections.abc import Iterator
from contextlib import contextmanager
import signal
import threading

from tubeworker.exception import DeadlineExceeded, DeadlineUnavailable


def times_up(_signum, _frame):
    raise DeadlineExceeded("Job execution timed out")


@contextmanager
def deadline(seconds: float | None) -> Iterator[None]:
    """Run the enclosed block under a hard deadline.

    A deadline of None, zero or less imposes no limit.

    @param seconds: Seconds before the block is interrupted
    @raises DeadlineExceeded: From inside the block, when the deadline elapses
    @raises DeadlineUnavailable: If called off the main thread
    """

    if not seconds or seconds <= 0:
        yield
        return

    if threading.current_thread() is not threading.main_thread():
        raise DeadlineUnavailable("Job deadlines rely on SIGALRM, which only the main thread receives")

    previous = signal.signal(signal.SIGALRM, times_up)
    try:
        try:
            signal.setitimer(signal.ITIMER_REAL, seconds)
            yield
        finally:
            # the alarm may still fire before it is disarmed
            signal.setitimer(signal.ITIMER_REAL, 0)
    finally:
        signal.signal(signal.SIGALRM, previous)
