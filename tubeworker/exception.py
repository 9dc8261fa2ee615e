"""Exceptions used throughout tubeworker."""


class TubeworkerError(Exception):
    """Base exception for tubeworker-related errors."""


class NoHandlersRegistered(TubeworkerError):
    """The worker was asked to start with an empty registry."""

    def __init__(self, message: str = "No job handlers registered") -> None:
        super().__init__(message)


class UnknownJob(TubeworkerError):
    """A job name has no registered handler."""

    def __init__(self, name: str | None) -> None:
        self.name = name
        super().__init__(f"No handler registered for job '{name}'")


class MalformedEnvelope(TubeworkerError):
    """A reserved job's body could not be decoded into an envelope."""


class JobTimeout(TubeworkerError):
    """A job (or its before filters) ran past the engine deadline."""

    def __init__(self, name: str, seconds: float, message: str | None = None) -> None:
        self.name = name
        self.seconds = seconds
        super().__init__(message or f"{name} hit {seconds:g}s timeout")


class BrokerDisconnected(TubeworkerError):
    """The connection to the queue broker was lost. Fatal for a worker."""


class JobNotFound(TubeworkerError):
    """The broker has no reserved job with this ID; it was already resolved or redelivered."""


class BadURL(TubeworkerError):
    """A broker URL could not be parsed into a beanstalk host and port."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(url)


class DeadlineUnavailable(TubeworkerError):
    """A deadline was requested somewhere signals cannot be delivered."""


class DeadlineExceeded(BaseException):
    """Raised from the alarm handler inside user code when a deadline elapses.

    Deriving from BaseException keeps a handler's `except Exception` from
    swallowing it; the dispatcher turns it into a JobTimeout.
    """
