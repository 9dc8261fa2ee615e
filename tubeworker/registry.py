"""Handler, before-filter and error-handler registration."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import inspect
from threading import Lock
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from tubeworker.broker.base import ReservedJob

Handler: TypeAlias = Callable[..., Any]
BeforeFilter: TypeAlias = Callable[[str], Any]


@dataclass(frozen=True)
class MinimalErrorHandler:
    """An error handler that only wants the exception."""

    fn: Callable[[BaseException], Any]

    def call(
        self,
        error: BaseException,
        name: str | None,
        args: Mapping[str, Any],
        job: "ReservedJob",
        style_opts: Mapping[str, Any],
    ) -> Any:
        return self.fn(error)


@dataclass(frozen=True)
class StandardErrorHandler:
    """An error handler receiving the exception, job name and decoded args."""

    fn: Callable[[BaseException, str | None, Mapping[str, Any]], Any]

    def call(
        self,
        error: BaseException,
        name: str | None,
        args: Mapping[str, Any],
        job: "ReservedJob",
        style_opts: Mapping[str, Any],
    ) -> Any:
        return self.fn(error, name, args)


@dataclass(frozen=True)
class FullErrorHandler:
    """An error handler that also gets the reserved job and its style options,
    so it can resolve the job itself."""

    fn: Callable[[BaseException, str | None, Mapping[str, Any], "ReservedJob", Mapping[str, Any]], Any]

    def call(
        self,
        error: BaseException,
        name: str | None,
        args: Mapping[str, Any],
        job: "ReservedJob",
        style_opts: Mapping[str, Any],
    ) -> Any:
        return self.fn(error, name, args, job, style_opts)


ErrorHandler: TypeAlias = MinimalErrorHandler | StandardErrorHandler | FullErrorHandler


def _positional_arity(fn: Callable[..., Any]) -> int | None:
    """Count the positional parameters a callable declares, or None if it takes *args
    or can't be introspected."""

    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return None

    count = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


def error_handler_for(fn: Callable[..., Any] | ErrorHandler) -> ErrorHandler:
    """Pick the error-handler variant for a plain callable from its declared arity.

    One parameter is the legacy form, five the full form; anything else gets
    the standard (error, name, args) form.

    @param fn: The callable, or an already-built variant (returned unchanged)
    @return: The error handler variant
    """

    if isinstance(fn, (MinimalErrorHandler, StandardErrorHandler, FullErrorHandler)):
        return fn

    match _positional_arity(fn):
        case 1:
            return MinimalErrorHandler(fn)
        case 5:
            return FullErrorHandler(fn)
        case _:
            return StandardErrorHandler(fn)


class JobRegistry:
    """Job handlers, before filters and the error handler for one worker.

    Populate it during start-up, before the worker starts reserving jobs.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._before_filters: list[BeforeFilter] = []
        self._error_handler: ErrorHandler | None = None
        self._lock = Lock()

    def register_handler(self, name: str, handler: Handler) -> Handler:
        """Register the handler for a job name, replacing any previous one.

        @param name: The job (and tube) name
        @param handler: Called with `args` for classic jobs, or
            `(args, job, style_opts)` for extended jobs
        @return: The handler, so this can back a decorator
        """

        if not name:
            raise ValueError("Job name must be a non-empty string")

        with self._lock:
            self._handlers[name] = handler
        return handler

    def job(self, name: str) -> Callable[[Handler], Handler]:
        """Decorator form of register_handler.

        Usage:
            @registry.job("email.send")
            def send_email(args):
                ...
        """

        def decorator(fn: Handler) -> Handler:
            return self.register_handler(name, fn)

        return decorator

    def register_before_filter(self, fn: BeforeFilter) -> BeforeFilter:
        with self._lock:
            self._before_filters.append(fn)
        return fn

    before = register_before_filter

    def register_error_handler(self, fn: Callable[..., Any] | ErrorHandler) -> Callable[..., Any] | ErrorHandler:
        """Set the error handler, replacing any previous one.

        @param fn: A callable (its variant is chosen by arity) or an error handler variant
        @return: What was passed in, so this can back a decorator
        """

        handler = error_handler_for(fn)
        with self._lock:
            self._error_handler = handler
        return fn

    error = register_error_handler

    def minimal_error_handler(self, fn: Callable[[BaseException], Any]) -> Callable[[BaseException], Any]:
        self.register_error_handler(MinimalErrorHandler(fn))
        return fn

    def standard_error_handler(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        self.register_error_handler(StandardErrorHandler(fn))
        return fn

    def full_error_handler(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        self.register_error_handler(FullErrorHandler(fn))
        return fn

    def handler_for(self, name: str | None) -> Handler | None:
        if name is None:
            return None
        with self._lock:
            return self._handlers.get(name)

    def all_job_names(self) -> list[str]:
        with self._lock:
            return list(self._handlers)

    def has_handlers(self) -> bool:
        with self._lock:
            return bool(self._handlers)

    @property
    def before_filters(self) -> tuple[BeforeFilter, ...]:
        with self._lock:
            return tuple(self._before_filters)

    @property
    def error_handler(self) -> ErrorHandler | None:
        with self._lock:
            return self._error_handler

    def clear(self) -> None:
        """Forget every handler, filter and the error handler. Mostly for tests."""

        with self._lock:
            self._handlers = {}
            self._before_filters = []
            self._error_handler = None

    reset = clear
