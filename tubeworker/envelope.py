"""Envelope codec.

A unit of work travels through the broker as JSON text holding a four element
array: `[job_name, args, extended, style_opts]`. `extended` selects how the
handler is called; `style_opts` tunes the extended lifecycle.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
import json
from typing import Any, Self

from tubeworker.exception import MalformedEnvelope


class JobStyle(StrEnum):
    """How a handler is invoked."""

    # handler(args), always under the engine deadline, always auto-deleted
    CLASSIC = "classic"
    # handler(args, job, style_opts), lifecycle tuned by StyleOptions
    EXTENDED = "extended"


@dataclass(frozen=True)
class StyleOptions:
    """Lifecycle switches for extended-style jobs."""

    # The handler deletes, buries or releases the job itself
    explicit_delete: bool = False
    # No engine deadline and no before filters; only the broker's time-to-run applies
    run_job_outside_of_stalker_timeout: bool = False
    # On failure, leave the job un-buried if an error handler is registered
    no_bury_for_error_handler: bool = False
    # Anything else the producer sent along, for the handler's own use
    extra: Mapping[str, Any] = field(default_factory=dict)

    FLAGS = ("explicit_delete", "run_job_outside_of_stalker_timeout", "no_bury_for_error_handler")

    def save(self) -> dict[str, Any]:
        """Serialise to the wire mapping; only set flags are written."""

        data: dict[str, Any] = dict(self.extra)
        for flag in self.FLAGS:
            if getattr(self, flag):
                data[flag] = True
        return data

    @classmethod
    def load(cls, data: Mapping[str, Any] | None) -> Self:
        """Deserialise from the wire mapping. Unknown keys are kept in `extra`.

        @param data: The decoded style-options mapping (or None)
        @return: The style options
        """

        if not data:
            return cls()

        data = {str(key): value for key, value in data.items()}
        flags = {flag: bool(data.pop(flag, False)) for flag in cls.FLAGS}
        return cls(**flags, extra=data)


@dataclass(frozen=True)
class Envelope:
    """A decoded unit of work."""

    job_name: str
    args: dict[str, Any]
    style: JobStyle = JobStyle.CLASSIC
    options: StyleOptions = field(default_factory=StyleOptions)
    # The style-options mapping exactly as it arrived; handlers receive this
    raw_opts: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def extended(self) -> bool:
        return self.style is JobStyle.EXTENDED

    @property
    def style_opts(self) -> dict[str, Any]:
        """The style options as the plain mapping handlers receive.

        Decoded envelopes hand back what the producer sent, false flags and
        non-bool values included.
        """
        if self.raw_opts is not None:
            return dict(self.raw_opts)
        return self.options.save()

    def save(self) -> list[Any]:
        return [self.job_name, self.args, self.extended, self.style_opts]


def _stringify_keys(data: Mapping[Any, Any] | None) -> dict[str, Any]:
    if data is None:
        return {}
    return {str(key): value for key, value in data.items()}


def encode(
    job_name: str,
    args: Mapping[Any, Any] | None = None,
    extended: bool = False,
    style_opts: Mapping[Any, Any] | StyleOptions | None = None,
) -> str:
    """Encode a unit of work as envelope JSON.

    @param job_name: The job name
    @param args: JSON-compatible arguments for the handler
    @param extended: Whether the handler takes (args, job, style_opts)
    @param style_opts: Style options, as a mapping or StyleOptions
    @return: The JSON payload
    @raises TypeError: If args or style_opts hold values JSON can't represent
    """

    if isinstance(style_opts, StyleOptions):
        opts = style_opts.save()
    else:
        opts = _stringify_keys(style_opts)

    return json.dumps([job_name, _stringify_keys(args), bool(extended), opts])


def decode(payload: str | bytes) -> Envelope:
    """Decode envelope JSON into an Envelope.

    @param payload: The job body
    @return: The envelope
    @raises MalformedEnvelope: If the payload isn't a well-formed four element envelope
    """

    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as err:
        raise MalformedEnvelope(f"Job body is not valid JSON: {err}") from err

    if not isinstance(data, list) or len(data) != 4:
        raise MalformedEnvelope(f"Expected a four element array, got {payload!r}")

    job_name, args, extended, style_opts = data

    if not isinstance(job_name, str) or not job_name:
        raise MalformedEnvelope(f"Job name must be a non-empty string, got {job_name!r}")
    if args is not None and not isinstance(args, dict):
        raise MalformedEnvelope(f"Job args must be an object, got {args!r}")
    if not isinstance(extended, bool):
        raise MalformedEnvelope(f"Style flag must be a boolean, got {extended!r}")
    if style_opts is not None and not isinstance(style_opts, dict):
        raise MalformedEnvelope(f"Style options must be an object, got {style_opts!r}")

    raw_opts = _stringify_keys(style_opts)

    return Envelope(
        job_name=job_name,
        args=_stringify_keys(args),
        style=JobStyle.EXTENDED if extended else JobStyle.CLASSIC,
        options=StyleOptions.load(raw_opts),
        raw_opts=raw_opts,
    )
