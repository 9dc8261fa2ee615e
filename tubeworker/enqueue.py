"""Producer side: put jobs on the tube named after them."""

from collections.abc import Mapping
from typing import Any

from tubeworker.broker.base import Broker
from tubeworker.constants import DEFAULT_DELAY, DEFAULT_PRIORITY, DEFAULT_TTR
from tubeworker.envelope import StyleOptions, encode


def enqueue(
    broker: Broker,
    name: str,
    args: Mapping[Any, Any] | None = None,
    *,
    priority: int = DEFAULT_PRIORITY,
    delay: int = DEFAULT_DELAY,
    ttr: int = DEFAULT_TTR,
    extended: bool = False,
    style_opts: Mapping[Any, Any] | StyleOptions | None = None,
) -> int:
    """Put a job on the tube named after it.

    @param broker: The broker to put the job on
    @param name: The job name, which is also the tube
    @param args: JSON-compatible arguments for the handler
    @param priority: Lower values are reserved first
    @param delay: Seconds before the job can be reserved
    @param ttr: Seconds a worker may hold the job; the handler gets one less
    @param extended: Call the handler as handler(args, job, style_opts)
    @param style_opts: Lifecycle options for extended jobs
    @return: The broker's job ID
    @raises BrokerDisconnected: If the broker can't be reached
    """

    body = encode(name, args, extended, style_opts)
    return broker.put(name, body, priority=priority, delay=delay, ttr=ttr)
