from tubeworker.broker import BeanstalkBroker, MemoryBroker
from tubeworker.dispatch import DispatchResult, Dispatcher
from tubeworker.enqueue import enqueue
from tubeworker.envelope import Envelope, JobStyle, StyleOptions
from tubeworker.exception import (
    BrokerDisconnected,
    JobTimeout,
    MalformedEnvelope,
    NoHandlersRegistered,
    UnknownJob,
)
from tubeworker.registry import JobRegistry
from tubeworker.worker import Worker

__version__ = "0.1.0"

__all__ = [
    "BeanstalkBroker",
    "BrokerDisconnected",
    "DispatchResult",
    "Dispatcher",
    "Envelope",
    "JobRegistry",
    "JobStyle",
    "JobTimeout",
    "MalformedEnvelope",
    "MemoryBroker",
    "NoHandlersRegistered",
    "StyleOptions",
    "UnknownJob",
    "Worker",
    "enqueue",
]
