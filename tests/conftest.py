"""Pytest configuration and fixtures"""

from dataclasses import dataclass, field
from typing import TypeVar

import pytest

from tubeworker.broker.memory import MemoryBroker
from tubeworker.dispatch import Dispatcher
from tubeworker.events import WorkerEvent
from tubeworker.registry import JobRegistry
from tubeworker.worker import Worker

EventType = TypeVar("EventType", bound=WorkerEvent)


@dataclass
class RecordingSink:
    """Event sink that keeps every event for inspection."""

    events: list[WorkerEvent] = field(default_factory=list)

    def handle_event(self, event: WorkerEvent) -> None:
        self.events.append(event)

    def messages(self) -> list[str]:
        return [event.message() for event in self.events]

    def of_type(self, event_type: type[EventType]) -> list[EventType]:
        return [event for event in self.events if isinstance(event, event_type)]


@pytest.fixture
def registry():
    """An empty registry, fresh for each test."""
    return JobRegistry()


@pytest.fixture
def broker():
    return MemoryBroker()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def dispatcher(registry, sink):
    return Dispatcher(registry, sink)


@pytest.fixture
def worker(registry, broker, sink):
    """A worker over the in-memory broker, recording its events."""
    return Worker(registry, broker, sink=sink, worker_id="test-worker", url="beanstalk://localhost/")
