"""Tests for enqueueing jobs"""

import json

import pytest

from tubeworker.broker.memory import MemoryJobStatus
from tubeworker.constants import DEFAULT_PRIORITY, DEFAULT_TTR
from tubeworker.enqueue import enqueue
from tubeworker.envelope import StyleOptions
from tubeworker.exception import BrokerDisconnected


def test_enqueue_puts_on_the_tube_named_after_the_job(broker):
    job_id = enqueue(broker, "email.send", {"to": "a@example.com"})

    entry = broker.jobs[job_id]
    assert entry.tube == "email.send"
    assert entry.priority == DEFAULT_PRIORITY
    assert entry.ttr == DEFAULT_TTR
    assert json.loads(entry.body) == ["email.send", {"to": "a@example.com"}, False, {}]


def test_enqueue_with_priority_delay_and_ttr(broker):
    job_id = enqueue(broker, "my.job", priority=5, delay=30, ttr=60)

    entry = broker.jobs[job_id]
    assert entry.priority == 5
    assert entry.ttr == 60
    assert broker.job_status(job_id) is MemoryJobStatus.DELAYED


def test_enqueue_extended_job(broker):
    job_id = enqueue(broker, "my.job", {"a": 1}, extended=True, style_opts=StyleOptions(explicit_delete=True))

    assert json.loads(broker.jobs[job_id].body) == ["my.job", {"a": 1}, True, {"explicit_delete": True}]


def test_enqueue_to_a_lost_broker_raises(broker):
    broker.disconnect()

    with pytest.raises(BrokerDisconnected):
        enqueue(broker, "my.job")
