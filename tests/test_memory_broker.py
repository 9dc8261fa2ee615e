"""Tests for MemoryBroker"""

import threading
import time

import pytest

from tubeworker.broker.base import Broker, ReservedJob
from tubeworker.broker.memory import MemoryBroker, MemoryJobStatus
from tubeworker.exception import BrokerDisconnected, JobNotFound


def put(broker, tube="default", body="{}", priority=100, delay=0, ttr=10):
    return broker.put(tube, body, priority=priority, delay=delay, ttr=ttr)


def test_memory_broker_satisfies_the_protocols(broker):
    assert isinstance(broker, Broker)

    put(broker)
    assert isinstance(broker.reserve(timeout=0), ReservedJob)


def test_put_then_reserve(broker):
    job_id = put(broker, body="hello")
    job = broker.reserve(timeout=0)

    assert job.job_id == job_id
    assert job.body == "hello"
    assert job.time_to_run == 10
    assert broker.job_status(job_id) is MemoryJobStatus.RESERVED


def test_reserve_only_from_watched_tubes(broker):
    put(broker, tube="elsewhere")

    assert broker.reserve(timeout=0) is None

    broker.watch("elsewhere")
    assert broker.reserve(timeout=0) is not None


def test_lower_priority_values_first_then_fifo(broker):
    low = put(broker, priority=10)
    first_high = put(broker, priority=1)
    second_high = put(broker, priority=1)

    assert [broker.reserve(timeout=0).job_id for _ in range(3)] == [first_high, second_high, low]


def test_ttr_is_at_least_one_second(broker):
    put(broker, ttr=0)
    assert broker.reserve(timeout=0).time_to_run == 1


def test_delayed_jobs_become_ready(broker):
    job_id = put(broker, delay=1)

    assert broker.job_status(job_id) is MemoryJobStatus.DELAYED
    assert broker.reserve(timeout=0) is None

    job = broker.reserve(timeout=2)
    assert job.job_id == job_id


def test_reserve_times_out(broker):
    started = time.monotonic()
    assert broker.reserve(timeout=0.2) is None
    assert time.monotonic() - started >= 0.2


def test_reserve_wakes_when_a_job_arrives(broker):
    timer = threading.Timer(0.1, put, args=(broker,))
    timer.start()

    job = broker.reserve(timeout=5)
    timer.join()

    assert job is not None


def test_expired_reservations_are_redelivered(broker):
    job_id = put(broker, ttr=1)
    first = broker.reserve(timeout=0)

    time.sleep(1.1)

    second = broker.reserve(timeout=0)
    assert second.job_id == first.job_id == job_id
    assert broker.job_status(job_id) is MemoryJobStatus.RESERVED


def test_resolving_an_expired_reservation_fails(broker):
    put(broker, ttr=1)
    job = broker.reserve(timeout=0)

    time.sleep(1.1)

    with pytest.raises(JobNotFound):
        job.touch()


def test_touch_extends_the_reservation(broker):
    put(broker, ttr=1)
    job = broker.reserve(timeout=0)

    for _ in range(3):
        time.sleep(0.4)
        job.touch()

    assert broker.job_status(job.job_id) is MemoryJobStatus.RESERVED
    assert broker.reserve(timeout=0) is None


def test_bury_and_kick(broker):
    job_id = put(broker)
    broker.reserve(timeout=0).bury()

    assert broker.job_status(job_id) is MemoryJobStatus.BURIED
    assert broker.stats_tube("default")["current-jobs-buried"] == 1

    assert broker.kick("default", 10) == 1
    assert broker.job_status(job_id) is MemoryJobStatus.READY


def test_bury_requires_a_reservation(broker):
    job_id = put(broker)

    with pytest.raises(JobNotFound):
        broker.bury(job_id)


def test_release_with_delay(broker):
    job_id = put(broker)
    broker.reserve(timeout=0).release(delay=5)

    assert broker.job_status(job_id) is MemoryJobStatus.DELAYED


def test_delete_twice_fails(broker):
    put(broker)
    job = broker.reserve(timeout=0)
    job.delete()

    with pytest.raises(JobNotFound):
        job.delete()


def test_delete_a_buried_job(broker):
    job_id = put(broker)
    job = broker.reserve(timeout=0)
    job.bury()
    job.delete()

    assert broker.job_status(job_id) is MemoryJobStatus.DELETED


def test_cannot_ignore_the_last_tube(broker):
    broker.ignore("default")
    assert broker.watched_tubes() == ["default"]

    broker.watch("my.job")
    broker.ignore("default")
    assert broker.watched_tubes() == ["my.job"]


def test_stats_tube_counts_by_status(broker):
    put(broker, tube="my.job")
    put(broker, tube="my.job")
    put(broker, tube="my.job", delay=60)
    broker.watch("my.job")
    broker.reserve(timeout=0)

    assert broker.stats_tube("my.job") == {
        "current-jobs-ready": 1,
        "current-jobs-reserved": 1,
        "current-jobs-buried": 0,
        "current-jobs-delayed": 1,
    }


def test_disconnected_broker_raises(broker):
    broker.disconnect()

    with pytest.raises(BrokerDisconnected):
        put(broker)
    with pytest.raises(BrokerDisconnected):
        broker.reserve(timeout=0)


def test_disconnect_wakes_a_blocked_reserve():
    broker = MemoryBroker()
    errors = []

    def reserve():
        try:
            broker.reserve()
        except BrokerDisconnected as err:
            errors.append(err)

    thread = threading.Thread(target=reserve)
    thread.start()
    time.sleep(0.1)
    broker.disconnect()
    thread.join(timeout=2)

    assert len(errors) == 1


def test_deleted_jobs_are_forgotten(broker):
    first = put(broker)
    second = put(broker)
    broker.reserve(timeout=0).delete()

    assert list(broker.jobs) == [second]
    assert broker.job_status(first) is MemoryJobStatus.DELETED
