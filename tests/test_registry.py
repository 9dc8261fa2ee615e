"""Tests for JobRegistry"""

import pytest

from tubeworker.registry import JobRegistry, StandardErrorHandler


def test_register_and_look_up_a_handler(registry):
    def send(args):
        pass

    assert registry.register_handler("email.send", send) is send
    assert registry.handler_for("email.send") is send
    assert registry.handler_for("email.receive") is None
    assert registry.handler_for(None) is None


def test_job_decorator_registers_by_name(registry):
    @registry.job("email.send")
    def send(args):
        pass

    assert registry.handler_for("email.send") is send
    assert registry.all_job_names() == ["email.send"]


def test_reregistering_replaces_the_handler(registry):
    registry.register_handler("my.job", lambda args: 1)
    second = registry.register_handler("my.job", lambda args: 2)

    assert registry.handler_for("my.job") is second
    assert registry.all_job_names() == ["my.job"]


def test_empty_job_name_is_rejected(registry):
    with pytest.raises(ValueError):
        registry.register_handler("", lambda args: None)


def test_job_names_keep_registration_order(registry):
    for name in ["c.job", "a.job", "b.job"]:
        registry.register_handler(name, lambda args: None)

    assert registry.all_job_names() == ["c.job", "a.job", "b.job"]


def test_has_handlers(registry):
    assert registry.has_handlers() is False
    registry.register_handler("my.job", lambda args: None)
    assert registry.has_handlers() is True


def test_before_filters_accumulate_in_order(registry):
    def first(name):
        pass

    def second(name):
        pass

    registry.before(first)
    registry.register_before_filter(second)

    assert registry.before_filters == (first, second)


def test_error_handler_defaults_to_none(registry):
    assert registry.error_handler is None


def test_clear_forgets_everything(registry):
    registry.register_handler("my.job", lambda args: None)
    registry.before(lambda name: None)
    registry.error(lambda error, name, args: None)

    registry.clear()

    assert registry.has_handlers() is False
    assert registry.before_filters == ()
    assert registry.error_handler is None


def test_registries_are_independent():
    first = JobRegistry()
    second = JobRegistry()

    first.register_handler("my.job", lambda args: None)
    first.error(lambda error, name, args: None)

    assert second.has_handlers() is False
    assert second.error_handler is None
    assert isinstance(first.error_handler, StandardErrorHandler)
