"""
Unit tests for wander_travel/api/fallback.py
"""
from conftest import run

from wander_travel.api.fallback import Strategy, first_success, has_result


def returning(value, log=None, name=None):
    async def _run():
        if log is not None:
            log.append(name)
        return value
    return _run


def raising(exc, log=None, name=None):
    async def _run():
        if log is not None:
            log.append(name)
        raise exc
    return _run


class TestFirstSuccess:

    def test_stops_at_first_accepted_value(self):
        log = []
        outcome = run(first_success([
            Strategy("a", returning([], log, "a")),
            Strategy("b", returning([1], log, "b")),
            Strategy("c", returning([2], log, "c")),
        ]))
        assert outcome.name == "b"
        assert outcome.value == [1]
        assert outcome.attempted == 2
        assert log == ["a", "b"]

    def test_exception_is_treated_as_no_result(self):
        outcome = run(first_success([
            Strategy("a", raising(RuntimeError("boom"))),
            Strategy("b", returning("ok")),
        ]))
        assert outcome.succeeded
        assert outcome.name == "b"
        assert outcome.failures == {"a": "boom"}
        assert not outcome.all_raised

    def test_all_raised(self):
        outcome = run(first_success([
            Strategy("a", raising(RuntimeError("x"))),
            Strategy("b", raising(TimeoutError())),
        ]))
        assert not outcome.succeeded
        assert outcome.all_raised
        assert outcome.failures["b"] == "TimeoutError"

    def test_empty_results_are_not_all_raised(self):
        outcome = run(first_success([
            Strategy("a", raising(RuntimeError("x"))),
            Strategy("b", returning(None)),
        ]))
        assert not outcome.succeeded
        assert not outcome.all_raised

    def test_no_strategies(self):
        outcome = run(first_success([]))
        assert not outcome.succeeded
        assert not outcome.all_raised

    def test_custom_accept(self):
        outcome = run(first_success(
            [Strategy("a", returning(0)), Strategy("b", returning(5))],
            accept=lambda v: v > 1,
        ))
        assert outcome.value == 5


class TestHasResult:

    def test_values(self):
        assert not has_result(None)
        assert not has_result([])
        assert not has_result({})
        assert has_result([0])
        assert has_result(3)
