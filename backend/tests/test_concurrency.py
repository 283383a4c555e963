# Overview: Pytest coverage for retry, single-flight and latency padding helpers.

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from stockledger.services.concurrency import (
    SingleFlight,
    SubmissionInProgressError,
    is_transient,
    pad_to_minimum,
    run_with_retry,
)


class TestRunWithRetry:
    """Linear backoff on transient errors only."""

    def test_returns_first_success(self, db_session, fake_sleep):
        assert run_with_retry(lambda: 42, sleep=fake_sleep) == 42
        assert fake_sleep.calls == []

    def test_none_is_a_result_not_a_failure(self, db_session, fake_sleep):
        calls = []

        def lookup():
            calls.append(1)
            return None

        assert run_with_retry(lookup, sleep=fake_sleep) is None
        assert len(calls) == 1

    def test_reraises_after_last_attempt(self, db_session, fake_sleep):
        def always_down():
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        with pytest.raises(OperationalError):
            run_with_retry(always_down, attempts=3, backoff_base=0.5, sleep=fake_sleep)
        assert fake_sleep.calls == [0.5, 1.0]

    def test_non_transient_is_not_retried(self, db_session, fake_sleep):
        def conflict():
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            run_with_retry(conflict, sleep=fake_sleep)
        assert fake_sleep.calls == []

    def test_is_transient(self):
        assert is_transient(OperationalError("SELECT 1", {}, Exception("gone")))
        assert not is_transient(IntegrityError("INSERT", {}, Exception("dup")))
        assert not is_transient(ValueError("nope"))


class TestSingleFlight:
    """One in-flight call per (caller, operation)."""

    def test_second_claim_is_rejected(self):
        guard = SingleFlight()
        with guard.claim("session-1", "add_product"):
            assert guard.is_in_flight("session-1", "add_product")
            with pytest.raises(SubmissionInProgressError):
                with guard.claim("session-1", "add_product"):
                    pass
        assert not guard.is_in_flight("session-1", "add_product")

    def test_keys_are_independent(self):
        guard = SingleFlight()
        with guard.claim("session-1", "add_product"):
            with guard.claim("session-2", "add_product"):
                pass
            with guard.claim("session-1", "record_transaction"):
                pass

    def test_released_on_error(self):
        guard = SingleFlight()
        with pytest.raises(RuntimeError):
            with guard.claim("session-1", "add_product"):
                raise RuntimeError("boom")
        assert not guard.is_in_flight("session-1", "add_product")


class TestPadToMinimum:
    """Successful submissions take at least the configured time."""

    def test_pads_remaining_time(self, fake_sleep):
        slept = pad_to_minimum(10.0, 1.0, clock=lambda: 10.25, sleep=fake_sleep)
        assert slept == pytest.approx(0.75)
        assert fake_sleep.calls == [pytest.approx(0.75)]

    def test_no_pad_when_already_slow(self, fake_sleep):
        assert pad_to_minimum(10.0, 1.0, clock=lambda: 12.0, sleep=fake_sleep) == 0.0
        assert fake_sleep.calls == []

    def test_zero_minimum(self, fake_sleep):
        assert pad_to_minimum(10.0, 0.0, clock=lambda: 10.0, sleep=fake_sleep) == 0.0
        assert fake_sleep.calls == []
