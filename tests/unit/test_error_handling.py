"""
Unit tests for error categorization and store-error translation.

Tests cover:
- Exception taxonomy helpers
- translate_store_errors mapping
- retry_transient backoff loop
"""

import pytest
from sqlalchemy.exc import DataError, IntegrityError, OperationalError

from refnet.utils.db_decorators import translate_store_errors
from refnet.utils.exceptions import (
    BalanceInvariantBroken,
    ConflictError,
    CycleDetected,
    DuplicateMember,
    InvariantViolation,
    MalformedEvent,
    TransactionTimeout,
    TransientError,
    ValidationError,
    is_retryable,
)
from refnet.utils.retry import retry_transient


class TestTaxonomy:
    """Test exception categories."""

    def test_transient_errors_are_retryable(self):
        assert is_retryable(TransientError())
        assert is_retryable(TransactionTimeout())
        assert is_retryable(TimeoutError())

    def test_validation_errors_are_not_retryable(self):
        assert not is_retryable(MalformedEvent("bad"))
        assert isinstance(MalformedEvent("bad"), ValidationError)

    def test_invariant_violations_are_not_retryable(self):
        assert not is_retryable(CycleDetected("loop"))
        assert isinstance(BalanceInvariantBroken("drift"), InvariantViolation)

    def test_context_is_kept(self):
        error = DuplicateMember("already enrolled", member_id="alice")

        assert error.message == "already enrolled"
        assert error.context == {"member_id": "alice"}
        assert str(error) == "already enrolled"

    def test_default_message(self):
        assert TransientError().message == "TransientError"


class TestTranslateStoreErrors:
    """Test mapping of store failures."""

    async def _raise(self, exc):
        @translate_store_errors
        async def operation():
            raise exc

        return await operation()

    async def test_integrity_error_is_conflict(self):
        with pytest.raises(ConflictError):
            await self._raise(IntegrityError("INSERT", {}, Exception("unique")))

    async def test_operational_error_is_transient(self):
        with pytest.raises(TransientError):
            await self._raise(OperationalError("BEGIN", {}, Exception("locked")))

    async def test_data_error_is_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            await self._raise(
                DataError("INSERT", {}, Exception("numeric field overflow"))
            )

        assert not isinstance(exc_info.value, TransientError)
        assert not is_retryable(exc_info.value)

    async def test_timeout_is_transaction_timeout(self):
        with pytest.raises(TransactionTimeout):
            await self._raise(TimeoutError())

    async def test_domain_errors_pass_through(self):
        error = MalformedEvent("bad amount")

        with pytest.raises(MalformedEvent) as exc_info:
            await self._raise(error)

        assert exc_info.value is error

    async def test_invariant_violations_reraised(self):
        with pytest.raises(InvariantViolation):
            await self._raise(CycleDetected("loop", member_id="alice"))

    async def test_return_value_preserved(self):
        @translate_store_errors
        async def operation(value):
            return value * 2

        assert await operation(21) == 42


class TestRetryTransient:
    """Test retry helper."""

    async def test_succeeds_after_transient_failures(self):
        attempts = []

        async def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise TransientError("locked")
            return "done"

        result = await retry_transient(operation, max_attempts=3, base_delay=0)

        assert result == "done"
        assert len(attempts) == 3

    async def test_gives_up_after_max_attempts(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise TransientError("down")

        with pytest.raises(TransientError):
            await retry_transient(operation, max_attempts=2, base_delay=0)

        assert len(attempts) == 2

    async def test_validation_errors_not_retried(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise MalformedEvent("bad")

        with pytest.raises(MalformedEvent):
            await retry_transient(operation, max_attempts=3, base_delay=0)

        assert len(attempts) == 1
