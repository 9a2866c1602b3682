"""Integration tests for the transaction runner."""

import pytest
from sqlalchemy.exc import IntegrityError

from fypflow.errors import ConcurrencyConflict
from fypflow.orchestration.unit_of_work import run_in_transaction


class TestConflictRetry:
    """Lost races are retried a bounded number of times."""

    @pytest.mark.asyncio
    async def test_conflict_then_success(self, runtime):
        calls = []

        async def work(uow):
            calls.append(uow)
            if len(calls) == 1:
                raise ConcurrencyConflict("raced")
            return "done"

        assert await run_in_transaction(runtime, work) == "done"
        assert len(calls) == 2
        assert calls[0] is not calls[1]

    @pytest.mark.asyncio
    async def test_integrity_error_surfaces_as_conflict(self, runtime):
        calls = []

        async def work(uow):
            calls.append(uow)
            raise IntegrityError("INSERT", {}, Exception("unique"))

        with pytest.raises(ConcurrencyConflict) as exc_info:
            await run_in_transaction(runtime, work, lock_keys=("version:a",), attempts=2)

        assert len(calls) == 2
        assert exc_info.value.details["attempts"] == 2
        assert exc_info.value.details["locks"] == ["version:a"]
        assert runtime.locks.is_held("version:a") is False

    @pytest.mark.asyncio
    async def test_outbox_dropped_on_failure(self, runtime):
        async def work(uow):
            uow.outbox.notifications.append(object())
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await run_in_transaction(runtime, work)

        assert runtime.dispatcher.pending == 0
