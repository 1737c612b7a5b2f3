"""
Tests des jobs par defaut et du registre de handlers.
"""

from unittest.mock import AsyncMock

import pytest

from mediabroker.core.value_objects.outcomes import SyncSummary
from mediabroker.services.reconciliation import ReconciliationService
from mediabroker.services.scheduler import REQUEST_SYNC, build_job_handlers, default_jobs


def test_default_jobs():
    jobs = default_jobs()

    assert [job.name for job in jobs] == [REQUEST_SYNC]
    assert jobs[0].schedule == "*/5 * * * *"
    assert jobs[0].run_on_start is True
    assert jobs[0].enabled is True


@pytest.mark.asyncio
async def test_request_sync_handler_returns_summary():
    reconciliation = AsyncMock(spec=ReconciliationService)
    reconciliation.sync_pending_requests.return_value = SyncSummary(processed=3, available=1)

    handlers = build_job_handlers(reconciliation)
    details = await handlers[REQUEST_SYNC]()

    reconciliation.sync_pending_requests.assert_awaited_once()
    assert details == str(SyncSummary(processed=3, available=1))


@pytest.mark.asyncio
async def test_request_sync_handler_propagates_errors():
    reconciliation = AsyncMock(spec=ReconciliationService)
    reconciliation.sync_pending_requests.side_effect = RuntimeError("db down")

    handlers = build_job_handlers(reconciliation)

    with pytest.raises(RuntimeError, match="db down"):
        await handlers[REQUEST_SYNC]()
