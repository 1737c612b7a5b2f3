"""
Tests du diffuseur de notifications par logs.
"""

import pytest
from loguru import logger

from mediabroker.adapters.notifications import LoggingNotificationDispatcher
from mediabroker.core.ports.notifier import RequestEvent


@pytest.mark.asyncio
async def test_emit_logs_event_with_payload():
    records = []
    handler_id = logger.add(records.append, format="{message}", level="INFO")
    try:
        await LoggingNotificationDispatcher().emit(
            RequestEvent.AVAILABLE, {"request_id": "abc", "title": "Inception"}
        )
    finally:
        logger.remove(handler_id)

    (message,) = records
    extra = message.record["extra"]
    assert extra["event_name"] == "request_available"
    assert extra["request_id"] == "abc"
    assert extra["title"] == "Inception"
    assert "request_available" in message.record["message"]
