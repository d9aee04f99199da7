import asyncio
from unittest.mock import AsyncMock

import pytest

from barista_service.app.core import events as core_events
from barista_service.app.core.events import build_event_runtime, close_events
from barista_service.app.core.setting import BaristaSettings
from barista_service.app.events.bindings import FINISHED_ORDERS, NEW_ORDERS


class TestBuildEventRuntime:
    @pytest.mark.asyncio
    async def test_wires_components_from_settings(self, database, identity):
        settings = BaristaSettings(
            KAFKA_GROUP_ID="barista-group",
            NEW_ORDERS_DESTINATION="orders.new",
            FINISHED_ORDERS_DESTINATION="orders.finished",
            OUTBOX_LEASE_SECONDS=12.0,
        )

        runtime = build_event_runtime(settings, database, identity)

        assert runtime.identity is identity
        assert runtime.intake_handler.identity is identity
        assert runtime.intake_handler.lock_rows is False
        assert runtime.subscriber.topic == "orders.new"
        assert runtime.subscriber.group_id == "barista-group"
        assert runtime.bindings.describe() == {
            "inputs": {NEW_ORDERS: "orders.new"},
            "outputs": {FINISHED_ORDERS: "orders.finished"},
        }
        assert runtime.relay.lease_seconds == 12.0
        assert runtime.relay.publisher.bindings is runtime.bindings

    @pytest.mark.asyncio
    async def test_generates_identity_from_prefix(self, database):
        settings = BaristaSettings(BARISTA_PREFIX="barista-7-")

        runtime = build_event_runtime(settings, database)

        assert runtime.identity.value.startswith("barista-7-")

    @pytest.mark.asyncio
    async def test_close_events_without_runtime(self):
        core_events._runtime = None

        await close_events()

        assert core_events.get_event_runtime() is None
        assert core_events.get_channel_bindings() is None
        assert await core_events.health_check_events() is False

    @pytest.mark.asyncio
    async def test_close_events_stops_publisher_when_relay_crashed(self, database, identity):
        # Arrange
        runtime = build_event_runtime(BaristaSettings(), database, identity)
        runtime.subscriber.stop = AsyncMock()
        runtime.publisher.stop = AsyncMock()

        async def crashed_relay():
            raise RuntimeError("relay crashed")

        runtime.relay_task = asyncio.create_task(crashed_relay())
        await asyncio.sleep(0)
        core_events._runtime = runtime

        # Act
        with pytest.raises(RuntimeError, match="relay crashed"):
            await close_events()

        # Assert
        runtime.subscriber.stop.assert_awaited_once()
        runtime.publisher.stop.assert_awaited_once()
        assert runtime.stop_event.is_set()
        assert core_events.get_event_runtime() is None

    @pytest.mark.asyncio
    async def test_health_requires_an_active_consumer(self, database, identity):
        runtime = build_event_runtime(BaristaSettings(), database, identity)
        runtime.publisher.health_check = AsyncMock(return_value=True)
        core_events._runtime = runtime
        try:
            assert await core_events.health_check_events() is False
        finally:
            core_events._runtime = None
