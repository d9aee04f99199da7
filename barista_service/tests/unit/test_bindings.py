"""
Unit tests for channel bindings and the finished-order publisher.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from barista_service.app.core.exceptions import UnknownChannel
from barista_service.app.core.setting import BaristaSettings
from barista_service.app.events.base import MessagePublisher
from barista_service.app.events.bindings import (
    FINISHED_ORDERS,
    NEW_ORDERS,
    ChannelBindings,
)
from barista_service.app.events.producers import FinishedOrderPublisher


class TestChannelBindings:
    @pytest.fixture
    def mock_publisher(self):
        publisher = Mock(spec=MessagePublisher)
        publisher.send = AsyncMock()
        return publisher

    def test_from_settings_uses_configured_destinations(self, mock_publisher):
        settings = BaristaSettings(
            NEW_ORDERS_DESTINATION="orders.new.v2",
            FINISHED_ORDERS_DESTINATION="orders.finished.v2",
        )

        bindings = ChannelBindings.from_settings(settings, mock_publisher)

        assert bindings.input_destination(NEW_ORDERS) == "orders.new.v2"
        assert bindings.resolve(FINISHED_ORDERS).destination == "orders.finished.v2"
        assert bindings.describe() == {
            "inputs": {NEW_ORDERS: "orders.new.v2"},
            "outputs": {FINISHED_ORDERS: "orders.finished.v2"},
        }

    def test_resolve_unknown_channel(self, mock_publisher):
        bindings = ChannelBindings(inputs={}, outputs={}, publisher=mock_publisher)

        with pytest.raises(UnknownChannel):
            bindings.resolve(FINISHED_ORDERS)
        with pytest.raises(UnknownChannel):
            bindings.input_destination(NEW_ORDERS)

    @pytest.mark.asyncio
    async def test_output_channel_sends_to_bound_destination(self, mock_publisher):
        bindings = ChannelBindings(
            inputs={}, outputs={FINISHED_ORDERS: "finished"}, publisher=mock_publisher
        )

        await bindings.resolve(FINISHED_ORDERS).send("42", key="42")

        mock_publisher.send.assert_awaited_once_with("finished", "42", key="42")


class TestFinishedOrderPublisher:
    @pytest.mark.asyncio
    async def test_publish_sends_bare_identifier(self, bindings, publisher):
        finished = FinishedOrderPublisher(bindings)

        await finished.publish(42)

        assert publisher.sent == [("finishedOrders", "42", "42")]

    @pytest.mark.asyncio
    async def test_destination_is_resolved_per_call(self, publisher):
        bindings = ChannelBindings(
            inputs={}, outputs={FINISHED_ORDERS: "first"}, publisher=publisher
        )
        finished = FinishedOrderPublisher(bindings)
        await finished.publish(1)

        # Rebinding the table is visible to the next publish
        finished.bindings = ChannelBindings(
            inputs={}, outputs={FINISHED_ORDERS: "second"}, publisher=publisher
        )
        await finished.publish(2)

        assert publisher.payloads("first") == ["1"]
        assert publisher.payloads("second") == ["2"]

    @pytest.mark.asyncio
    async def test_unbound_channel_raises(self, bindings):
        finished = FinishedOrderPublisher(bindings, channel="servedOrders")

        with pytest.raises(UnknownChannel):
            await finished.publish(5)
