"""
Integration tests for the live price WebSocket.

Tests the push format and the period control protocol against the
real broadcast scheduler.
"""

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.testclient import WebSocketTestSession

from arbscanner.config.constants import ASSETS, EXCHANGES
from arbscanner.config.settings import Settings
from arbscanner.dashboard.server import create_app


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def receive_reply(ws: WebSocketTestSession, max_messages: int = 200) -> dict[str, Any]:
    """Skip price pushes until the first control reply arrives."""
    for _ in range(max_messages):
        message = ws.receive_json()
        if message["type"] != "price_updates":
            return message
    raise AssertionError("No control reply received")


class TestPriceStream:
    """Tests for /ws."""

    def test_receives_price_updates(self, client: TestClient) -> None:
        """Test that pushes start at the default period with the wire format."""
        with client.websocket_connect("/ws") as ws:
            message = ws.receive_json()

        assert message["type"] == "price_updates"
        assert message["data"]
        symbols = {asset.symbol for asset in ASSETS}
        for update in message["data"]:
            assert set(update) == {"coin", "exchange", "price", "timestamp"}
            assert update["coin"] in symbols
            assert update["exchange"] in EXCHANGES
            assert update["price"] > 0

    def test_set_update_period(self, client: TestClient) -> None:
        """Test that a valid period is acknowledged."""
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "set_update_period", "period": 30})
            reply = receive_reply(ws)

        assert reply == {"type": "update_period", "data": {"period": 30.0}}

    def test_numeric_string_period(self, client: TestClient) -> None:
        """Test that a numeric string period is accepted."""
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "set_update_period", "period": "0.5"})
            reply = receive_reply(ws)

        assert reply["data"]["period"] == 0.5

    @pytest.mark.parametrize("period", [0, -2, "fast", 3600])
    def test_invalid_period(self, client: TestClient, period: object) -> None:
        """Test that a rejected period is reported and streaming continues."""
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "set_update_period", "period": period})
            reply = receive_reply(ws)

            assert reply["type"] == "error"
            assert ws.receive_json()["type"] == "price_updates"

    def test_invalid_json(self, client: TestClient) -> None:
        """Test that undecodable text is reported as an error."""
        with client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            reply = receive_reply(ws)

        assert reply == {"type": "error", "data": {"message": "Invalid JSON"}}

    def test_unknown_message_type(self, client: TestClient) -> None:
        """Test that unsupported control messages are reported."""
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe"})
            reply = receive_reply(ws)

        assert reply["type"] == "error"
        assert "subscribe" in reply["data"]["message"]
