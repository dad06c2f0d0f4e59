"""Unit tests for the websockets dialer and reconnect backoff."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from laakhay.engine.stream.transport import TransportConfig, WebsocketsDialer, next_delay


class TestWebsocketsDialer:
    def test_connect_kwargs_defaults(self):
        dialer = WebsocketsDialer()
        assert dialer._connect_kwargs() == {"ping_interval": 30, "ping_timeout": 10, "close_timeout": 10}

    def test_connect_kwargs_include_limits(self):
        dialer = WebsocketsDialer(TransportConfig(max_size=1024, max_queue=16, ping_interval=None))
        kwargs = dialer._connect_kwargs()
        assert kwargs["max_size"] == 1024
        assert kwargs["max_queue"] == 16
        assert kwargs["ping_interval"] is None

    @pytest.mark.asyncio
    async def test_dial_uses_websockets_connect(self):
        socket = MagicMock()
        with patch("websockets.connect", new_callable=AsyncMock, return_value=socket) as connect:
            result = await WebsocketsDialer().dial("wss://stream.fakex.test/ws")

        assert result is socket
        connect.assert_awaited_once_with(
            "wss://stream.fakex.test/ws", ping_interval=30, ping_timeout=10, close_timeout=10
        )


def test_next_delay_doubles_without_jitter():
    conf = TransportConfig(base_reconnect_delay=1.0, max_reconnect_delay=30.0, jitter=0)
    assert next_delay(conf, 0) == 2.0
    assert next_delay(conf, 2.0) == 4.0
    assert next_delay(conf, 20.0) == 30.0


def test_next_delay_jitter_bounds():
    conf = TransportConfig(jitter=0.2)
    for _ in range(50):
        delay = next_delay(conf, 5.0)
        assert 8.0 <= delay <= 12.0
