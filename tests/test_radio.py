"""Tests for the bleak-backed radio adapter with bleak mocked out."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import TARGET, lamp_services

from playbulb_bridge.errors import MtuNotSupportedError, NotConnectedError
from playbulb_bridge.events import Discovered, Disconnected, Peripheral, StateChanged
from playbulb_bridge.radio import BleakRadioAdapter


@pytest.fixture
def mock_bleak_client():
    with patch("playbulb_bridge.radio.BleakClient") as mock_client:
        client_instance = MagicMock()
        client_instance.is_connected = True
        client_instance.connect = AsyncMock(return_value=True)
        client_instance.disconnect = AsyncMock(return_value=True)
        client_instance.write_gatt_char = AsyncMock(return_value=None)
        client_instance.services = lamp_services()
        client_instance.mtu_size = 247
        client_instance._backend = SimpleNamespace(_acquire_mtu=AsyncMock())
        mock_client.return_value = client_instance
        yield mock_client


@pytest.fixture
def mock_bleak_scanner():
    with patch("playbulb_bridge.radio.BleakScanner") as mock_scanner:
        mock_scanner.return_value.start = AsyncMock()
        mock_scanner.return_value.stop = AsyncMock()
        yield mock_scanner


def test_open_reports_powered_on_and_forwards_advertisements(mock_bleak_scanner) -> None:
    events = []
    adapter = BleakRadioAdapter()
    asyncio.run(adapter.open(events.append))

    callback = mock_bleak_scanner.call_args.kwargs["detection_callback"]
    device = SimpleNamespace(address=TARGET, name=None)
    callback(device, SimpleNamespace(local_name="PLAYBULB"))

    assert events[0] == StateChanged(powered_on=True)
    assert events[1] == Discovered(Peripheral(TARGET, "PLAYBULB"))
    assert events[1].peripheral.handle is device


def test_scan_start_and_stop_are_idempotent(mock_bleak_scanner) -> None:
    adapter = BleakRadioAdapter()

    async def scenario():
        await adapter.open(lambda event: None)
        await adapter.stop_scan()
        await adapter.start_scan()
        await adapter.start_scan()
        await adapter.stop_scan()

    asyncio.run(scenario())

    scanner = mock_bleak_scanner.return_value
    assert scanner.start.await_count == 1
    assert scanner.stop.await_count == 1


def test_connect_cycle(mock_bleak_scanner, mock_bleak_client) -> None:
    events = []
    adapter = BleakRadioAdapter(connect_timeout=5.0)
    peripheral = Peripheral(TARGET, "PLAYBULB")
    client = mock_bleak_client.return_value

    async def scenario():
        await adapter.open(events.append)
        await adapter.connect(peripheral, 3)
        mtu = await adapter.set_mtu(peripheral, 500)
        services = await adapter.discover_services(peripheral)
        characteristics = await adapter.discover_characteristics(peripheral, services[1])
        await adapter.write_characteristic(peripheral, characteristics[1], b"\x00\xff\x00\x80", True)
        await adapter.cancel_connection(peripheral)
        return mtu

    assert asyncio.run(scenario()) == 247

    assert mock_bleak_client.call_args.args == (TARGET,)
    assert mock_bleak_client.call_args.kwargs["timeout"] == 5.0
    client.write_gatt_char.assert_awaited_once()
    assert client.write_gatt_char.await_args.kwargs == {"response": True}
    client.disconnect.assert_awaited_once()

    mock_bleak_client.call_args.kwargs["disconnected_callback"](client)
    assert events[-1] == Disconnected(peripheral, 3)


def test_mtu_unsupported_backend(mock_bleak_client) -> None:
    mock_bleak_client.return_value._backend = SimpleNamespace()
    adapter = BleakRadioAdapter()
    peripheral = Peripheral(TARGET)

    async def scenario():
        await adapter.connect(peripheral, 1)
        await adapter.set_mtu(peripheral, 500)

    with pytest.raises(MtuNotSupportedError):
        asyncio.run(scenario())


def test_gatt_commands_need_a_connection() -> None:
    adapter = BleakRadioAdapter()

    with pytest.raises(NotConnectedError):
        asyncio.run(adapter.discover_services(Peripheral(TARGET)))
