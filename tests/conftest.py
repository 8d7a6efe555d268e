"""Fixtures for lamp bridge tests: a scripted radio adapter and GATT fakes."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from playbulb_bridge.events import Disconnected, Peripheral, StateChanged
from playbulb_bridge.state_manager import ColorStore

TARGET = "AA:BB:CC:DD:EE:FF"
LAMP_SERVICE_UUID = "0000ff07-0000-1000-8000-00805f9b34fb"
LAMP_COLOR_UUID = "0000fffc-0000-1000-8000-00805f9b34fb"


def make_characteristic(uuid: str) -> SimpleNamespace:
    return SimpleNamespace(uuid=uuid)


def make_service(uuid: str, characteristics: list | None = None) -> SimpleNamespace:
    return SimpleNamespace(uuid=uuid, characteristics=characteristics or [])


def lamp_services() -> list[SimpleNamespace]:
    return [
        make_service("00001800-0000-1000-8000-00805f9b34fb"),
        make_service(
            LAMP_SERVICE_UUID,
            [
                make_characteristic("0000fffb-0000-1000-8000-00805f9b34fb"),
                make_characteristic(LAMP_COLOR_UUID),
            ],
        ),
    ]


class FakeAdapter:
    """Records every command; discovery results come from `services`."""

    def __init__(self, services=None):
        self.services = lamp_services() if services is None else services
        self.emit = None
        self.calls: list[tuple] = []
        self.writes: list[tuple] = []
        self.generation = None
        self.hang_discovery = False
        self.mtu_error: Exception | None = None

    async def open(self, emit):
        self.emit = emit
        emit(StateChanged(powered_on=True))

    async def start_scan(self):
        self.calls.append(("start_scan",))

    async def stop_scan(self):
        self.calls.append(("stop_scan",))

    async def connect(self, peripheral, generation):
        self.calls.append(("connect", peripheral.address, generation))
        self.generation = generation

    async def cancel_connection(self, peripheral):
        self.calls.append(("cancel", peripheral.address))
        if self.generation is not None:
            # The old link reports its disconnect after the new connect was issued.
            self.emit(Disconnected(peripheral, self.generation))

    async def set_mtu(self, peripheral, size):
        self.calls.append(("set_mtu", size))
        if self.mtu_error is not None:
            raise self.mtu_error
        return size

    async def discover_services(self, peripheral, uuids=None):
        self.calls.append(("discover_services",))
        if self.hang_discovery:
            self.hang_discovery = False
            await asyncio.Event().wait()
        return self.services

    async def discover_characteristics(self, peripheral, service, uuids=None):
        self.calls.append(("discover_characteristics", service.uuid))
        return service.characteristics

    async def write_characteristic(self, peripheral, characteristic, data, with_response):
        self.calls.append(("write",))
        self.writes.append((characteristic.uuid, data, with_response))

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def store() -> ColorStore:
    return ColorStore()


@pytest.fixture
def target() -> Peripheral:
    return Peripheral(TARGET, "PLAYBULB sphere")
