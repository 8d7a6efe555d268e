"""Radio adapter: the BLE capabilities the bridge consumes, and a bleak backend."""

from __future__ import annotations

from typing import Any, Callable, Protocol

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from . import config
from .errors import AdapterInitError, MtuNotSupportedError, NotConnectedError
from .events import Discovered, Disconnected, Peripheral, StateChanged
from .logging_setup import get_logger

logger = get_logger(__name__)


class RadioAdapter(Protocol):
    async def open(self, emit: Callable[[Any], None]) -> None:
        """Initialize the radio and start delivering events through emit."""

    async def start_scan(self) -> None: ...

    async def stop_scan(self) -> None: ...

    async def connect(self, peripheral: Peripheral, generation: int) -> None: ...

    async def cancel_connection(self, peripheral: Peripheral) -> None: ...

    async def set_mtu(self, peripheral: Peripheral, size: int) -> int: ...

    async def discover_services(self, peripheral: Peripheral, uuids=None) -> list: ...

    async def discover_characteristics(self, peripheral: Peripheral, service, uuids=None) -> list: ...

    async def write_characteristic(
        self, peripheral: Peripheral, characteristic, data: bytes, with_response: bool
    ) -> None: ...


class BleakRadioAdapter:
    """RadioAdapter on top of bleak. One BleakClient per connect cycle."""

    def __init__(self, connect_timeout: float = config.CONNECT_TIMEOUT):
        self._connect_timeout = connect_timeout
        self._emit = None
        self._scanner = None
        self._scanning = False
        self._client = None

    async def open(self, emit):
        self._emit = emit
        try:
            self._scanner = BleakScanner(detection_callback=self._detection_callback)
        except (BleakError, OSError) as e:
            raise AdapterInitError(f"Failed to open BLE adapter: {e}") from e
        # bleak has no power-state callback; a usable scanner means powered on.
        emit(StateChanged(powered_on=True))

    def _detection_callback(self, device, advertising_data):
        name = device.name or advertising_data.local_name
        self._emit(Discovered(Peripheral(device.address, name, device)))

    async def start_scan(self):
        if self._scanning:
            return
        await self._scanner.start()
        self._scanning = True

    async def stop_scan(self):
        if not self._scanning:
            return
        self._scanning = False
        await self._scanner.stop()

    async def connect(self, peripheral, generation):
        def on_disconnect(_client):
            self._emit(Disconnected(peripheral, generation))

        target = peripheral.handle if peripheral.handle is not None else peripheral.address
        client = BleakClient(
            target, disconnected_callback=on_disconnect, timeout=self._connect_timeout)
        self._client = client
        await client.connect()

    async def cancel_connection(self, peripheral):
        client, self._client = self._client, None
        if client is None or not client.is_connected:
            return
        logger.debug("Cancelling connection to %s", peripheral.address)
        await client.disconnect()

    async def set_mtu(self, peripheral, size):
        client = self._connected_client()
        # Only the BlueZ backend can renegotiate; the stack picks the size itself.
        acquire = getattr(getattr(client, "_backend", None), "_acquire_mtu", None)
        if acquire is None:
            raise MtuNotSupportedError(
                f"Backend cannot negotiate MTU (wanted {size})")
        await acquire()
        return client.mtu_size

    async def discover_services(self, peripheral, uuids=None):
        client = self._connected_client()
        services = list(client.services)
        if uuids:
            services = [s for s in services if s.uuid in uuids]
        return services

    async def discover_characteristics(self, peripheral, service, uuids=None):
        characteristics = list(service.characteristics)
        if uuids:
            characteristics = [c for c in characteristics if c.uuid in uuids]
        return characteristics

    async def write_characteristic(self, peripheral, characteristic, data, with_response):
        client = self._connected_client()
        await client.write_gatt_char(characteristic, data, response=with_response)

    def _connected_client(self):
        if self._client is None or not self._client.is_connected:
            raise NotConnectedError("No live BLE connection")
        return self._client
