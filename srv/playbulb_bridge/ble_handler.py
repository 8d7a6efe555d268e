import asyncio
import enum

from bleak.uuids import normalize_uuid_str

from . import config
from .events import (
    CancelConnection,
    CharacteristicsDiscovered,
    Connect,
    Connected,
    DiscoverCharacteristics,
    Discovered,
    Disconnected,
    DiscoverServices,
    MtuNegotiated,
    ReconnectRequested,
    ServicesDiscovered,
    SetMtu,
    StartScan,
    StateChanged,
    StopScan,
    WriteCharacteristic,
    WriteCompleted,
)
from .logging_setup import get_logger

logger = get_logger(__name__)


class LinkState(enum.Enum):
    DISCONNECTED = "disconnected"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCOVERING_SERVICES = "discovering_services"
    DISCOVERING_CHARACTERISTICS = "discovering_characteristics"
    WRITING = "writing"


def uuid_matches(uuid, short_id):
    """Compare a UUID reported by the stack with a 16-bit GATT id like 'ff07'."""
    try:
        return normalize_uuid_str(str(uuid)) == normalize_uuid_str(short_id)
    except ValueError:
        return False


# --- DEVICE STATE MACHINE ---


class DeviceStateMachine:
    """
    Tracks the one target lamp and decides what the radio should do next.

    handle() takes an event and returns the commands to execute; it never
    touches the radio itself. The tracked peripheral is assigned on the first
    advertisement whose address matches the target id and is kept for the
    life of the process.

    Every Connect opens a new cycle generation. Results and disconnects from an
    older generation are dropped, which covers the cancel/connect race when a
    new request arrives while a previous cycle is still running.
    """

    def __init__(self, target_id, color_store,
                 service_id=config.LAMP_SERVICE_ID,
                 characteristic_id=config.LAMP_COLOR_CHARACTERISTIC,
                 mtu=config.DESIRED_MTU):
        self.target_id = target_id.upper()
        self.color_store = color_store
        self.service_id = service_id
        self.characteristic_id = characteristic_id
        self.mtu = mtu
        self.state = LinkState.DISCONNECTED
        self.peripheral = None
        self.generation = 0

    def handle(self, event):
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning("Unhandled event %r", event)
            return []
        return handler(self, event)

    def _is_stale(self, event):
        if event.generation != self.generation:
            logger.debug("Dropping %s from abandoned cycle %d (current %d)",
                         type(event).__name__, event.generation, self.generation)
            return True
        return False

    def _on_state_changed(self, event):
        if event.powered_on:
            logger.info("Adapter powered on. Scanning for %s...", self.target_id)
            self.state = LinkState.SCANNING
            return [StartScan()]
        logger.info("Adapter not available, stopping scan.")
        self.state = LinkState.DISCONNECTED
        return [StopScan()]

    def _on_discovered(self, event):
        p = event.peripheral
        if p.address.upper() != self.target_id:
            logger.debug("[SCAN] Ignoring %s (%s)", p.address, p.name)
            return []
        if self.state is not LinkState.SCANNING:
            # Late advertisement queued before the scan stopped.
            logger.debug("[SCAN] Late advertisement from %s in state %s, tracking its handle",
                         p.address, self.state.value)
            self.peripheral = p
            return []
        logger.info("[SCAN] Target device found: %s (%s)", p.address, p.name)
        self.peripheral = p
        return [StopScan(), self._start_cycle()]

    def _on_reconnect_requested(self, event):
        if self.peripheral is None:
            logger.warning("Reconnect requested but %s has not been found yet", self.target_id)
            return []
        cancel = CancelConnection(self.peripheral)
        return [cancel, self._start_cycle()]

    def _start_cycle(self):
        self.generation += 1
        self.state = LinkState.CONNECTING
        logger.debug("Connecting to %s (cycle %d)", self.peripheral.address, self.generation)
        return Connect(self.peripheral, self.generation)

    def _on_connected(self, event):
        if self._is_stale(event):
            return []
        if event.error is not None:
            logger.error("Failed to connect to %s: %s", event.peripheral.address, event.error)
            self.state = LinkState.DISCONNECTED
            return []
        logger.info("Connected to %s", event.peripheral.name or event.peripheral.address)
        self.state = LinkState.CONNECTED
        return [SetMtu(event.peripheral, self.generation, self.mtu)]

    def _on_mtu_negotiated(self, event):
        if self._is_stale(event):
            return []
        if event.error is not None:
            logger.warning("Failed to set MTU: %s", event.error)
        else:
            logger.debug("MTU is %s", event.mtu)
        self.state = LinkState.DISCOVERING_SERVICES
        return [DiscoverServices(self.peripheral, self.generation)]

    def _on_services_discovered(self, event):
        if self._is_stale(event):
            return []
        self.state = LinkState.CONNECTED
        if event.error is not None:
            logger.error("Failed to discover services: %s", event.error)
            return []
        for service in event.services:
            if uuid_matches(service.uuid, self.service_id):
                self.state = LinkState.DISCOVERING_CHARACTERISTICS
                return [DiscoverCharacteristics(self.peripheral, self.generation, service)]
        logger.debug("Lamp service %s not offered by %s", self.service_id, self.peripheral.address)
        return []

    def _on_characteristics_discovered(self, event):
        if self._is_stale(event):
            return []
        self.state = LinkState.CONNECTED
        if event.error is not None:
            logger.error("Failed to discover characteristics: %s", event.error)
            return []
        for characteristic in event.characteristics:
            if uuid_matches(characteristic.uuid, self.characteristic_id):
                self.state = LinkState.WRITING
                # Read the store only now: the newest requested color wins.
                data = self.color_store.get().to_bytes()
                return [WriteCharacteristic(self.peripheral, self.generation,
                                            characteristic, data, with_response=True)]
        logger.debug("Color characteristic %s not found", self.characteristic_id)
        return []

    def _on_write_completed(self, event):
        if self._is_stale(event):
            return []
        self.state = LinkState.CONNECTED
        if event.error is not None:
            logger.error("Failed to write color: %s", event.error)
        else:
            logger.info("Color %s written", event.data.hex())
        return []

    def _on_disconnected(self, event):
        if self._is_stale(event):
            return []
        logger.info("Disconnected")
        self.state = LinkState.DISCONNECTED
        return []

    _handlers = {
        StateChanged: _on_state_changed,
        Discovered: _on_discovered,
        ReconnectRequested: _on_reconnect_requested,
        Connected: _on_connected,
        MtuNegotiated: _on_mtu_negotiated,
        ServicesDiscovered: _on_services_discovered,
        CharacteristicsDiscovered: _on_characteristics_discovered,
        WriteCompleted: _on_write_completed,
        Disconnected: _on_disconnected,
    }


# --- BRIDGE RUNNER ---


class LampBridge:
    """
    Single owner of the state machine, running on the BLE event loop.

    Adapter callbacks and web requests only ever post() events; the run() loop
    feeds them to the machine one at a time and executes the resulting
    commands. Long adapter operations run as the cycle's in-flight task so
    the queue keeps draining while a discovery is pending.
    """

    def __init__(self, adapter, machine):
        self.adapter = adapter
        self.machine = machine
        self._loop = None
        self._queue = None
        self._inflight = None

    def post(self, event):
        """Queue an event for the state machine. Safe to call from any thread."""
        if self._loop is None:
            logger.warning("BLE loop not running yet, dropping %s", type(event).__name__)
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            logger.warning("BLE loop closed, dropping %s", type(event).__name__)

    def request_reconnect(self):
        self.post(ReconnectRequested())

    def status(self):
        machine = self.machine
        return {
            "state": machine.state.value,
            "target": machine.target_id,
            "peripheral": machine.peripheral.address if machine.peripheral else None,
            "color": machine.color_store.get().hex(),
        }

    async def run(self):
        """Open the adapter and process events until cancelled."""
        self._queue = asyncio.Queue()
        self._loop = asyncio.get_running_loop()
        await self.adapter.open(self.post)
        try:
            while True:
                event = await self._queue.get()
                await self.dispatch(event)
        finally:
            if self._inflight is not None:
                self._inflight.cancel()

    async def dispatch(self, event):
        for command in self.machine.handle(event):
            await self._execute(command)

    async def _execute(self, command):
        if isinstance(command, StartScan):
            await self.adapter.start_scan()
        elif isinstance(command, StopScan):
            await self.adapter.stop_scan()
        elif isinstance(command, CancelConnection):
            if self._inflight is not None and not self._inflight.done():
                self._inflight.cancel()
            try:
                await self.adapter.cancel_connection(command.peripheral)
            except Exception as e:
                logger.warning("Failed to cancel connection: %s", e)
        else:
            self._inflight = asyncio.create_task(self._perform(command))

    async def _perform(self, command):
        """Run one cycle command and post its outcome back as an event."""
        p = command.peripheral
        gen = command.generation
        if isinstance(command, Connect):
            try:
                await self.adapter.connect(p, gen)
            except Exception as e:
                self.post(Connected(p, gen, error=e))
            else:
                self.post(Connected(p, gen))
        elif isinstance(command, SetMtu):
            try:
                mtu = await self.adapter.set_mtu(p, command.size)
            except Exception as e:
                self.post(MtuNegotiated(gen, error=e))
            else:
                self.post(MtuNegotiated(gen, mtu=mtu))
        elif isinstance(command, DiscoverServices):
            try:
                services = await self.adapter.discover_services(p)
            except Exception as e:
                self.post(ServicesDiscovered(gen, error=e))
            else:
                self.post(ServicesDiscovered(gen, services=tuple(services)))
        elif isinstance(command, DiscoverCharacteristics):
            try:
                characteristics = await self.adapter.discover_characteristics(p, command.service)
            except Exception as e:
                self.post(CharacteristicsDiscovered(gen, error=e))
            else:
                self.post(CharacteristicsDiscovered(gen, characteristics=tuple(characteristics)))
        elif isinstance(command, WriteCharacteristic):
            try:
                await self.adapter.write_characteristic(
                    p, command.characteristic, command.data, command.with_response)
            except Exception as e:
                self.post(WriteCompleted(gen, data=command.data, error=e))
            else:
                self.post(WriteCompleted(gen, data=command.data))
