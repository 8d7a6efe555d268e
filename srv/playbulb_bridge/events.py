"""
Messages exchanged between the radio adapter, the bridge runner and the
device state machine.

Events flow into the state machine; commands flow out of it and are executed
against the radio adapter by the runner. Everything tied to one connect cycle
carries that cycle's generation so late results of an abandoned cycle can be
told apart from the current one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Peripheral:
    """A remote BLE device as seen by the local radio."""

    address: str
    name: str | None = None
    handle: Any = field(default=None, compare=False, repr=False)


# --- EVENTS ---

@dataclass(frozen=True)
class StateChanged:
    powered_on: bool


@dataclass(frozen=True)
class Discovered:
    peripheral: Peripheral


@dataclass(frozen=True)
class Connected:
    peripheral: Peripheral
    generation: int
    error: Exception | None = None


@dataclass(frozen=True)
class Disconnected:
    peripheral: Peripheral
    generation: int
    error: Exception | None = None


@dataclass(frozen=True)
class ReconnectRequested:
    pass


@dataclass(frozen=True)
class MtuNegotiated:
    generation: int
    mtu: int | None = None
    error: Exception | None = None


@dataclass(frozen=True)
class ServicesDiscovered:
    generation: int
    services: tuple = ()
    error: Exception | None = None


@dataclass(frozen=True)
class CharacteristicsDiscovered:
    generation: int
    characteristics: tuple = ()
    error: Exception | None = None


@dataclass(frozen=True)
class WriteCompleted:
    generation: int
    data: bytes = b""
    error: Exception | None = None


# --- COMMANDS ---

@dataclass(frozen=True)
class StartScan:
    pass


@dataclass(frozen=True)
class StopScan:
    pass


@dataclass(frozen=True)
class Connect:
    peripheral: Peripheral
    generation: int


@dataclass(frozen=True)
class CancelConnection:
    peripheral: Peripheral


@dataclass(frozen=True)
class SetMtu:
    peripheral: Peripheral
    generation: int
    size: int


@dataclass(frozen=True)
class DiscoverServices:
    peripheral: Peripheral
    generation: int


@dataclass(frozen=True)
class DiscoverCharacteristics:
    peripheral: Peripheral
    generation: int
    service: Any = field(compare=False)


@dataclass(frozen=True)
class WriteCharacteristic:
    peripheral: Peripheral
    generation: int
    characteristic: Any = field(compare=False)
    data: bytes = b""
    with_response: bool = True
