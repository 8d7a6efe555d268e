"""Domain-specific errors for the lamp bridge."""


class LampBridgeError(Exception):
    """Base error for the lamp bridge."""


class ChannelDecodeError(LampBridgeError, ValueError):
    """Raised when one or more custom color channels are not a single hex byte."""

    def __init__(self, channels: tuple[str, ...]) -> None:
        self.channels = channels
        super().__init__(f"Cannot decode channel(s): {', '.join(channels)}")


class AdapterError(LampBridgeError):
    """Base radio adapter error."""


class AdapterInitError(AdapterError):
    """Raised when the BLE adapter cannot be opened."""


class NotConnectedError(AdapterError):
    """Raised when a GATT command is issued without a live connection."""


class MtuNotSupportedError(AdapterError):
    """Raised when the BLE backend cannot negotiate a transfer size."""
