"""Lamp color value and its fixed presets."""

from __future__ import annotations

import string
from dataclasses import dataclass

from .errors import ChannelDecodeError

CHANNEL_NAMES = {"r": "R(ed)", "g": "G(reen)", "b": "B(lue)"}


@dataclass(frozen=True)
class Color:
    """Four channel lamp color, written to the lamp as W, R, G, B."""

    white: int
    red: int
    green: int
    blue: int

    def __post_init__(self) -> None:
        for name in ("white", "red", "green", "blue"):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 <= value <= 0xFF:
                raise ValueError(f"{name} channel must be an int in 0..255, got {value!r}")

    def to_bytes(self) -> bytes:
        return bytes((self.white, self.red, self.green, self.blue))

    def hex(self) -> str:
        return self.to_bytes().hex()

    @classmethod
    def from_hex_channels(cls, r: str, g: str, b: str) -> Color:
        """
        Build a custom color from two-character hex strings.

        The white channel is always zero for custom colors. Raises
        ChannelDecodeError listing every channel that failed, so a caller
        never ends up with a partially decoded color.
        """
        decoded = {}
        failed = []
        for key, raw in (("r", r), ("g", g), ("b", b)):
            value = _decode_hex_byte(raw)
            if value is None:
                failed.append(key)
            else:
                decoded[key] = value
        if failed:
            raise ChannelDecodeError(tuple(failed))
        return cls(0x00, decoded["r"], decoded["g"], decoded["b"])


def _decode_hex_byte(raw) -> int | None:
    if not isinstance(raw, str) or len(raw) != 2:
        return None
    if not all(ch in string.hexdigits for ch in raw):
        return None
    return int(raw, 16)


COLOR_OFF = Color(0x00, 0x00, 0x00, 0x00)
COLOR_ON = Color(0xFF, 0xFF, 0xFF, 0xFF)
COLOR_DEFAULT = Color(0x10, 0x00, 0x00, 0xFF)

PRESETS = {
    "off": COLOR_OFF,
    "on": COLOR_ON,
    "default": COLOR_DEFAULT,
}
