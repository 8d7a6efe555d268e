# Shared state written by the web routes and read by the BLE handler.
# The two sides run on different threads, so every access takes the lock.

import threading

from .color import COLOR_OFF


class ColorStore:
    """Holds the most recently requested lamp color (last writer wins)."""

    def __init__(self, initial=COLOR_OFF):
        self._lock = threading.Lock()
        self._color = initial

    def set(self, color):
        with self._lock:
            self._color = color

    def get(self):
        with self._lock:
            return self._color
