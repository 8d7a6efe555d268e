"""HTTP to BLE bridge for a PLAYBULB color lamp."""

__version__ = "0.1.0"
