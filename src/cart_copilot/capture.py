"""Interfaces for barcode and photo capture devices.

Each capture is a single-shot coroutine that returns its payload, or None
when the user cancels.
"""

from pathlib import Path
from typing import Protocol


class BarcodeScanner(Protocol):
    async def scan(self) -> str | None:
        """Decoded barcode payload, or None if cancelled."""
        ...


class PhotoPicker(Protocol):
    async def pick(self) -> bytes | None:
        """Image data, or None if cancelled."""
        ...


class StaticScanner:
    """Scanner that returns a fixed payload, for manual UPC entry."""

    def __init__(self, payload: str | None):
        self.payload = payload

    async def scan(self) -> str | None:
        return self.payload


class FilePhotoPicker:
    """Picker that reads image data from a file path."""

    def __init__(self, path: Path | str | None):
        self.path = path

    async def pick(self) -> bytes | None:
        if self.path is None:
            return None
        with open(self.path, "rb") as f:
            return f.read()
