"""Exception taxonomy for the locator."""

from __future__ import annotations


class LocatorError(Exception):
    """Base class for all locator failures."""


class OracleTransportError(LocatorError):
    """Network, timeout or non-2xx failure talking to the oracle."""

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class OracleParseError(LocatorError):
    """No parsing strategy could extract a meaningful signal."""

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


class CropGenerationError(LocatorError):
    """Image load or raster failure while cutting a crop."""


class InvalidGeometryError(LocatorError, ValueError):
    """Zero or negative dimensions handed to the geometry helpers."""
