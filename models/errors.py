"""Error taxonomy raised by the temperature services."""

from __future__ import annotations


class TemperatureServiceError(Exception):
    """Base class for rejections carrying a taxonomy kind and a reason."""

    kind = "TemperatureServiceError"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InvalidDateFormat(TemperatureServiceError):
    kind = "InvalidDateFormat"


class UnknownLocation(TemperatureServiceError):
    kind = "UnknownLocation"


class UnauthorizedIngest(TemperatureServiceError):
    kind = "UnauthorizedIngest"


class InvalidPayload(TemperatureServiceError):
    kind = "InvalidPayload"


class InvalidDrilldownRequest(TemperatureServiceError):
    kind = "InvalidDrilldownRequest"


class StorageUnavailable(TemperatureServiceError):
    """The reading store could not be read or written."""

    kind = "StorageUnavailable"
