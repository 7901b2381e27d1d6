"""Static mapping between physical sensor device IDs and logical locations."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional

from models.errors import UnknownLocation


class DeviceLocationRegistry:
    """Read-only, bidirectional device/location lookup built from configuration."""

    def __init__(self, device_locations: Mapping[str, str]) -> None:
        self._locations: Mapping[str, str] = MappingProxyType(dict(device_locations))
        devices: Dict[str, set[str]] = {}
        for device_id, location in self._locations.items():
            devices.setdefault(location, set()).add(device_id)
        self._devices: Mapping[str, FrozenSet[str]] = MappingProxyType(
            {location: frozenset(ids) for location, ids in devices.items()}
        )

    def location_of(self, device_id: str) -> Optional[str]:
        return self._locations.get(device_id)

    def device_ids_of(self, location: str) -> FrozenSet[str]:
        return self._devices.get(location, frozenset())

    def all_locations(self) -> FrozenSet[str]:
        return frozenset(self._devices)

    def require_location(self, location: str) -> FrozenSet[str]:
        """Return the devices of ``location``, rejecting names outside the registry."""
        device_ids = self.device_ids_of(location)
        if not device_ids:
            known = ", ".join(sorted(self._devices)) or "none"
            raise UnknownLocation(f"Unknown location {location!r}; known locations: {known}.")
        return device_ids

    def as_dict(self) -> Dict[str, list[str]]:
        return {location: sorted(ids) for location, ids in sorted(self._devices.items())}
