"""Synthetic demo readings: daily and monthly sinusoids plus noise.

Produces store-format :class:`Reading` records only; nothing here knows about
windows or aggregation.
"""

from __future__ import annotations

import math
import random
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Dict, List, Optional

from models.records import Reading
from services.aggregator import round_half_away
from services.registry import DeviceLocationRegistry

TemperatureModel = Callable[[datetime, random.Random], float]


def pool_temperature(local: datetime, rng: random.Random) -> float:
    """Pool water: around 80 with a gentle daily swing."""
    daily = math.sin(local.hour / 24 * math.pi * 2) * 3
    noise = (rng.random() - 0.5) * 2
    return 80 + daily + noise


def outside_temperature(local: datetime, rng: random.Random) -> float:
    """Ambient air: daily cycle peaking mid-afternoon plus a drift across the month."""
    daily = math.sin((local.hour - 6) / 24 * math.pi * 2) * 12
    seasonal = math.sin(local.day / 30 * math.pi) * 8
    noise = (rng.random() - 0.5) * 4
    return 72 + daily + seasonal + noise


MODELS: Dict[str, TemperatureModel] = {
    "pool": pool_temperature,
    "outside": outside_temperature,
}


def generate_readings(
    registry: DeviceLocationRegistry,
    zone: tzinfo,
    end: datetime,
    days: int = 30,
    interval: timedelta = timedelta(minutes=30),
    seed: Optional[int] = None,
) -> List[Reading]:
    """One reading per modelled location every ``interval`` over the ``days`` before ``end``.

    Locations without a model or without a registered device are skipped.
    """
    if interval <= timedelta(0):
        raise ValueError("interval must be positive")
    rng = random.Random(seed)
    devices = {
        location: sorted(registry.device_ids_of(location))[0]
        for location in sorted(registry.all_locations())
        if location in MODELS
    }

    readings: List[Reading] = []
    moment = end - timedelta(days=days)
    while moment <= end:
        local = moment.astimezone(zone)
        for location, device_id in devices.items():
            temperature = round_half_away(MODELS[location](local, rng))
            readings.append(Reading(temperature=temperature, device_id=device_id, timestamp=moment))
        moment += interval
    return readings
