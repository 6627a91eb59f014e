# SPDX-License-Identifier: Apache-2.0

"""
Telemetry risk engine.

This module contains pure functions that score a sensor reading against the
cold-chain thresholds and derive the updated risk counters, plus the small
helpers that prepare a reading for persistence.
"""

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Any, Optional, Tuple


TEMPERATURE_THRESHOLD = -10
HUMIDITY_THRESHOLD = 70
SIMULATOR_DEVICE_ID = "SIM-99999"

ABNORMAL_READING = "Abnormal sensor data"
NORMAL_READING = "Normal sensor data"

# Synthetic humidity ranges per ingestion path
SIMULATED_HUMIDITY_RANGE = (30, 70)
WHOLESALE_HUMIDITY_RANGE = (40, 80)

HumiditySource = Callable[[int, int], float]


@dataclass(frozen=True)
class RiskCounters:
    """Risk counters carried by a shipment leg."""
    temperature_excursion: int = 0
    humidity_range_violation: int = 0


@dataclass(frozen=True)
class RiskAssessment:
    """Result of scoring one reading."""
    counters: RiskCounters
    event_desc: str
    alert: bool
    humidity_violation: bool


def assess_reading(counters: RiskCounters, temperature: float, humidity: Optional[float]) -> RiskAssessment:
    """
    Score a reading against the current counters.

    A temperature at or above -10 degrees is an excursion: the counter is
    incremented, the reading is tagged abnormal and an alert is raised.
    Humidity at or above 70 increments the humidity violation counter.

    Args:
        counters: Counters read from the shipment leg
        temperature: Reading temperature
        humidity: Reading humidity, None when not measured

    Returns:
        RiskAssessment with the new counters
    """
    excursion = counters.temperature_excursion
    violation = counters.humidity_range_violation

    alert = temperature >= TEMPERATURE_THRESHOLD
    if alert:
        excursion += 1
        event_desc = ABNORMAL_READING
    else:
        event_desc = NORMAL_READING

    humidity_violation = humidity is not None and humidity >= HUMIDITY_THRESHOLD
    if humidity_violation:
        violation += 1

    return RiskAssessment(
        counters=RiskCounters(excursion, violation),
        event_desc=event_desc,
        alert=alert,
        humidity_violation=humidity_violation
    )


def resolve_device_id(device_id: Optional[str]) -> str:
    """Device id to persist; the simulator id stands in for a missing one."""
    if device_id is None:
        return SIMULATOR_DEVICE_ID
    device_id = str(device_id).strip()
    if not device_id or device_id == "undefined":
        return SIMULATOR_DEVICE_ID
    return device_id


def temperature_fingerprint(device_id: str, moment: datetime, temperature: float) -> str:
    """Readable fingerprint of a reading used for external correlation."""
    return f"{device_id}{moment.isoformat()}{_format_temperature(temperature)}"


def _format_temperature(temperature: float) -> str:
    if float(temperature).is_integer():
        return str(int(temperature))
    return str(temperature)


def random_humidity(low: int, high: int) -> float:
    return float(round(random.uniform(low, high)))


def reading_humidity(
    humidity: Optional[float],
    humidity_range: Tuple[int, int],
    humidity_source: HumiditySource = random_humidity
) -> float:
    """Measured humidity, or a synthetic value drawn from the path's range."""
    if humidity is not None:
        return float(humidity)
    return float(humidity_source(*humidity_range))


def alert_payload(shipment_id: str, device_id: str, temperature: float, temp_hash: str) -> Dict[str, Any]:
    """Notification body published for an excursion."""
    return {
        "shipmentId": shipment_id,
        "deviceId": device_id,
        "temperature": temperature,
        "hash": temp_hash,
    }
