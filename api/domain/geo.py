# SPDX-License-Identifier: Apache-2.0

"""
Geo-coordinate normalization.

Turns human-readable coordinates such as ``"12.9716° N"`` or ``"-33.86"``
into signed decimal degrees. Pure functions, no I/O.
"""

import math
from typing import Optional, Union
from models.entities import GeoLocation, SensorReading
from models.enums import Axis, HemisphereConvention
from .errors import MalformedCoordinateError


DEGREE_MARKER = "°"


def normalize_coordinate(
    value: Union[str, float, int, None],
    axis: Axis,
    convention: HemisphereConvention = HemisphereConvention.FRESH
) -> float:
    """
    Parse a coordinate into signed decimal degrees.

    The magnitude is the text before the degree marker, or the whole string
    when there is none. Hemisphere letters decide the sign:

    - FRESH (coordinates supplied with a reading): latitude is negated on
      ``S``, longitude on ``W``.
    - FALLBACK (re-normalizing the last known position): both axes are
      negated on ``W``.

    Args:
        value: Coordinate text or number
        axis: Axis the coordinate belongs to
        convention: Hemisphere sign convention

    Returns:
        Signed decimal degrees

    Raises:
        MalformedCoordinateError: If no finite magnitude can be read
    """
    axis = Axis(axis)
    convention = HemisphereConvention(convention)

    if value is None or isinstance(value, bool):
        raise MalformedCoordinateError(f"Missing {axis.value} value")

    text = str(value).strip()
    if not text:
        raise MalformedCoordinateError(f"Empty {axis.value} value")

    marker = text.find(DEGREE_MARKER)
    magnitude_text = text[:marker] if marker != -1 else text

    try:
        magnitude = float(magnitude_text.strip())
    except ValueError:
        raise MalformedCoordinateError(f"Cannot read {axis.value} from '{text}'")

    if not math.isfinite(magnitude):
        raise MalformedCoordinateError(f"Non-finite {axis.value} '{text}'")

    if _is_negative_hemisphere(text, axis, convention):
        return -abs(magnitude)
    return magnitude


def _is_negative_hemisphere(text: str, axis: Axis, convention: HemisphereConvention) -> bool:
    if convention == HemisphereConvention.FALLBACK:
        return "W" in text
    if axis == Axis.LATITUDE:
        return "S" in text
    return "W" in text


def resolve_position(reading: SensorReading, last_known: Optional[GeoLocation]) -> GeoLocation:
    """
    Position to record for a reading.

    Each axis and the named location fall back independently to the last
    known position when the reading omits them. Fallback axes are
    re-normalized with the FALLBACK convention.
    """
    last_known = last_known or GeoLocation()

    if reading.latitude is not None:
        latitude = reading.latitude
        xaxis = normalize_coordinate(latitude, Axis.LATITUDE)
    else:
        latitude = last_known.latitude
        xaxis = normalize_coordinate(latitude, Axis.LATITUDE, HemisphereConvention.FALLBACK)

    if reading.longitude is not None:
        longitude = reading.longitude
        yaxis = normalize_coordinate(longitude, Axis.LONGITUDE)
    else:
        longitude = last_known.longitude
        yaxis = normalize_coordinate(longitude, Axis.LONGITUDE, HemisphereConvention.FALLBACK)

    location = reading.location if reading.location is not None else last_known.location

    return GeoLocation(
        latitude=latitude,
        xaxis=xaxis,
        longitude=longitude,
        yaxis=yaxis,
        location=location
    )
