"""
Route geometry helpers - pure functions.

Coordinates follow GeoJSON order: [lon, lat].
"""

import math
from typing import List, Sequence

import polyline

EARTH_RADIUS_MILES = 3959

# Sampling policy: ~12 points per route, never closer than 10 miles apart.
TARGET_SAMPLE_POINTS = 12
MIN_SAMPLE_INTERVAL_MILES = 10.0


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in miles."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_MILES * c


def path_length_miles(coordinates: Sequence[Sequence[float]]) -> float:
    total = 0.0
    for i in range(1, len(coordinates)):
        lon1, lat1 = coordinates[i - 1][:2]
        lon2, lat2 = coordinates[i][:2]
        total += haversine_miles(lat1, lon1, lat2, lon2)
    return total


def sampling_interval(total_miles: float) -> float:
    """Spacing for a route of this length under the 12-point / 10-mile policy."""
    return max(MIN_SAMPLE_INTERVAL_MILES, total_miles / TARGET_SAMPLE_POINTS)


def sample_route(coordinates: Sequence[Sequence[float]], interval_miles: float) -> List[List[float]]:
    """
    Pick evenly spaced points along a route.

    The accumulator carries the remainder past each emitted point instead of
    resetting to zero, so spacing stays accurate over long routes. The first
    and last coordinates are always emitted: the last is appended when the
    final sample sits more than half an interval short of it, otherwise it
    takes that sample's place.

    Args:
        coordinates: Route points as [lon, lat]
        interval_miles: Target spacing between samples (> 0)

    Returns:
        Subsequence of the input coordinates
    """
    if interval_miles <= 0:
        raise ValueError(f"interval_miles must be positive: {interval_miles}")
    if not coordinates:
        return []

    sampled = [list(coordinates[0])]
    last_index = 0
    accumulated = 0.0

    for i in range(1, len(coordinates)):
        lon1, lat1 = coordinates[i - 1][:2]
        lon2, lat2 = coordinates[i][:2]
        accumulated += haversine_miles(lat1, lon1, lat2, lon2)

        if accumulated >= interval_miles:
            sampled.append(list(coordinates[i]))
            last_index = i
            accumulated -= interval_miles

    final_index = len(coordinates) - 1
    if last_index == final_index:
        return sampled

    last_sample = sampled[-1]
    last_coord = coordinates[final_index]
    gap = haversine_miles(last_sample[1], last_sample[0], last_coord[1], last_coord[0])
    if gap > interval_miles * 0.5 or len(sampled) == 1:
        sampled.append(list(last_coord))
    else:
        sampled[-1] = list(last_coord)

    return sampled


def progress_fraction(index: int, count: int) -> float:
    """Fractional position of item ``index`` in a sequence of ``count`` items."""
    return index / max(1, count - 1)


def decode_polyline(encoded: str, precision: int = 5) -> List[List[float]]:
    """Decode an encoded polyline into [lon, lat] pairs."""
    return [[lon, lat] for lat, lon in polyline.decode(encoded, precision)]
