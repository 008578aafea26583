"""
Geocoding Service

Resolves user-typed places to coordinates and coordinates back to labels.
Reverse lookups go through a process-wide bounded cache shared by all
requests.
"""

import logging
from collections import OrderedDict
from typing import Optional, Tuple

from common.settings import REVERSE_GEOCODE_CACHE_SIZE
from models import ClientCoords, ResolvedLocation
from providers import ProviderSet, get_providers

logger = logging.getLogger(__name__)

# 4 decimal places ~ 11 m
CACHE_PRECISION = 4


class ReverseGeocodeCache:
    """Insertion-ordered label cache; evicts the oldest entry at capacity.

    Entries are idempotent (same key always resolves to the same label), so
    concurrent writers may race and the last one wins.
    """

    def __init__(self, max_size: int = REVERSE_GEOCODE_CACHE_SIZE):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive: {max_size}")
        self.max_size = max_size
        self._entries: "OrderedDict[Tuple[float, float, bool], str]" = OrderedDict()

    @staticmethod
    def key(lat: float, lon: float, full: bool = False) -> Tuple[float, float, bool]:
        return (round(lat, CACHE_PRECISION), round(lon, CACHE_PRECISION), full)

    def get(self, lat: float, lon: float, full: bool = False) -> Optional[str]:
        return self._entries.get(self.key(lat, lon, full))

    def put(self, lat: float, lon: float, label: str, full: bool = False) -> None:
        key = self.key(lat, lon, full)
        self._entries[key] = label
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item: Tuple[float, float, bool]) -> bool:
        return item in self._entries


reverse_geocode_cache = ReverseGeocodeCache()


async def resolve_location(
    text: Optional[str],
    coords: Optional[ClientCoords] = None,
    providers: Optional[ProviderSet] = None,
) -> Optional[ResolvedLocation]:
    """
    Resolve a start/end input to a coordinate.

    Client-supplied coordinates are passed through untouched, keeping the
    typed text as the display name. Otherwise the text is geocoded.

    Returns:
        ResolvedLocation, or None when the place cannot be found
    """
    if coords is not None:
        return ResolvedLocation(lat=coords.lat, lon=coords.lng, display_name=text or f"{coords.lat},{coords.lng}")
    if not text or not text.strip():
        return None

    providers = providers or get_providers()
    try:
        return await providers.geocode.geocode(text)
    except Exception as e:
        logger.error(f"Geocoding error for {text}: {e}")
        return None


async def reverse_resolve(
    lat: float,
    lon: float,
    full: bool = False,
    providers: Optional[ProviderSet] = None,
    cache: Optional[ReverseGeocodeCache] = None,
) -> Optional[str]:
    """Reverse geocode coordinates to a place label using the shared cache."""
    cache = cache if cache is not None else reverse_geocode_cache
    cached = cache.get(lat, lon, full)
    if cached is not None:
        return cached

    providers = providers or get_providers()
    try:
        label = await providers.geocode.reverse_geocode(lat, lon, full=full)
    except Exception as e:
        logger.error(f"Reverse geocoding error for {lat},{lon}: {e}")
        return None

    if label:
        cache.put(lat, lon, label, full)
    return label
