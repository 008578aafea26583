from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .contracts import (
    CameraProvider,
    DirectionsProvider,
    GeocodeProvider,
    PlacesProvider,
    WeatherProvider,
)
from .fake_providers import (
    FakeCameraProvider,
    FakeDirectionsProvider,
    FakeGeocodeProvider,
    FakePlacesProvider,
    FakeWeatherProvider,
)
from .real_providers import (
    ArcGISGeocodeProvider,
    NY511CameraProvider,
    OpenMeteoWeatherProvider,
    OSRMDirectionsProvider,
    OverpassPlacesProvider,
)


@dataclass
class ProviderSet:
    geocode: GeocodeProvider
    directions: DirectionsProvider
    weather: WeatherProvider
    places: PlacesProvider
    cameras: CameraProvider


def _build_prod() -> ProviderSet:
    return ProviderSet(
        geocode=ArcGISGeocodeProvider(),
        directions=OSRMDirectionsProvider(),
        weather=OpenMeteoWeatherProvider(),
        places=OverpassPlacesProvider(),
        cameras=NY511CameraProvider(),
    )


def _build_fake() -> ProviderSet:
    return ProviderSet(
        geocode=FakeGeocodeProvider(),
        directions=FakeDirectionsProvider(),
        weather=FakeWeatherProvider(),
        places=FakePlacesProvider(),
        cameras=FakeCameraProvider(),
    )


_provider_cache: Optional[ProviderSet] = None


def load_providers(mode: Optional[str] = None) -> ProviderSet:
    global _provider_cache
    active_mode = (mode or os.environ.get("WAYVUE_MODE", "prod")).lower()
    if _provider_cache and mode is None:
        return _provider_cache
    if active_mode in {"demo", "test"}:
        _provider_cache = _build_fake()
    else:
        _provider_cache = _build_prod()
    return _provider_cache


def get_providers() -> ProviderSet:
    return load_providers()


def reload_providers(mode: Optional[str] = None) -> ProviderSet:
    global _provider_cache
    _provider_cache = None
    return load_providers(mode)
