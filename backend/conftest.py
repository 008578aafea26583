import pytest

from common import settings
from geocoding_service import reverse_geocode_cache
from providers.registry import reload_providers


@pytest.fixture(autouse=True)
def _test_mode(monkeypatch):
    monkeypatch.setenv("WAYVUE_MODE", "test")
    monkeypatch.setattr(settings, "WEATHER_CHUNK_DELAY_SECONDS", 0.0)
    monkeypatch.setattr(settings, "PLACES_STAGGER_SECONDS", 0.0)
    reverse_geocode_cache.clear()
    reload_providers()
    yield
    reverse_geocode_cache.clear()
    reload_providers("prod")
