"""
Runtime configuration

Values come from the process environment (optionally seeded from backend/.env).
Read once at import time, like the provider modules do.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

# prod | demo | test  (demo/test use fixture-backed providers)
WAYVUE_MODE = os.environ.get('WAYVUE_MODE', 'prod').lower()
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
PORT = int(os.environ.get('PORT', '5001'))

# Upstream endpoints
ARCGIS_BASE_URL = os.environ.get(
    'ARCGIS_BASE_URL', 'https://geocode.arcgis.com/arcgis/rest/services/World/GeocodeServer'
)
OSRM_BASE_URL = os.environ.get('OSRM_BASE_URL', 'http://router.project-osrm.org/route/v1/driving')
OPEN_METEO_URL = os.environ.get('OPEN_METEO_URL', 'https://api.open-meteo.com/v1/forecast')
OVERPASS_MIRRORS = [
    m.strip()
    for m in os.environ.get('OVERPASS_MIRRORS', 'overpass-api.de,overpass.kumi.systems').split(',')
    if m.strip()
]
NY_511_API_KEY = os.environ.get('NY_511_API_KEY', '')
USER_AGENT = os.environ.get('WAYVUE_USER_AGENT', 'WayvueApp/3.0')

# Shared reverse-geocode cache ceiling (entries)
REVERSE_GEOCODE_CACHE_SIZE = int(os.environ.get('REVERSE_GEOCODE_CACHE_SIZE', '1000'))

# Rate-limit pacing for the fan-out branches
WEATHER_CHUNK_DELAY_SECONDS = float(os.environ.get('WEATHER_CHUNK_DELAY_SECONDS', '0.2'))
PLACES_STAGGER_SECONDS = float(os.environ.get('PLACES_STAGGER_SECONDS', '0.6'))
