"""
Routing Service

Fetches the driving route for a leg. The "scenic" variant asks the routing
engine for alternatives and takes the first alternative when one exists.
"""

import logging
from typing import Optional

from common.errors import RouteUnavailableError
from models import ResolvedLocation, RouteGeometry
from providers import ProviderSet, get_providers

logger = logging.getLogger(__name__)


async def fetch_route(
    start: ResolvedLocation,
    end: ResolvedLocation,
    scenic: bool = False,
    providers: Optional[ProviderSet] = None,
) -> RouteGeometry:
    """
    Get a driving route between two resolved locations.

    Raises:
        RouteUnavailableError: routing engine failed or returned nothing
    """
    providers = providers or get_providers()
    origin = {"lat": start.lat, "lon": start.lon}
    dest = {"lat": end.lat, "lon": end.lon}

    try:
        routes = await providers.directions.route(origin, dest, alternatives=scenic)
    except RouteUnavailableError:
        raise
    except Exception as e:
        logger.error(f"Directions provider error: {e}")
        raise RouteUnavailableError(f"Routing failed: {e}") from e

    if not routes:
        raise RouteUnavailableError("Routing engine returned no routes")

    if scenic and len(routes) > 1:
        logger.info(f"Using scenic alternative for {start.short_name} -> {end.short_name}")
        return routes[1]
    return routes[0]
