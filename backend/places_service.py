"""
Places Service

Point-of-interest recommendations along a route.

A handful of context points (10/50/90% of the route, or five points for
longer trips) are queried against OpenStreetMap data. Results are
categorized from their tags, capped per category for variety, and
deduplicated by title across the whole leg. A context point that yields
nothing gets one synthetic stop so every stretch of the route has a
suggestion.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from common import settings
from geocoding_service import reverse_resolve
from models import Coordinate, PlaceRecommendation
from providers import ProviderSet, get_providers

logger = logging.getLogger(__name__)

SHORT_ROUTE_FRACTIONS = (0.1, 0.5, 0.9)
LONG_ROUTE_FRACTIONS = (0.1, 0.3, 0.5, 0.7, 0.9)
LONG_ROUTE_MILES = 100

DEFAULT_TOWN = "Along Route"

CATEGORY_LIMITS = {"food": 3, "gas": 3}
DEFAULT_CATEGORY_LIMIT = 2

FALLBACK_CATEGORIES = ("food", "gas", "charging", "view", "rest")
FALLBACK_TITLES = {
    "food": ("Local Diner", "Riverside Cafe", "Highway Grill", "Traveler's Bistro"),
    "gas": ("Travel Center", "Express Fuel", "Wayvue Station", "Highway Oasis"),
    "charging": ("Supercharger", "ChargePoint", "EV Plaza", "Electric Station"),
    "view": ("Scenic Viewpoint", "Nature Trailhead", "Historic Marker", "Lookout Point"),
    "rest": ("Rest Area", "Public Waypoint", "Scenic Stop", "Observation Point"),
}

CATEGORY_DESCRIPTIONS = {
    "food": "Local Stop",
    "gas": "Fuel & Services",
    "charging": "EV Charging Station",
    "view": "Scenic Spot",
    "rest": "Rest Area",
}

FOOD_AMENITIES = ("cafe", "fast_food", "restaurant", "diner")
REST_AMENITIES = ("rest_area", "toilets")


@dataclass(frozen=True)
class ContextPoint:
    location: Coordinate
    miles_from_start: int


def build_context_points(coordinates: Sequence[Sequence[float]], total_miles: float) -> List[ContextPoint]:
    """Pick the route positions to search around."""
    if not coordinates:
        return []
    fractions = LONG_ROUTE_FRACTIONS if total_miles > LONG_ROUTE_MILES else SHORT_ROUTE_FRACTIONS
    points = []
    for fraction in fractions:
        idx = int(len(coordinates) * 0.999 * fraction)
        lng, lat = coordinates[idx][:2]
        points.append(ContextPoint(
            location=Coordinate(lat=lat, lon=lng),
            miles_from_start=round(fraction * total_miles),
        ))
    return points


def categorize(tags: Dict[str, Any]) -> str:
    """Map OSM tags to a recommendation category."""
    amenity = tags.get("amenity") or ""
    if amenity:
        if any(v in amenity for v in FOOD_AMENITIES):
            return "food"
        if "fuel" in amenity:
            return "gas"
        if "charging_station" in amenity:
            return "charging"
        if any(v in amenity for v in REST_AMENITIES):
            return "rest"
    if "rest_area" in (tags.get("highway") or ""):
        return "rest"
    return "view"


def _describe(tags: Dict[str, Any], category: str) -> str:
    return tags.get("cuisine") or CATEGORY_DESCRIPTIONS[category]


def select_candidates(
    elements: Sequence[Dict[str, Any]],
    town: str,
    miles_from_start: int,
) -> List[PlaceRecommendation]:
    """
    Keep named places, best-tagged first, capped per category.

    Quality is the tag count: better-mapped places tend to be the notable ones.
    """
    candidates = []
    for element in elements:
        tags = element.get("tags") or {}
        name = tags.get("name") or tags.get("operator")
        if not name:
            continue
        category = categorize(tags)
        city = tags.get("addr:city") or town
        candidates.append(PlaceRecommendation(
            id=f"osm-{element.get('id')}",
            category=category,
            location_label=f"{city} • {miles_from_start} mi",
            title=name,
            description=_describe(tags, category),
            quality_score=len(tags),
            miles_from_start=miles_from_start,
        ))

    candidates.sort(key=lambda c: c.quality_score, reverse=True)

    counts: Dict[str, int] = {}
    selected = []
    for candidate in candidates:
        limit = CATEGORY_LIMITS.get(candidate.category, DEFAULT_CATEGORY_LIMIT)
        if counts.get(candidate.category, 0) < limit:
            selected.append(candidate)
            counts[candidate.category] = counts.get(candidate.category, 0) + 1
    return selected


def fallback_recommendation(index: int, town: str, miles_from_start: int) -> PlaceRecommendation:
    """Synthetic stop for a context point; category rotates with the point index."""
    category = FALLBACK_CATEGORIES[index % len(FALLBACK_CATEGORIES)]
    titles = FALLBACK_TITLES[category]
    return PlaceRecommendation(
        id=f"fallback-{index}-{category}",
        category=category,
        location_label=f"{town} • {miles_from_start} mi",
        title=f"{town} {titles[index % len(titles)]}",
        description=f"A convenient {category} stop selected for your journey.",
        quality_score=1,
        miles_from_start=miles_from_start,
    )


def dedupe_by_title(recommendations: Sequence[PlaceRecommendation]) -> List[PlaceRecommendation]:
    """Drop repeated titles, first occurrence wins."""
    seen = set()
    unique = []
    for rec in recommendations:
        if rec.title in seen:
            continue
        seen.add(rec.title)
        unique.append(rec)
    return unique


async def _town_name(point: ContextPoint, providers: ProviderSet) -> str:
    label = await reverse_resolve(point.location.lat, point.location.lon, providers=providers)
    if not label:
        return DEFAULT_TOWN
    return label.split(",")[0].strip()


async def _recommend_for_point(
    index: int,
    point: ContextPoint,
    providers: ProviderSet,
) -> List[PlaceRecommendation]:
    await asyncio.sleep(index * settings.PLACES_STAGGER_SECONDS)

    town = await _town_name(point, providers)
    try:
        elements = await providers.places.query_near(point.location.lat, point.location.lon, mirror=index)
        selected = select_candidates(elements, town, point.miles_from_start)
        logger.info(f"Context point {index}: {len(elements)} places, kept {len(selected)}")
    except Exception as e:
        logger.warning(f"Places lookup failed for context point {index}: {e}")
        selected = []

    return selected or [fallback_recommendation(index, town, point.miles_from_start)]


async def recommend(
    context_points: Sequence[ContextPoint],
    providers: Optional[ProviderSet] = None,
) -> List[PlaceRecommendation]:
    """
    Recommendations for every context point, ordered along the route.

    Every context point contributes at least one recommendation, even when
    its places were all duplicates of earlier ones.
    """
    providers = providers or get_providers()
    per_point = await asyncio.gather(*[
        _recommend_for_point(i, point, providers)
        for i, point in enumerate(context_points)
    ])

    combined = [rec for recs in per_point for rec in recs]
    combined.sort(key=lambda r: r.miles_from_start)
    results = dedupe_by_title(combined)

    represented = {id(rec) for rec in results}
    for i, recs in enumerate(per_point):
        if not any(id(rec) in represented for rec in recs):
            town = recs[0].location_label.split("•")[0].strip()
            results.append(fallback_recommendation(i, town, context_points[i].miles_from_start))

    results.sort(key=lambda r: r.miles_from_start)
    return dedupe_by_title(results)
