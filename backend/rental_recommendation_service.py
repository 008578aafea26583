"""
Rental Recommendation Service - Pure Rules Engine

Suggests a rental vehicle class from trip distance, weather, party size,
luggage and terrain, with a few sample vehicles for that class.

Inputs:
  - distance: display string such as "372.4 miles" (commas allowed)
  - weather_condition: free text; snow/ice/blizzard means AWD
  - passengers, luggage: counts
  - terrain: 'city', 'highway' or 'mountain'
"""

from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

from models import RentalOption, RentalRecommendationResponse

PROVIDER_NAME = "Kayak"
KAYAK_SEARCH_URL = "https://www.kayak.com/cars?q="

AWD_WEATHER_TERMS = ("snow", "ice", "blizzard")


@dataclass(frozen=True)
class RentalNeeds:
    large_capacity: bool
    medium_capacity: bool
    awd: bool


def _link(term: str) -> str:
    return f"{KAYAK_SEARCH_URL}{quote(term)}"


def _option(name: str, features: str, price: str, search: Optional[str] = None) -> RentalOption:
    return RentalOption(name=name, features=features, price=price, link=_link(search or name))


def parse_distance_miles(distance: Optional[str]) -> float:
    """Leading number of a distance label; 0 when missing or unparseable."""
    if not distance:
        return 0.0
    head = str(distance).replace(",", "").strip().split(" ")[0]
    try:
        return float(head)
    except ValueError:
        return 0.0


def assess_needs(passengers: int, luggage: int, weather_condition: str, terrain: str) -> RentalNeeds:
    large = passengers >= 5 or (passengers >= 4 and luggage >= 3)
    medium = not large and (passengers == 4 or luggage >= 3)
    weather = (weather_condition or "").lower()
    awd = any(term in weather for term in AWD_WEATHER_TERMS) or terrain == "mountain"
    return RentalNeeds(large_capacity=large, medium_capacity=medium, awd=awd)


def select_vehicle(needs: RentalNeeds, distance_miles: float, passengers: int, luggage: int, terrain: str):
    """Return (vehicle_class, reason) from the selection matrix."""
    if needs.large_capacity:
        if needs.awd:
            return "Full-size SUV (4WD)", "Large 4WD vehicle required for passengers/cargo and terrain."
        return "Minivan or Full-size SUV", "High passenger/luggage capacity required."
    if needs.awd:
        return "AWD SUV / Jeep", "AWD/4WD strongly recommended for terrain/weather conditions."
    if needs.medium_capacity:
        return "Mid-size SUV / Crossover", "Extra space needed for passengers/cargo."
    if terrain == "city" and passengers <= 2 and luggage <= 2 and distance_miles < 100:
        return "Economy / Compact", "Compact size recommended for city navigation."
    if distance_miles > 300:
        return "Full-size Sedan", "Comfort recommended for long-distance travel."
    return "Intermediate / Standard Car", "Best suited for your trip parameters."


def sample_options(vehicle: str) -> List[RentalOption]:
    if vehicle == "Minivan or Full-size SUV":
        return [
            _option("Chrysler Pacifica", "7 Seats • Spacious • Auto Sliding Doors", "$95/day", "Minivan"),
            _option("Chevrolet Tahoe", "7 Seats • Large Cargo • V8 Power", "$110/day", "Full-size SUV"),
            _option("Toyota Sienna", "8 Seats • Hybrid • Safety Sense", "$98/day", "Minivan"),
        ]
    if vehicle == "Full-size SUV (4WD)":
        return [
            _option("Chevrolet Tahoe 4WD", "7 Seats • 4WD • Heavy Duty", "$115/day"),
            _option("Ford Expedition 4WD", "8 Seats • 4WD • EcoBoost", "$112/day"),
            _option("GMC Yukon 4WD", "7 Seats • 4WD • Premium Interior", "$120/day"),
        ]
    if vehicle == "AWD SUV / Jeep":
        return [
            _option("Jeep Grand Cherokee", "4WD • All-Terrain • High Clearance", "$98/day"),
            _option("Subaru Outback", "AWD • Roof Rails • Heated Seats", "$82/day"),
            _option("Ford Explorer 4WD", "4WD • Terrain Management", "$95/day"),
        ]
    if vehicle == "Mid-size SUV / Crossover":
        return [
            _option("Toyota RAV4", "5 Seats • AWD Available • Fuel Efficient", "$75/day"),
            _option("Honda CR-V", "5 Seats • Spacious Boot • Sensing Suite", "$78/day"),
            _option("Nissan Rogue", "5 Seats • ProPILOT Assist", "$72/day"),
        ]
    if vehicle == "Economy / Compact":
        return [
            _option("Honda Civic", "High MPG • Compact • Apple CarPlay", "$45/day"),
            _option("Toyota Corolla", "Fuel Priority • Easy Parking", "$42/day"),
            _option("Hyundai Elantra", "Great Value • Smart Trunk", "$40/day"),
        ]
    return [
        _option("Toyota Camry", "Comfort • Smooth Ride • Spacious", "$55/day"),
        _option("Nissan Altima", "Zero Gravity Seats • AWD Available", "$52/day"),
        _option("Chevrolet Malibu", "Smooth Drive • WiFi Hotspot", "$50/day"),
    ]


def recommend_rental(
    distance: Optional[str] = None,
    weather_condition: Optional[str] = None,
    passengers: int = 1,
    luggage: int = 0,
    terrain: Optional[str] = None,
) -> RentalRecommendationResponse:
    """
    Pure function: pick a vehicle class and sample options.

    Args:
        distance: Trip distance label
        weather_condition: Forecast text for the trip
        passengers: Number of travellers
        luggage: Number of large bags
        terrain: 'city', 'highway' (default) or 'mountain'

    Returns:
        RentalRecommendationResponse
    """
    terrain_type = (terrain or "highway").lower()
    distance_miles = parse_distance_miles(distance)
    needs = assess_needs(passengers, luggage, weather_condition or "", terrain_type)
    vehicle, reason = select_vehicle(needs, distance_miles, passengers, luggage, terrain_type)

    return RentalRecommendationResponse(
        show_recommendation=True,
        reason=reason,
        recommended_vehicle=vehicle,
        provider=PROVIDER_NAME,
        options=sample_options(vehicle),
    )
