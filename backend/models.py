"""
Request/response models for the trip planning API.

Everything here is request-scoped; nothing is persisted.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

METERS_PER_MILE = 1609.34

RoadStatusLevel = Literal["good", "moderate", "poor"]
PlaceCategory = Literal["food", "gas", "charging", "view", "rest"]
NarrativeTone = Literal["positive", "moderate", "caution"]


class ApiModel(BaseModel):
    """Response models serialize with camelCase keys; field names stay snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================== Geography ====================

class Coordinate(ApiModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class ResolvedLocation(ApiModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    display_name: str

    @property
    def short_name(self) -> str:
        """City part of the display name ("Buffalo, NY" -> "Buffalo")."""
        return self.display_name.split(',')[0].strip()


class RouteGeometry(ApiModel):
    coordinates: List[List[float]]  # [lon, lat] pairs, GeoJSON order
    distance_meters: float = 0.0
    duration_seconds: float = 0.0

    @property
    def distance_miles(self) -> float:
        return self.distance_meters / METERS_PER_MILE


# ==================== Weather ====================

class WeatherObservation(ApiModel):
    temperature_c: float = 0.0
    weather_code: int = 0
    wind_speed_kmh: float = 0.0
    humidity_pct: float = Field(default=0.0, ge=0, le=100)
    precip_probability_pct: float = Field(default=0.0, ge=0, le=100)
    wind_direction_deg: float = 0.0
    description: Optional[str] = None


class EnrichedWeatherPoint(WeatherObservation):
    location: str
    lat: float
    lng: float
    distance_from_start_miles: int
    eta_label: str
    gas_price_estimate: str


# ==================== Road conditions ====================

class CameraRef(ApiModel):
    id: str
    name: str
    url: str
    video_url: Optional[str] = None
    timestamp: str
    simulated: bool = False


class RoadConditionSegment(ApiModel):
    segment_label: str
    status: RoadStatusLevel
    description: str
    distance_label: str
    location: Coordinate
    camera: Optional[CameraRef] = None


# ==================== Places ====================

class PlaceRecommendation(ApiModel):
    id: str
    category: PlaceCategory
    location_label: str
    title: str
    description: str
    quality_score: int
    miles_from_start: float


# ==================== Score & narrative ====================

class Deduction(ApiModel):
    type: str
    value: int  # negative: points lost


class TripScore(ApiModel):
    score: int = Field(ge=0, le=100)
    label: str
    deductions: List[Deduction] = []


class NarrativeOverview(ApiModel):
    distance: str
    duration: str
    delay: Optional[str] = None


class NarrativeFuel(ApiModel):
    gas: str
    ev: Optional[str] = None


class NarrativeWeather(ApiModel):
    temp_range: str
    wind: Optional[str] = None
    precip_chance: Optional[str] = None
    condition: str


class NarrativeRoads(ApiModel):
    condition: str
    delay: Optional[str] = None
    details: str


class NarrativeStop(ApiModel):
    city: str
    reason: str


class StructuredAnalysis(ApiModel):
    overview: NarrativeOverview
    fuel: NarrativeFuel
    weather: NarrativeWeather
    roads: NarrativeRoads
    stops: List[NarrativeStop] = []


class NarrativeInsights(ApiModel):
    bullets: List[str] = []
    fun_moment: str


class Narrative(ApiModel):
    structured: StructuredAnalysis
    insights: NarrativeInsights
    tone: NarrativeTone


# ==================== Trip leg ====================

class LegMetrics(ApiModel):
    distance_label: str
    duration_label: str
    fuel_cost_label: str
    ev_cost_label: str


class DepartureOption(ApiModel):
    offset_hours: int
    time_label: str
    timestamp_ms: int
    score: int
    label: str
    precip_probability_pct: float
    temperature_c: float
    traffic_label: str


class TripLeg(ApiModel):
    route: RouteGeometry
    metrics: LegMetrics
    weather: List[EnrichedWeatherPoint] = []
    road_conditions: List[RoadConditionSegment] = []
    recommendations: List[PlaceRecommendation] = []
    trip_score: TripScore
    narrative: Narrative
    departure_insights: List[DepartureOption] = []


class LegPair(ApiModel):
    outbound: Optional[TripLeg] = None
    return_leg: Optional[TripLeg] = Field(default=None, alias="return")


class TripPlan(ApiModel):
    """Full /api/route response.

    For one-way trips the primary outbound leg is also flattened onto the
    top level so simple clients can read ``route``/``weather`` directly.
    """

    is_round_trip: bool = False
    outbound: Optional[TripLeg] = None
    return_leg: Optional[TripLeg] = Field(default=None, alias="return")
    variants: Dict[str, LegPair] = {}

    route: Optional[RouteGeometry] = None
    metrics: Optional[LegMetrics] = None
    weather: Optional[List[EnrichedWeatherPoint]] = None
    road_conditions: Optional[List[RoadConditionSegment]] = None
    ai_analysis: Optional[Narrative] = None
    recommendations: Optional[List[PlaceRecommendation]] = None
    trip_score: Optional[TripScore] = None
    departure_insights: Optional[List[DepartureOption]] = None


# ==================== Requests ====================

class ClientCoords(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class RouteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: Optional[str] = None
    end: Optional[str] = None
    start_coords: Optional[ClientCoords] = Field(default=None, alias="startCoords")
    end_coords: Optional[ClientCoords] = Field(default=None, alias="endCoords")
    departure_date: Optional[str] = Field(default=None, alias="departureDate")  # YYYY-MM-DD
    departure_time: Optional[str] = Field(default=None, alias="departureTime")  # HH:MM
    round_trip: bool = Field(default=False, alias="roundTrip")
    preference: Optional[str] = None  # fastest | scenic
    return_date: Optional[str] = Field(default=None, alias="returnDate")
    return_time: Optional[str] = Field(default=None, alias="returnTime")


class PlaceDetailsRequest(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class PlaceDetailsResponse(ApiModel):
    address: Optional[str] = None


class RentalOption(ApiModel):
    name: str
    features: str
    price: str
    link: str


class RentalRecommendationResponse(ApiModel):
    show_recommendation: bool = True
    reason: str
    recommended_vehicle: str
    provider: str
    options: List[RentalOption] = []
