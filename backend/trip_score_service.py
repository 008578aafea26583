"""
Trip Confidence Score & Narrative (Pure)

Turns the aggregated context of one trip leg into a 0-100 confidence score
with an itemized deduction list, plus a structured summary and a few short
insight bullets for the trip view.

Functions:
  score_trip(context: LegContext) -> TripScore
  generate_narrative(context: LegContext, score: TripScore, rng=None) -> Narrative

Both are side-effect-free. The score is deterministic; the narrative is
deterministic except for the fun-moment line, which draws from ``rng``.
"""
import random
from dataclasses import dataclass
from typing import List, Optional, Tuple

from models import (
    Deduction,
    Narrative,
    NarrativeFuel,
    NarrativeInsights,
    NarrativeOverview,
    NarrativeRoads,
    NarrativeStop,
    NarrativeWeather,
    StructuredAnalysis,
    TripScore,
)

MAX_BULLETS = 4
MAX_ROAD_PENALTY = 30


@dataclass(frozen=True)
class LegContext:
    """Aggregated signals for one leg, all in display units."""
    origin_name: str
    destination_name: str
    distance_label: str
    duration_label: str
    duration_seconds: float
    fuel_cost_label: str
    ev_cost_label: str
    min_temp_f: int
    max_temp_f: int
    traffic_delay_min: int
    max_wind_mph: int
    precip_chance_pct: int  # 0-100
    cities: Tuple[str, ...] = ()
    road_statuses: Tuple[str, ...] = ()  # good | moderate | poor, in route order
    road_segment_labels: Tuple[str, ...] = ()
    stops: Tuple[Tuple[str, str], ...] = ()  # (city, reason)
    departure_date: Optional[str] = None
    departure_time: Optional[str] = None  # HH:MM


def _label_for(score: int) -> str:
    if score >= 90:
        return "Excellent"
    if score >= 80:
        return "Good"
    if score >= 60:
        return "Fair"
    return "Risky"


def _precip_deduction(precip_pct: float) -> Optional[Deduction]:
    if precip_pct > 60:
        return Deduction(type="Heavy Rain Risk", value=-25)
    if precip_pct > 30:
        return Deduction(type="Rain Risk", value=-15)
    if precip_pct > 0:
        return Deduction(type="Light Rain", value=-5)
    return None


def _cold_deduction(min_temp_f: float) -> Optional[Deduction]:
    if min_temp_f < 32:
        return Deduction(type="Freezing Cold", value=-15)
    if min_temp_f < 40:
        return Deduction(type="Cold", value=-5)
    return None


def _heat_deduction(max_temp_f: float) -> Optional[Deduction]:
    if max_temp_f > 95:
        return Deduction(type="Extreme Heat", value=-10)
    return None


def _wind_deduction(max_wind_mph: float) -> Optional[Deduction]:
    if max_wind_mph > 35:
        return Deduction(type="High Wind", value=-20)
    if max_wind_mph > 20:
        return Deduction(type="Gusty Wind", value=-10)
    return None


def _road_deduction(statuses: Tuple[str, ...]) -> Optional[Deduction]:
    penalty = sum(15 if s == "poor" else 7 if s == "moderate" else 0 for s in statuses)
    penalty = min(MAX_ROAD_PENALTY, penalty)
    if penalty:
        return Deduction(type="Road Conditions", value=-penalty)
    return None


def _traffic_deduction(delay_min: float) -> Optional[Deduction]:
    if delay_min > 45:
        return Deduction(type="Heavy Traffic", value=-20)
    if delay_min > 20:
        return Deduction(type="Traffic Delay", value=-10)
    if delay_min > 10:
        return Deduction(type="Minor Delay", value=-5)
    return None


def score_trip(context: LegContext) -> TripScore:
    """
    Score a leg from 100 down.

    Every deduction is a step function of a single signal, so worse
    conditions can only lower the score.
    """
    candidates = [
        _precip_deduction(context.precip_chance_pct),
        _cold_deduction(context.min_temp_f),
        _heat_deduction(context.max_temp_f),
        _wind_deduction(context.max_wind_mph),
        _road_deduction(context.road_statuses),
        _traffic_deduction(context.traffic_delay_min),
    ]
    deductions = [d for d in candidates if d is not None]
    score = max(0, min(100, 100 + sum(d.value for d in deductions)))
    return TripScore(score=score, label=_label_for(score), deductions=deductions)


def _city(name: str) -> str:
    return name.split(",")[0].strip()


def _departure_hour(departure_time: Optional[str]) -> Optional[int]:
    if not departure_time:
        return None
    try:
        hour = int(departure_time.split(":")[0])
    except ValueError:
        return None
    return hour if 0 <= hour <= 23 else None


def _structured(context: LegContext) -> StructuredAnalysis:
    delay = context.traffic_delay_min
    slow_segments = [
        label for label, status in zip(context.road_segment_labels, context.road_statuses)
        if status != "good"
    ]
    return StructuredAnalysis(
        overview=NarrativeOverview(
            distance=context.distance_label,
            duration=context.duration_label,
            delay=f"{delay} min" if delay > 10 else None,
        ),
        fuel=NarrativeFuel(gas=context.fuel_cost_label or "N/A", ev=context.ev_cost_label or None),
        weather=NarrativeWeather(
            temp_range=f"{context.min_temp_f}° - {context.max_temp_f}°",
            wind=f"{context.max_wind_mph} mph" if context.max_wind_mph > 15 else None,
            precip_chance=f"{context.precip_chance_pct}%" if context.precip_chance_pct > 0 else None,
            condition="Rain/Snow" if context.precip_chance_pct > 50 else "Clear",
        ),
        roads=NarrativeRoads(
            condition="Congested" if delay > 15 else "Clear",
            delay=f"{delay} min" if delay > 0 else None,
            details=f"Slowdowns near {_city(slow_segments[0])}" if slow_segments else "Traffic flowing normally",
        ),
        stops=[NarrativeStop(city=_city(city), reason=reason.replace("_", " ")) for city, reason in context.stops],
    )


def _bullets(context: LegContext) -> List[str]:
    items = []

    delay = context.traffic_delay_min
    if delay > 20:
        items.append("Departing slightly later might help you skip the worst of the current congestion.")
    elif delay > 0:
        items.append("Minor slowdowns ahead, but nothing that should derail your arrival window.")
    else:
        items.append("Clear roads for now, a great time to get ahead of schedule.")

    hour = _departure_hour(context.departure_time)
    if hour is not None:
        if 7 <= hour <= 9 or 16 <= hour <= 19:
            items.append("You're leaving in rush hour; expect the first stretch to be the slowest.")
        elif hour >= 21 or hour <= 4:
            items.append("Much of this drive is after dark, so plan fuel stops where services stay open.")

    if context.max_temp_f - context.min_temp_f > 20:
        items.append("Significant temperature swing ahead. Keep a light layer within reach.")
    if context.precip_chance_pct > 40:
        items.append("Expect visibility to drop as you hit the rainier stretches.")
    if context.max_wind_mph > 25:
        items.append("Noticeable crosswinds ahead; stay focused while passing larger vehicles.")
    if context.duration_seconds >= 4 * 3600:
        items.append("This is a long haul. Aim for a 15-minute stretch break every two hours to stay sharp.")

    return items[:MAX_BULLETS]


def _fun_moments(destination_name: str) -> List[str]:
    return [
        f"Headed to {_city(destination_name)}? Great choice. The drive is half the fun.",
        "Windows down, volume up: this stretch is made for a solid road-trip playlist.",
        "Keep an eye out for local diners along this route; they usually have the best coffee.",
        "Road trips are about the detours. If a scenic overlook catches your eye, take it.",
    ]


def _tone(context: LegContext, score: TripScore) -> str:
    if context.traffic_delay_min > 30 or context.precip_chance_pct > 60:
        return "caution"
    if score.score >= 80:
        return "positive"
    return "moderate"


def generate_narrative(
    context: LegContext,
    score: TripScore,
    rng: Optional[random.Random] = None,
) -> Narrative:
    """Structured summary, up to four insight bullets, one fun moment, and a tone."""
    rng = rng or random.Random()
    return Narrative(
        structured=_structured(context),
        insights=NarrativeInsights(
            bullets=_bullets(context),
            fun_moment=rng.choice(_fun_moments(context.destination_name)),
        ),
        tone=_tone(context, score),
    )
