from fastapi import FastAPI, APIRouter, HTTPException, Query, Request
from starlette.middleware.cors import CORSMiddleware
import logging
import time
from typing import Optional

from common.errors import LocationResolutionError, TripPlanningError
from common.settings import LOG_LEVEL, PORT, WAYVUE_MODE
from geocoding_service import reverse_resolve
from models import (
    PlaceDetailsRequest,
    PlaceDetailsResponse,
    RentalRecommendationResponse,
    RouteRequest,
    TripPlan,
)
from rental_recommendation_service import recommend_rental
from trip_processor import plan_trip

# Set up logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create the main app
app = FastAPI(title="Wayvue API")

# Create routers
api_router = APIRouter(prefix="/api")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f} ms)")
    return response


# ==================== API Routes ====================

@api_router.get("/")
async def root():
    return {"message": "Wayvue API", "version": "3.0", "mode": WAYVUE_MODE}


@api_router.get("/health")
async def health_check():
    return {"status": "ok", "message": "Wayvue API is running"}


@api_router.post("/route", response_model=TripPlan)
async def get_route(request: RouteRequest):
    """Plan a trip: enriched outbound leg, optional return leg, fastest and scenic variants."""
    logger.info(
        f"Route request: {request.start} -> {request.end} "
        f"(round_trip={request.round_trip}, preference={request.preference})"
    )

    if not request.start or not request.end:
        raise HTTPException(status_code=400, detail="Start and End locations are required")

    try:
        return await plan_trip(request)
    except LocationResolutionError as e:
        logger.warning(f"Could not resolve {request.start} -> {request.end}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except TripPlanningError as e:
        logger.error(f"Trip planning failed: {e.message}")
        raise HTTPException(status_code=e.status_code, detail="Failed to generate route data")
    except Exception as e:
        logger.error(f"Error generating route data: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate route data")


@api_router.post("/place-details", response_model=PlaceDetailsResponse)
async def get_place_details(request: PlaceDetailsRequest):
    """Full street address for a coordinate (null when unknown)."""
    address = await reverse_resolve(request.lat, request.lon, full=True)
    return PlaceDetailsResponse(address=address)


@api_router.get("/trip/rental-recommendations", response_model=RentalRecommendationResponse)
async def get_rental_recommendations(
    distance: Optional[str] = None,
    weather_condition: Optional[str] = None,
    passengers: int = Query(1, ge=1),
    luggage: int = Query(0, ge=0),
    terrain: Optional[str] = None,
):
    return recommend_rental(
        distance=distance,
        weather_condition=weather_condition,
        passengers=passengers,
        luggage=luggage,
        terrain=terrain,
    )


# Add CORS middleware first, before including router
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server:app", host="0.0.0.0", port=PORT)
