"""
Trip planning errors

Only failures that make a leg impossible are raised. Everything else
(weather, places, cameras) degrades to fallback data inside the pipeline.
"""


class TripPlanningError(Exception):
    """Base class for fatal trip planning failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LocationResolutionError(TripPlanningError):
    """Raised when a start or end location cannot be geocoded."""

    status_code = 422


class RouteUnavailableError(TripPlanningError):
    """Raised when the routing engine returns no usable route."""

    status_code = 500
