"""
Elevation API endpoint methods.

Each function assembles the query parameters for one kind of lookup and
hands them to GeoApiContext.get; the returned PendingResult resolves to an
ElevationResult or a list of them.
See https://developers.google.com/maps/documentation/elevation/
"""

from typing import List, Sequence

from ..geoapi.geoapi_context import GeoApiContext
from ..geoapi.geoapi_errors import LocalValidationError
from ..geoapi.geoapi_pending import PendingResult
from ..geoapi.geoapi_response import MultiResponse, SingularResponse
from ..polyline.polyline_models import EncodedPolyline, GeoPoint
from ..polyline.polyline_params import encoded_param, shortest_param
from .elevation_models import ElevationResult

BASE = "/maps/api/elevation/json"

SINGULAR = SingularResponse(ElevationResult)
MULTI = MultiResponse(ElevationResult)


def _rejected(message: str) -> PendingResult:
    pending: PendingResult = PendingResult(description=BASE)
    pending._fail(LocalValidationError(message))
    return pending


def get_by_point(context: GeoApiContext, point: GeoPoint) -> "PendingResult[ElevationResult]":
    """Elevation of a single point."""
    return context.get(SINGULAR, BASE, "locations", point.to_url_value())


def get_by_points(context: GeoApiContext, *points: GeoPoint) -> "PendingResult[List[ElevationResult]]":
    """
    Elevations of several discrete points.
    
    The locations param is sent as literal pairs or as an encoded polyline,
    whichever is shorter.
    """
    if not points:
        return _rejected("At least one point is required")
    return context.get(MULTI, BASE, "locations", shortest_param(points))


def get_by_encoded_points(context: GeoApiContext,
                          polyline: EncodedPolyline) -> "PendingResult[List[ElevationResult]]":
    """Elevations of the points of an already-encoded polyline."""
    if not polyline.encoded_path:
        return _rejected("Encoded polyline is empty")
    return context.get(MULTI, BASE, "locations", encoded_param(polyline))


def _check_samples(samples: int) -> str:
    if isinstance(samples, bool) or not isinstance(samples, int) or samples < 1:
        return f"samples must be a positive integer, got {samples!r}"
    return ""


def get_by_path(context: GeoApiContext, samples: int,
                *path: GeoPoint) -> "PendingResult[List[ElevationResult]]":
    """
    Elevations sampled at `samples` equidistant points along a path.
    
    Args:
        context: Dispatcher to send through
        samples: Number of samples along the path
        *path: Path vertices, at least two
    """
    problem = _check_samples(samples)
    if problem:
        return _rejected(problem)
    if len(path) < 2:
        return _rejected("A path needs at least two points")
    return context.get(MULTI, BASE, "samples", str(samples), "path", shortest_param(path))


def get_by_encoded_path(context: GeoApiContext, samples: int,
                        polyline: EncodedPolyline) -> "PendingResult[List[ElevationResult]]":
    """Elevations sampled along an already-encoded path."""
    problem = _check_samples(samples)
    if problem:
        return _rejected(problem)
    if not polyline.encoded_path:
        return _rejected("Encoded polyline is empty")
    return context.get(MULTI, BASE, "samples", str(samples), "path", encoded_param(polyline))


def points_of(results: Sequence[ElevationResult]) -> List[GeoPoint]:
    """Locations of a list of results, in order."""
    return [result.location.to_point() for result in results]
