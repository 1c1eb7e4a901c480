"""
Elevation module: endpoint methods for the Elevation API built on GeoApiContext.
"""

from .elevation_api import (
    get_by_encoded_path,
    get_by_encoded_points,
    get_by_path,
    get_by_point,
    get_by_points,
    points_of,
)
from .elevation_models import ElevationResult, LatLngModel

__all__ = [
    "ElevationResult",
    "LatLngModel",
    "get_by_point",
    "get_by_points",
    "get_by_encoded_points",
    "get_by_path",
    "get_by_encoded_path",
    "points_of",
]
