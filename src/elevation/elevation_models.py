"""
Pydantic models for Elevation API results.
"""

from typing import Optional

from pydantic import BaseModel

from ..polyline.polyline_models import GeoPoint


class LatLngModel(BaseModel):
    """Location as returned by the service."""
    lat: float
    lng: float

    def to_point(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)


class ElevationResult(BaseModel):
    """Elevation in meters at a location; resolution is the sample spacing in meters."""
    elevation: float
    location: LatLngModel
    resolution: Optional[float] = None
