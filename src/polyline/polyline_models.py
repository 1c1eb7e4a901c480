"""
Value types for geographic coordinates and encoded paths.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in degrees."""
    lat: float
    lng: float

    def __post_init__(self):
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            raise ValueError(f"Coordinates must be finite, got ({self.lat}, {self.lng})")
        if not -90 <= self.lat <= 90:
            raise ValueError(f"Invalid latitude: {self.lat}")
        if not -180 <= self.lng <= 180:
            raise ValueError(f"Invalid longitude: {self.lng}")

    def to_url_value(self) -> str:
        """Fixed-point "lat,lng" form used in query strings."""
        return f"{self.lat:.8f},{self.lng:.8f}"

    def __str__(self) -> str:
        return self.to_url_value()


@dataclass(frozen=True)
class EncodedPolyline:
    """An encoded polyline token as produced by `encode`."""
    encoded_path: str

    @classmethod
    def from_points(cls, points: Sequence[GeoPoint]) -> "EncodedPolyline":
        from .polyline_encoding import encode
        return cls(encode(points))

    def decode_path(self) -> List[GeoPoint]:
        from .polyline_encoding import decode
        return decode(self.encoded_path)

    def __str__(self) -> str:
        return self.encoded_path
