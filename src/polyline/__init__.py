"""
Polyline module: coordinate value types, the polyline codec, and the
heuristic that picks the shortest query-parameter form for a path.
"""

from .polyline_encoding import decode, encode
from .polyline_models import EncodedPolyline, GeoPoint
from .polyline_params import ENCODED_PREFIX, encoded_param, join_points, shortest_param

__all__ = [
    "GeoPoint",
    "EncodedPolyline",
    "encode",
    "decode",
    "join_points",
    "encoded_param",
    "shortest_param",
    "ENCODED_PREFIX",
]
