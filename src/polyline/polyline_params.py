"""
Query-parameter forms for point sequences.

A path can be sent either as literal "lat,lng|lat,lng" pairs or as an
"enc:"-prefixed polyline. The shorter string wins; the comparison is on
raw length before percent-encoding, which only approximates what goes on
the wire.
"""

from typing import Sequence

from .polyline_encoding import encode
from .polyline_models import EncodedPolyline, GeoPoint

ENCODED_PREFIX = "enc:"


def join_points(points: Sequence[GeoPoint], separator: str = "|") -> str:
    return separator.join(point.to_url_value() for point in points)


def encoded_param(polyline: EncodedPolyline) -> str:
    return ENCODED_PREFIX + polyline.encoded_path


def shortest_param(points: Sequence[GeoPoint]) -> str:
    """
    Choose the shorter of the literal and encoded parameter forms.
    
    Ties keep the literal form.
    """
    joined = join_points(points)
    encoded = ENCODED_PREFIX + encode(points)
    return joined if len(joined) <= len(encoded) else encoded
