"""
Encoded Polyline Algorithm Format.

Coordinates are scaled by 1e5, delta-encoded against the previous point,
zig-zag folded to unsigned, and written as 5-bit chunks offset by 63.
ref: https://developers.google.com/maps/documentation/utilities/polylinealgorithm
"""

import math
from typing import List, Sequence, Tuple

from ..geoapi.geoapi_errors import DecodeError
from .polyline_models import GeoPoint

PRECISION = 1e5
_ASCII_OFFSET = 63
_CHUNK_MASK = 0x1f
_CONTINUATION = 0x20


def _to_fixed(value: float) -> int:
    """Scale to 1e-5 degrees, rounding ties away from zero."""
    return int(math.copysign(math.floor(abs(value) * PRECISION + 0.5), value))


def _encode_value(value: int, out: List[str]) -> None:
    value = ~(value << 1) if value < 0 else value << 1
    while value >= _CONTINUATION:
        out.append(chr((_CONTINUATION | (value & _CHUNK_MASK)) + _ASCII_OFFSET))
        value >>= 5
    out.append(chr(value + _ASCII_OFFSET))


def encode(points: Sequence[GeoPoint]) -> str:
    """
    Encode a sequence of points into a polyline string.
    
    Args:
        points: Ordered points; an empty sequence encodes to ""
        
    Returns:
        Encoded polyline string
    """
    out: List[str] = []
    prev_lat = 0
    prev_lng = 0
    
    for point in points:
        lat = _to_fixed(point.lat)
        lng = _to_fixed(point.lng)
        _encode_value(lat - prev_lat, out)
        _encode_value(lng - prev_lng, out)
        prev_lat, prev_lng = lat, lng
    
    return "".join(out)


def _decode_value(encoded: str, index: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise DecodeError("Truncated polyline: final chunk has the continuation bit set")
        chunk = ord(encoded[index]) - _ASCII_OFFSET
        if not 0 <= chunk <= 0x3f:
            raise DecodeError(f"Invalid polyline character {encoded[index]!r} at index {index}")
        index += 1
        result |= (chunk & _CHUNK_MASK) << shift
        shift += 5
        if chunk < _CONTINUATION:
            break
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def decode(encoded: str) -> List[GeoPoint]:
    """
    Decode a polyline string into points.
    
    Args:
        encoded: Encoded polyline; "" decodes to []
        
    Returns:
        List of GeoPoint
        
    Raises:
        DecodeError: On truncated input, characters outside the alphabet,
            a latitude without a longitude, or out-of-range coordinates
    """
    points: List[GeoPoint] = []
    index = 0
    lat = 0
    lng = 0
    
    while index < len(encoded):
        delta_lat, index = _decode_value(encoded, index)
        if index >= len(encoded):
            raise DecodeError("Truncated polyline: latitude without longitude")
        delta_lng, index = _decode_value(encoded, index)
        lat += delta_lat
        lng += delta_lng
        try:
            points.append(GeoPoint(lat / PRECISION, lng / PRECISION))
        except ValueError as e:
            raise DecodeError(f"Decoded coordinate out of range: {e}")
    
    return points
