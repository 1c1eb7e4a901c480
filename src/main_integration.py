"""
Command-line elevation lookup built on the Geo API client.

Usage:
    python -m src.main_integration --point 39.7391536,-104.9847034
    python -m src.main_integration --point 36.578581,-118.291994 --point 36.23998,-116.83171 --samples 5
"""

import argparse
import sys
from typing import List, Optional

from src.config.config_module import ConfigError, load_config
from src.config.logger_module import initialize_logger, log_error, log_info
from src.elevation.elevation_api import get_by_path, get_by_point, get_by_points
from src.geoapi.geoapi_context import GeoApiContext
from src.geoapi.geoapi_errors import GeoApiError
from src.polyline.polyline_models import GeoPoint


def parse_point(value: str) -> GeoPoint:
    """argparse type for "lat,lng"."""
    try:
        lat, lng = (float(part) for part in value.split(","))
        return GeoPoint(lat, lng)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid point {value!r}: expected LAT,LNG ({e})")


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Look up elevations through the Elevation API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --point 39.7391536,-104.9847034
  %(prog)s --point 36.578581,-118.291994 --point 36.23998,-116.83171
  %(prog)s --point 36.578581,-118.291994 --point 36.23998,-116.83171 --samples 5
        """
    )

    parser.add_argument('--point', dest='points', type=parse_point, action='append', required=True,
                        help='Point as LAT,LNG (repeat for several points)')

    parser.add_argument('--samples', type=int,
                        help='Sample the path through the points this many times')

    parser.add_argument('--env', type=str, default='.env',
                        help='Path to .env file (default: .env)')

    parser.add_argument('--timeout', type=float, default=120.0,
                        help='Seconds to wait for the result (default: 120)')

    parser.add_argument('--log-level',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO',
                        help='Logging level (default: INFO)')

    parser.add_argument('--log-file', type=str, default=None,
                        help='Also log to this file')

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit code."""
    args = parse_arguments(argv)

    initialize_logger(log_level=args.log_level, log_file=args.log_file)
    load_config(args.env)

    try:
        context = GeoApiContext.from_config()
    except (ConfigError, ValueError) as e:
        print(f"\n❌ Configuration Error: {e}")
        print("\nSet GOOGLE_MAPS_API_KEY, or GOOGLE_MAPS_CLIENT_ID and GOOGLE_MAPS_CLIENT_SECRET,")
        print("in a .env file or as environment variables.")
        return 1

    with context:
        if args.samples is not None:
            pending = get_by_path(context, args.samples, *args.points)
        elif len(args.points) == 1:
            pending = get_by_point(context, args.points[0])
        else:
            pending = get_by_points(context, *args.points)

        try:
            outcome = pending.result(timeout=args.timeout)
        except GeoApiError as e:
            log_error(f"Elevation lookup failed: {e}")
            print(f"\n❌ {type(e).__name__}: {e}")
            return 1
        except TimeoutError as e:
            pending.cancel()
            print(f"\n❌ {e}")
            return 1

    results = outcome if isinstance(outcome, list) else [outcome]
    log_info(f"Received {len(results)} elevation result(s)")
    for result in results:
        print(f"{result.location.lat:.6f},{result.location.lng:.6f}\t{result.elevation:.2f} m")
    return 0


if __name__ == "__main__":
    sys.exit(main())
