"""
Viewer location for distance and best-match sorting.

Location is resolved once, with a deadline. Any failure (no provider,
provider error, no answer in time) yields the fixed fallback coordinate so
listing fetches never wait on it indefinitely.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


FALLBACK_LOCATION = Location(43.4723, -80.5449)

LocationProvider = Callable[[], Optional[Location]]


def env_location_provider() -> Optional[Location]:
    """Read MARKET_LATITUDE / MARKET_LONGITUDE, if both are set and numeric."""
    lat = os.getenv("MARKET_LATITUDE")
    lng = os.getenv("MARKET_LONGITUDE")
    if not lat or not lng:
        return None
    try:
        return Location(float(lat), float(lng))
    except ValueError:
        logger.warning("MARKET_LATITUDE / MARKET_LONGITUDE must be numeric; ignoring them.")
        return None


def resolve_location(
    provider: Optional[LocationProvider],
    timeout: float = 5.0,
    fallback: Location = FALLBACK_LOCATION,
) -> Location:
    if provider is None:
        return fallback

    pool = ThreadPoolExecutor(max_workers=1)
    future = pool.submit(provider)
    try:
        location = future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning(f"Location lookup timed out after {timeout}s; using fallback.")
        return fallback
    except Exception as e:
        logger.warning(f"Location lookup failed: {e}; using fallback.")
        return fallback
    finally:
        # Don't block on a stalled provider
        pool.shutdown(wait=False)

    if location is None:
        return fallback
    return location
