"""Policy definitions for route planning rules.

Policies are kept separate from the optimizer so travel estimation can be
tested on its own and swapped for a different data source (a routing
service, a precomputed matrix) without touching the ordering code.
"""

import math
from abc import ABC, abstractmethod
from typing import Optional

from fieldsched.domain.models import Location

EARTH_RADIUS_KM = 6371.0


class TravelPolicy(ABC):
    """Abstract base class for travel time estimation."""

    @abstractmethod
    def estimate_minutes(
        self,
        origin: Optional[Location],
        destination: Optional[Location],
    ) -> Optional[int]:
        """Estimate travel minutes between two locations.

        Args:
            origin: Where the worker is coming from.
            destination: Where the worker is going.

        Returns:
            Estimated whole minutes, or None if no estimate is possible.
        """
        pass

    def estimate_km(
        self,
        origin: Optional[Location],
        destination: Optional[Location],
    ) -> Optional[float]:
        """Distance between two locations in km, or None if unknown."""
        return None


def haversine_km(a: Location, b: Location) -> float:
    """Great-circle distance between two geocoded locations."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


class DefaultTravelPolicy(TravelPolicy):
    """Travel estimates from a lookup table or straight-line distance.

    Lookup order:
    1. Same location -> 0 minutes.
    2. Travel matrix entry keyed by (origin address, destination address).
    3. Haversine distance at ``average_speed_kmh`` when both are geocoded.
    4. Otherwise unknown.
    """

    def __init__(
        self,
        average_speed_kmh: float = 40.0,
        travel_matrix: Optional[dict[tuple[str, str], int]] = None,
    ):
        if average_speed_kmh <= 0:
            raise ValueError("average_speed_kmh must be positive")
        self.average_speed_kmh = average_speed_kmh
        self.travel_matrix = travel_matrix or {}

    def estimate_minutes(
        self,
        origin: Optional[Location],
        destination: Optional[Location],
    ) -> Optional[int]:
        if origin is None or destination is None:
            return None
        if origin == destination:
            return 0
        if origin.address and origin.address == destination.address:
            return 0

        key = (origin.address, destination.address)
        if key in self.travel_matrix:
            return self.travel_matrix[key]

        if origin.has_coordinates and destination.has_coordinates:
            km = haversine_km(origin, destination)
            return math.ceil(km / self.average_speed_kmh * 60)

        return None

    def estimate_km(
        self,
        origin: Optional[Location],
        destination: Optional[Location],
    ) -> Optional[float]:
        if origin is None or destination is None:
            return None
        if origin == destination:
            return 0.0
        if origin.has_coordinates and destination.has_coordinates:
            return haversine_km(origin, destination)
        return None
