# wander_travel/api/services/travel_service.py
"""Fill in travel legs between consecutive itinerary stops."""

import logging
from typing import List, Optional

from wander_travel.api.models import Coordinates, Stop, TravelLeg
from wander_travel.api.places.knowledge_store import haversine_m

logger = logging.getLogger(__name__)


def order_by_proximity(stops: List[Stop], start: Optional[Coordinates] = None) -> List[Stop]:
    """Greedy nearest-neighbour ordering.

    Begins at the stop closest to *start* (or the first stop when no start is
    given). Stops without coordinates keep their relative order at the end.
    """
    located = [s for s in stops if s.coordinates is not None]
    unlocated = [s for s in stops if s.coordinates is None]
    if len(located) < 2 and start is None:
        return located + unlocated

    ordered: List[Stop] = []
    remaining = list(located)
    current = start
    if current is None:
        first = remaining.pop(0)
        ordered.append(first)
        current = first.coordinates

    while remaining:
        nearest = min(
            remaining,
            key=lambda s: haversine_m(current.lat, current.lng, s.coordinates.lat, s.coordinates.lng),
        )
        remaining.remove(nearest)
        ordered.append(nearest)
        current = nearest.coordinates

    return ordered + unlocated


class TravelAugmenter:
    """Computes missing travel legs through the place lookup gateway."""

    def __init__(self, gateway, mode: str = "driving"):
        self.gateway = gateway
        self.mode = mode

    async def augment(self, stops: List[Stop], user_origin: Optional[Coordinates] = None) -> int:
        """Fill ``travel`` on each stop from the previous stop, in place.

        The first stop gets a leg from *user_origin* when one is given.
        Complete legs already on a stop are never overwritten and a failed
        leg leaves whatever the stop already carried. Returns the number of legs
        filled.

        Args:
            stops: Ordered itinerary stops
            user_origin: The user's live location, if known

        Returns:
            Number of legs that were fetched successfully
        """
        filled = 0
        for index, stop in enumerate(stops):
            if stop.travel is not None and stop.travel.is_complete:
                continue

            if index == 0:
                if user_origin is None:
                    continue
                origin = user_origin.as_token()
            else:
                origin = stops[index - 1].route_token()

            destination = stop.route_token()
            if not origin or not destination:
                logger.warning(f"Cannot route to stop {index + 1} '{stop.name}': missing endpoint")
                continue

            try:
                estimate = await self.gateway.travel_time(origin, destination, self.mode)
            except Exception as e:
                logger.warning(f"Travel time failed for leg {index} -> {index + 1}: {e}")
                estimate = None

            if estimate is None:
                continue

            stop.travel = TravelLeg(
                distance_meters=estimate.distance_meters,
                duration_minutes=estimate.duration_minutes,
            )
            filled += 1

        logger.info(f"Travel augmentation complete: {filled} legs filled for {len(stops)} stops")
        return filled
