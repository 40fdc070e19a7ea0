# territory_system/services/overlap_service.py
"""
Territory availability - coverage circles of active claimed territories
must not overlap.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from core.errors import ValidationError, retry_read
from models import ClaimedTerritory
from repositories.base import TerritoryRepository
from territory_system.utils.geo import distance_miles, validate_coordinates, bounding_box

logger = logging.getLogger(__name__)

MIN_RADIUS_MILES = 1
MAX_RADIUS_MILES = 50


@dataclass
class OverlapMatch:
    territory: ClaimedTerritory
    distanceMiles: float


@dataclass
class AvailabilityResult:
    available: bool
    overlapping: List[OverlapMatch] = field(default_factory=list)
    nearby_claimed_count: int = 0


def validate_radius(radius_miles: float) -> None:
    if isinstance(radius_miles, bool) or not isinstance(radius_miles, (int, float)):
        raise ValidationError("radius_miles must be a number", field="radius_miles")
    if not MIN_RADIUS_MILES <= radius_miles <= MAX_RADIUS_MILES:
        raise ValidationError(
            f"radius_miles must be between {MIN_RADIUS_MILES} and {MAX_RADIUS_MILES}",
            field="radius_miles"
        )


def circles_overlap(distance: float, radius_a: float, radius_b: float) -> bool:
    """Touching circles (distance == sum of radii) do not overlap."""
    return distance < radius_a + radius_b


class TerritoryOverlapService:
    """Read-only availability checks against claimed territories."""

    def __init__(self, repository: TerritoryRepository):
        self.repository = repository

    @retry_read
    def _candidates(self, lat: float, lng: float, window_miles: float) -> List[ClaimedTerritory]:
        return self.repository.find_active_territories_near(*bounding_box(lat, lng, window_miles))

    def check_availability(self, lat: float, lng: float, radius_miles: float) -> AvailabilityResult:
        """
        Check a requested circle against every active claimed territory.

        Candidates are pruned by a bounding box wide enough to hold the
        centre of any circle that could touch the request, then tested
        exactly by great-circle distance.

        Raises:
            ValidationError: Bad coordinates or radius outside [1, 50]
            DependencyError: Repository failure (retried once if retryable)
        """
        validate_coordinates(lat, lng)
        validate_radius(radius_miles)

        window = max(2 * radius_miles, radius_miles + MAX_RADIUS_MILES)
        candidates = self._candidates(lat, lng, window)

        overlapping = []
        for territory in candidates:
            distance = distance_miles(lat, lng, territory.centerLat, territory.centerLng)
            if circles_overlap(distance, radius_miles, territory.radiusMiles):
                overlapping.append(OverlapMatch(territory=territory, distanceMiles=distance))

        overlapping.sort(key=lambda m: (m.distanceMiles, m.territory.territoryID))

        if overlapping:
            logger.info(
                f"Requested circle ({lat:.4f}, {lng:.4f}) r={radius_miles} overlaps "
                f"{len(overlapping)} territories: {[m.territory.territoryID for m in overlapping]}"
            )

        return AvailabilityResult(
            available=not overlapping,
            overlapping=overlapping,
            nearby_claimed_count=len(candidates),
        )
