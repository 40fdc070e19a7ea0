# territory_system/services/claim_service.py
"""
Territory application lifecycle.

    submitted -> under_review -> approved -> expired
              \\-> rejected

Claiming is serialized through a single lock and the overlap check is
repeated inside it, so two approvals racing for intersecting circles
cannot both succeed.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from core.errors import ValidationError, ConflictError
from core.locks import KeyedLock
from models import TerritoryApplication, ClaimedTerritory
from mlm_system.utils.time_machine import timeMachine
from repositories.base import TerritoryRepository
from territory_system.services.overlap_service import TerritoryOverlapService, AvailabilityResult
from territory_system.services.pricing_service import TerritoryPricingEngine, TerritoryPricingInput

logger = logging.getLogger(__name__)

CLAIM_LOCK_KEY = "territory_claim"

MIN_TERM_MONTHS = 1
MAX_TERM_MONTHS = 60
DEFAULT_TERM_MONTHS = 12

OPEN_STATUSES = ("pending", "submitted", "under_review")


@dataclass
class ExpirationSummary:
    expiringIn7Days: int
    expiringIn30Days: int
    expiringIn90Days: int
    expired: int


def add_months(moment: datetime, months: int) -> datetime:
    """Same day-of-month `months` later, clamped to the month's last day."""
    monthIndex = moment.month - 1 + months
    year = moment.year + monthIndex // 12
    month = monthIndex % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _conflict_ids(availability: AvailabilityResult) -> List[int]:
    return [match.territory.territoryID for match in availability.overlapping]


class TerritoryClaimService:
    """Service for territory applications and claimed territories."""

    def __init__(
            self,
            repository: TerritoryRepository,
            locks: Optional[KeyedLock] = None,
            pricing: Optional[TerritoryPricingEngine] = None,
            overlap: Optional[TerritoryOverlapService] = None
    ):
        self.repository = repository
        self.locks = locks or KeyedLock()
        self.pricing = pricing or TerritoryPricingEngine()
        self.overlap = overlap or TerritoryOverlapService(repository)

    # ============================================================
    # APPLICATIONS
    # ============================================================

    def submit_application(
            self,
            applicant_user_id: Optional[str],
            territory_name: str,
            lat: float,
            lng: float,
            radius_miles: float,
            pricing_input: TerritoryPricingInput,
            term_months: int = DEFAULT_TERM_MONTHS
    ) -> TerritoryApplication:
        """
        Check availability, price the territory and store the application.

        Raises:
            ValidationError: Bad name, term, coordinates, radius or pricing input
            ConflictError: Circle overlaps an active claimed territory
        """
        if not territory_name or not territory_name.strip():
            raise ValidationError("territory_name is required", field="territory_name")
        self._validate_term(term_months)

        availability = self.overlap.check_availability(lat, lng, radius_miles)
        if not availability.available:
            raise ConflictError(
                f"Territory '{territory_name}' overlaps claimed territories",
                conflicts=_conflict_ids(availability)
            )

        quote = self.pricing.price(pricing_input)

        application = TerritoryApplication(
            applicantUserID=applicant_user_id,
            centerLat=lat,
            centerLng=lng,
            radiusMiles=radius_miles,
            territoryName=territory_name.strip(),
            state=pricing_input.state.strip().upper(),
            city=pricing_input.city,
            population=pricing_input.population,
            areaSqMiles=pricing_input.area_sq_miles,
            termMonths=term_months,
            priceCents=quote.final_price_cents,
            status="submitted",
        )
        application = self.repository.add_application(application)

        logger.info(
            f"Territory application {application.applicationID} '{application.territoryName}' "
            f"submitted at {application.priceCents} cents"
        )
        return application

    def start_review(self, application_id: int, reviewer: Optional[str] = None) -> TerritoryApplication:
        application = self._open_application(application_id)
        application.status = "under_review"
        application.reviewedBy = reviewer
        return self.repository.save_application(application)

    def approve(
            self,
            application_id: int,
            reviewer: Optional[str] = None,
            notes: Optional[str] = None,
            term_months: Optional[int] = None
    ) -> ClaimedTerritory:
        """
        Approve an application and claim its territory.

        Raises:
            ValidationError: Unknown application or bad term
            ConflictError: Application already decided, or the circle now
                           overlaps a territory claimed since submission
        """
        if term_months is not None:
            self._validate_term(term_months)

        with self.locks.hold(CLAIM_LOCK_KEY):
            application = self._open_application(application_id)

            availability = self.overlap.check_availability(
                application.centerLat, application.centerLng, application.radiusMiles
            )
            if not availability.available:
                raise ConflictError(
                    f"Application {application_id} overlaps territories claimed since submission",
                    conflicts=_conflict_ids(availability)
                )

            term = term_months or application.termMonths or DEFAULT_TERM_MONTHS
            territory = ClaimedTerritory(
                applicationID=application.applicationID,
                ownerUserID=application.applicantUserID,
                centerLat=application.centerLat,
                centerLng=application.centerLng,
                radiusMiles=application.radiusMiles,
                territoryName=application.territoryName,
                population=application.population,
                areaSqMiles=application.areaSqMiles,
                status="active",
                expiresAt=add_months(timeMachine.now, term),
            )
            territory = self.repository.add_claimed_territory(territory)

            application.status = "approved"
            application.termMonths = term
            application.reviewedBy = reviewer
            application.reviewNotes = notes
            self.repository.save_application(application)

        logger.info(
            f"Application {application_id} approved: territory {territory.territoryID} "
            f"claimed until {territory.expiresAt.date()}"
        )
        return territory

    def reject(
            self,
            application_id: int,
            reviewer: Optional[str] = None,
            notes: Optional[str] = None
    ) -> TerritoryApplication:
        application = self._open_application(application_id)
        application.status = "rejected"
        application.reviewedBy = reviewer
        application.reviewNotes = notes
        application = self.repository.save_application(application)

        logger.info(f"Application {application_id} rejected by {reviewer}")
        return application

    # ============================================================
    # EXPIRATION
    # ============================================================

    def expire_territories(self) -> List[ClaimedTerritory]:
        """Mark active territories past their expiry as expired; frees their area."""
        now = timeMachine.now
        expired = []

        with self.locks.hold(CLAIM_LOCK_KEY):
            for territory in self.repository.list_claimed_territories(status="active"):
                if territory.expiresAt is None or territory.expiresAt > now:
                    continue

                territory.status = "expired"
                self.repository.save_claimed_territory(territory)
                expired.append(territory)

                if territory.applicationID is not None:
                    application = self.repository.get_application(territory.applicationID)
                    if application and application.status == "approved":
                        application.status = "expired"
                        self.repository.save_application(application)

        if expired:
            logger.info(f"Expired {len(expired)} territories: {[t.territoryID for t in expired]}")
        return expired

    def expiration_summary(self) -> ExpirationSummary:
        now = timeMachine.now
        remaining = [
            t.expiresAt - now
            for t in self.repository.list_claimed_territories(status="active")
            if t.expiresAt is not None
        ]

        def expiring_within(days: int) -> int:
            return sum(1 for delta in remaining if timedelta(0) <= delta <= timedelta(days=days))

        return ExpirationSummary(
            expiringIn7Days=expiring_within(7),
            expiringIn30Days=expiring_within(30),
            expiringIn90Days=expiring_within(90),
            expired=sum(1 for delta in remaining if delta <= timedelta(0)),
        )

    # ============================================================
    # HELPERS
    # ============================================================

    def _open_application(self, application_id: int) -> TerritoryApplication:
        application = self.repository.get_application(application_id)
        if not application:
            raise ValidationError(f"Application {application_id} not found", field="application_id")
        if application.status not in OPEN_STATUSES:
            raise ConflictError(f"Application {application_id} is already {application.status}")
        return application

    @staticmethod
    def _validate_term(term_months: int) -> None:
        if isinstance(term_months, bool) or not isinstance(term_months, int) \
                or not MIN_TERM_MONTHS <= term_months <= MAX_TERM_MONTHS:
            raise ValidationError(
                f"term_months must be between {MIN_TERM_MONTHS} and {MAX_TERM_MONTHS}",
                field="term_months"
            )
