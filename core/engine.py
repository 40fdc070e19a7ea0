# core/engine.py
"""
NetworkEngine - single entry point over the MLM and territory systems.

Usage:
    # SQL storage
    with get_db_session_ctx() as session:
        engine = NetworkEngine.from_session(session)
        distributor = engine.enroll_distributor("user-1")

    # In-memory storage (tests, embedding)
    engine = NetworkEngine(MemoryRepository())

Each mutating call is one unit of work: committed on success, rolled back
on any error. Money crosses this boundary as integer cents.
"""
import logging
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy.orm import Session

from core.errors import ValidationError
from core.locks import KeyedLock
from models import Distributor, TerritoryApplication, ClaimedTerritory, ReferralRecord, REFERRAL_STATUSES
from mlm_system.config.ranks import Rank
from mlm_system.services.commission_service import CommissionService, CommissionResult
from mlm_system.services.leaderboard_service import LeaderboardService, LeaderboardEntry, LeaderboardStats
from mlm_system.services.network_service import NetworkService, ENROLLMENT_LOCK_KEY
from mlm_system.services.rank_service import RankService, MaintenanceReport
from repositories.sql_repository import SqlRepository
from territory_system.services.claim_service import TerritoryClaimService, CLAIM_LOCK_KEY, DEFAULT_TERM_MONTHS
from territory_system.services.overlap_service import TerritoryOverlapService, AvailabilityResult
from territory_system.services.pricing_service import (
    TerritoryPricingEngine,
    TerritoryPricingInput,
    TerritoryPricingOutput,
)

logger = logging.getLogger(__name__)

# Shared across engines so that all sessions in the process serialize
# on the same distributor, payout-day and claim keys.
_process_locks = KeyedLock()


class NetworkEngine:
    """Facade wiring services to one repository."""

    def __init__(self, repository, locks: Optional[KeyedLock] = None):
        """
        Args:
            repository: Implements NetworkRepository, TerritoryRepository
                        and ReferralRepository (SqlRepository or MemoryRepository)
            locks: Keyed locks shared with other engines on the same data
        """
        self.repository = repository
        self.locks = locks or _process_locks

        self.network = NetworkService(repository, self.locks)
        self.ranks = RankService(repository)
        self.commissions = CommissionService(repository, self.locks)
        self.leaderboards = LeaderboardService(repository)

        self.pricing = TerritoryPricingEngine()
        self.overlap = TerritoryOverlapService(repository)
        self.claims = TerritoryClaimService(repository, self.locks, self.pricing, self.overlap)

    @classmethod
    def from_session(cls, session: Session, locks: Optional[KeyedLock] = None) -> "NetworkEngine":
        return cls(SqlRepository(session), locks)

    @contextmanager
    def _unit_of_work(self):
        try:
            yield
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise

    # ============================================================
    # NETWORK
    # ============================================================

    def enroll_distributor(
            self,
            user_id: str,
            sponsor_code: Optional[str] = None,
            display_name: Optional[str] = None
    ) -> Distributor:
        # Held through commit; placement reads the slot it writes
        with self.locks.hold(ENROLLMENT_LOCK_KEY):
            with self._unit_of_work():
                return self.network.enroll(user_id, sponsor_code, display_name)

    def record_sale(
            self,
            distributor_id: int,
            amount_minor_units: int,
            sale_type: str = "personal"
    ) -> CommissionResult:
        """
        Record a sale, roll up volume, refresh ranks and pay commissions.

        Returns:
            CommissionResult with roll-up and commission diagnostics merged
        """
        with self._unit_of_work():
            record = self.network.record_sale(distributor_id, amount_minor_units, sale_type)
            seller = self.repository.get_distributor(distributor_id)

            # Seller's activity feeds its sponsor's, children's feed parents'
            toRefresh = [distributor_id]
            if seller.sponsorID is not None:
                toRefresh.append(seller.sponsorID)
            toRefresh.extend(credit.distributorID for credit in record.credits)
            self.ranks.refresh_many(toRefresh)

            result = self.commissions.compute_for_sale(record.sale, record.credits)
            result.diagnostics = record.diagnostics + result.diagnostics
            return result

    def get_rank(self, distributor_id: int) -> Rank:
        return self.ranks.get_rank(distributor_id)

    def get_team(self, distributor_id: int) -> List[Distributor]:
        if not self.repository.get_distributor(distributor_id):
            raise ValidationError(f"Distributor {distributor_id} not found", field="distributor_id")
        return self.network.get_team(distributor_id)

    def run_rank_maintenance(self, period: Optional[str] = None) -> MaintenanceReport:
        with self._unit_of_work():
            return self.ranks.run_maintenance(period)

    # ============================================================
    # REFERRALS
    # ============================================================

    def record_referral(
            self,
            referrer_code: str,
            referred_contact: str,
            status: str = "pending",
            referrer_name: Optional[str] = None
    ) -> ReferralRecord:
        if status not in REFERRAL_STATUSES:
            raise ValidationError(f"Unknown referral status {status}", field="status")
        if not referrer_code or not referred_contact:
            raise ValidationError("referrer_code and referred_contact are required")

        with self._unit_of_work():
            return self.repository.add_referral(ReferralRecord(
                referrerCode=referrer_code,
                referrerName=referrer_name,
                referredContact=referred_contact,
                status=status,
            ))

    def leaderboard(self, limit: int = 50, timeframe: str = "all") -> List[LeaderboardEntry]:
        return self.leaderboards.leaderboard(limit, timeframe)

    def leaderboard_stats(self, timeframe: str = "all") -> LeaderboardStats:
        return self.leaderboards.leaderboard_stats(timeframe)

    # ============================================================
    # TERRITORIES
    # ============================================================

    def check_territory_availability(self, lat: float, lng: float, radius_miles: float) -> AvailabilityResult:
        return self.overlap.check_availability(lat, lng, radius_miles)

    def price_territory(self, pricing_input: TerritoryPricingInput) -> TerritoryPricingOutput:
        return self.pricing.price(pricing_input)

    def submit_territory_application(
            self,
            applicant_user_id: Optional[str],
            territory_name: str,
            lat: float,
            lng: float,
            radius_miles: float,
            pricing_input: TerritoryPricingInput,
            term_months: int = DEFAULT_TERM_MONTHS
    ) -> TerritoryApplication:
        with self._unit_of_work():
            return self.claims.submit_application(
                applicant_user_id, territory_name, lat, lng, radius_miles, pricing_input, term_months
            )

    def approve_territory(
            self,
            application_id: int,
            reviewer: Optional[str] = None,
            notes: Optional[str] = None,
            term_months: Optional[int] = None
    ) -> ClaimedTerritory:
        # Claim lock spans the commit so a racing approval sees this claim
        with self.locks.hold(CLAIM_LOCK_KEY):
            with self._unit_of_work():
                return self.claims.approve(application_id, reviewer, notes, term_months)

    def reject_territory(
            self,
            application_id: int,
            reviewer: Optional[str] = None,
            notes: Optional[str] = None
    ) -> TerritoryApplication:
        with self._unit_of_work():
            return self.claims.reject(application_id, reviewer, notes)

    def expire_territories(self) -> List[ClaimedTerritory]:
        with self.locks.hold(CLAIM_LOCK_KEY):
            with self._unit_of_work():
                return self.claims.expire_territories()
