"""
Repository interface for the network and territory engines.

The engines never touch a Session directly; they go through this
interface so persistence technology stays replaceable. Aggregates that
several workers may touch (volumes, binary daily payouts) are changed only
through the atomic methods below, never by read-modify-write in an engine.
"""
from abc import ABC, abstractmethod
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from models import (
    Distributor,
    SaleEvent,
    CommissionLedgerEntry,
    TerritoryApplication,
    ClaimedTerritory,
    ReferralRecord,
)

logger = logging.getLogger(__name__)


class NetworkRepository(ABC):
    """Distributors, sales and the commission ledger."""

    # ------------------------------------------------------------------
    # Distributors
    # ------------------------------------------------------------------

    @abstractmethod
    def get_distributor(self, distributor_id: int) -> Optional[Distributor]:
        pass

    @abstractmethod
    def get_distributor_by_code(self, code: str) -> Optional[Distributor]:
        pass

    @abstractmethod
    def get_distributor_by_user(self, user_id: str) -> Optional[Distributor]:
        pass

    @abstractmethod
    def get_binary_root(self) -> Optional[Distributor]:
        """The single distributor with no binary parent."""
        pass

    @abstractmethod
    def count_distributors(self) -> int:
        pass

    @abstractmethod
    def list_distributors(self) -> List[Distributor]:
        pass

    @abstractmethod
    def add_distributor(self, distributor: Distributor) -> Distributor:
        """
        Insert a distributor and assign its id.

        Raises:
            ConflictError: code, user or binary slot already taken
        """
        pass

    @abstractmethod
    def save_distributor(self, distributor: Distributor) -> Distributor:
        """Persist rank/status/activity fields. Not for volume changes."""
        pass

    @abstractmethod
    def get_binary_children(self, distributor_id: int) -> List[Distributor]:
        """Binary children ordered left, right."""
        pass

    @abstractmethod
    def get_sponsored(self, distributor_id: int) -> List[Distributor]:
        """First-level sponsor-tree recruits, oldest first."""
        pass

    @abstractmethod
    def apply_volume_delta(
            self,
            distributor_id: int,
            personal: int = 0,
            monthly: int = 0,
            left: int = 0,
            right: int = 0
    ) -> Optional[Distributor]:
        """
        Atomically add deltas to a distributor's volumes.

        teamVolume grows by personal + left + right. Returns the updated row
        or None if the distributor does not exist.
        """
        pass

    @abstractmethod
    def reset_monthly_volume(self, distributor_id: int) -> None:
        pass

    # ------------------------------------------------------------------
    # Sales and ledger
    # ------------------------------------------------------------------

    @abstractmethod
    def add_sale(self, sale: SaleEvent) -> SaleEvent:
        pass

    @abstractmethod
    def first_sale_id(self, distributor_id: int) -> Optional[int]:
        """Id of the distributor's earliest recorded sale."""
        pass

    @abstractmethod
    def add_ledger_entries(self, entries: Iterable[CommissionLedgerEntry]) -> List[CommissionLedgerEntry]:
        """
        Append entries, skipping any whose idempotency key already exists.

        Returns:
            Entries actually written
        """
        pass

    @abstractmethod
    def list_ledger_entries(
            self,
            beneficiary_id: Optional[int] = None,
            source_sale_id: Optional[int] = None
    ) -> List[CommissionLedgerEntry]:
        pass

    @abstractmethod
    def reserve_binary_payout(self, distributor_id: int, day: str, requested: int, cap: int) -> int:
        """
        Atomically grant up to `requested` cents against the daily cap.

        Returns:
            Granted amount (0 when the cap is already reached)
        """
        pass

    @abstractmethod
    def get_binary_paid(self, distributor_id: int, day: str) -> int:
        pass

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def commit(self) -> None:
        """Make pending writes durable. No-op for in-memory storage."""
        pass

    def rollback(self) -> None:
        pass


class TerritoryRepository(ABC):
    """Territory applications and claimed territories."""

    @abstractmethod
    def find_active_territories_near(
            self,
            min_lat: float,
            max_lat: float,
            min_lng: float,
            max_lng: float
    ) -> List[ClaimedTerritory]:
        """Active claimed territories whose centre lies inside the box."""
        pass

    @abstractmethod
    def list_claimed_territories(self, status: Optional[str] = None) -> List[ClaimedTerritory]:
        pass

    @abstractmethod
    def add_claimed_territory(self, territory: ClaimedTerritory) -> ClaimedTerritory:
        pass

    @abstractmethod
    def save_claimed_territory(self, territory: ClaimedTerritory) -> ClaimedTerritory:
        pass

    @abstractmethod
    def add_application(self, application: TerritoryApplication) -> TerritoryApplication:
        pass

    @abstractmethod
    def get_application(self, application_id: int) -> Optional[TerritoryApplication]:
        pass

    @abstractmethod
    def save_application(self, application: TerritoryApplication) -> TerritoryApplication:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass


class ReferralRepository(ABC):
    """Referral records for leaderboard aggregation."""

    @abstractmethod
    def add_referral(self, record: ReferralRecord) -> ReferralRecord:
        pass

    @abstractmethod
    def list_referrals(self, since: Optional[datetime] = None) -> List[ReferralRecord]:
        pass
