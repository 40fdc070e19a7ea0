"""
In-memory repository - model instances kept in dicts keyed by id.

Used by tests and by callers embedding the engines without a database.
Every method runs under one re-entrant lock, which makes each call
atomic the same way a single SQL statement is.
"""
import logging
import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from core.errors import ConflictError
from models import (
    Distributor,
    SaleEvent,
    CommissionLedgerEntry,
    BinaryDailyPayout,
    TerritoryApplication,
    ClaimedTerritory,
    ReferralRecord,
)
from repositories.base import NetworkRepository, TerritoryRepository, ReferralRepository

logger = logging.getLogger(__name__)

_SIDE_ORDER = {"left": 0, "right": 1}


def _apply_column_defaults(instance) -> None:
    """
    Fill unset columns from their declared defaults.

    SQLAlchemy applies column defaults only at flush time, which never
    happens for objects that live only in memory.
    """
    for column in instance.__table__.columns:
        if column.primary_key or column.default is None:
            continue
        if getattr(instance, column.key) is not None:
            continue
        default = column.default
        if default.is_callable:
            setattr(instance, column.key, default.arg(None))
        elif default.is_scalar:
            setattr(instance, column.key, default.arg)


class MemoryRepository(NetworkRepository, TerritoryRepository, ReferralRepository):
    """All three repository roles over plain dicts."""

    def __init__(self):
        self._lock = threading.RLock()

        self._distributors: Dict[int, Distributor] = {}
        self._sales: Dict[int, SaleEvent] = {}
        self._ledger: Dict[str, CommissionLedgerEntry] = {}
        self._binary_payouts: Dict[tuple, BinaryDailyPayout] = {}
        self._applications: Dict[int, TerritoryApplication] = {}
        self._territories: Dict[int, ClaimedTerritory] = {}
        self._referrals: List[ReferralRecord] = []

        self._sequences: Dict[str, int] = {}

    def _next_id(self, name: str) -> int:
        self._sequences[name] = self._sequences.get(name, 0) + 1
        return self._sequences[name]

    # ------------------------------------------------------------------
    # Distributors
    # ------------------------------------------------------------------

    def get_distributor(self, distributor_id: int) -> Optional[Distributor]:
        with self._lock:
            return self._distributors.get(distributor_id)

    def get_distributor_by_code(self, code: str) -> Optional[Distributor]:
        with self._lock:
            for distributor in self._distributors.values():
                if distributor.code == code:
                    return distributor
            return None

    def get_distributor_by_user(self, user_id: str) -> Optional[Distributor]:
        with self._lock:
            for distributor in self._distributors.values():
                if distributor.userID == user_id:
                    return distributor
            return None

    def get_binary_root(self) -> Optional[Distributor]:
        with self._lock:
            roots = [d for d in self._distributors.values() if d.binaryParentID is None]
            if not roots:
                return None
            return min(roots, key=lambda d: d.distributorID)

    def count_distributors(self) -> int:
        with self._lock:
            return len(self._distributors)

    def list_distributors(self) -> List[Distributor]:
        with self._lock:
            return [self._distributors[key] for key in sorted(self._distributors)]

    def add_distributor(self, distributor: Distributor) -> Distributor:
        with self._lock:
            for existing in self._distributors.values():
                if existing.code == distributor.code:
                    raise ConflictError(f"Distributor code {distributor.code} already exists")
                if existing.userID == distributor.userID:
                    raise ConflictError(f"User {distributor.userID} is already enrolled")
                if (distributor.binaryParentID is not None
                        and existing.binaryParentID == distributor.binaryParentID
                        and existing.binarySide == distributor.binarySide):
                    raise ConflictError(
                        f"Binary slot {distributor.binarySide} under "
                        f"{distributor.binaryParentID} is taken"
                    )

            _apply_column_defaults(distributor)
            distributor.distributorID = self._next_id("distributor")
            self._distributors[distributor.distributorID] = distributor
            return distributor

    def save_distributor(self, distributor: Distributor) -> Distributor:
        with self._lock:
            self._distributors[distributor.distributorID] = distributor
            return distributor

    def get_binary_children(self, distributor_id: int) -> List[Distributor]:
        with self._lock:
            children = [
                d for d in self._distributors.values()
                if d.binaryParentID == distributor_id
            ]
            return sorted(children, key=lambda d: _SIDE_ORDER.get(d.binarySide, 2))

    def get_sponsored(self, distributor_id: int) -> List[Distributor]:
        with self._lock:
            recruits = [
                d for d in self._distributors.values()
                if d.sponsorID == distributor_id
            ]
            return sorted(recruits, key=lambda d: (d.createdAt, d.distributorID))

    def apply_volume_delta(
            self,
            distributor_id: int,
            personal: int = 0,
            monthly: int = 0,
            left: int = 0,
            right: int = 0
    ) -> Optional[Distributor]:
        with self._lock:
            distributor = self._distributors.get(distributor_id)
            if distributor is None:
                return None
            distributor.personalVolume += personal
            distributor.monthlyPV += monthly
            distributor.leftLegVolume += left
            distributor.rightLegVolume += right
            distributor.teamVolume += personal + left + right
            return distributor

    def reset_monthly_volume(self, distributor_id: int) -> None:
        with self._lock:
            distributor = self._distributors.get(distributor_id)
            if distributor is not None:
                distributor.monthlyPV = 0

    # ------------------------------------------------------------------
    # Sales and ledger
    # ------------------------------------------------------------------

    def add_sale(self, sale: SaleEvent) -> SaleEvent:
        with self._lock:
            _apply_column_defaults(sale)
            sale.saleID = self._next_id("sale")
            self._sales[sale.saleID] = sale
            return sale

    def first_sale_id(self, distributor_id: int) -> Optional[int]:
        with self._lock:
            ids = [s.saleID for s in self._sales.values() if s.distributorID == distributor_id]
            return min(ids) if ids else None

    def add_ledger_entries(self, entries: Iterable[CommissionLedgerEntry]) -> List[CommissionLedgerEntry]:
        written = []
        with self._lock:
            for entry in entries:
                if entry.idempotencyKey in self._ledger:
                    logger.debug(f"Ledger entry {entry.idempotencyKey} already written, skipping")
                    continue
                _apply_column_defaults(entry)
                entry.entryID = self._next_id("ledger")
                self._ledger[entry.idempotencyKey] = entry
                written.append(entry)
        return written

    def list_ledger_entries(
            self,
            beneficiary_id: Optional[int] = None,
            source_sale_id: Optional[int] = None
    ) -> List[CommissionLedgerEntry]:
        with self._lock:
            entries = [
                e for e in self._ledger.values()
                if (beneficiary_id is None or e.beneficiaryID == beneficiary_id)
                and (source_sale_id is None or e.sourceSaleID == source_sale_id)
            ]
            return sorted(entries, key=lambda e: e.entryID)

    def reserve_binary_payout(self, distributor_id: int, day: str, requested: int, cap: int) -> int:
        with self._lock:
            key = (distributor_id, day)
            row = self._binary_payouts.get(key)
            if row is None:
                row = BinaryDailyPayout(distributorID=distributor_id, payoutDay=day, paidAmount=0)
                row.id = self._next_id("binary_payout")
                self._binary_payouts[key] = row

            granted = max(0, min(requested, cap - row.paidAmount))
            row.paidAmount += granted
            return granted

    def get_binary_paid(self, distributor_id: int, day: str) -> int:
        with self._lock:
            row = self._binary_payouts.get((distributor_id, day))
            return row.paidAmount if row else 0

    # ------------------------------------------------------------------
    # Territories
    # ------------------------------------------------------------------

    def find_active_territories_near(
            self,
            min_lat: float,
            max_lat: float,
            min_lng: float,
            max_lng: float
    ) -> List[ClaimedTerritory]:
        with self._lock:
            return [
                t for t in self._territories.values()
                if t.status == "active"
                and min_lat <= t.centerLat <= max_lat
                and min_lng <= t.centerLng <= max_lng
            ]

    def list_claimed_territories(self, status: Optional[str] = None) -> List[ClaimedTerritory]:
        with self._lock:
            return [
                self._territories[key] for key in sorted(self._territories)
                if status is None or self._territories[key].status == status
            ]

    def add_claimed_territory(self, territory: ClaimedTerritory) -> ClaimedTerritory:
        with self._lock:
            _apply_column_defaults(territory)
            territory.territoryID = self._next_id("territory")
            self._territories[territory.territoryID] = territory
            return territory

    def save_claimed_territory(self, territory: ClaimedTerritory) -> ClaimedTerritory:
        with self._lock:
            self._territories[territory.territoryID] = territory
            return territory

    def add_application(self, application: TerritoryApplication) -> TerritoryApplication:
        with self._lock:
            _apply_column_defaults(application)
            application.applicationID = self._next_id("application")
            self._applications[application.applicationID] = application
            return application

    def get_application(self, application_id: int) -> Optional[TerritoryApplication]:
        with self._lock:
            return self._applications.get(application_id)

    def save_application(self, application: TerritoryApplication) -> TerritoryApplication:
        with self._lock:
            self._applications[application.applicationID] = application
            return application

    # ------------------------------------------------------------------
    # Referrals
    # ------------------------------------------------------------------

    def add_referral(self, record: ReferralRecord) -> ReferralRecord:
        with self._lock:
            _apply_column_defaults(record)
            record.id = self._next_id("referral")
            self._referrals.append(record)
            return record

    def list_referrals(self, since: Optional[datetime] = None) -> List[ReferralRecord]:
        with self._lock:
            return [
                r for r in self._referrals
                if since is None or r.createdAt >= since
            ]
