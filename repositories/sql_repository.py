"""
SQLAlchemy repository.

One instance wraps one Session. Volume changes are issued as
UPDATE ... SET col = col + :delta so concurrent sales never lose an
increment. The binary daily payout row is read with SELECT ... FOR UPDATE
and incremented with a compare-and-set, so the cap also holds where
FOR UPDATE is a no-op.
"""
import functools
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from core.errors import ConflictError, DependencyError
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


def _translate_errors(method):
    """Surface storage failures as DependencyError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except (ConflictError, DependencyError):
            raise
        except (OperationalError, PoolTimeoutError) as e:
            logger.error(f"Repository call {method.__name__} failed (retryable): {e}")
            self.session.rollback()
            raise DependencyError(f"{method.__name__} failed: {e}", retryable=True) from e
        except SQLAlchemyError as e:
            logger.error(f"Repository call {method.__name__} failed: {e}")
            self.session.rollback()
            raise DependencyError(f"{method.__name__} failed: {e}") from e

    return wrapper


class SqlRepository(NetworkRepository, TerritoryRepository, ReferralRepository):
    """All three repository roles over one SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @_translate_errors
    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # ------------------------------------------------------------------
    # Distributors
    # ------------------------------------------------------------------

    @_translate_errors
    def get_distributor(self, distributor_id: int) -> Optional[Distributor]:
        return self.session.query(Distributor).filter_by(distributorID=distributor_id).first()

    @_translate_errors
    def get_distributor_by_code(self, code: str) -> Optional[Distributor]:
        return self.session.query(Distributor).filter_by(code=code).first()

    @_translate_errors
    def get_distributor_by_user(self, user_id: str) -> Optional[Distributor]:
        return self.session.query(Distributor).filter_by(userID=user_id).first()

    @_translate_errors
    def get_binary_root(self) -> Optional[Distributor]:
        return self.session.query(Distributor).filter(
            Distributor.binaryParentID.is_(None)
        ).order_by(Distributor.distributorID).first()

    @_translate_errors
    def count_distributors(self) -> int:
        return self.session.query(Distributor).count()

    @_translate_errors
    def list_distributors(self) -> List[Distributor]:
        return self.session.query(Distributor).order_by(Distributor.distributorID).all()

    @_translate_errors
    def add_distributor(self, distributor: Distributor) -> Distributor:
        savepoint = self.session.begin_nested()
        try:
            self.session.add(distributor)
            self.session.flush()
        except IntegrityError as e:
            savepoint.rollback()
            logger.warning(f"Distributor insert rejected: {e.orig}")
            raise ConflictError(f"Distributor {distributor.code} conflicts with an existing row") from e
        savepoint.commit()
        return distributor

    @_translate_errors
    def save_distributor(self, distributor: Distributor) -> Distributor:
        self.session.add(distributor)
        self.session.flush()
        return distributor

    @_translate_errors
    def get_binary_children(self, distributor_id: int) -> List[Distributor]:
        children = self.session.query(Distributor).filter_by(binaryParentID=distributor_id).all()
        return sorted(children, key=lambda d: 0 if d.binarySide == "left" else 1)

    @_translate_errors
    def get_sponsored(self, distributor_id: int) -> List[Distributor]:
        return self.session.query(Distributor).filter_by(
            sponsorID=distributor_id
        ).order_by(Distributor.createdAt, Distributor.distributorID).all()

    @_translate_errors
    def apply_volume_delta(
            self,
            distributor_id: int,
            personal: int = 0,
            monthly: int = 0,
            left: int = 0,
            right: int = 0
    ) -> Optional[Distributor]:
        updated = self.session.query(Distributor).filter_by(
            distributorID=distributor_id
        ).update(
            {
                Distributor.personalVolume: Distributor.personalVolume + personal,
                Distributor.monthlyPV: Distributor.monthlyPV + monthly,
                Distributor.leftLegVolume: Distributor.leftLegVolume + left,
                Distributor.rightLegVolume: Distributor.rightLegVolume + right,
                Distributor.teamVolume: Distributor.teamVolume + personal + left + right,
            },
            synchronize_session=False
        )
        if not updated:
            return None

        return self.session.query(Distributor).populate_existing().filter_by(
            distributorID=distributor_id
        ).first()

    @_translate_errors
    def reset_monthly_volume(self, distributor_id: int) -> None:
        self.session.query(Distributor).filter_by(
            distributorID=distributor_id
        ).update({Distributor.monthlyPV: 0}, synchronize_session="evaluate")

    # ------------------------------------------------------------------
    # Sales and ledger
    # ------------------------------------------------------------------

    @_translate_errors
    def add_sale(self, sale: SaleEvent) -> SaleEvent:
        self.session.add(sale)
        self.session.flush()
        return sale

    @_translate_errors
    def first_sale_id(self, distributor_id: int) -> Optional[int]:
        return self.session.query(func.min(SaleEvent.saleID)).filter(
            SaleEvent.distributorID == distributor_id
        ).scalar()

    @_translate_errors
    def add_ledger_entries(self, entries: Iterable[CommissionLedgerEntry]) -> List[CommissionLedgerEntry]:
        written = []
        for entry in entries:
            exists = self.session.query(CommissionLedgerEntry.entryID).filter_by(
                idempotencyKey=entry.idempotencyKey
            ).first()
            if exists:
                logger.debug(f"Ledger entry {entry.idempotencyKey} already written, skipping")
                continue

            savepoint = self.session.begin_nested()
            try:
                self.session.add(entry)
                self.session.flush()
            except IntegrityError:
                # Another worker wrote the same key first
                savepoint.rollback()
                logger.debug(f"Ledger entry {entry.idempotencyKey} written concurrently, skipping")
                continue
            savepoint.commit()
            written.append(entry)

        return written

    @_translate_errors
    def list_ledger_entries(
            self,
            beneficiary_id: Optional[int] = None,
            source_sale_id: Optional[int] = None
    ) -> List[CommissionLedgerEntry]:
        query = self.session.query(CommissionLedgerEntry)
        if beneficiary_id is not None:
            query = query.filter_by(beneficiaryID=beneficiary_id)
        if source_sale_id is not None:
            query = query.filter_by(sourceSaleID=source_sale_id)
        return query.order_by(CommissionLedgerEntry.entryID).all()

    def _locked_payout_row(self, distributor_id: int, day: str) -> BinaryDailyPayout:
        row = self.session.query(BinaryDailyPayout).filter_by(
            distributorID=distributor_id,
            payoutDay=day
        ).with_for_update().first()
        if row is not None:
            return row

        savepoint = self.session.begin_nested()
        try:
            row = BinaryDailyPayout(distributorID=distributor_id, payoutDay=day, paidAmount=0)
            self.session.add(row)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            return self.session.query(BinaryDailyPayout).filter_by(
                distributorID=distributor_id,
                payoutDay=day
            ).with_for_update().one()
        savepoint.commit()
        return row

    @_translate_errors
    def reserve_binary_payout(self, distributor_id: int, day: str, requested: int, cap: int) -> int:
        """
        Grant up to cap - paidAmount.

        The increment is a compare-and-set on paidAmount, so a writer that
        read a stale total (backends without FOR UPDATE) re-reads and retries.
        """
        row = self._locked_payout_row(distributor_id, day)
        while True:
            paid = row.paidAmount
            granted = max(0, min(requested, cap - paid))
            if not granted:
                return 0

            updated = self.session.query(BinaryDailyPayout).filter_by(
                id=row.id,
                paidAmount=paid
            ).update({BinaryDailyPayout.paidAmount: paid + granted}, synchronize_session=False)
            if updated:
                self.session.refresh(row)
                return granted

            logger.info(f"Binary payout row {distributor_id}/{day} changed concurrently, retrying")
            self.session.refresh(row)

    @_translate_errors
    def get_binary_paid(self, distributor_id: int, day: str) -> int:
        row = self.session.query(BinaryDailyPayout).filter_by(
            distributorID=distributor_id,
            payoutDay=day
        ).first()
        return row.paidAmount if row else 0

    # ------------------------------------------------------------------
    # Territories
    # ------------------------------------------------------------------

    @_translate_errors
    def find_active_territories_near(
            self,
            min_lat: float,
            max_lat: float,
            min_lng: float,
            max_lng: float
    ) -> List[ClaimedTerritory]:
        return self.session.query(ClaimedTerritory).filter(
            ClaimedTerritory.status == "active",
            ClaimedTerritory.centerLat.between(min_lat, max_lat),
            ClaimedTerritory.centerLng.between(min_lng, max_lng)
        ).all()

    @_translate_errors
    def list_claimed_territories(self, status: Optional[str] = None) -> List[ClaimedTerritory]:
        query = self.session.query(ClaimedTerritory)
        if status is not None:
            query = query.filter_by(status=status)
        return query.order_by(ClaimedTerritory.territoryID).all()

    @_translate_errors
    def add_claimed_territory(self, territory: ClaimedTerritory) -> ClaimedTerritory:
        self.session.add(territory)
        self.session.flush()
        return territory

    @_translate_errors
    def save_claimed_territory(self, territory: ClaimedTerritory) -> ClaimedTerritory:
        self.session.add(territory)
        self.session.flush()
        return territory

    @_translate_errors
    def add_application(self, application: TerritoryApplication) -> TerritoryApplication:
        self.session.add(application)
        self.session.flush()
        return application

    @_translate_errors
    def get_application(self, application_id: int) -> Optional[TerritoryApplication]:
        return self.session.query(TerritoryApplication).filter_by(applicationID=application_id).first()

    @_translate_errors
    def save_application(self, application: TerritoryApplication) -> TerritoryApplication:
        self.session.add(application)
        self.session.flush()
        return application

    # ------------------------------------------------------------------
    # Referrals
    # ------------------------------------------------------------------

    @_translate_errors
    def add_referral(self, record: ReferralRecord) -> ReferralRecord:
        self.session.add(record)
        self.session.flush()
        return record

    @_translate_errors
    def list_referrals(self, since: Optional[datetime] = None) -> List[ReferralRecord]:
        query = self.session.query(ReferralRecord)
        if since is not None:
            query = query.filter(ReferralRecord.createdAt >= since)
        return query.order_by(ReferralRecord.id).all()
