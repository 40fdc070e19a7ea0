# mlm_system/services/commission_service.py
"""
Commission calculation service - fast start, binary and unilevel payouts.

Every entry is keyed "{sale}:{type}:{beneficiary}", so computing the same
sale twice never pays twice. A broken link in either tree skips only the
beneficiaries behind it; the anomaly comes back in diagnostics.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Set
import logging

from config import Config
from core.errors import ValidationError, IntegrityWarning
from core.locks import KeyedLock
from models import SaleEvent, Distributor, CommissionLedgerEntry, make_idempotency_key
from mlm_system.config.commissions import (
    FAST_START_RATES,
    BINARY_RATE,
    UNILEVEL_RATES,
    UNILEVEL_TYPES,
    commission_cents,
)
from mlm_system.services.network_service import LegCredit
from mlm_system.utils.chain_walker import ChainWalker, SPONSOR
from repositories.base import NetworkRepository

logger = logging.getLogger(__name__)


@dataclass
class CommissionResult:
    """Ledger entries written for one sale plus any anomalies met on the way."""
    saleID: int
    entries: List[CommissionLedgerEntry] = field(default_factory=list)
    diagnostics: List[IntegrityWarning] = field(default_factory=list)
    binaryDiscarded: int = 0  # cents cut by the daily cap

    @property
    def totalPaid(self) -> int:
        return sum(entry.amount for entry in self.entries)


class CommissionService:
    """Service for calculating MLM commissions."""

    def __init__(
            self,
            repository: NetworkRepository,
            locks: Optional[KeyedLock] = None,
            daily_cap: Optional[int] = None,
            fast_start_days: Optional[int] = None
    ):
        self.repository = repository
        self.locks = locks or KeyedLock()
        self.dailyCap = daily_cap if daily_cap is not None else Config.get(Config.BINARY_DAILY_CAP_CENTS)
        self.fastStartDays = fast_start_days or Config.get(Config.FAST_START_DURATION_DAYS)

    def compute_for_sale(
            self,
            sale: SaleEvent,
            credits: Optional[List[LegCredit]] = None
    ) -> CommissionResult:
        """
        Compute and persist all commissions for a sale.

        Args:
            sale: Recorded sale
            credits: Binary roll-up of this sale. Without it no binary
                     commission can be computed and only sponsor-tree
                     commissions are considered.

        Returns:
            CommissionResult with the entries actually written
        """
        seller = self.repository.get_distributor(sale.distributorID)
        if not seller:
            raise ValidationError(f"Seller {sale.distributorID} of sale {sale.saleID} not found")

        result = CommissionResult(saleID=sale.saleID)
        existingKeys = {
            entry.idempotencyKey
            for entry in self.repository.list_ledger_entries(source_sale_id=sale.saleID)
        }

        walker = ChainWalker(self.repository)
        pending: List[CommissionLedgerEntry] = []

        # 1. Fast start to the direct sponsor
        fastStart = self._fastStart(sale, seller, walker)
        if fastStart:
            pending.append(fastStart)

        # 2. Unilevel L1/L2 to active sponsors
        pending.extend(self._unilevel(sale, seller, walker))

        # 3. Binary on newly matched volume, capped per distributor/day
        if credits is None:
            logger.debug(f"No roll-up passed for sale {sale.saleID}, binary skipped")
        else:
            pending.extend(self._binary(sale, credits, existingKeys, result))

        result.entries = self.repository.add_ledger_entries(
            entry for entry in pending if entry.idempotencyKey not in existingKeys
        )
        # Fast start and unilevel walk the same sponsor links
        seen = set()
        for warning in walker.warnings:
            signature = (warning.distributor_id, warning.missing_id, warning.link)
            if signature not in seen:
                seen.add(signature)
                result.diagnostics.append(warning)

        logger.info(
            f"Sale {sale.saleID}: {len(result.entries)} commission entries, "
            f"total {result.totalPaid} cents, binary discarded {result.binaryDiscarded}, "
            f"{len(result.diagnostics)} diagnostics"
        )
        return result

    # ============================================================
    # FAST START
    # ============================================================

    def _fastStart(
            self,
            sale: SaleEvent,
            seller: Distributor,
            walker: ChainWalker
    ) -> Optional[CommissionLedgerEntry]:
        """One-time bonus on the recruit's first sale inside the window."""
        if seller.sponsorID is None:
            return None

        if self.repository.first_sale_id(seller.distributorID) != sale.saleID:
            return None

        if sale.createdAt - seller.createdAt > timedelta(days=self.fastStartDays):
            logger.debug(f"Sale {sale.saleID} is outside the fast start window of {seller.code}")
            return None

        sponsors = []

        def direct_sponsor(sponsor: Distributor, level: int) -> bool:
            sponsors.append(sponsor)
            return False

        walker.walk_upline(seller, direct_sponsor, SPONSOR)
        if not sponsors:
            return None
        sponsor = sponsors[0]
        if sponsor.status == "terminated":
            return None

        amount = commission_cents(sale.amount, FAST_START_RATES[sale.saleType])
        if amount <= 0:
            return None

        return self._entry(sale, "fast_start", sponsor.distributorID, amount)

    # ============================================================
    # UNILEVEL
    # ============================================================

    def _unilevel(
            self,
            sale: SaleEvent,
            seller: Distributor,
            walker: ChainWalker
    ) -> List[CommissionLedgerEntry]:
        entries = []

        def pay(sponsor: Distributor, level: int) -> bool:
            if not sponsor.isActive:
                logger.debug(f"Unilevel L{level} sponsor {sponsor.distributorID} inactive, skipped")
            else:
                amount = commission_cents(sale.amount, UNILEVEL_RATES[level])
                if amount > 0:
                    entries.append(self._entry(sale, UNILEVEL_TYPES[level], sponsor.distributorID, amount))
            return level < len(UNILEVEL_RATES)

        walker.walk_upline(seller, pay, SPONSOR)
        return entries

    # ============================================================
    # BINARY
    # ============================================================

    def _binary(
            self,
            sale: SaleEvent,
            credits: List[LegCredit],
            existingKeys: Set[str],
            result: CommissionResult
    ) -> List[CommissionLedgerEntry]:
        entries = []
        payoutDay = sale.createdAt.date().isoformat()

        for credit in credits:
            if credit.newlyMatched <= 0:
                continue

            # Re-running a sale must not consume cap a second time
            key = make_idempotency_key(sale.saleID, "binary", credit.distributorID)
            if key in existingKeys:
                continue

            ancestor = self.repository.get_distributor(credit.distributorID)
            if ancestor is None:
                warning = IntegrityWarning(
                    f"Binary beneficiary {credit.distributorID} of sale {sale.saleID} not found",
                    missing_id=credit.distributorID,
                    link="binary"
                )
                logger.warning(warning.message)
                result.diagnostics.append(warning)
                continue

            if not ancestor.isActive:
                continue

            amount = commission_cents(credit.newlyMatched, BINARY_RATE)
            if amount <= 0:
                continue

            with self.locks.hold(("binary", ancestor.distributorID, payoutDay)):
                granted = self.repository.reserve_binary_payout(
                    ancestor.distributorID, payoutDay, amount, self.dailyCap
                )

            if granted < amount:
                result.binaryDiscarded += amount - granted
                logger.info(
                    f"Binary cap reached for distributor {ancestor.distributorID} on {payoutDay}: "
                    f"{amount - granted} cents discarded"
                )

            if granted > 0:
                entries.append(self._entry(sale, "binary", ancestor.distributorID, granted))

        return entries

    @staticmethod
    def _entry(sale: SaleEvent, commission_type: str, beneficiary_id: int, amount: int) -> CommissionLedgerEntry:
        return CommissionLedgerEntry(
            sourceSaleID=sale.saleID,
            beneficiaryID=beneficiary_id,
            commissionType=commission_type,
            amount=amount,
            idempotencyKey=make_idempotency_key(sale.saleID, commission_type, beneficiary_id),
        )
