"""
Distributor network service - enrollment, binary placement and volume roll-up.

Two independent trees are kept on the Distributor row:
    sponsorID       - who enrolled whom (unilevel, fast start, get_team)
    binaryParentID  - left/right placement (leg volumes, binary bonus)
"""
from dataclasses import dataclass, field
from typing import List, Optional, Dict
import logging

from core.errors import ValidationError, ConflictError, IntegrityWarning
from core.locks import KeyedLock
from models import Distributor, SaleEvent, SALE_TYPES
from mlm_system.config.ranks import cents_to_pv
from mlm_system.utils.chain_walker import ChainWalker, SPONSOR, BINARY
from mlm_system.utils.code_generator import generate_unique_code
from repositories.base import NetworkRepository

logger = logging.getLogger(__name__)

ENROLLMENT_LOCK_KEY = "enrollment"


@dataclass
class LegCredit:
    """Volume credited to one binary ancestor by one sale."""
    distributorID: int
    side: str
    matchedBefore: int
    matchedAfter: int

    @property
    def newlyMatched(self) -> int:
        return max(0, self.matchedAfter - self.matchedBefore)


@dataclass
class SaleRecord:
    """Recorded sale plus the roll-up it caused."""
    sale: SaleEvent
    credits: List[LegCredit] = field(default_factory=list)
    diagnostics: List[IntegrityWarning] = field(default_factory=list)


class NetworkService:
    """Service for enrollment and volume roll-up."""

    def __init__(self, repository: NetworkRepository, locks: Optional[KeyedLock] = None):
        self.repository = repository
        self.locks = locks or KeyedLock()

    # ============================================================
    # ENROLLMENT
    # ============================================================

    def enroll(
            self,
            user_id: str,
            sponsor_code: Optional[str] = None,
            display_name: Optional[str] = None
    ) -> Distributor:
        """
        Enroll a new distributor.

        Args:
            user_id: Caller-supplied opaque user id
            sponsor_code: Public code of the enrolling distributor
            display_name: Optional name for team listings

        Returns:
            Created Distributor

        Raises:
            ValidationError: Unknown sponsor code or empty user id
            ConflictError: User already enrolled or code space exhausted
        """
        if not user_id or not str(user_id).strip():
            raise ValidationError("user_id is required", field="user_id")

        # Placement reads then writes the open slot; serialize enrollments
        with self.locks.hold(ENROLLMENT_LOCK_KEY):
            if self.repository.get_distributor_by_user(user_id):
                raise ConflictError(f"User {user_id} is already enrolled")

            sponsor = None
            if sponsor_code:
                sponsor = self.repository.get_distributor_by_code(sponsor_code.strip().upper())
                if not sponsor:
                    raise ValidationError(f"Unknown sponsor code {sponsor_code}", field="sponsor_code")

            code = generate_unique_code(
                lambda candidate: self.repository.get_distributor_by_code(candidate) is not None
            )

            distributor = Distributor(
                userID=user_id,
                code=code,
                displayName=display_name,
                sponsorID=sponsor.distributorID if sponsor else None,
            )

            self._place(distributor, sponsor)

            try:
                distributor = self.repository.add_distributor(distributor)
            except ConflictError:
                if not self._slot_taken(distributor):
                    raise
                # Another writer filled the slot after we read it; place again
                logger.warning(
                    f"Binary slot {distributor.binarySide} under {distributor.binaryParentID} "
                    f"was taken, re-placing {user_id}"
                )
                self._place(distributor, sponsor)
                distributor = self.repository.add_distributor(distributor)

            logger.info(
                f"Enrolled distributor {distributor.distributorID} ({code}) "
                f"sponsor={distributor.sponsorID}, "
                f"binary parent={distributor.binaryParentID} {distributor.binarySide}"
            )
            return distributor

    def _place(self, distributor: Distributor, sponsor: Optional[Distributor]) -> None:
        """Set binary placement fields on a not-yet-stored distributor."""
        root = self.repository.get_binary_root()

        if root is None:
            if sponsor is not None:
                raise ValidationError("Sponsor exists but the network has no root", field="sponsor_code")
            distributor.binaryParentID = None
            distributor.binarySide = None
            distributor.depthLevel = 0
            return

        if sponsor is None:
            # Sponsor-less spillover under the network root
            logger.info(f"No sponsor for {distributor.userID}, placing under root {root.distributorID}")
            anchor = root
        else:
            anchor = sponsor

        walker = ChainWalker(self.repository)
        parent, side = walker.find_open_binary_slot(anchor)

        # Reject links that would close a cycle
        if distributor.distributorID is not None and walker.is_ancestor(
                distributor.distributorID, parent.distributorID, BINARY):
            raise ValidationError("Binary placement would create a cycle")

        distributor.binaryParentID = parent.distributorID
        distributor.binarySide = side
        distributor.depthLevel = (parent.depthLevel or 0) + 1

    def _slot_taken(self, distributor: Distributor) -> bool:
        if distributor.binaryParentID is None:
            return False
        return any(
            child.binarySide == distributor.binarySide
            for child in self.repository.get_binary_children(distributor.binaryParentID)
        )

    def change_sponsor(self, distributor_id: int, new_sponsor_id: int) -> Distributor:
        """
        Re-link a distributor to a different sponsor (admin correction).

        Raises:
            ValidationError: Unknown ids or the link would create a cycle
        """
        distributor = self.repository.get_distributor(distributor_id)
        new_sponsor = self.repository.get_distributor(new_sponsor_id)
        if not distributor or not new_sponsor:
            raise ValidationError(f"Unknown distributor {distributor_id} or sponsor {new_sponsor_id}")

        walker = ChainWalker(self.repository)
        if walker.is_ancestor(distributor_id, new_sponsor_id, SPONSOR):
            raise ValidationError(
                f"Sponsor {new_sponsor_id} is in the downline of {distributor_id}",
                field="sponsor_id"
            )

        oldSponsor = distributor.sponsorID
        distributor.sponsorID = new_sponsor_id
        self.repository.save_distributor(distributor)

        logger.info(f"Distributor {distributor_id} sponsor changed {oldSponsor} -> {new_sponsor_id}")
        return distributor

    # ============================================================
    # SALES AND VOLUME ROLL-UP
    # ============================================================

    def record_sale(self, distributor_id: int, amount: int, sale_type: str = "personal") -> SaleRecord:
        """
        Record a sale and roll its volume up the binary tree.

        The seller gets personalVolume and monthlyPV. Every binary ancestor
        gets the amount on the leg the seller descends from. teamVolume
        moves with both.

        Args:
            distributor_id: Seller
            amount: Paid amount in cents
            sale_type: personal or customer-referred

        Raises:
            ValidationError: Bad amount, type or unknown distributor
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Sale amount must be a positive integer of cents", field="amount")
        if sale_type not in SALE_TYPES:
            raise ValidationError(f"Unknown sale type {sale_type}", field="sale_type")

        seller = self.repository.get_distributor(distributor_id)
        if not seller:
            raise ValidationError(f"Distributor {distributor_id} not found", field="distributor_id")
        if seller.status == "terminated":
            raise ValidationError(f"Distributor {distributor_id} is terminated", field="distributor_id")

        sale = self.repository.add_sale(SaleEvent(
            distributorID=distributor_id,
            amount=amount,
            pv=cents_to_pv(amount),
            saleType=sale_type,
        ))

        record = SaleRecord(sale=sale)

        with self.locks.hold(("volume", distributor_id)):
            self.repository.apply_volume_delta(distributor_id, personal=amount, monthly=amount)

        walker = ChainWalker(self.repository)
        for ancestor, side in walker.get_binary_ancestors(seller):
            with self.locks.hold(("volume", ancestor.distributorID)):
                if side == "left":
                    updated = self.repository.apply_volume_delta(ancestor.distributorID, left=amount)
                    left, right = updated.leftLegVolume, updated.rightLegVolume
                    before = min(left - amount, right)
                else:
                    updated = self.repository.apply_volume_delta(ancestor.distributorID, right=amount)
                    left, right = updated.leftLegVolume, updated.rightLegVolume
                    before = min(left, right - amount)

            record.credits.append(LegCredit(
                distributorID=ancestor.distributorID,
                side=side,
                matchedBefore=before,
                matchedAfter=min(left, right),
            ))

        record.diagnostics.extend(walker.warnings)

        logger.info(
            f"Sale {sale.saleID}: {amount} cents by distributor {distributor_id}, "
            f"rolled up to {len(record.credits)} ancestors"
        )
        return record

    # ============================================================
    # QUERIES
    # ============================================================

    def get_team(self, distributor_id: int) -> List[Distributor]:
        """First-level sponsor-tree recruits."""
        return self.repository.get_sponsored(distributor_id)

    def get_binary_children(self, distributor_id: int) -> Dict[str, Optional[Distributor]]:
        children = {"left": None, "right": None}
        for child in self.repository.get_binary_children(distributor_id):
            children[child.binarySide] = child
        return children

    def get_upline_path(self, distributor_id: int) -> List[int]:
        """Binary ancestor ids from the immediate parent to the root."""
        distributor = self.repository.get_distributor(distributor_id)
        if not distributor:
            return []
        walker = ChainWalker(self.repository)
        return [d.distributorID for d in walker.get_upline_chain(distributor, BINARY)]

    def get_downline_ids(self, distributor_id: int) -> List[int]:
        """Binary subtree ids, breadth-first."""
        distributor = self.repository.get_distributor(distributor_id)
        if not distributor:
            return []

        ids = []
        ChainWalker(self.repository).walk_downline(
            distributor,
            lambda node, level: ids.append(node.distributorID),
            BINARY
        )
        return ids

    def get_tree_depth(self, distributor_id: int) -> int:
        """Levels below the distributor in its binary subtree (0 for a leaf)."""
        distributor = self.repository.get_distributor(distributor_id)
        if not distributor:
            return 0

        depth = [0]

        def deepest(node, level):
            depth[0] = max(depth[0], level)

        ChainWalker(self.repository).walk_downline(distributor, deepest, BINARY)
        return depth[0]

    def get_tree_statistics(self, distributor_id: int) -> Dict[str, int]:
        distributor = self.repository.get_distributor(distributor_id)
        if not distributor:
            raise ValidationError(f"Distributor {distributor_id} not found", field="distributor_id")

        return {
            "teamSize": len(self.get_downline_ids(distributor_id)),
            "treeDepth": self.get_tree_depth(distributor_id),
            "leftLegVolume": distributor.leftLegVolume,
            "rightLegVolume": distributor.rightLegVolume,
            "uplineCount": len(self.get_upline_path(distributor_id)),
        }
