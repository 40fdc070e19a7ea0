# tests/test_commissions.py
"""
Tests for fast start, unilevel and binary commissions.

Run:
    pytest tests/test_commissions.py -v
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.errors import IntegrityWarning
from core.locks import KeyedLock
from mlm_system.config.commissions import BINARY_MAX_DAILY_CENTS, commission_cents
from mlm_system.services.commission_service import CommissionService
from mlm_system.services.network_service import NetworkService

DAY = "2025-01-15"


def by_type(result, commission_type):
    return [e for e in result.entries if e.commissionType == commission_type]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def pair(enroll, engine):
    """
    Root with two recruits, one per leg. Root is active.

    Returns (root, left, right)
    """
    root = enroll("root")
    left = enroll("left", root)
    right = enroll("right", root)

    engine.record_sale(root.distributorID, 5_000)
    engine.record_sale(left.distributorID, 10_000)
    return root, left, right


# =============================================================================
# TEST CLASS: Fast start
# =============================================================================

class TestFastStart:
    """One-time bonus to the direct sponsor."""

    def test_personal_first_sale(self, enroll, engine):
        """
        TEST: Recruit's first personal sale pays the sponsor 20%.
        """
        root = enroll("root")
        recruit = enroll("recruit", root)

        result = engine.record_sale(recruit.distributorID, 10_000, "personal")

        fast_start = by_type(result, "fast_start")
        assert [(e.beneficiaryID, e.amount) for e in fast_start] == [(root.distributorID, 2_000)]

    def test_customer_referred_rate(self, enroll, engine):
        """
        TEST: Customer-referred first sale pays 15%.
        """
        root = enroll("root")
        recruit = enroll("recruit", root)

        result = engine.record_sale(recruit.distributorID, 10_000, "customer-referred")
        assert by_type(result, "fast_start")[0].amount == 1_500

    def test_paid_to_inactive_sponsor(self, enroll, engine, repository):
        """
        TEST: Fast start does not depend on the sponsor's activity.
        """
        root = enroll("root")
        recruit = enroll("recruit", root)

        result = engine.record_sale(recruit.distributorID, 10_000)

        assert repository.get_distributor(root.distributorID).isActive is False
        assert len(by_type(result, "fast_start")) == 1

    def test_only_first_sale(self, enroll, engine):
        """
        TEST: The second sale pays no fast start.
        """
        root = enroll("root")
        recruit = enroll("recruit", root)

        engine.record_sale(recruit.distributorID, 10_000)
        second = engine.record_sale(recruit.distributorID, 10_000)

        assert by_type(second, "fast_start") == []

    def test_window_closes_after_thirty_days(self, enroll, engine, frozen_time):
        """
        TEST: A first sale 31 days after enrollment pays no fast start.
        """
        root = enroll("root")
        recruit = enroll("recruit", root)

        frozen_time.advance(days=31)
        result = engine.record_sale(recruit.distributorID, 10_000)

        assert by_type(result, "fast_start") == []

    def test_terminated_sponsor_not_paid(self, enroll, engine, repository):
        """
        TEST: Terminated sponsors receive nothing.
        """
        root = enroll("root")
        recruit = enroll("recruit", root)
        root.status = "terminated"
        repository.save_distributor(root)

        result = engine.record_sale(recruit.distributorID, 10_000)
        assert by_type(result, "fast_start") == []

    def test_root_sale_has_no_sponsor(self, enroll, engine):
        """
        TEST: A sale by the root produces no commissions at all.
        """
        root = enroll("root")
        result = engine.record_sale(root.distributorID, 10_000)

        assert result.entries == []
        assert result.diagnostics == []


# =============================================================================
# TEST CLASS: Unilevel
# =============================================================================

class TestUnilevel:
    """Level 1 and level 2 sponsor overrides."""

    def test_two_levels(self, enroll, engine):
        """
        TEST: Active L1 sponsor gets 4%, active L2 sponsor gets 2%.
        """
        grand = enroll("grand")
        sponsor = enroll("sponsor", grand)
        seller = enroll("seller", sponsor)

        engine.record_sale(grand.distributorID, 5_000)
        engine.record_sale(sponsor.distributorID, 5_000)

        result = engine.record_sale(seller.distributorID, 10_000)

        assert [(e.beneficiaryID, e.amount) for e in by_type(result, "unilevel_l1")] == [(sponsor.distributorID, 400)]
        assert [(e.beneficiaryID, e.amount) for e in by_type(result, "unilevel_l2")] == [(grand.distributorID, 200)]

    def test_inactive_sponsor_skipped(self, enroll, engine):
        """
        TEST: An inactive L1 sponsor is skipped but the active L2 sponsor is still paid.
        """
        grand = enroll("grand")
        sponsor = enroll("sponsor", grand)
        seller = enroll("seller", sponsor)

        # sponsor stays below 48 PV; grand qualifies through helper
        helper = enroll("helper", grand)
        engine.record_sale(helper.distributorID, 5_000)
        engine.record_sale(grand.distributorID, 5_000)
        engine.record_sale(sponsor.distributorID, 4_000)

        result = engine.record_sale(seller.distributorID, 10_000)

        assert by_type(result, "unilevel_l1") == []
        assert [e.beneficiaryID for e in by_type(result, "unilevel_l2")] == [grand.distributorID]

    def test_level_three_not_paid(self, enroll, engine):
        """
        TEST: Nothing beyond level 2.
        """
        top = enroll("top")
        grand = enroll("grand", top)
        sponsor = enroll("sponsor", grand)
        seller = enroll("seller", sponsor)
        for distributor in (top, grand, sponsor):
            engine.record_sale(distributor.distributorID, 5_000)

        result = engine.record_sale(seller.distributorID, 10_000)

        beneficiaries = {e.beneficiaryID for e in result.entries if e.commissionType.startswith("unilevel")}
        assert top.distributorID not in beneficiaries


# =============================================================================
# TEST CLASS: Binary
# =============================================================================

class TestBinary:
    """Matched-volume bonus with a daily cap."""

    def test_matched_volume_paid(self, pair, engine):
        """
        TEST: Matching 10,000 cents on the weaker leg pays 8% = 800.
        """
        root, left, right = pair
        result = engine.record_sale(right.distributorID, 10_000)

        assert [(e.beneficiaryID, e.amount) for e in by_type(result, "binary")] == [(root.distributorID, 800)]

    def test_unmatched_volume_not_paid(self, pair, engine):
        """
        TEST: Adding to the stronger leg matches nothing.
        """
        root, left, right = pair
        result = engine.record_sale(left.distributorID, 10_000)
        assert by_type(result, "binary") == []

    def test_inactive_ancestor_not_paid(self, enroll, engine):
        """
        TEST: Inactive binary ancestors receive no binary commission.
        """
        root = enroll("root")
        left = enroll("left", root)
        right = enroll("right", root)

        engine.record_sale(left.distributorID, 10_000)
        result = engine.record_sale(right.distributorID, 10_000)

        assert by_type(result, "binary") == []

    def test_daily_cap(self, pair, repository):
        """
        TEST: Cap cuts the payout and the excess is discarded, not carried.
        """
        root, left, right = pair
        service = CommissionService(repository, KeyedLock(), daily_cap=500)
        network = NetworkService(repository)

        record = network.record_sale(right.distributorID, 10_000)
        result = service.compute_for_sale(record.sale, record.credits)

        assert by_type(result, "binary")[0].amount == 500
        assert result.binaryDiscarded == 300
        assert repository.get_binary_paid(root.distributorID, DAY) == 500

    def test_cap_resets_next_day(self, pair, repository, frozen_time):
        """
        TEST: A new day starts a fresh cap.
        """
        root, left, right = pair
        service = CommissionService(repository, KeyedLock(), daily_cap=500)
        network = NetworkService(repository)

        record = network.record_sale(right.distributorID, 10_000)
        service.compute_for_sale(record.sale, record.credits)

        frozen_time.advance(days=1)
        network.record_sale(left.distributorID, 10_000)
        record = network.record_sale(right.distributorID, 10_000)
        result = service.compute_for_sale(record.sale, record.credits)

        assert by_type(result, "binary")[0].amount == 500
        assert repository.get_binary_paid(root.distributorID, "2025-01-16") == 500

    def test_cap_holds_under_concurrent_sales(self, pair, engine, repository):
        """
        TEST: 1,000 concurrent sales in one day never pay one distributor past the cap.
        """
        root, left, right = pair
        sellers = [left.distributorID, right.distributorID] * 500

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda seller: engine.record_sale(seller, 10_000), sellers))

        paid = sum(
            e.amount for e in repository.list_ledger_entries(beneficiary_id=root.distributorID)
            if e.commissionType == "binary"
        )
        assert paid == repository.get_binary_paid(root.distributorID, DAY)
        assert paid == BINARY_MAX_DAILY_CENTS
        assert sum(r.binaryDiscarded for r in results) > 0

        final = repository.get_distributor(root.distributorID)
        assert final.leftLegVolume == 10_000 + 500 * 10_000
        assert final.rightLegVolume == 500 * 10_000


# =============================================================================
# TEST CLASS: Idempotency and diagnostics
# =============================================================================

class TestIdempotencyAndDiagnostics:
    """Re-runs and broken links."""

    def test_rerun_writes_nothing(self, pair, engine, repository):
        """
        TEST: Computing the same sale twice writes no new entries and no extra cap.
        """
        root, left, right = pair
        record = engine.network.record_sale(right.distributorID, 10_000)

        first = engine.commissions.compute_for_sale(record.sale, record.credits)
        second = engine.commissions.compute_for_sale(record.sale, record.credits)

        assert len(first.entries) > 0
        assert second.entries == []
        assert repository.get_binary_paid(root.distributorID, DAY) == 800
        assert len(repository.list_ledger_entries(source_sale_id=record.sale.saleID)) == len(first.entries)

    def test_idempotency_key_format(self, pair, engine):
        """
        TEST: Keys are sale:type:beneficiary.
        """
        root, left, right = pair
        result = engine.record_sale(right.distributorID, 10_000)
        entry = by_type(result, "binary")[0]

        assert entry.idempotencyKey == f"{result.saleID}:binary:{root.distributorID}"

    def test_dangling_sponsor_reported(self, enroll, engine, repository):
        """
        TEST: Missing sponsor skips sponsor commissions, keeps binary and reports one warning.
        """
        root = enroll("root")
        left = enroll("left", root)
        right = enroll("right", root)
        engine.record_sale(root.distributorID, 5_000)
        engine.record_sale(left.distributorID, 10_000)

        right.sponsorID = 999
        repository.save_distributor(right)

        result = engine.record_sale(right.distributorID, 10_000)

        sponsor_warnings = [w for w in result.diagnostics if w.link == "sponsor"]
        assert len(sponsor_warnings) == 1
        assert isinstance(sponsor_warnings[0], IntegrityWarning)
        assert sponsor_warnings[0].missing_id == 999
        assert by_type(result, "fast_start") == []
        assert [e.beneficiaryID for e in by_type(result, "binary")] == [root.distributorID]

    def test_dangling_binary_parent_reported(self, enroll, engine, repository):
        """
        TEST: Missing binary parent stops the roll-up and is reported; sponsor commissions still run.
        """
        root = enroll("root")
        recruit = enroll("recruit", root)
        recruit.binaryParentID = 777
        repository.save_distributor(recruit)

        result = engine.record_sale(recruit.distributorID, 10_000)

        assert [w.missing_id for w in result.diagnostics if w.link == "binary"] == [777]
        assert len(by_type(result, "fast_start")) == 1
        assert repository.get_distributor(root.distributorID).leftLegVolume == 0


class TestCommissionMath:
    """Rounding of rates applied to cents."""

    def test_half_up(self):
        """
        TEST: 4% of 12,345 cents = 493.8 -> 494; 2% of 25 = 0.5 -> 1.
        """
        from decimal import Decimal
        assert commission_cents(12_345, Decimal("0.04")) == 494
        assert commission_cents(25, Decimal("0.02")) == 1
