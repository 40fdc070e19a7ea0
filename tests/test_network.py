# tests/test_network.py
"""
Tests for enrollment, binary placement and volume roll-up.

Run:
    pytest tests/test_network.py -v
"""
from collections import Counter

import pytest

from config import Config
from core.errors import ValidationError, ConflictError
from mlm_system.utils.code_generator import generate_code, generate_unique_code, CODE_ALPHABET


# =============================================================================
# TEST CLASS: Enrollment
# =============================================================================

class TestEnrollment:
    """Codes, sponsor links and binary placement."""

    def test_first_enrollment_is_root(self, enroll):
        """
        TEST: First distributor has no sponsor and no binary parent.
        """
        root = enroll("root")

        assert root.sponsorID is None
        assert root.binaryParentID is None
        assert root.depthLevel == 0
        assert root.rank == "starter"

    def test_code_format(self, enroll):
        """
        TEST: Codes are PREFIX-XXXXXX from the unambiguous alphabet.
        """
        code = enroll("root").code
        prefix, suffix = code.split("-")

        assert prefix == "NEON"
        assert len(suffix) == 6
        assert all(c in CODE_ALPHABET for c in suffix)

    def test_seven_enrollments_fill_levels_breadth_first(self, enroll, engine):
        """
        TEST: 7 recruits under one sponsor give depth 3 with levels 1 and 2 full.
        """
        sponsor = enroll("sponsor")
        recruits = [enroll(f"r{i}", sponsor) for i in range(7)]

        assert engine.network.get_tree_depth(sponsor.distributorID) == 3

        levels = Counter(r.depthLevel for r in recruits)
        assert levels == {1: 2, 2: 4, 3: 1}

        # Left before right at every level
        assert (recruits[0].binaryParentID, recruits[0].binarySide) == (sponsor.distributorID, "left")
        assert (recruits[1].binaryParentID, recruits[1].binarySide) == (sponsor.distributorID, "right")
        assert (recruits[2].binaryParentID, recruits[2].binarySide) == (recruits[0].distributorID, "left")
        assert (recruits[3].binaryParentID, recruits[3].binarySide) == (recruits[0].distributorID, "right")
        assert (recruits[4].binaryParentID, recruits[4].binarySide) == (recruits[1].distributorID, "left")
        assert (recruits[6].binaryParentID, recruits[6].binarySide) == (recruits[2].distributorID, "left")

        # Sponsor tree is flat
        assert all(r.sponsorID == sponsor.distributorID for r in recruits)

    def test_placement_stays_in_sponsor_subtree(self, enroll, engine):
        """
        TEST: A recruit lands in the sponsor's own binary subtree.
        """
        root = enroll("root")
        left = enroll("left", root)
        enroll("right", root)

        recruit = enroll("recruit", left)

        assert recruit.binaryParentID == left.distributorID
        assert recruit.distributorID in engine.network.get_downline_ids(left.distributorID)

    def test_sponsorless_spillover_under_root(self, enroll):
        """
        TEST: A second sponsor-less enrollment is placed under the root.
        """
        root = enroll("root")
        orphan = enroll("orphan")

        assert orphan.sponsorID is None
        assert orphan.binaryParentID == root.distributorID

    def test_unknown_sponsor_code(self, engine, enroll):
        """
        TEST: Unknown sponsor code raises ValidationError.
        """
        enroll("root")
        with pytest.raises(ValidationError) as exc:
            engine.enroll_distributor("bob", sponsor_code="NEON-NOPE99")
        assert exc.value.field == "sponsor_code"

    def test_sponsor_code_case_insensitive(self, engine, enroll):
        """
        TEST: Sponsor code lookup ignores case and surrounding spaces.
        """
        root = enroll("root")
        recruit = engine.enroll_distributor("bob", sponsor_code=f"  {root.code.lower()} ")
        assert recruit.sponsorID == root.distributorID

    def test_duplicate_user(self, engine, enroll):
        """
        TEST: Enrolling the same user twice raises ConflictError.
        """
        enroll("root")
        with pytest.raises(ConflictError):
            engine.enroll_distributor("root")

    def test_empty_user_id(self, engine):
        """
        TEST: Blank user id raises ValidationError.
        """
        with pytest.raises(ValidationError):
            engine.enroll_distributor("  ")

    def test_code_space_exhausted(self):
        """
        TEST: Every candidate colliding raises ConflictError after the configured attempts.
        """
        attempts = []

        def taken(code):
            attempts.append(code)
            return True

        with pytest.raises(ConflictError):
            generate_unique_code(taken, generator=lambda: "NEON-AAAAAA")
        assert len(attempts) == Config.get(Config.CODE_GENERATION_ATTEMPTS)

    def test_code_prefix_from_config(self):
        """
        TEST: Prefix and length follow Config overrides.
        """
        Config.set(Config.DISTRIBUTOR_CODE_PREFIX, "ZAP")
        Config.set(Config.DISTRIBUTOR_CODE_LENGTH, 8)

        prefix, suffix = generate_code().split("-")
        assert prefix == "ZAP"
        assert len(suffix) == 8


# =============================================================================
# TEST CLASS: Sponsor changes
# =============================================================================

class TestChangeSponsor:
    """Admin re-linking."""

    def test_change_sponsor(self, enroll, engine):
        """
        TEST: Re-linking moves the recruit to the new sponsor's team.
        """
        root = enroll("root")
        a = enroll("a", root)
        b = enroll("b", root)
        c = enroll("c", a)

        engine.network.change_sponsor(c.distributorID, b.distributorID)

        assert [d.distributorID for d in engine.get_team(b.distributorID)] == [c.distributorID]
        assert engine.get_team(a.distributorID) == []

    def test_cycle_rejected(self, enroll, engine):
        """
        TEST: Sponsor link into one's own downline raises ValidationError.
        """
        root = enroll("root")
        a = enroll("a", root)
        b = enroll("b", a)

        with pytest.raises(ValidationError):
            engine.network.change_sponsor(a.distributorID, b.distributorID)
        with pytest.raises(ValidationError):
            engine.network.change_sponsor(a.distributorID, a.distributorID)


# =============================================================================
# TEST CLASS: Volume roll-up
# =============================================================================

class TestRollUp:
    """Sales move volume up the binary tree."""

    def test_leaf_sale_reaches_every_ancestor(self, enroll, engine, repository):
        """
        TEST: Leaf sale adds exactly the amount to each ancestor's teamVolume
        and nothing to their personalVolume.
        """
        sponsor = enroll("sponsor")
        recruits = [enroll(f"r{i}", sponsor) for i in range(7)]
        leaf = recruits[6]

        ancestor_ids = engine.network.get_upline_path(leaf.distributorID)
        before = {
            i: (repository.get_distributor(i).teamVolume, repository.get_distributor(i).personalVolume)
            for i in ancestor_ids
        }

        engine.network.record_sale(leaf.distributorID, 12_345)

        assert len(ancestor_ids) == 3
        for distributor_id in ancestor_ids:
            distributor = repository.get_distributor(distributor_id)
            team_before, personal_before = before[distributor_id]
            assert distributor.teamVolume == team_before + 12_345
            assert distributor.personalVolume == personal_before

        seller = repository.get_distributor(leaf.distributorID)
        assert seller.personalVolume == 12_345
        assert seller.monthlyPV == 12_345
        assert seller.teamVolume == 12_345

    def test_correct_leg_credited(self, enroll, engine, repository):
        """
        TEST: Left-subtree sales land on the left leg of every ancestor above the subtree.
        """
        root = enroll("root")
        left = enroll("left", root)
        right = enroll("right", root)
        left_left = enroll("ll", left)

        engine.network.record_sale(left_left.distributorID, 1000)
        engine.network.record_sale(right.distributorID, 400)

        root_row = repository.get_distributor(root.distributorID)
        left_row = repository.get_distributor(left.distributorID)

        assert (root_row.leftLegVolume, root_row.rightLegVolume) == (1000, 400)
        assert (left_row.leftLegVolume, left_row.rightLegVolume) == (1000, 0)
        assert root_row.teamVolume == root_row.personalVolume + 1400

    def test_team_volume_invariant(self, enroll, engine, repository):
        """
        TEST: teamVolume == personal + left + right for every node after mixed sales.
        """
        root = enroll("root")
        nodes = [root] + [enroll(f"n{i}", root) for i in range(6)]
        for i, node in enumerate(nodes):
            engine.network.record_sale(node.distributorID, 1000 * (i + 1))

        for node in nodes:
            row = repository.get_distributor(node.distributorID)
            assert row.teamVolume == row.personalVolume + row.leftLegVolume + row.rightLegVolume

    def test_leg_credits_report_matched_volume(self, enroll, engine):
        """
        TEST: Credits carry the increase in min(left, right) caused by the sale.
        """
        root = enroll("root")
        left = enroll("left", root)
        right = enroll("right", root)

        first = engine.network.record_sale(left.distributorID, 500)
        second = engine.network.record_sale(right.distributorID, 800)

        assert first.credits[0].newlyMatched == 0
        assert second.credits[0].distributorID == root.distributorID
        assert second.credits[0].side == "right"
        assert second.credits[0].newlyMatched == 500

    @pytest.mark.parametrize("amount", [0, -100, 10.5, True])
    def test_invalid_amount(self, enroll, engine, amount):
        """
        TEST: Non-positive or non-integer amounts raise ValidationError.
        """
        root = enroll("root")
        with pytest.raises(ValidationError):
            engine.network.record_sale(root.distributorID, amount)

    def test_unknown_sale_type(self, enroll, engine):
        """
        TEST: Unknown sale type raises ValidationError.
        """
        root = enroll("root")
        with pytest.raises(ValidationError):
            engine.network.record_sale(root.distributorID, 100, "wholesale")

    def test_terminated_seller(self, enroll, engine, repository):
        """
        TEST: Terminated distributors cannot record sales.
        """
        root = enroll("root")
        root.status = "terminated"
        repository.save_distributor(root)

        with pytest.raises(ValidationError):
            engine.network.record_sale(root.distributorID, 100)


# =============================================================================
# TEST CLASS: Tree queries
# =============================================================================

class TestTreeQueries:
    """Team, children, upline and statistics."""

    def test_get_team_is_sponsor_children_only(self, enroll, engine):
        """
        TEST: get_team returns first-level recruits, not the binary subtree.
        """
        root = enroll("root")
        a = enroll("a", root)
        b = enroll("b", root)
        enroll("c", a)

        assert [d.distributorID for d in engine.get_team(root.distributorID)] == [a.distributorID, b.distributorID]

    def test_get_team_unknown(self, engine):
        """
        TEST: get_team for a missing distributor raises ValidationError.
        """
        with pytest.raises(ValidationError):
            engine.get_team(999)

    def test_binary_children(self, enroll, engine):
        """
        TEST: Children keyed by side, None for an open slot.
        """
        root = enroll("root")
        a = enroll("a", root)

        children = engine.network.get_binary_children(root.distributorID)
        assert children["left"].distributorID == a.distributorID
        assert children["right"] is None

    def test_tree_statistics(self, enroll, engine):
        """
        TEST: Statistics for the root of a three-node tree.
        """
        root = enroll("root")
        a = enroll("a", root)
        enroll("b", root)
        engine.network.record_sale(a.distributorID, 700)

        stats = engine.network.get_tree_statistics(root.distributorID)

        assert stats == {
            "teamSize": 2,
            "treeDepth": 1,
            "leftLegVolume": 700,
            "rightLegVolume": 0,
            "uplineCount": 0,
        }
