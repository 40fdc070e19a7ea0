# tests/test_leaderboard.py
"""
Tests for the referral leaderboard.

Run:
    pytest tests/test_leaderboard.py -v
"""
import pytest

from core.errors import ValidationError
from mlm_system.services.leaderboard_service import tier_for, points_for, redact_name


def refer(engine, code, count, status="pending", name=None):
    for i in range(count):
        engine.record_referral(code, f"{code.lower()}-{status}-{i}@example.com", status, name)


# =============================================================================
# TEST CLASS: Helpers
# =============================================================================

class TestHelpers:
    """Tiers, points and name redaction."""

    @pytest.mark.parametrize("referrals,tier", [
        (0, "Starter"), (4, "Starter"), (5, "Bronze"), (10, "Silver"),
        (25, "Gold"), (49, "Gold"), (50, "Platinum"), (100, "Diamond"),
    ])
    def test_tiers(self, referrals, tier):
        """
        TEST: Tier thresholds 5 / 10 / 25 / 50 / 100.
        """
        assert tier_for(referrals) == tier

    def test_points(self):
        """
        TEST: 10 per referral, 50 per customer, 100 per distributor.
        """
        assert points_for(3, 1, 1) == 180
        assert points_for(0, 0, 0) == 0

    @pytest.mark.parametrize("name,redacted", [
        ("Alexandra", "Al***"),
        ("john doe", "J. D."),
        ("Mary Jane Watson", "M. W."),
        ("", "Anonymous"),
        ("   ", "Anonymous"),
        (None, "Anonymous"),
    ])
    def test_redaction(self, name, redacted):
        """
        TEST: Full names never appear on the board.
        """
        assert redact_name(name) == redacted


# =============================================================================
# TEST CLASS: Leaderboard
# =============================================================================

class TestLeaderboard:
    """Ordering, limits and timeframes."""

    def test_sorted_by_referrals_then_code(self, engine):
        """
        TEST: Most referrals first; ties broken by referrer code.
        """
        refer(engine, "NEON-BBBBBB", 3)
        refer(engine, "NEON-AAAAAA", 3)
        refer(engine, "NEON-CCCCCC", 5)

        board = engine.leaderboard()

        assert [(e.position, e.referrerCode) for e in board] == [
            (1, "NEON-CCCCCC"), (2, "NEON-AAAAAA"), (3, "NEON-BBBBBB"),
        ]

    def test_ranked_by_count_not_points(self, engine):
        """
        TEST: More raw referrals outranks more points.
        """
        refer(engine, "NEON-XXXXXX", 6)
        refer(engine, "NEON-YYYYYY", 5, status="distributor")

        first, second = engine.leaderboard()

        assert first.referrerCode == "NEON-XXXXXX"
        assert first.points == 60
        assert second.points == 550
        assert second.distributorsReferred == 5

    def test_entry_fields(self, engine):
        """
        TEST: Entry carries conversions, tier and the redacted name.
        """
        refer(engine, "NEON-ZZZZZZ", 4, name="Jamie Rivera")
        refer(engine, "NEON-ZZZZZZ", 1, status="customer", name="Jamie Rivera")

        entry = engine.leaderboard()[0]

        assert entry.name == "J. R."
        assert entry.totalReferrals == 5
        assert entry.customersReferred == 1
        assert entry.tier == "Bronze"
        assert entry.points == 5 * 10 + 50

    def test_limit_truncates(self, engine):
        """
        TEST: limit caps the number of entries.
        """
        for i in range(5):
            refer(engine, f"NEON-{i}{i}{i}{i}{i}{i}", i + 1)

        assert len(engine.leaderboard(limit=2)) == 2

    @pytest.mark.parametrize("limit", [0, 101, -1, "5", True])
    def test_invalid_limit(self, engine, limit):
        """
        TEST: limit outside 1..100 raises ValidationError.
        """
        with pytest.raises(ValidationError) as exc:
            engine.leaderboard(limit=limit)
        assert exc.value.field == "limit"

    def test_timeframe_windows(self, engine, frozen_time):
        """
        TEST: week counts the last 7 days, month the last 30, all everything.
        """
        refer(engine, "NEON-OLDOLD", 2)
        frozen_time.advance(days=10)
        refer(engine, "NEON-MIDMID", 2)
        frozen_time.advance(days=25)
        refer(engine, "NEON-NEWNEW", 1)

        assert [e.referrerCode for e in engine.leaderboard(timeframe="week")] == ["NEON-NEWNEW"]
        assert [e.referrerCode for e in engine.leaderboard(timeframe="month")] == ["NEON-MIDMID", "NEON-NEWNEW"]
        assert len(engine.leaderboard(timeframe="all")) == 3

    def test_timeframe_aliases(self, engine):
        """
        TEST: weekly and monthly are accepted, unknown names are not.
        """
        refer(engine, "NEON-AAAAAA", 1)

        assert len(engine.leaderboard(timeframe="weekly")) == 1
        assert len(engine.leaderboard(timeframe="monthly")) == 1
        with pytest.raises(ValidationError):
            engine.leaderboard(timeframe="yearly")

    def test_empty_board(self, engine):
        """
        TEST: No referrals gives an empty board and zeroed stats.
        """
        assert engine.leaderboard() == []
        assert engine.leaderboard_stats().averageReferrals == 0


# =============================================================================
# TEST CLASS: Stats and positions
# =============================================================================

class TestStatsAndPosition:
    """Aggregate figures and single-referrer lookup."""

    def test_stats(self, engine):
        """
        TEST: Totals and average over all referrers.
        """
        refer(engine, "NEON-AAAAAA", 2, status="customer")
        refer(engine, "NEON-BBBBBB", 1, status="distributor")
        refer(engine, "NEON-BBBBBB", 1, status="clicked")
        refer(engine, "NEON-CCCCCC", 3)

        stats = engine.leaderboard_stats()

        assert stats.totalReferrers == 3
        assert stats.totalReferrals == 7
        assert stats.totalCustomerConversions == 2
        assert stats.totalDistributorConversions == 1
        assert stats.averageReferrals == 2.33

    def test_position_for(self, engine):
        """
        TEST: position_for returns the full entry, None when absent.
        """
        refer(engine, "NEON-AAAAAA", 1)
        refer(engine, "NEON-BBBBBB", 4)

        entry = engine.leaderboards.position_for("NEON-AAAAAA")

        assert entry.position == 2
        assert entry.totalReferrals == 1
        assert engine.leaderboards.position_for("NEON-NOPE00") is None

    def test_record_referral_validation(self, engine):
        """
        TEST: Unknown status or missing contact raises ValidationError.
        """
        with pytest.raises(ValidationError):
            engine.record_referral("NEON-AAAAAA", "x@example.com", status="won")
        with pytest.raises(ValidationError):
            engine.record_referral("NEON-AAAAAA", "")
