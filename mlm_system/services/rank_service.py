"""
Rank management for the MLM system.

RankEngine  - pure rank/activity rules, no storage.
RankService - applies them to stored distributors. Mid-period refreshes
              only ever promote; the explicit period-boundary maintenance
              pass is the one place a rank can fall.
"""
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, List
import logging

from core.errors import ValidationError
from models import Distributor
from mlm_system.config.ranks import (
    Rank,
    RANK_CONFIG,
    RANK_ORDER,
    MIN_MONTHLY_PV,
    MIN_ACTIVE_DOWNLINE,
    BALANCE_RATIO,
    cents_to_pv,
    rank_level,
    get_rank,
)
from mlm_system.utils.time_machine import timeMachine
from repositories.base import NetworkRepository

logger = logging.getLogger(__name__)


@dataclass
class RankProgress:
    """Percent progress towards the next rank (100 when at the top)."""
    nextRank: Optional[Rank]
    personalPVProgress: float
    teamPVProgress: float
    legVolumeProgress: float


@dataclass
class MaintenanceReport:
    """Outcome of a period-boundary maintenance pass."""
    period: str
    evaluated: int = 0
    promoted: List[int] = field(default_factory=list)
    demoted: List[int] = field(default_factory=list)
    deactivated: List[int] = field(default_factory=list)


class RankEngine:
    """Rank and activity rules."""

    def evaluate(
            self,
            personal_pv: int,
            team_pv: int,
            active_leg_count: int,
            weaker_leg_pv: int
    ) -> Rank:
        """
        Highest rank whose full requirement set is satisfied.

        The weaker leg must clear legVolume on its own, so a lopsided
        tree cannot qualify on team volume alone.
        """
        for name, value in (("personal_pv", personal_pv), ("team_pv", team_pv),
                            ("active_leg_count", active_leg_count), ("weaker_leg_pv", weaker_leg_pv)):
            if value < 0:
                raise ValidationError(f"{name} must not be negative", field=name)

        for rank in reversed(RANK_ORDER):
            requirements = RANK_CONFIG[rank]
            if (personal_pv >= requirements["personalPV"]
                    and team_pv >= requirements["teamPV"]
                    and active_leg_count >= requirements["activeLegs"]
                    and weaker_leg_pv >= requirements["legVolume"]):
                return rank

        return Rank.STARTER

    def is_active(self, monthly_pv: int, active_downline_count: int) -> bool:
        """
        Monthly PV minimum and at least one qualifying recruit.

        MIN_DOWNLINE_PV is deliberately not part of this rule.
        """
        return monthly_pv >= MIN_MONTHLY_PV and active_downline_count >= MIN_ACTIVE_DOWNLINE

    def rank_progress(
            self,
            current: Rank,
            personal_pv: int,
            team_pv: int,
            weaker_leg_pv: int
    ) -> RankProgress:
        level = rank_level(current)
        if level == len(RANK_ORDER) - 1:
            return RankProgress(None, 100.0, 100.0, 100.0)

        nextRank = RANK_ORDER[level + 1]
        requirements = RANK_CONFIG[nextRank]

        return RankProgress(
            nextRank=nextRank,
            personalPVProgress=min(100.0, personal_pv / requirements["personalPV"] * 100),
            teamPVProgress=min(100.0, team_pv / requirements["teamPV"] * 100),
            legVolumeProgress=min(100.0, weaker_leg_pv / requirements["legVolume"] * 100),
        )

    def legs_balanced(self, left: int, right: int) -> bool:
        """Weaker leg carries at least BALANCE_RATIO of the combined volume."""
        if left == 0 and right == 0:
            return True
        return min(left, right) / (left + right) >= BALANCE_RATIO


class RankService:
    """Service for keeping stored ranks and activity current."""

    def __init__(self, repository: NetworkRepository, engine: Optional[RankEngine] = None):
        self.repository = repository
        self.engine = engine or RankEngine()

    # ============================================================
    # INPUTS
    # ============================================================

    def _count_active_legs(self, distributor: Distributor) -> int:
        """Binary legs headed by an active distributor."""
        return sum(
            1 for child in self.repository.get_binary_children(distributor.distributorID)
            if child.isActive
        )

    def _count_qualifying_recruits(self, distributor: Distributor) -> int:
        """Personally enrolled recruits meeting the monthly PV minimum."""
        return sum(
            1 for recruit in self.repository.get_sponsored(distributor.distributorID)
            if recruit.status == "active" and cents_to_pv(recruit.monthlyPV) >= MIN_MONTHLY_PV
        )

    def _evaluate(self, distributor: Distributor) -> Rank:
        return self.engine.evaluate(
            cents_to_pv(distributor.personalVolume),
            cents_to_pv(distributor.teamVolume),
            distributor.activeLegCount,
            cents_to_pv(distributor.weakerLegVolume),
        )

    def _refresh_activity(self, distributor: Distributor) -> None:
        distributor.activeLegCount = self._count_active_legs(distributor)
        distributor.isActive = distributor.status == "active" and self.engine.is_active(
            cents_to_pv(distributor.monthlyPV),
            self._count_qualifying_recruits(distributor)
        )

    # ============================================================
    # PUBLIC API
    # ============================================================

    def get_rank(self, distributor_id: int) -> Rank:
        distributor = self.repository.get_distributor(distributor_id)
        if not distributor:
            raise ValidationError(f"Distributor {distributor_id} not found", field="distributor_id")
        return get_rank(distributor.rank)

    def refresh(self, distributor_id: int) -> Optional[Distributor]:
        """
        Re-evaluate one distributor after a volume change.

        Activity is recomputed both ways; rank only moves up.

        Returns:
            Updated distributor, None if not found
        """
        distributor = self.repository.get_distributor(distributor_id)
        if not distributor:
            logger.warning(f"Distributor {distributor_id} not found for rank refresh")
            return None

        self._refresh_activity(distributor)

        currentRank = get_rank(distributor.rank)
        qualifiedRank = self._evaluate(distributor)

        if rank_level(qualifiedRank) > rank_level(currentRank):
            distributor.rank = qualifiedRank.value
            logger.info(
                f"Distributor {distributor_id} promoted {currentRank.value} -> {qualifiedRank.value}"
            )

        self.repository.save_distributor(distributor)
        return distributor

    def refresh_many(self, distributor_ids: List[int]) -> None:
        """
        Refresh each id once, in order.

        When a distributor's activity flips, its binary parent's active leg
        count is stale, so the parent is queued (again) behind it.
        """
        pending = deque(dict.fromkeys(distributor_ids))
        while pending:
            distributorId = pending.popleft()
            current = self.repository.get_distributor(distributorId)
            wasActive = bool(current.isActive) if current else False

            updated = self.refresh(distributorId)
            if updated is None or bool(updated.isActive) == wasActive:
                continue

            parentId = updated.binaryParentID
            if parentId is not None and parentId not in pending:
                pending.append(parentId)

    def run_maintenance(self, period: Optional[str] = None) -> MaintenanceReport:
        """
        Period-boundary pass.

        Activity is settled from the closing period's monthly PV, ranks are
        set to what the distributor currently qualifies for (up or down),
        then monthly PV is reset for the next period.
        """
        report = MaintenanceReport(period=period or timeMachine.currentMonth)
        distributors = self.repository.list_distributors()

        logger.info(f"Running rank maintenance for {report.period} over {len(distributors)} distributors")

        # Activity first so leg counts see the closing period's flags
        for distributor in distributors:
            wasActive = distributor.isActive
            distributor.isActive = distributor.status == "active" and self.engine.is_active(
                cents_to_pv(distributor.monthlyPV),
                self._count_qualifying_recruits(distributor)
            )
            if wasActive and not distributor.isActive:
                report.deactivated.append(distributor.distributorID)

        for distributor in distributors:
            distributor.activeLegCount = self._count_active_legs(distributor)

            oldRank = get_rank(distributor.rank)
            newRank = self._evaluate(distributor)
            if rank_level(newRank) > rank_level(oldRank):
                report.promoted.append(distributor.distributorID)
            elif rank_level(newRank) < rank_level(oldRank):
                report.demoted.append(distributor.distributorID)
                logger.info(
                    f"Distributor {distributor.distributorID} demoted {oldRank.value} -> {newRank.value}"
                )
            distributor.rank = newRank.value

            self.repository.save_distributor(distributor)
            report.evaluated += 1

        for distributor in distributors:
            self.repository.reset_monthly_volume(distributor.distributorID)

        logger.info(
            f"Rank maintenance {report.period} done: promoted={len(report.promoted)}, "
            f"demoted={len(report.demoted)}, deactivated={len(report.deactivated)}"
        )
        return report
