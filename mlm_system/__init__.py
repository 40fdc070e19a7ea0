# mlm_system/__init__.py
"""
MLM System - distributor network, ranks, commissions and referral leaderboard.
"""

# Services
from mlm_system.services.network_service import NetworkService, LegCredit, SaleRecord
from mlm_system.services.rank_service import RankEngine, RankService
from mlm_system.services.commission_service import CommissionService, CommissionResult
from mlm_system.services.leaderboard_service import LeaderboardService, LeaderboardEntry

# Models and configuration
from mlm_system.config.ranks import Rank, RANK_CONFIG

# Utilities
from mlm_system.utils.time_machine import timeMachine
from mlm_system.utils.chain_walker import ChainWalker

__all__ = [
    # Services
    'NetworkService',
    'LegCredit',
    'SaleRecord',
    'RankEngine',
    'RankService',
    'CommissionService',
    'CommissionResult',
    'LeaderboardService',
    'LeaderboardEntry',

    # Config
    'Rank',
    'RANK_CONFIG',

    # Utils
    'timeMachine',
    'ChainWalker',
]
