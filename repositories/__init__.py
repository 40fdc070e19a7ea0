"""
Persistence layer for the network and territory engines.
"""
from repositories.base import NetworkRepository, TerritoryRepository, ReferralRepository
from repositories.memory_repository import MemoryRepository
from repositories.sql_repository import SqlRepository

__all__ = [
    'NetworkRepository',
    'TerritoryRepository',
    'ReferralRepository',
    'MemoryRepository',
    'SqlRepository',
]
