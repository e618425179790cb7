"""Repository exports"""
from .lease_repo import LeaseRepository

__all__ = [
    "LeaseRepository",
]
