"""Persistence collaborators for users, proposals and used nonces."""

from .base import ProposalStore
from .memory import MemoryProposalStore
from .postgres import PostgresProposalStore

__all__ = [
    "ProposalStore",
    "MemoryProposalStore",
    "PostgresProposalStore",
]
