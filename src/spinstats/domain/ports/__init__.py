"""Interfaces the domain expects adapters to provide."""

from __future__ import annotations

from .fetching import HistoryFetcher, HistoryFetchResult
from .persistence import ListeningStore
from .unit_of_work import ListeningRepositories, ListeningUnitOfWork

__all__ = [
    "HistoryFetchResult",
    "HistoryFetcher",
    "ListeningRepositories",
    "ListeningStore",
    "ListeningUnitOfWork",
]
