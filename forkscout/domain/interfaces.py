"""
Abstract contracts the discovery engine depends on.

The engine composes query documents and consumes decoded results; how a
document reaches GitHub (authentication, retries, timeouts) is the job of
whatever implements QueryExecutor.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from forkscout.domain.models import Fork, Repository

# score(fork, upstream) -> number. Must be pure and must not raise.
ScoreFunction = Callable[[Fork, Repository], float]


class QueryExecutor(ABC):
    """Contract that any GitHub GraphQL transport must fulfil."""

    @abstractmethod
    async def execute_query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a single query and return its decoded ``data`` payload.
        """
        ...

    @abstractmethod
    async def execute_paginated_query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a query whose document takes a ``$cursor`` variable, following the
        first paginated connection until ``hasNextPage`` is false.

        Returns one ``data`` payload with the nodes of every page merged.
        """
        ...
