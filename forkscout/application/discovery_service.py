import asyncio
import logging
from typing import Dict, List, Optional, Sequence

import aiohttp

from forkscout.domain.exceptions import DiffFetchError, GitHubAPIError, UpstreamFetchError
from forkscout.domain.interfaces import QueryExecutor, ScoreFunction
from forkscout.domain.models import Fork, HeadRef, PageInfo, Repository
from forkscout.domain.scoring import score
from forkscout.infrastructure.acl import GitHubTranslator
from forkscout.infrastructure.queries import (
    DEFAULT_FORK_PAGE_SIZE,
    FORKS_QUERY,
    MAX_FORK_PAGE_SIZE,
    REPOSITORY_QUERY,
    build_diff_query,
)

logger = logging.getLogger(__name__)

# Failures of the transport that mean "this query did not get an answer"
TRANSPORT_ERRORS = (GitHubAPIError, aiohttp.ClientError, asyncio.TimeoutError)

DEFAULT_DIFF_BATCH_SIZE = 20


class ForkDiscoveryService:
    """
    Discovers the public forks of one upstream repository, diffs them against
    upstream and ranks them by score.

    The service owns two pieces of mutable state: the cursor of the fork listing
    and the registry of diffed forks (keyed by GraphQL node id). Calls are expected
    to be made one at a time; nothing here is locked.

    Pagination moves NotStarted (no cursor) -> InProgress (hasNextPage) -> Exhausted,
    and never goes back.
    """

    def __init__(
            self,
            executor: QueryExecutor,
            owner: str,
            name: str,
            scorer: ScoreFunction = score,
    ):
        self.executor = executor
        self.owner = owner
        self.name = name
        self.scorer = scorer
        self._repository: Optional[Repository] = None
        self._page_info: Optional[PageInfo] = None
        self._forks: Dict[str, Fork] = {}

    @property
    def repository(self) -> Optional[Repository]:
        return self._repository

    @property
    def page_info(self) -> Optional[PageInfo]:
        return self._page_info

    def _query_variables(self) -> Dict[str, str]:
        return {"owner": self.owner, "name": self.name}

    async def fetch_repository(self) -> Repository:
        """
        Loads the upstream repository with all of its branches. The first successful
        call is cached; later calls return the cached value without a query.

        Raises:
            UpstreamFetchError: If the repository cannot be resolved.
        """
        if self._repository is not None:
            return self._repository

        try:
            data = await self.executor.execute_paginated_query(REPOSITORY_QUERY, self._query_variables())
        except TRANSPORT_ERRORS as e:
            raise UpstreamFetchError(f"Could not fetch {self.owner}/{self.name}: {e}") from e

        raw_repository = data.get('repository')
        if not raw_repository:
            raise UpstreamFetchError(f"Repository {self.owner}/{self.name} could not be resolved.")

        self._repository = GitHubTranslator.to_repository(raw_repository)
        logger.info(
            f"Loaded {self._repository.name_with_owner}: {self._repository.public_fork_count} public forks, "
            f"{self._repository.private_fork_count} private, {len(self._repository.branches)} branches."
        )
        return self._repository

    def can_load_more(self) -> bool:
        """True until a fork page reports that there is no next page."""
        return self._page_info is None or self._page_info.has_next_page

    async def fetch_fork_page(self, page_size: int = DEFAULT_FORK_PAGE_SIZE) -> List[Repository]:
        """
        Fetches the next page of public forks. The forks are returned as raw
        snapshots and are not added to the registry; only compute_diffs does that.

        Returns an empty list without querying when upstream has no public forks
        or when pagination is already exhausted.
        """
        if not 1 <= page_size <= MAX_FORK_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_FORK_PAGE_SIZE}, got {page_size}.")

        if not self.can_load_more():
            logger.debug("Fork listing is exhausted; not fetching another page.")
            return []

        repository = await self.fetch_repository()
        if repository.public_fork_count == 0:
            logger.info(f"{repository.name_with_owner} has no public forks.")
            return []

        cursor = self._page_info.end_cursor if self._page_info else None
        data = await self.executor.execute_query(
            FORKS_QUERY,
            {**self._query_variables(), "cursor": cursor, "count": page_size},
        )

        raw_forks = data['repository']['forks']
        forks = [GitHubTranslator.to_repository(node) for node in raw_forks['nodes'] if node]
        # Cursor only moves once the whole page translated
        self._page_info = GitHubTranslator.to_page_info(raw_forks['pageInfo'])

        logger.info(
            f"Fetched {len(forks)} forks of {repository.name_with_owner} "
            f"(more: {self._page_info.has_next_page})."
        )
        return forks

    async def compute_diffs(self, forks: Sequence[Repository]) -> List[Fork]:
        """
        Compares each fork's default branch with upstream's default branch in one
        batched query, then scores the forks and merges them into the registry.

        The result has the same order and length as ``forks``. A fork already in
        the registry is replaced by the new entry.

        Raises:
            DiffFetchError: If the batch cannot be fetched. Nothing is merged in that case.
        """
        if not forks:
            return []

        try:
            repository = await self.fetch_repository()
        except UpstreamFetchError as e:
            raise DiffFetchError(f"Upstream repository is unavailable: {e}") from e

        if not repository.default_branch:
            raise DiffFetchError(f"{repository.name_with_owner} has no default branch to compare against.")

        heads = []
        for fork in forks:
            if not fork.default_branch:
                raise DiffFetchError(f"Fork {fork.name_with_owner} has no default branch to compare.")
            heads.append(HeadRef(owner=fork.owner, name=fork.name, branch=fork.default_branch))

        query = build_diff_query(heads)
        try:
            data = await self.executor.execute_query(
                query.document,
                {**self._query_variables(), "baseBranch": repository.default_branch, **query.variables},
            )
        except TRANSPORT_ERRORS as e:
            raise DiffFetchError(f"Diff batch of {len(forks)} forks failed: {e}") from e

        base_ref = (data.get('repository') or {}).get('ref')
        if not base_ref:
            raise DiffFetchError(
                f"Base branch {repository.default_branch} of {repository.name_with_owner} could not be resolved."
            )

        missing = [forks[i].name_with_owner for i, alias in enumerate(query.aliases) if not base_ref.get(alias)]
        if missing:
            raise DiffFetchError(f"No comparison returned for: {', '.join(missing)}.")

        diffed = [
            Fork.from_repository(
                fork,
                diff=GitHubTranslator.to_diff(base_ref[alias]),
                extended_info=GitHubTranslator.to_extended_info(fork, repository),
                fork_score=None,
            )
            for fork, alias in zip(forks, query.aliases)
        ]

        merged = self._merge_forks(repository, diffed)
        logger.info(f"Diffed and merged {len(merged)} forks; registry holds {len(self._forks)}.")
        return merged

    def _merge_forks(self, repository: Repository, forks: List[Fork]) -> List[Fork]:
        scored = []
        for fork in forks:
            entry = fork.model_copy(update={"fork_score": float(self.scorer(fork, repository))})
            self._forks[entry.id] = entry
            scored.append(entry)
        return scored

    def ranked_forks(self) -> List[Fork]:
        """Registry contents by descending score; unscored forks count as 0."""
        return sorted(
            self._forks.values(),
            key=lambda fork: fork.fork_score if fork.fork_score is not None else 0.0,
            reverse=True,
        )

    async def discover(
            self,
            max_forks: int = 100,
            page_size: int = DEFAULT_FORK_PAGE_SIZE,
            batch_size: int = DEFAULT_DIFF_BATCH_SIZE,
    ) -> List[Fork]:
        """
        Runs the whole protocol: loads upstream, pages through forks until the
        listing is exhausted or ``max_forks`` are collected, diffs them in batches
        of ``batch_size`` and returns the ranked registry. A batch that fails with
        DiffFetchError is logged and skipped; the other batches still merge.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}.")

        repository = await self.fetch_repository()
        logger.info(f"Starting fork discovery for {repository.name_with_owner} (up to {max_forks} forks).")

        collected: List[Repository] = []
        while self.can_load_more() and len(collected) < max_forks:
            remaining = max_forks - len(collected)
            page = await self.fetch_fork_page(min(page_size, remaining))
            if not page:
                break
            collected.extend(page[:remaining])

        failed_batches = 0
        for start in range(0, len(collected), batch_size):
            try:
                await self.compute_diffs(collected[start:start + batch_size])
            except DiffFetchError as e:
                failed_batches += 1
                logger.warning(f"Skipping diff batch starting at fork {start}: {e}")

        ranked = self.ranked_forks()
        logger.info(f"Fork discovery completed. {len(ranked)} forks ranked, {failed_batches} batch(es) skipped.")
        return ranked
