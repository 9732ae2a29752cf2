from datetime import datetime
from typing import Any, Dict, Optional
from forkscout.domain.models import Commit, Diff, ExtendedForkInfo, PageInfo, RateLimit, Repository

def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub GraphQL JSON responses into domain models.

    Well-formed input always translates. Malformed input (missing objects, wrong shapes)
    raises immediately; nothing here is caught or retried.
    """

    @staticmethod
    def to_repository(raw_node: Dict[str, Any]) -> Repository:
        """
        Transforms a raw GitHub GraphQL repository node into a Repository.

        Args:
            raw_node (Dict[str, Any]): The raw JSON node, as returned by the repository or fork listing query.

        Returns:
            Repository: The domain model instance representing the repository.
        """
        if not raw_node:
            raise ValueError("Repository node is required to build Repository.")

        default_branch_ref = raw_node.get('defaultBranchRef') or {}
        refs = raw_node.get('refs') or {}

        return Repository(
            id=raw_node['id'],
            name=raw_node['name'],
            owner=raw_node['owner']['login'],
            url=raw_node['url'],
            description=raw_node.get('description'),
            pushed_at=_parse_timestamp(raw_node.get('pushedAt')),
            stars=raw_node['stargazers']['totalCount'],
            watchers=raw_node['watchers']['totalCount'],
            fork_count=raw_node['forkCount'],
            public_fork_count=raw_node['forks']['totalCount'],
            default_branch=default_branch_ref.get('name'),
            branches=tuple(node['name'] for node in refs.get('nodes') or [] if node),
        )

    @staticmethod
    def to_diff(raw_comparison: Dict[str, Any]) -> Diff:
        """Transforms a raw ``Comparison`` object into a Diff, keeping commit order."""
        if not raw_comparison:
            raise ValueError("Comparison object is required to build Diff.")

        return Diff(
            ahead_by=raw_comparison['aheadBy'],
            behind_by=raw_comparison['behindBy'],
            commits=tuple(
                Commit(
                    commit_id=node['oid'],
                    message=node['messageHeadline'],
                    additions=node['additions'],
                    deletions=node['deletions'],
                    committed_date=_parse_timestamp(node['committedDate']),
                )
                for node in raw_comparison['commits']['nodes']
            ),
        )

    @staticmethod
    def to_extended_info(fork: Repository, upstream: Repository) -> ExtendedForkInfo:
        """
        Derives what a fork changed relative to upstream: its description, and
        the branches it has that upstream does not (in the fork's branch order).
        """
        upstream_branches = set(upstream.branches)
        return ExtendedForkInfo(
            description_changed=fork.description != upstream.description,
            new_branches=tuple(b for b in fork.branches if b not in upstream_branches),
        )

    @staticmethod
    def to_page_info(raw_page_info: Dict[str, Any]) -> PageInfo:
        return PageInfo(
            has_next_page=raw_page_info['hasNextPage'],
            end_cursor=raw_page_info.get('endCursor'),
        )

    @staticmethod
    def to_rate_limit(raw_rate_limit: Dict[str, Any]) -> RateLimit:
        return RateLimit(
            cost=raw_rate_limit.get('cost', 0),
            remaining=raw_rate_limit['remaining'],
            reset_at=raw_rate_limit.get('resetAt'),
        )
