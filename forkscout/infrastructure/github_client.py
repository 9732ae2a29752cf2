import aiohttp
import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

from forkscout.domain.exceptions import GitHubAPIError, RateLimitExceededException
from forkscout.domain.interfaces import QueryExecutor
from forkscout.infrastructure.acl import GitHubTranslator

logger = logging.getLogger(__name__)

VIEWER_QUERY = """
query {
  viewer {
    login
  }
  rateLimit {
    cost
    remaining
    resetAt
  }
}
"""

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)
MAX_RETRIES = 7
RATE_LIMIT_FLOOR = 10
# Limit concurrent connections to avoid overwhelming GitHub's servers
CONNECTOR_LIMIT = 10


def _find_connection_path(node: Any, path: Optional[List[str]] = None) -> Optional[List[str]]:
    """Depth-first search for the first object carrying a ``pageInfo`` key."""
    path = path or []
    if not isinstance(node, dict):
        return None
    if 'pageInfo' in node:
        return path
    for key, value in node.items():
        found = _find_connection_path(value, path + [key])
        if found is not None:
            return found
    return None


def _get_path(node: Any, path: List[str]) -> Optional[Dict[str, Any]]:
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, dict) else None


class GitHubGraphQLClient(QueryExecutor):
    """
    Client for interacting with the GitHub GraphQL API.
    Handles authentication, query execution, retries and rate limit management.

    Use it as an async context manager; it opens its own aiohttp session unless one is given.
    """

    def __init__(self, token: str, session: Optional[aiohttp.ClientSession] = None):
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "forkscout",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self.api_url = "https://api.github.com/graphql"
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> "GitHubGraphQLClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False
        return False

    async def validate_token(self) -> str:
        """Checks the token against the API and returns the authenticated login."""
        data = await self.execute_query(VIEWER_QUERY)
        login = data['viewer']['login']
        logger.info(f"Authenticated to GitHub as {login}.")
        return login

    async def execute_query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Posts a GraphQL document and returns its ``data`` payload.

        Transient failures (secondary rate limits, 5xx, timeouts, connection errors,
        GraphQL errors without data) are retried with exponential backoff.

        Raises:
            RateLimitExceededException: When the primary rate limit is nearly used up.
            GitHubAPIError: When the API keeps failing or rejects the credentials.
        """
        if self._session is None:
            raise RuntimeError("Client session is not open; use 'async with GitHubGraphQLClient(...)'.")

        payload = {"query": document, "variables": variables or {}}

        for attempt in range(MAX_RETRIES):
          try:
            async with self._session.post(self.api_url, json=payload, headers=self.headers, timeout=REQUEST_TIMEOUT) as response:
                # Handle secondary rate limit (abuse detection)
                if response.status in {403, 429}:
                  retry_after = response.headers.get('Retry-After')
                  sleep_time = int(retry_after) if retry_after else 60
                  logger.warning(f"Secondary rate limit ({response.status}). Sleeping {sleep_time}s...")
                  await asyncio.sleep(sleep_time)
                  continue

                # Other client errors will not succeed on retry
                if 400 <= response.status < 500:
                  raise GitHubAPIError(f"GitHub rejected the query ({response.status}).")

                if response.status in {500, 502, 503, 504}:
                  sleep_time = (2 ** attempt) + random.uniform(0, 2)
                  logger.warning(
                      f"Server error ({response.status}). "
                      f"Retrying in {sleep_time:.1f}s (attempt {attempt + 1}/{MAX_RETRIES})..."
                  )
                  await asyncio.sleep(sleep_time)
                  continue

                response.raise_for_status()
                data = await response.json()

                # Handle GraphQL-level errors (can occur even with HTTP 200)
                if 'errors' in data:
                    error_msg = data['errors'][0].get('message', 'Unknown GraphQL error')
                    if 'data' not in data or data['data'] is None:
                        sleep_time = (2 ** attempt) + random.uniform(0, 2)
                        logger.warning(f"GraphQL error: {error_msg}. Retrying in {sleep_time:.1f}s...")
                        await asyncio.sleep(sleep_time)
                        continue
                    logger.warning(f"GraphQL partial error: {error_msg}")

                result = data.get('data') or {}
                raw_rate_limit = result.get('rateLimit')
                if raw_rate_limit:
                    rate_limit = GitHubTranslator.to_rate_limit(raw_rate_limit)
                    logger.debug(f"Query cost {rate_limit.cost}, {rate_limit.remaining} points remaining.")
                    if rate_limit.remaining < RATE_LIMIT_FLOOR:
                        raise RateLimitExceededException(reset_at=rate_limit.reset_at)

                return result

          except (aiohttp.ClientError, asyncio.TimeoutError) as e:
              sleep_time = (2 ** attempt) + random.uniform(0, 2)
              logger.warning(
                  f"Request failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                  f"Retrying in {sleep_time:.1f}s..."
              )
              await asyncio.sleep(sleep_time)

        raise GitHubAPIError(f"Failed to execute query after {MAX_RETRIES} attempts.")

    async def execute_paginated_query(self, document: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Runs a query taking a ``$cursor`` variable and follows the first connection
        that carries ``pageInfo`` until it is exhausted, merging its ``nodes``.
        """
        variables = dict(variables or {})
        result = await self.execute_query(document, dict(variables))

        path = _find_connection_path(result)
        if path is None:
            return result

        connection = _get_path(result, path)
        nodes = list(connection.get('nodes') or [])
        page_info = connection['pageInfo']
        pages = 1

        while page_info.get('hasNextPage'):
            cursor = page_info.get('endCursor')
            if not cursor or cursor == variables.get('cursor'):
                raise GitHubAPIError(f"Pagination of '{'.'.join(path)}' did not advance past cursor {cursor!r}.")
            variables['cursor'] = cursor
            page = await self.execute_query(document, dict(variables))
            page_connection = _get_path(page, path)
            if page_connection is None or 'pageInfo' not in page_connection:
                raise GitHubAPIError(f"Page after cursor {cursor!r} no longer contains '{'.'.join(path)}'.")
            nodes.extend(page_connection.get('nodes') or [])
            page_info = page_connection['pageInfo']
            pages += 1

        connection['nodes'] = nodes
        connection['pageInfo'] = page_info
        logger.debug(f"Merged {len(nodes)} nodes of '{'.'.join(path)}' across {pages} page(s).")
        return result
