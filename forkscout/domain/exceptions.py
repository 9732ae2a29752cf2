from typing import Optional

class ForkScoutException(Exception):
    """Base exception for all fork discovery errors."""
    pass

class GitHubAPIError(ForkScoutException):
    """Raised when the GitHub GraphQL API could not answer a query."""
    pass

class RateLimitExceededException(GitHubAPIError):
    """Raised when the GitHub GraphQL rate limit is hit."""
    def __init__(self, reset_at: Optional[str], message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        super().__init__(f"{message} Resets at: {reset_at}")

class UpstreamFetchError(ForkScoutException):
    """Raised when the upstream repository could not be resolved."""
    pass

class DiffFetchError(ForkScoutException):
    """Raised when a divergence batch could not be fetched. The whole batch is discarded."""
    pass
