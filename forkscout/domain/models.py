from datetime import datetime
from typing import Any, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict, computed_field, field_validator, model_validator

class Repository(BaseModel):
    """
    Immutable snapshot of a GitHub repository, used both for the upstream
    and for the raw (not yet scored) fork records returned by a fork listing page.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="The unique GraphQL Node ID from GitHub")
    name: str = Field(..., description="Name of the repository")
    owner: str = Field(..., description="Login name of the repository owner")
    url: str = Field(..., description="Web URL of the repository")
    description: Optional[str] = Field(None, description="Free-form repository description")
    pushed_at: Optional[datetime] = Field(None, description="Timestamp of the last push")
    stars: int = Field(..., ge=0, description="Total number of stargazers")
    watchers: int = Field(..., ge=0, description="Total number of watchers")
    fork_count: int = Field(..., ge=0, description="Total number of forks, private included")
    public_fork_count: int = Field(..., ge=0, description="Number of public forks")
    default_branch: Optional[str] = Field(None, description="Name of the default branch")
    branches: Tuple[str, ...] = Field(default_factory=tuple, description="Branch names, unique, in source order")

    @field_validator('branches')
    @classmethod
    def _unique_branches(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(value))

    @model_validator(mode='after')
    def _check_fork_counts(self) -> 'Repository':
        if self.public_fork_count > self.fork_count:
            raise ValueError(
                f"public_fork_count ({self.public_fork_count}) exceeds fork_count ({self.fork_count})."
            )
        return self

    @computed_field
    @property
    def private_fork_count(self) -> int:
        return self.fork_count - self.public_fork_count

    @property
    def name_with_owner(self) -> str:
        return f"{self.owner}/{self.name}"


class Commit(BaseModel):
    """Summary of a single commit in a comparison."""
    model_config = ConfigDict(frozen=True)

    commit_id: str
    message: str
    additions: int = Field(..., ge=0)
    deletions: int = Field(..., ge=0)
    committed_date: datetime


class Diff(BaseModel):
    """
    Commit divergence between a fork's default branch and the upstream default branch.
    Commits keep the order GitHub returns them in (most recent last).
    """
    model_config = ConfigDict(frozen=True)

    ahead_by: int = Field(..., ge=0, description="Commits the fork has that upstream lacks")
    behind_by: int = Field(..., ge=0, description="Commits upstream has that the fork lacks")
    commits: Tuple[Commit, ...] = Field(default_factory=tuple)


class ExtendedForkInfo(BaseModel):
    """Facts about a fork relative to its upstream at diff time."""
    model_config = ConfigDict(frozen=True)

    description_changed: bool
    new_branches: Tuple[str, ...] = Field(default_factory=tuple)


class Fork(Repository):
    """
    A fork snapshot enriched with its divergence and score.
    Registry entries are never mutated: a new Fork replaces the old one.
    """
    diff: Optional[Diff] = None
    extended_info: Optional[ExtendedForkInfo] = None
    fork_score: Optional[float] = None

    @classmethod
    def from_repository(cls, repository: Repository, **updates: Any) -> 'Fork':
        data = repository.model_dump(exclude={'private_fork_count'})
        data.update(updates)
        return cls(**data)

    @property
    def is_scored(self) -> bool:
        return self.fork_score is not None


class HeadRef(BaseModel):
    """A branch of some repository, used as the head side of a comparison."""
    model_config = ConfigDict(frozen=True)

    owner: str
    name: str
    branch: str

    def __str__(self) -> str:
        return f"{self.owner}:{self.name}:{self.branch}"


class PageInfo(BaseModel):
    """Cursor state of a paginated connection."""
    model_config = ConfigDict(frozen=True)

    has_next_page: bool
    end_cursor: Optional[str] = None


class RateLimit(BaseModel):
    """The rateLimit block GitHub returns alongside every query."""
    model_config = ConfigDict(frozen=True)

    cost: int = 0
    remaining: int
    reset_at: Optional[str] = None
