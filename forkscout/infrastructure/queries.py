from typing import Any, Dict, NamedTuple, Sequence, Tuple

from forkscout.domain.models import HeadRef

RATE_LIMIT_FIELDS = """
  rateLimit {
    cost
    remaining
    resetAt
  }"""

# Upstream repository with its branches. $cursor pages through the branch refs,
# 100 at a time; the transport follows it until hasNextPage is false.
REPOSITORY_QUERY = """
query Repository($owner: String!, $name: String!, $cursor: String) {""" + RATE_LIMIT_FIELDS + """
  repository(owner: $owner, name: $name) {
    id
    owner {
      login
    }
    url
    name
    description
    watchers {
      totalCount
    }
    stargazers {
      totalCount
    }
    pushedAt
    forkCount
    forks(privacy: PUBLIC) {
      totalCount
    }
    defaultBranchRef {
      name
    }
    refs(
      refPrefix: "refs/heads/"
      orderBy: { field: TAG_COMMIT_DATE, direction: DESC }
      first: 100
      after: $cursor
    ) {
      pageInfo {
        hasNextPage
        endCursor
      }
      totalCount
      nodes {
        name
      }
    }
  }
}
"""

# One page of public forks, most recently pushed first.
FORKS_QUERY = """
query Forks($owner: String!, $name: String!, $cursor: String, $count: Int!) {""" + RATE_LIMIT_FIELDS + """
  repository(owner: $owner, name: $name) {
    forks(first: $count, after: $cursor, privacy: PUBLIC, orderBy: { field: PUSHED_AT, direction: DESC }) {
      pageInfo {
        hasNextPage
        endCursor
      }
      totalCount
      nodes {
        id
        owner {
          login
        }
        url
        name
        description
        watchers {
          totalCount
        }
        stargazers {
          totalCount
        }
        pushedAt
        forkCount
        forks(privacy: PUBLIC) {
          totalCount
        }
        defaultBranchRef {
          name
        }
        refs(
          refPrefix: "refs/heads/"
          orderBy: { field: TAG_COMMIT_DATE, direction: DESC }
          first: 100
        ) {
          totalCount
          nodes {
            name
          }
        }
      }
    }
  }
}
"""

DIFF_FRAGMENT = """
fragment DiffInfo on Comparison {
  aheadBy
  behindBy
  commits(last: 20) {
    nodes {
      oid
      messageHeadline
      committedDate
      additions
      deletions
    }
  }
}
"""

DEFAULT_FORK_PAGE_SIZE = 100
MAX_FORK_PAGE_SIZE = 100


class DiffQuery(NamedTuple):
    """
    A divergence batch ready to send.

    aliases[i] is the response key holding the comparison for heads[i].
    """
    document: str
    variables: Dict[str, Any]
    aliases: Tuple[str, ...]


def diff_alias(index: int) -> str:
    return f"fork{index}"


def build_diff_query(heads: Sequence[HeadRef]) -> DiffQuery:
    """
    Assembles one query comparing every head against the upstream base branch.

    Each head gets its own aliased ``compare`` field and its own ``$headN``
    variable, so the caller's ordering survives the round trip.

    Args:
        heads (Sequence[HeadRef]): Head references, in the order results are wanted.

    Returns:
        DiffQuery: The document, the head variables (``owner``, ``name`` and
        ``baseBranch`` are left for the caller) and the alias of each head.
    """
    if not heads:
        raise ValueError("At least one head reference is required to build a diff query.")

    aliases = tuple(diff_alias(i) for i in range(len(heads)))
    head_params = "".join(f", $head{i}: String!" for i in range(len(heads)))
    comparisons = "".join(
        f"""
      {alias}: compare(headRef: $head{i}) {{
        ...DiffInfo
      }}"""
        for i, alias in enumerate(aliases)
    )

    document = (
        DIFF_FRAGMENT
        + f"""
query Diff($owner: String!, $name: String!, $baseBranch: String!{head_params}) {{"""
        + RATE_LIMIT_FIELDS
        + f"""
  repository(owner: $owner, name: $name) {{
    ref(qualifiedName: $baseBranch) {{{comparisons}
    }}
  }}
}}
"""
    )
    variables = {f"head{i}": str(head) for i, head in enumerate(heads)}
    return DiffQuery(document=document, variables=variables, aliases=aliases)
