from typing import Any, Dict, Optional, Sequence


def raw_repository(
    id: str,
    owner: str,
    name: str,
    branches: Sequence[str] = ("main",),
    fork_count: int = 0,
    public_fork_count: int = 0,
    description: Optional[str] = "A project",
    pushed_at: Optional[str] = "2024-01-02T03:04:05Z",
    stars: int = 0,
    default_branch: Optional[str] = "main",
) -> Dict[str, Any]:
    return {
        "id": id,
        "owner": {"login": owner},
        "url": f"https://github.com/{owner}/{name}",
        "name": name,
        "description": description,
        "watchers": {"totalCount": 1},
        "stargazers": {"totalCount": stars},
        "pushedAt": pushed_at,
        "forkCount": fork_count,
        "forks": {"totalCount": public_fork_count},
        "defaultBranchRef": {"name": default_branch} if default_branch else None,
        "refs": {"totalCount": len(branches), "nodes": [{"name": b} for b in branches]},
    }


def raw_comparison(ahead_by: int, behind_by: int = 0, commit_count: int = 0) -> Dict[str, Any]:
    return {
        "aheadBy": ahead_by,
        "behindBy": behind_by,
        "commits": {
            "nodes": [
                {
                    "oid": f"sha{i}",
                    "messageHeadline": f"commit {i}",
                    "committedDate": f"2024-02-0{i + 1}T00:00:00Z",
                    "additions": 10,
                    "deletions": 2,
                }
                for i in range(commit_count)
            ]
        },
    }
