"""
Default ranking function for forks.

Commits ahead of upstream dominate the score; popularity, the size of the
unmerged work, new branches and a rewritten description add smaller amounts.
Falling behind upstream costs a little, capped so a stale fork with real
work still ranks above an up-to-date empty one.
"""

import math

from forkscout.domain.models import Fork, Repository

AHEAD_WEIGHT = 10.0
STAR_WEIGHT = 2.0
WATCHER_WEIGHT = 1.0
CHANGED_LINES_WEIGHT = 1.0
NEW_BRANCH_WEIGHT = 1.5
MAX_NEW_BRANCH_BONUS = 10.0
DESCRIPTION_CHANGED_BONUS = 2.0
RECENT_PUSH_BONUS = 3.0
BEHIND_PENALTY = 0.01
MAX_BEHIND_PENALTY = 5.0


def score(fork: Fork, upstream: Repository) -> float:
    """Return a non-negative interesting-ness score for ``fork`` relative to ``upstream``."""
    total = STAR_WEIGHT * math.log1p(fork.stars) + WATCHER_WEIGHT * math.log1p(fork.watchers)

    if fork.diff is not None:
        total += AHEAD_WEIGHT * math.log1p(fork.diff.ahead_by)
        changed_lines = sum(c.additions + c.deletions for c in fork.diff.commits)
        total += CHANGED_LINES_WEIGHT * math.log1p(changed_lines)
        total -= min(BEHIND_PENALTY * fork.diff.behind_by, MAX_BEHIND_PENALTY)

    if fork.extended_info is not None:
        total += min(NEW_BRANCH_WEIGHT * len(fork.extended_info.new_branches), MAX_NEW_BRANCH_BONUS)
        if fork.extended_info.description_changed:
            total += DESCRIPTION_CHANGED_BONUS

    if fork.pushed_at and upstream.pushed_at and fork.pushed_at > upstream.pushed_at:
        total += RECENT_PUSH_BONUS

    return max(total, 0.0)
