import unittest
from datetime import datetime, timezone

from forkscout.infrastructure.acl import GitHubTranslator
from tests.fixtures import raw_comparison, raw_repository


class TestRepositoryTranslation(unittest.TestCase):
    def test_to_repository_flattens_nested_fields(self) -> None:
        raw_node = raw_repository(
            "repo-1", "octocat", "hello", branches=("main", "dev"),
            fork_count=5, public_fork_count=3, stars=123,
        )

        repository = GitHubTranslator.to_repository(raw_node)

        self.assertEqual(repository.owner, "octocat")
        self.assertEqual(repository.name_with_owner, "octocat/hello")
        self.assertEqual(repository.stars, 123)
        self.assertEqual(repository.watchers, 1)
        self.assertEqual(repository.default_branch, "main")
        self.assertEqual(repository.branches, ("main", "dev"))
        self.assertEqual(repository.pushed_at, datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))

    def test_private_fork_count_is_derived(self) -> None:
        repository = GitHubTranslator.to_repository(
            raw_repository("repo-1", "octocat", "hello", fork_count=5, public_fork_count=3)
        )

        self.assertEqual(repository.private_fork_count, 2)

    def test_more_public_than_total_forks_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            GitHubTranslator.to_repository(
                raw_repository("repo-1", "octocat", "hello", fork_count=1, public_fork_count=3)
            )

    def test_duplicate_branches_keep_first_occurrence(self) -> None:
        repository = GitHubTranslator.to_repository(
            raw_repository("repo-1", "octocat", "hello", branches=("main", "dev", "main", "fix"))
        )

        self.assertEqual(repository.branches, ("main", "dev", "fix"))

    def test_empty_repository_has_no_default_branch_or_push(self) -> None:
        repository = GitHubTranslator.to_repository(
            raw_repository("repo-1", "octocat", "hello", branches=(), pushed_at=None, default_branch=None)
        )

        self.assertIsNone(repository.default_branch)
        self.assertIsNone(repository.pushed_at)
        self.assertEqual(repository.branches, ())

    def test_missing_node_raises(self) -> None:
        with self.assertRaises(ValueError):
            GitHubTranslator.to_repository(None)

    def test_missing_owner_raises(self) -> None:
        raw_node = raw_repository("repo-1", "octocat", "hello")
        del raw_node["owner"]

        with self.assertRaises(KeyError):
            GitHubTranslator.to_repository(raw_node)


class TestDiffTranslation(unittest.TestCase):
    def test_to_diff_keeps_commit_order(self) -> None:
        diff = GitHubTranslator.to_diff(raw_comparison(3, behind_by=7, commit_count=3))

        self.assertEqual(diff.ahead_by, 3)
        self.assertEqual(diff.behind_by, 7)
        self.assertEqual([c.commit_id for c in diff.commits], ["sha0", "sha1", "sha2"])
        self.assertEqual(diff.commits[1].message, "commit 1")
        self.assertEqual(diff.commits[0].committed_date, datetime(2024, 2, 1, tzinfo=timezone.utc))

    def test_null_comparison_raises(self) -> None:
        with self.assertRaises(ValueError):
            GitHubTranslator.to_diff(None)


class TestExtendedInfo(unittest.TestCase):
    def test_new_branches_are_those_missing_upstream(self) -> None:
        upstream = GitHubTranslator.to_repository(raw_repository("up", "octocat", "hello", branches=("main",)))
        fork = GitHubTranslator.to_repository(
            raw_repository("f1", "alice", "hello", branches=("main", "feature-x"))
        )

        info = GitHubTranslator.to_extended_info(fork, upstream)

        self.assertEqual(info.new_branches, ("feature-x",))
        self.assertFalse(info.description_changed)

    def test_new_branches_follow_fork_order(self) -> None:
        upstream = GitHubTranslator.to_repository(
            raw_repository("up", "octocat", "hello", branches=("main", "dev"))
        )
        fork = GitHubTranslator.to_repository(
            raw_repository("f1", "alice", "hello", branches=("zeta", "main", "alpha", "dev"), description="Mine")
        )

        info = GitHubTranslator.to_extended_info(fork, upstream)

        self.assertEqual(info.new_branches, ("zeta", "alpha"))
        self.assertTrue(info.description_changed)


class TestPageInfoTranslation(unittest.TestCase):
    def test_to_page_info(self) -> None:
        page_info = GitHubTranslator.to_page_info({"hasNextPage": True, "endCursor": "abc"})

        self.assertTrue(page_info.has_next_page)
        self.assertEqual(page_info.end_cursor, "abc")
