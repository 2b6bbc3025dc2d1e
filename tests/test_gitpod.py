"""Tests for gitpod_bot/marking/gitpod.py - matching, marking and backfill."""

from unittest.mock import AsyncMock, call, patch

import pytest

from conftest import make_issue
from gitpod_bot.marking.config import resolve_config
from gitpod_bot.marking.gitpod import Gitpod, RepoContext
from gitpod_bot.marking.stats import GitpodStat


def _gitpod(repo_ctx, raw=None) -> Gitpod:
    return Gitpod(repo_ctx, resolve_config(raw), GitpodStat(owner="octo", repo="hello"))


ENABLED = {
    "pulls": {"perform": True},
    "issues": {"perform": True, "labels": ["bug", "good first issue"]},
}


class TestRepoContext:
    """Tests for building the repository context."""

    def test_from_payload(self) -> None:
        """Owner, name and installation come from the webhook payload."""
        ctx = RepoContext.from_payload({
            "repository": {"name": "hello", "owner": {"login": "octo"}},
            "installation": {"id": "7"},
        })

        assert ctx == RepoContext(owner="octo", repo="hello", installation_id=7)
        assert ctx.full_name == "octo/hello"

    def test_from_payload_without_installation(self) -> None:
        """Payloads without an installation are not actionable."""
        ctx = RepoContext.from_payload({
            "repository": {"name": "hello", "owner": {"login": "octo"}},
        })

        assert ctx is None

    def test_from_full_name(self) -> None:
        ctx = RepoContext.from_full_name("octo/hello", 9)

        assert (ctx.owner, ctx.repo, ctx.installation_id) == ("octo", "hello", 9)


class TestMatch:
    """Tests for Gitpod.match."""

    def test_nothing_matches_without_config(self, repo_ctx) -> None:
        gitpod = _gitpod(repo_ctx)

        assert gitpod.match("pulls", make_issue(1)) is False
        assert gitpod.match("issues", make_issue(2, labels=["bug"])) is False

    def test_pull_request_matches_when_enabled(self, repo_ctx) -> None:
        """Pull requests need no labels."""
        gitpod = _gitpod(repo_ctx, {"pulls": {"perform": True}})

        assert gitpod.match("pulls", make_issue(1)) is True

    def test_locked_never_matches(self, repo_ctx) -> None:
        gitpod = _gitpod(repo_ctx, ENABLED)

        assert gitpod.match("pulls", make_issue(1, locked=True)) is False
        assert gitpod.match("issues", make_issue(2, labels=["bug"], locked=True)) is False

    def test_issue_with_matching_label(self, repo_ctx) -> None:
        gitpod = _gitpod(repo_ctx, ENABLED)

        assert gitpod.match("issues", make_issue(1, labels=["docs", "bug"])) is True

    def test_issue_without_overlapping_label(self, repo_ctx) -> None:
        """Enabled issues still require a configured label."""
        gitpod = _gitpod(repo_ctx, ENABLED)

        assert gitpod.match("issues", make_issue(1, labels=["docs"])) is False
        assert gitpod.match("issues", make_issue(2)) is False

    def test_issue_with_no_configured_labels(self, repo_ctx) -> None:
        """An empty label set matches no issue at all."""
        gitpod = _gitpod(repo_ctx, {"issues": {"perform": True}})

        assert gitpod.match("issues", make_issue(1, labels=["bug"])) is False

    def test_issues_disabled_ignores_labels(self, repo_ctx) -> None:
        gitpod = _gitpod(repo_ctx, {"issues": {"perform": False, "labels": ["bug"]}})

        assert gitpod.match("issues", make_issue(1, labels=["bug"])) is False


class TestMark:
    """Tests for Gitpod.mark."""

    @pytest.mark.asyncio
    async def test_marks_pull_request(self, repo_ctx, mock_api) -> None:
        """A matching pull request gets one comment and bumps one counter."""
        gitpod = _gitpod(repo_ctx, ENABLED)
        pull = make_issue(5, html_url="https://github.com/octo/hello/pull/5")

        assert await gitpod.mark("pulls", pull) is True

        mock_api.create_comment.assert_awaited_once_with(
            42,
            "octo/hello",
            5,
            "[Open in Gitpod](https://gitpod.io#https://github.com/octo/hello/pull/5)"
            + gitpod.config.pulls.comment,
        )
        assert gitpod.stat.pulls == 1
        assert gitpod.stat.issues == 0

    @pytest.mark.asyncio
    async def test_marks_issue_with_issue_comment(self, repo_ctx, mock_api) -> None:
        gitpod = _gitpod(repo_ctx, {
            "issues": {"perform": True, "labels": ["bug"], "comment": " - go"},
        })

        await gitpod.mark("issues", make_issue(3, labels=["bug"]))

        body = mock_api.create_comment.await_args.args[3]
        assert body == "[Open in Gitpod](https://gitpod.io#https://github.com/octo/hello/issues/3) - go"
        assert gitpod.stat.issues == 1

    @pytest.mark.asyncio
    async def test_no_match_no_comment(self, repo_ctx, mock_api) -> None:
        gitpod = _gitpod(repo_ctx, ENABLED)

        assert await gitpod.mark("issues", make_issue(3, labels=["docs"])) is False

        mock_api.create_comment.assert_not_awaited()
        assert gitpod.stat.issues == 0

    @pytest.mark.asyncio
    async def test_api_error_propagates(self, repo_ctx, mock_api) -> None:
        """A failed comment is not counted."""
        mock_api.create_comment.side_effect = RuntimeError("boom")
        gitpod = _gitpod(repo_ctx, ENABLED)

        with pytest.raises(RuntimeError):
            await gitpod.mark("pulls", make_issue(1))

        assert gitpod.stat.pulls == 0


class TestMarkAll:
    """Tests for the backfill."""

    def test_queries(self, repo_ctx) -> None:
        gitpod = _gitpod(repo_ctx, ENABLED)

        assert gitpod.create_query("pulls") == (
            "NOT gitpod repo:octo/hello type:pr is:open in:comments"
        )
        assert gitpod.create_query("issues") == (
            "NOT gitpod repo:octo/hello type:issue is:open in:comments"
        )

    @pytest.mark.asyncio
    async def test_disabled_does_not_search(self, repo_ctx, mock_api) -> None:
        gitpod = _gitpod(repo_ctx)

        assert await gitpod.mark_all("pulls") == 0
        assert await gitpod.mark_all("issues") == 0

        mock_api.search_issues.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pulls_single_query_all_pages(self, repo_ctx, mock_api) -> None:
        """Every item of every page is marked."""
        mock_api.search_issues.return_value = [
            [make_issue(1), make_issue(2)],
            [make_issue(3), make_issue(4, locked=True)],
        ]
        gitpod = _gitpod(repo_ctx, ENABLED)

        marked = await gitpod.mark_all("pulls")

        assert marked == 3
        mock_api.search_issues.assert_awaited_once_with(
            42,
            "NOT gitpod repo:octo/hello type:pr is:open in:comments",
            sort="updated",
        )
        numbers = [c.args[2] for c in mock_api.create_comment.await_args_list]
        assert numbers == [1, 2, 3]
        assert gitpod.stat.pulls == 3

    @pytest.mark.asyncio
    async def test_issues_one_query_per_label(self, repo_ctx, mock_api) -> None:
        mock_api.search_issues.side_effect = [
            [[make_issue(1, labels=["bug"])]],
            [[make_issue(2, labels=["good first issue"])], []],
        ]
        gitpod = _gitpod(repo_ctx, ENABLED)

        marked = await gitpod.mark_all("issues")

        assert marked == 2
        base = "NOT gitpod repo:octo/hello type:issue is:open in:comments"
        assert mock_api.search_issues.await_args_list == [
            call(42, f'{base} label:"bug"', sort="updated"),
            call(42, f'{base} label:"good first issue"', sort="updated"),
        ]
        assert gitpod.stat.issues == 2

    @pytest.mark.asyncio
    async def test_search_finishes_before_marking(self, repo_ctx, mock_api) -> None:
        """Results are collected before any comment changes them."""
        events = []

        async def search(*args, **kwargs):
            events.append("search")
            return [[make_issue(1)], [make_issue(2)]]

        async def comment(*args):
            events.append("comment")

        mock_api.search_issues.side_effect = search
        mock_api.create_comment.side_effect = comment
        gitpod = _gitpod(repo_ctx, ENABLED)

        await gitpod.mark_all("pulls")

        assert events == ["search", "comment", "comment"]


class TestCreate:
    """Tests for Gitpod.create."""

    @pytest.mark.asyncio
    async def test_missing_config_stops_schedule(self, repo_ctx, scheduler, stats) -> None:
        """No config file: features off and the repository leaves the schedule."""
        with patch("gitpod_bot.marking.gitpod.load_repo_config", AsyncMock(return_value=None)):
            gitpod = await Gitpod.create(repo_ctx, scheduler, stats)

        scheduler.stop.assert_called_once_with("octo/hello")
        scheduler.start.assert_not_called()
        assert gitpod.config.pulls.perform is False
        assert gitpod.config.issues.perform is False

    @pytest.mark.asyncio
    async def test_config_present_keeps_schedule(self, repo_ctx, scheduler, stats) -> None:
        loader = AsyncMock(return_value={"pulls": {"perform": True}})
        with patch("gitpod_bot.marking.gitpod.load_repo_config", loader):
            gitpod = await Gitpod.create(repo_ctx, scheduler, stats)

        loader.assert_awaited_once_with(42, "octo/hello")
        scheduler.start.assert_called_once_with("octo/hello", 42)
        scheduler.stop.assert_not_called()
        assert gitpod.config.pulls.perform is True

    @pytest.mark.asyncio
    async def test_stat_shared_across_events(self, repo_ctx, scheduler, stats, mock_api) -> None:
        """Each event builds a new Gitpod but the counters accumulate."""
        loader = AsyncMock(return_value={"pulls": {"perform": True}})
        with patch("gitpod_bot.marking.gitpod.load_repo_config", loader):
            first = await Gitpod.create(repo_ctx, scheduler, stats)
            await first.mark("pulls", make_issue(1))
            second = await Gitpod.create(repo_ctx, scheduler, stats)
            await second.mark("pulls", make_issue(2))

        assert second.stat is first.stat
        assert stats.get("octo", "hello").pulls == 2
        assert len(stats) == 1
