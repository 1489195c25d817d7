"""
Unit tests for branch_deployer.source_fetcher with subprocess.run mocked.
"""

import subprocess
from unittest.mock import call, patch

import pytest

from branch_deployer.errors import FetchError
from branch_deployer.source_fetcher.source_fetcher import SourceFetcher

MODULE = "branch_deployer.source_fetcher.source_fetcher"
REPOSITORY = "https://git.example.com/app.git"


def git_call(*args):
    return call(["git"] + list(args), check=True, capture_output=True, text=True)


class TestSourceFetcher:

    def test_skipped_without_repository(self, tmp_path):
        fetcher = SourceFetcher(None, None)

        with patch(MODULE + ".subprocess.run") as run:
            assert fetcher.fetch("dev", "0123abcd") is False

        run.assert_not_called()

    def test_new_workspace_is_initialised(self, tmp_path):
        workspace = str(tmp_path / "ws")
        fetcher = SourceFetcher(REPOSITORY, workspace)

        with patch(MODULE + ".subprocess.run") as run:
            assert fetcher.fetch("dev", "0123abcd") is True

        assert run.call_args_list == [
            git_call("init", "--quiet", workspace),
            git_call("-C", workspace, "remote", "add", "origin", REPOSITORY),
            git_call("-C", workspace, "fetch", "--quiet", "--depth", "1", "origin", "0123abcd"),
            git_call("-C", workspace, "checkout", "--quiet", "--force", "FETCH_HEAD"),
        ]

    def test_existing_workspace_fetches_branch_head(self, tmp_path):
        (tmp_path / "ws" / ".git").mkdir(parents=True)
        workspace = str(tmp_path / "ws")
        fetcher = SourceFetcher(REPOSITORY, workspace)

        with patch(MODULE + ".subprocess.run") as run:
            fetcher.fetch("staging")

        assert run.call_args_list == [
            git_call("-C", workspace, "fetch", "--quiet", "--depth", "1", "origin", "staging"),
            git_call("-C", workspace, "checkout", "--quiet", "--force", "FETCH_HEAD"),
        ]

    def test_git_failure(self, tmp_path):
        fetcher = SourceFetcher(REPOSITORY, str(tmp_path / "ws"))
        error = subprocess.CalledProcessError(128, ["git"], stderr="fatal: repository not found\n")

        with patch(MODULE + ".subprocess.run", side_effect=error):
            with pytest.raises(FetchError, match="repository not found"):
                fetcher.fetch("dev")

    def test_git_missing(self, tmp_path):
        fetcher = SourceFetcher(REPOSITORY, str(tmp_path / "ws"))

        with patch(MODULE + ".subprocess.run", side_effect=FileNotFoundError("git")):
            with pytest.raises(FetchError, match="not installed"):
                fetcher.fetch("dev")
