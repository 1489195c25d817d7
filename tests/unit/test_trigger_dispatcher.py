"""
Unit tests for branch_deployer.trigger_dispatcher.
"""

import pytest

from branch_deployer.init_file_parser.init_file_parser import PipelineDefinition
from branch_deployer.trigger_dispatcher.trigger_dispatcher import (
    branch_from_ref,
    push_event_from_env,
    select_pipeline,
)


@pytest.fixture
def pipelines():
    return {
        branch: PipelineDefinition(branch, "{}.example.com".format(branch), "deploy", "/opt/deploy.sh", 22)
        for branch in ("dev", "staging", "main")
    }


class TestBranchFromRef:

    @pytest.mark.parametrize(
        "ref, expected",
        [
            ("refs/heads/dev", "dev"),
            ("refs/heads/feature/login", "feature/login"),
            ("staging", "staging"),
            ("refs/tags/v1.0.0", None),
            ("refs/pull/12/merge", None),
            ("refs/heads/", None),
            ("", None),
            (None, None),
        ],
    )
    def test_branch_from_ref(self, ref, expected):
        assert branch_from_ref(ref) == expected


class TestSelectPipeline:

    def test_push_to_dev_selects_only_dev(self, pipelines):
        definition = select_pipeline(pipelines, "dev")

        assert definition is pipelines["dev"]
        assert definition.host == "dev.example.com"

    @pytest.mark.parametrize("branch", ["dev", "staging", "main"])
    def test_each_branch_selects_its_own_definition(self, pipelines, branch):
        assert select_pipeline(pipelines, branch).branch == branch

    def test_unknown_branch_selects_nothing(self, pipelines):
        assert select_pipeline(pipelines, "feature/login") is None

    def test_no_branch_selects_nothing(self, pipelines):
        assert select_pipeline(pipelines, None) is None


class TestPushEventFromEnv:

    def test_reads_ref_and_commit(self):
        environ = {"GITHUB_REF": "refs/heads/main", "GITHUB_SHA": "0123abcd"}

        assert push_event_from_env(environ) == ("main", "0123abcd")

    def test_missing_values(self):
        assert push_event_from_env({}) == (None, None)

    def test_tag_push_has_no_branch(self):
        environ = {"GITHUB_REF": "refs/tags/v2", "GITHUB_SHA": "0123abcd"}

        assert push_event_from_env(environ) == (None, "0123abcd")
