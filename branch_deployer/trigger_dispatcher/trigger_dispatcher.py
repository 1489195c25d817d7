#!/usr/bin/env python3

"""
    Maps a push event onto the pipeline definition of the pushed branch.

    The CI runner exposes the push through its environment: GITHUB_REF holds the full ref that was pushed
    (refs/heads/<branch> for branches, refs/tags/<tag> for tags) and GITHUB_SHA the pushed commit.
"""

import logging
import os

logger = logging.getLogger(__name__)

BRANCH_REF_PREFIX = "refs/heads/"
REF_ENV_VAR = "GITHUB_REF"
COMMIT_ENV_VAR = "GITHUB_SHA"


def branch_from_ref(ref):
    """
        :param str ref: Either a full ref (refs/heads/dev) or a bare branch name (dev).

        :return: The branch name, or None if the ref does not name a branch.
    """

    if not ref:
        return None

    if ref.startswith(BRANCH_REF_PREFIX):
        return ref[len(BRANCH_REF_PREFIX):] or None

    # Any other fully qualified ref (tags, pull requests) is not a branch push
    if ref.startswith("refs/"):
        return None

    return ref


def push_event_from_env(environ=None):
    """
        :return: (branch, commit) read from the runner's environment. Either may be None.
    """

    if environ is None:
        environ = os.environ

    branch = branch_from_ref(environ.get(REF_ENV_VAR))
    commit = environ.get(COMMIT_ENV_VAR) or None
    return branch, commit


def select_pipeline(pipelines, branch):
    """
        :param dict pipelines: Branch name to PipelineDefinition.
        :param str branch: The pushed branch.

        :return: The definition for the branch, or None when the branch has no pipeline.
    """

    if branch is None:
        logger.info("Push does not reference a branch, nothing to deploy")
        return None

    definition = pipelines.get(branch)
    if definition is None:
        logger.info("No pipeline defined for branch [%s], nothing to deploy", branch)
    else:
        logger.info("Branch [%s] selects pipeline %s@%s:%s", branch, definition.user, definition.host, definition.port)

    return definition
