#!/usr/bin/env python3

import logging
import os
import subprocess

from branch_deployer.errors import FetchError

logger = logging.getLogger(__name__)


class SourceFetcher():
    """
        Brings a workspace to the pushed commit using git. When no repository is configured the runner has already
        checked the source out and fetching is skipped.
    """

    def __init__(self, repository, workspace):

        self.repository = repository
        self.workspace = workspace

    @property
    def enabled(self):
        return bool(self.repository and self.workspace)

    def fetch(self, branch, commit=None):
        """
            Fetches the commit (or the head of the branch when the commit is unknown) and checks it out.

            :param str branch: The pushed branch.
            :param str commit: The pushed commit, if known.

            :return: True if a fetch happened, False if it was skipped.
        """

        if not self.enabled:
            logger.info("Source fetch skipped, no repository configured")
            return False

        ref = commit or branch
        logger.info("Fetching %s from %s into %s", ref, self.repository, self.workspace)

        if not os.path.isdir(os.path.join(self.workspace, ".git")):
            self._git("init", "--quiet", self.workspace)
            self._git("-C", self.workspace, "remote", "add", "origin", self.repository)

        self._git("-C", self.workspace, "fetch", "--quiet", "--depth", "1", "origin", ref)
        self._git("-C", self.workspace, "checkout", "--quiet", "--force", "FETCH_HEAD")

        return True

    # ////////////////////// Helpers ////////////////////// #

    def _git(self, *args):

        command = ["git"] + list(args)
        logger.debug("Running %s", " ".join(command))

        try:
            subprocess.run(command, check=True, capture_output=True, text=True)

        except FileNotFoundError as e:
            raise FetchError("git is not installed [{}]".format(e)) from e

        except subprocess.CalledProcessError as e:
            raise FetchError("{} failed with status {}: {}".format(" ".join(command), e.returncode, (e.stderr or "").strip())) from e
