#!/usr/bin/env python3

"""
    The one generic pipeline every branch runs: fetch the source, stage the credentials, run the remote command.
    Steps run strictly in that order and the first failure ends the run.
"""

import logging

from branch_deployer.credential_stager.credential_stager import CredentialStager
from branch_deployer.errors import RemoteCommandError
from branch_deployer.source_fetcher.source_fetcher import SourceFetcher
from branch_deployer.ssh_agent.ssh_agent import SSHAgent

logger = logging.getLogger(__name__)

FETCH_STEP = "fetch"
STAGE_STEP = "stage"
EXECUTE_STEP = "execute"


class Pipeline():

    def __init__(self, definition, fp):
        """
            :param PipelineDefinition definition: The selected branch's host, user and command.
            :param InitFileParser fp: A parsed init file, for credential and source settings.
        """

        self.definition = definition
        self.fp = fp

        # Names of completed steps, in completion order
        self.steps = []

    def run(self, secret, commit=None):
        """
            Runs the pipeline once.

            :param str secret: The private key from the secret store.
            :param str commit: The pushed commit, if known.

            :raises DeployerError: On the first failing step.
        """

        self.steps = []
        definition = self.definition

        fetcher = SourceFetcher(self.fp.source_repository, self.fp.source_workspace)
        fetcher.fetch(definition.branch, commit)
        self.steps.append(FETCH_STEP)

        with CredentialStager(secret=secret,
                              host=definition.host,
                              port=definition.port,
                              key_path=self.fp.key_path,
                              timeout=self.fp.timeout) as stager:
            self.steps.append(STAGE_STEP)

            with SSHAgent(host=definition.host,
                          username=definition.user,
                          key_path=stager.key_path,
                          known_hosts_path=stager.known_hosts_path,
                          port=definition.port,
                          timeout=self.fp.timeout) as ssh_agent:
                exit_status = ssh_agent.run_command(definition.command)

            if exit_status != 0:
                raise RemoteCommandError(definition.command, exit_status)

            self.steps.append(EXECUTE_STEP)

        logger.info("Deployment of branch [%s] to %s succeeded", definition.branch, definition.host)
