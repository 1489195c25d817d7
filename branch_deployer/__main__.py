#!/usr/bin/env python3

"""
    Deploys the pushed branch to its target host.

    The deployer takes the path to its init file as an argument. The init file maps each deployable branch to the host,
    user and command of its pipeline, and says where the private key comes from and where it is staged. A push to a
    branch without a pipeline is not an error, there is simply nothing to deploy.

    Exit status is 0 on success or when nothing had to be deployed, the remote command's own status when it failed,
    and 1 for any other failure.
"""

import argparse
import logging
import os
import sys

from branch_deployer.errors import ConfigError, DeployerError, RemoteCommandError
from branch_deployer.init_file_parser.init_file_parser import InitFileParser
from branch_deployer.pipeline.pipeline import Pipeline
from branch_deployer.trigger_dispatcher.trigger_dispatcher import branch_from_ref, push_event_from_env, select_pipeline

logger = logging.getLogger("branch_deployer")

LOG_FORMAT = "%(asctime)s: %(message)s"
LOG_DATE_FORMAT = "%Y/%m/%d/%H/%M/%S"


def main(argv=None, environ=None):

    if environ is None:
        environ = os.environ

    parser = argparse.ArgumentParser(prog="branch_deployer", formatter_class=argparse.ArgumentDefaultsHelpFormatter)

    parser.add_argument('-i', '--init_path', dest='init_path', action='store', required=True,
                        help='Specify the path of the branch_deployer_init.json file')
    parser.add_argument('-b', '--branch', dest='branch', action='store', required=False, default=None,
                        help='Pushed branch or ref, read from GITHUB_REF when omitted')
    parser.add_argument('-c', '--commit', dest='commit', action='store', required=False, default=None,
                        help='Pushed commit, read from GITHUB_SHA when omitted')
    parser.add_argument('--check', dest='check', action='store_true', required=False, default=False,
                        help='Only validate the pipeline definitions')
    parser.add_argument('-v', '--verbose', dest='verbose', action='store_true', required=False, default=False,
                        help='Turns on verbosity')

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    try:
        return deploy(args, environ)

    except RemoteCommandError as e:
        logger.error("!!! ERROR: %s !!!", e)
        return e.exit_status

    except DeployerError as e:
        logger.error("!!! ERROR: %s: %s !!!", type(e).__name__, e)
        return 1


def deploy(args, environ):
    """
        Selects the pipeline for the pushed branch and runs it.

        :return: The process exit status.
    """

    fp = InitFileParser(init_file_path=args.init_path)

    if not fp.parse_init_file():
        raise ConfigError("Init file was not correctly parsed")

    if args.check:
        for definition in fp.pipelines.values():
            logger.info("%s -> %s@%s:%s %s", definition.branch, definition.user, definition.host, definition.port, definition.command)
        return 0

    env_branch, env_commit = push_event_from_env(environ)
    branch = branch_from_ref(args.branch) if args.branch else env_branch
    commit = args.commit or env_commit

    definition = select_pipeline(fp.pipelines, branch)
    if definition is None:
        return 0

    secret = environ.get(fp.secret_env_var)

    pipeline = Pipeline(definition, fp)
    pipeline.run(secret, commit=commit)

    return 0


if __name__ == "__main__":
    sys.exit(main())
