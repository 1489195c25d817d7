#!/usr/bin/env python3

"""
    Failure taxonomy of a deployment run. Every error is terminal for the run that raised it, nothing is retried.
"""


class DeployerError(Exception):
    """
        Base class of every error that ends a deployment run.
    """


class ConfigError(DeployerError):
    pass


class FetchError(DeployerError):
    pass


class CredentialError(DeployerError):
    pass


class AuthenticationError(DeployerError):
    pass


class UnreachableHostError(DeployerError):
    pass


class RemoteCommandError(DeployerError):

    def __init__(self, command, exit_status):

        self.command = command
        self.exit_status = exit_status
        super().__init__("Remote command [{}] exited with status {}".format(command, exit_status))
