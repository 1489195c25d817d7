#!/usr/bin/env python3

"""
    This python file holds the ssh_agent used to connect and run the deployment command via ssh on a target host.

    The agent authenticates with the key file staged by the credential_stager only, and only talks to hosts whose key
    is already recorded in the known hosts file. It does not retry: a failed connection or a failed command ends the run.
"""

import logging

import paramiko

from branch_deployer.errors import AuthenticationError, UnreachableHostError

logger = logging.getLogger(__name__)


class SSHAgent():
    """
        This is the ssh_agent class. It is used to send commands to a given server via ssh.
    """
    def __init__(self, host, username, key_path, known_hosts_path, port=22, timeout=30):

        self.host = host
        self.username = username
        self.key_path = key_path
        self.known_hosts_path = known_hosts_path
        self.port = port
        self.timeout = timeout

        self.ssh = None
        self._ssh_connect()

        # Will hold the three main file types of the last command run on the server.
        self.streams = {
            "in": None,
            "out": None,
            "err": None
        }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False

    def close(self):

        if self.ssh is not None:
            logger.debug("Closing SSH connection to %s", self.host)
            self.ssh.close()
            self.ssh = None

    def run_command(self, command):
        """
            Runs the command on the server, logs everything it prints and waits for it to exit.

            :param str command: Command to run.

            :return: The exit status of the command.
        """

        logger.info("Running [%s] on %s@%s", command, self.username, self.host)

        try:
            self._run_command(command)

            channel = self.streams["out"].channel
            # Interleave stderr with stdout so neither buffer can fill up while the other is read
            channel.set_combined_stderr(True)

            # Script output is arbitrary bytes, a text mode file would raise on anything that is not UTF-8
            with channel.makefile("rb") as output:
                for line in output:
                    logger.info("[%s] %s", self.host, line.decode("utf-8", "replace").rstrip("\r\n"))

            exit_status = channel.recv_exit_status()

        except (paramiko.SSHException, OSError, EOFError) as e:
            raise UnreachableHostError("Connection to {} lost while running [{}]: {}".format(self.host, command, e)) from e

        logger.info("[%s] exited with status %s", command, exit_status)
        return exit_status

    # ////////////////////// Helpers ////////////////////// #

    def _run_command(self, command, get_pty=False):
        """
            This is a simple wrapper method around exec_command() that stores stdin, stdout, and stderr in the streams
            class variable.

            :param str command: Command to run
        """

        stdin, stdout, stderr = self.ssh.exec_command(command, get_pty=get_pty)
        self.streams["in"] = stdin
        self.streams["out"] = stdout
        self.streams["err"] = stderr

    def _ssh_connect(self):
        """
            This method will connect to an ssh server given its class variables instantiated in the init method.
            Failures are raised as AuthenticationError or UnreachableHostError.
        """

        logger.debug("SSH Connecting to: Host-%s:%s, Username-%s", self.host, self.port, self.username)
        self.ssh = paramiko.SSHClient()

        try:
            self.ssh.load_host_keys(self.known_hosts_path)
            self.ssh.set_missing_host_key_policy(paramiko.RejectPolicy())
            self.ssh.connect(hostname=self.host,
                             port=self.port,
                             username=self.username,
                             key_filename=self.key_path,
                             timeout=self.timeout,
                             allow_agent=False,
                             look_for_keys=False)

        except paramiko.AuthenticationException as e:
            self.close()
            raise AuthenticationError("Key not authorized for {}@{} [{}]".format(self.username, self.host, e)) from e

        except paramiko.BadHostKeyException as e:
            self.close()
            raise UnreachableHostError("Host key of {} does not match the known hosts record [{}]".format(self.host, e)) from e

        except (paramiko.SSHException, OSError) as e:
            self.close()
            raise UnreachableHostError("Could not connect to {}:{} [{}]".format(self.host, self.port, e)) from e

        logger.debug("Connected")
