#!/usr/bin/env python3

"""
    This python file holds the credential stager. It turns the private key held by the CI secret store into a key file
    that only the current user can read, and records the target host's public key in a known hosts file so that the
    ssh_agent can verify the host it connects to.

    The stager is a context manager: both files only exist inside the with block and are deleted on the way out,
    whether the deployment succeeded or not.
"""

import io
import logging
import os
import socket
import tempfile

import paramiko
from paramiko.hostkeys import HostKeyEntry

from branch_deployer.errors import CredentialError

logger = logging.getLogger(__name__)

KEY_FILE_MODE = 0o600
SSH_DIR_MODE = 0o700

# Key types the staged secret may hold
PRIVATE_KEY_CLASSES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)


def load_private_key(secret):
    """
        Checks that the secret is a private key paramiko can use.

        :param str secret: The secret value as read from the secret store.

        :return: The loaded paramiko key.
    """

    if not secret or not secret.strip():
        raise CredentialError("Secret is empty or absent")

    for key_class in PRIVATE_KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(secret))
        except (paramiko.SSHException, ValueError):
            continue

    raise CredentialError("Secret is not an unencrypted RSA, ECDSA or Ed25519 private key")


def known_hosts_name(host, port):
    """
        :return: The host as OpenSSH writes it in known_hosts, [host]:port for non standard ports.
    """

    if port == 22:
        return host
    return "[{}]:{}".format(host, port)


def fetch_host_key(host, port, timeout):
    """
        Opens an SSH transport to the host only long enough to read its public key, the same thing ssh-keyscan does.

        :return: The host's paramiko public key.
    """

    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise CredentialError("Could not reach {}:{} for key retrieval [{}]".format(host, port, e)) from e

    transport = paramiko.Transport(sock)
    try:
        transport.start_client(timeout=timeout)
        return transport.get_remote_server_key()

    except (paramiko.SSHException, EOFError, OSError) as e:
        raise CredentialError("Key exchange with {}:{} failed [{}]".format(host, port, e)) from e

    finally:
        transport.close()


class CredentialStager():
    """
        Stages the key file and the known hosts record for one pipeline run. The known hosts record is a file of its
        own, created next to the key file, so entries from earlier runs or other tools can never shadow the key that
        was just fetched.
    """

    def __init__(self, secret, host, key_path, port=22, timeout=30):

        self.secret = secret
        self.host = host
        self.port = port
        self.key_path = key_path
        self.timeout = timeout

        self.known_hosts_path = None
        self.private_key = None
        self.host_key = None

        self._key_written = False

    def __enter__(self):

        try:
            self.stage()
        except BaseException:
            self.discard()
            raise

        return self

    def __exit__(self, exc_type, exc_value, traceback):

        self.discard()
        return False

    def stage(self):
        """
            Validates the secret, writes it to the key file and records the host's key in a run owned known hosts
            file. Any failure raises CredentialError and nothing is retried.
        """

        self.private_key = load_private_key(self.secret)
        self._write_key_file()

        logger.debug("Retrieving host key of %s", known_hosts_name(self.host, self.port))
        self.host_key = fetch_host_key(self.host, self.port, self.timeout)
        self._write_known_hosts()

    def discard(self):
        """
            Deletes the staged key file and the run's known hosts file. Files this stager did not create are left alone.
        """

        if self._key_written:
            self._remove(self.key_path)
            self._key_written = False

        if self.known_hosts_path is not None:
            self._remove(self.known_hosts_path)
            self.known_hosts_path = None

    # ////////////////////// Helpers ////////////////////// #

    def _write_key_file(self):

        try:
            os.makedirs(os.path.dirname(self.key_path), mode=SSH_DIR_MODE, exist_ok=True)
            fd = os.open(self.key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, KEY_FILE_MODE)

        except FileExistsError as e:
            raise CredentialError("Key file {} already exists, remove it or choose another Key Path".format(self.key_path)) from e

        except OSError as e:
            raise CredentialError("Could not create key file {} [{}]".format(self.key_path, e)) from e

        self._key_written = True
        try:
            with os.fdopen(fd, "w") as key_file:
                # Exactly 0600 whatever the umask
                os.fchmod(key_file.fileno(), KEY_FILE_MODE)
                key_file.write(self.secret)

        except OSError as e:
            raise CredentialError("Could not write key file {} [{}]".format(self.key_path, e)) from e

        logger.info("Staged %s key at %s", self.private_key.get_name(), self.key_path)

    def _write_known_hosts(self):

        fd, self.known_hosts_path = tempfile.mkstemp(prefix="known_hosts.", dir=os.path.dirname(self.key_path))

        entry = HostKeyEntry([known_hosts_name(self.host, self.port)], self.host_key)
        with os.fdopen(fd, "w") as known_hosts:
            known_hosts.write(entry.to_line())

        logger.info("Recorded %s key of %s in %s", self.host_key.get_name(), known_hosts_name(self.host, self.port), self.known_hosts_path)

    def _remove(self, path):

        try:
            os.remove(path)
            logger.debug("Removed %s", path)
        except FileNotFoundError:
            pass
