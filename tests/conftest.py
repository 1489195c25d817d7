"""
Shared fixtures for the branch_deployer unit tests.
"""

import io
import json

import paramiko
import pytest


@pytest.fixture(scope="session")
def rsa_key():
    """A real RSA key, generated once per test session."""
    return paramiko.RSAKey.generate(2048)


@pytest.fixture(scope="session")
def rsa_secret(rsa_key):
    """The RSA key serialized the way it would sit in the CI secret store."""
    buffer = io.StringIO()
    rsa_key.write_private_key(buffer)
    return buffer.getvalue()


@pytest.fixture
def base_config(tmp_path):
    """A valid init file layout with one pipeline per deployable branch."""
    return {
        "Credentials": {
            "Secret Env Var": "SSH_PRIVATE_KEY",
            "Key Path": str(tmp_path / "ssh" / "deploy_key"),
        },
        "Pipelines": {
            "dev": {"Host": "dev.example.com", "User": "deploy", "Command": "/opt/deploy/deploy.sh"},
            "staging": {"Host": "staging.example.com", "User": "deploy", "Command": "/opt/deploy/deploy.sh"},
            "main": {"Host": "prod.example.com", "User": "release", "Command": "/opt/deploy/deploy.sh", "Port": 2222},
        },
    }


@pytest.fixture
def write_init_file(tmp_path):
    """Factory writing an init file and returning its path."""

    def _write(content):
        path = tmp_path / "branch_deployer_init.json"
        if isinstance(content, str):
            path.write_text(content)
        else:
            path.write_text(json.dumps(content))
        return str(path)

    return _write


@pytest.fixture
def init_file(write_init_file, base_config):
    return write_init_file(base_config)
