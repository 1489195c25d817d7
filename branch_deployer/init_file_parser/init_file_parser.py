#!/usr/bin/env python3

import json
import logging
import os
from collections import namedtuple

from schema import And, Optional, Schema, SchemaError

from branch_deployer.errors import ConfigError

logger = logging.getLogger(__name__)

CREDENTIALS_CFG_GROUP = "Credentials"
SECRET_ENV_VAR_CFG_KEY = "Secret Env Var"
KEY_PATH_CFG_KEY = "Key Path"
TIMEOUT_CFG_KEY = "Timeout"

SOURCE_CFG_GROUP = "Source"
REPOSITORY_CFG_KEY = "Repository"
WORKSPACE_CFG_KEY = "Workspace"

PIPELINES_CFG_GROUP = "Pipelines"
HOST_CFG_KEY = "Host"
USER_CFG_KEY = "User"
COMMAND_CFG_KEY = "Command"
PORT_CFG_KEY = "Port"

DEFAULT_PORT = 22
DEFAULT_TIMEOUT = 30

PIPELINE_VALIDATION = {
    HOST_CFG_KEY: And(str, len, error="Host must be a non-empty string"),
    USER_CFG_KEY: And(str, len, error="User must be a non-empty string"),
    COMMAND_CFG_KEY: And(str, os.path.isabs, error="Command must be an absolute path to a script"),
    Optional(PORT_CFG_KEY): And(int, lambda port: 0 < port < 65536, error="Port must be in 1-65535")
}

CFG_FILE_VALIDATION = Schema({
    CREDENTIALS_CFG_GROUP: {
        SECRET_ENV_VAR_CFG_KEY: And(str, len),
        KEY_PATH_CFG_KEY: And(str, len),
        Optional(TIMEOUT_CFG_KEY): And(int, lambda timeout: timeout > 0)
    },
    Optional(SOURCE_CFG_GROUP): {
        REPOSITORY_CFG_KEY: And(str, len),
        WORKSPACE_CFG_KEY: And(str, len)
    },
    PIPELINES_CFG_GROUP: And({And(str, len): PIPELINE_VALIDATION}, len)
})

# One branch maps to exactly one target host, user and command.
PipelineDefinition = namedtuple("PipelineDefinition", ["branch", "host", "user", "command", "port"])


def reject_duplicate_keys(pairs):
    """
        object_pairs_hook for json.load(). A plain dict would keep the last of two identical keys, which would let a
        second definition for a branch silently replace the first one.
    """

    ret_val = {}
    for key, value in pairs:
        if key in ret_val:
            raise ConfigError("Duplicate key [{}] in init file".format(key))
        ret_val[key] = value
    return ret_val


class InitFileParser():
    """
        Loads the branch to pipeline mapping and the credential settings from a JSON init file.
    """

    def __init__(self, init_file_path):

        self.init_file_path = init_file_path

        self.attributes = {
            "pipelines": None,
            "secret_env_var": None,
            "key_path": None,
            "timeout": None,
            "source_repository": None,
            "source_workspace": None
        }

    def parse_init_file(self):
        """
            Reads and validates the init file, then populates the attributes dictionary. Errors are logged, not raised.

            :return: True if the init file was parsed, False otherwise.
        """
        ret_val = False

        try:
            with open(self.init_file_path) as init_json_file:
                init_json = json.load(init_json_file, object_pairs_hook=reject_duplicate_keys)

            CFG_FILE_VALIDATION.validate(init_json)

            credentials = init_json[CREDENTIALS_CFG_GROUP]
            self.attributes["secret_env_var"] = credentials[SECRET_ENV_VAR_CFG_KEY]
            self.attributes["key_path"] = os.path.abspath(os.path.expanduser(credentials[KEY_PATH_CFG_KEY]))
            self.attributes["timeout"] = credentials.get(TIMEOUT_CFG_KEY, DEFAULT_TIMEOUT)

            source = init_json.get(SOURCE_CFG_GROUP)
            if source is not None:
                self.attributes["source_repository"] = source[REPOSITORY_CFG_KEY]
                self.attributes["source_workspace"] = os.path.abspath(os.path.expanduser(source[WORKSPACE_CFG_KEY]))

            self.attributes["pipelines"] = {
                branch: PipelineDefinition(branch=branch,
                                           host=pipeline[HOST_CFG_KEY],
                                           user=pipeline[USER_CFG_KEY],
                                           command=pipeline[COMMAND_CFG_KEY],
                                           port=pipeline.get(PORT_CFG_KEY, DEFAULT_PORT))
                for branch, pipeline in init_json[PIPELINES_CFG_GROUP].items()
            }

            ret_val = True

        except SchemaError as e:
            logger.error("!!! ERROR: CFG file not correct format; Schema Error: [%s] !!!", e)

        except ConfigError as e:
            logger.error("!!! ERROR: %s !!!", e)

        except (OSError, ValueError) as e:
            logger.error("!!! ERROR: An error occurred when parsing init file [%s] !!!", e)

        return ret_val

    def __getattr__(self, item):
        if item == "attributes":
            raise AttributeError(item)
        ret_val = None
        if item in self.attributes:
            ret_val = self.attributes[item]
        else:
            raise AttributeError("No such attribute: " + item)
        return ret_val
