"""
Connection factory implementation
"""
from typing import Dict, Any

from ...core.client import RemoteClient
from ...core.constants import DEFAULT_SSH_PORT, DEFAULT_SSH_TIMEOUT
from ...core.interfaces import ConnectionFactory
from ...core.utils import load_ssh_config


class RemoteConnectionFactory(ConnectionFactory):
    """
    RemoteClient connection factory.

    The client connects on first use, so an unreachable host surfaces
    as a channel error from the first remote step.
    """
    
    def create(self, params: Dict[str, Any]) -> RemoteClient:
        """
        Build an SSH client from connection parameters.

        Auth selection: explicit key, then password, then an
        IdentityFile from ~/.ssh/config, then agent / default keys.
        """
        key = params.get("key")
        if not key and not params.get("password"):
            key = load_ssh_config(params["host"]).get("key_file")

        if key:
            auth_method = "key"
        elif params.get("password"):
            auth_method = "password"
        else:
            auth_method = "agent"
        
        return RemoteClient(
            host=params["host"],
            user=params["user"],
            port=params.get("port", DEFAULT_SSH_PORT),
            auth_method=auth_method,
            password=params.get("password"),
            key_path=key,
            timeout=params.get("timeout", DEFAULT_SSH_TIMEOUT),
        )
