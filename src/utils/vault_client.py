"""
Vault Client Utility for Replication Verification

Reads replication peer configuration from the HashiCorp Vault KV v2 engine.
Each peer is stored as one secret under a common path, holding the peer
cluster's connection string and optional credentials.
"""

import os
from typing import Dict, Any, Optional
import hvac
from hvac.exceptions import VaultError, InvalidPath
import logging

logger = logging.getLogger(__name__)

DEFAULT_PEERS_PATH = "replication-peers"


class VaultClient:
    """
    Client for reading replication peers from HashiCorp Vault.

    Intended for scoped use (``with VaultClient(...) as vault:``); the
    connection is released on exit whatever the outcome.
    """

    def __init__(
        self,
        vault_url: Optional[str] = None,
        vault_token: Optional[str] = None,
        verify_ssl: bool = True,
        mount_point: str = "secret",
        peers_path: str = DEFAULT_PEERS_PATH
    ):
        """
        Initialize Vault client.

        Args:
            vault_url: Vault server URL (defaults to VAULT_ADDR env var)
            vault_token: Vault authentication token (defaults to VAULT_TOKEN env var)
            verify_ssl: Whether to verify SSL certificates
            mount_point: KV secrets engine mount point
            peers_path: Path under the mount point holding one secret per peer

        Raises:
            ValueError: If required parameters are missing
            VaultError: If connection to Vault fails
        """
        self.vault_url = vault_url or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.mount_point = mount_point
        self.peers_path = peers_path.strip("/")

        if not self.vault_url:
            raise ValueError("Vault URL must be provided via parameter or VAULT_ADDR environment variable")

        if not self.vault_token:
            raise ValueError("Vault token must be provided via parameter or VAULT_TOKEN environment variable")

        try:
            self.client = hvac.Client(
                url=self.vault_url,
                token=self.vault_token,
                verify=verify_ssl
            )

            if not self.client.is_authenticated():
                raise VaultError("Failed to authenticate with Vault")

            logger.debug(f"Connected to Vault at {self.vault_url}")

        except Exception as e:
            logger.error(f"Failed to initialize Vault client: {e}")
            raise VaultError(f"Vault initialization failed: {e}")

    def get_secret(self, path: str) -> Dict[str, Any]:
        """
        Retrieve a secret from Vault.

        Args:
            path: Secret path relative to the mount point

        Returns:
            Dictionary containing secret data

        Raises:
            InvalidPath: If secret path does not exist
            VaultError: If retrieval fails
        """
        if self.client is None:
            raise VaultError("Vault client is closed")

        try:
            logger.debug(f"Retrieving secret from path: {self.mount_point}/data/{path}")
            response = self.client.secrets.kv.v2.read_secret_version(
                path=path,
                mount_point=self.mount_point
            )

            if not response or "data" not in response:
                raise InvalidPath(f"No data found at path: {path}")

            return response["data"].get("data") or {}

        except InvalidPath:
            logger.debug(f"Secret not found at path: {path}")
            raise
        except Exception as e:
            logger.error(f"Failed to retrieve secret from {path}: {e}")
            raise VaultError(f"Secret retrieval failed: {e}")

    def get_peer_config(self, peer_id: str) -> Dict[str, Any]:
        """
        Retrieve the stored configuration of a replication peer.

        Args:
            peer_id: Replication peer identifier

        Returns:
            Peer configuration (cluster_key, and optionally username/password)

        Raises:
            ValueError: If peer_id is empty
            InvalidPath: If the peer is not registered
            VaultError: If retrieval fails
        """
        if not peer_id:
            raise ValueError("Peer id must be a non-empty string")

        return self.get_secret(f"{self.peers_path}/{peer_id}")

    def close(self):
        """Close the Vault client connection."""
        if self.client is not None:
            adapter = getattr(self.client, "adapter", None)
            if adapter is not None and hasattr(adapter, "close"):
                adapter.close()
        self.client = None
        logger.debug("Vault client connection closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
