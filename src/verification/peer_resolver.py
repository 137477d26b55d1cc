"""
Peer Resolver

Turns a replication peer id into a PeerDescriptor by reading the peer's
stored configuration from the metadata registry (Vault). Resolution happens
once per job, before any partition is scheduled.
"""

import logging
from typing import Any, Dict

from hvac.exceptions import InvalidPath, VaultError

from src.utils.vault_client import VaultClient
from src.verification.config import RegistryConfig
from src.verification.errors import MetadataUnavailable, PeerNotFound
from src.verification.model import PeerDescriptor

logger = logging.getLogger(__name__)

DEFAULT_CQL_PORT = 9042


def parse_cluster_key(cluster_key: str, default_keyspace: str) -> Dict[str, Any]:
    """
    Parse a peer cluster key.

    Format: ``host1,host2[:port][:keyspace]``. A non-numeric second field is
    taken as the keyspace, so ``hosts:keyspace`` is accepted too.

    Args:
        cluster_key: Connection string stored for the peer
        default_keyspace: Keyspace used when the key does not name one

    Returns:
        Dictionary with contact_points, port and keyspace

    Raises:
        ValueError: If the key has no hosts or a malformed port
    """
    parts = [part.strip() for part in cluster_key.strip().split(":")]
    if len(parts) > 3:
        raise ValueError(f"Too many fields in cluster key '{cluster_key}'")

    contact_points = tuple(host.strip() for host in parts[0].split(",") if host.strip())
    if not contact_points:
        raise ValueError(f"No hosts in cluster key '{cluster_key}'")

    port = DEFAULT_CQL_PORT
    keyspace = default_keyspace
    rest = parts[1:]

    if rest and rest[0].isdigit():
        port = int(rest.pop(0))
        if not 0 < port < 65536:
            raise ValueError(f"Port out of range in cluster key '{cluster_key}'")
    elif len(rest) == 2:
        raise ValueError(f"Malformed port in cluster key '{cluster_key}'")

    if rest and rest[0]:
        keyspace = rest[0]

    return {"contact_points": contact_points, "port": port, "keyspace": keyspace}


class PeerResolver:
    """
    Resolves replication peers through the Vault-backed peer registry.

    Each resolve() call opens a registry connection and releases it before
    returning, on success and on failure.
    """

    def __init__(self, registry: RegistryConfig, default_keyspace: str, client_factory=VaultClient):
        """
        Initialize the resolver.

        Args:
            registry: Registry connection settings
            default_keyspace: Keyspace assumed when a cluster key names none
            client_factory: Callable building a VaultClient (overridable in tests)
        """
        self.registry = registry
        self.default_keyspace = default_keyspace
        self._client_factory = client_factory

    def resolve(self, peer_id: str) -> PeerDescriptor:
        """
        Resolve a peer id to its connection descriptor.

        Args:
            peer_id: Replication peer identifier

        Returns:
            Immutable PeerDescriptor

        Raises:
            PeerNotFound: If no usable configuration is registered for the peer
            MetadataUnavailable: If the registry cannot be reached or read
        """
        if not peer_id:
            raise PeerNotFound(peer_id, "Peer id must be a non-empty string")

        config = self._fetch_peer_config(peer_id)

        cluster_key = config.get("cluster_key")
        if not cluster_key or not isinstance(cluster_key, str):
            raise PeerNotFound(peer_id, f"Peer '{peer_id}' has no cluster key configured")

        try:
            location = parse_cluster_key(cluster_key, self.default_keyspace)
        except ValueError as e:
            raise PeerNotFound(peer_id, f"Peer '{peer_id}' has an unusable cluster key: {e}") from e

        peer = PeerDescriptor(
            peer_id=peer_id,
            cluster_key=cluster_key,
            contact_points=location["contact_points"],
            port=location["port"],
            keyspace=location["keyspace"],
            username=config.get("username"),
            password=config.get("password")
        )

        logger.info(f"Peer cluster address for '{peer_id}': {cluster_key}")
        return peer

    def _fetch_peer_config(self, peer_id: str) -> Dict[str, Any]:
        try:
            with self._open_registry() as vault:
                return vault.get_peer_config(peer_id)
        except InvalidPath as e:
            raise PeerNotFound(peer_id, f"Peer '{peer_id}' is not registered") from e
        except (VaultError, ValueError) as e:
            logger.error(f"Peer registry unavailable while resolving '{peer_id}': {e}")
            raise MetadataUnavailable(
                peer_id,
                f"Could not read configuration of peer '{peer_id}': {e}"
            ) from e

    def _open_registry(self) -> VaultClient:
        return self._client_factory(
            vault_url=self.registry.vault_url,
            vault_token=self.registry.vault_token,
            verify_ssl=self.registry.verify_ssl,
            mount_point=self.registry.mount_point,
            peers_path=self.registry.peers_path
        )
