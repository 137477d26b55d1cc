"""
Configuration for Replication Verification

One immutable VerifyConfig is built at submission from command-line
arguments and the environment, then passed explicitly to every component.
Precedence: command-line flag, then environment variable, then default.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from src.utils.vault_client import DEFAULT_PEERS_PATH
from src.verification.scan_spec import DEFAULT_FETCH_SIZE, MAX_TIMESTAMP

logger = logging.getLogger(__name__)

TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


def _pick(cli_value: Any, environ: Mapping[str, str], name: str, default: Any) -> Any:
    if cli_value is not None:
        return cli_value
    return environ.get(name, default)


@dataclass(frozen=True)
class ClusterConfig:
    """Connection settings for the local Scylla cluster."""

    contact_points: Tuple[str, ...] = ("localhost",)
    port: int = 9042
    keyspace: str = "app_data"
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class RegistryConfig:
    """Connection settings for the Vault peer registry."""

    vault_url: Optional[str] = None
    vault_token: Optional[str] = field(default=None, repr=False)
    mount_point: str = "secret"
    peers_path: str = DEFAULT_PEERS_PATH
    verify_ssl: bool = True


@dataclass(frozen=True)
class VerifyConfig:
    """Everything one verification job needs, fixed at submission."""

    peer_id: str
    table_name: str
    start_time: int = 0
    end_time: int = MAX_TIMESTAMP
    versions: Optional[int] = None
    families: Optional[str] = None
    local: ClusterConfig = ClusterConfig()
    registry: RegistryConfig = RegistryConfig()
    workers: int = 4
    splits: int = 16
    partition_attempts: int = 2
    fetch_size: int = DEFAULT_FETCH_SIZE
    replication_enabled: bool = True
    pushgateway_url: Optional[str] = None
    json_logging: bool = False

    @classmethod
    def from_args(cls, args, environ: Optional[Mapping[str, str]] = None) -> "VerifyConfig":
        """
        Build a configuration from parsed CLI arguments and the environment.

        Args:
            args: argparse.Namespace produced by the CLI parser
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Immutable VerifyConfig
        """
        environ = os.environ if environ is None else environ

        hosts = _pick(args.scylla_hosts, environ, "SCYLLA_HOSTS", "localhost")
        local = ClusterConfig(
            contact_points=tuple(h.strip() for h in hosts.split(",") if h.strip()),
            port=int(_pick(args.scylla_port, environ, "SCYLLA_PORT", 9042)),
            keyspace=_pick(args.keyspace, environ, "SCYLLA_KEYSPACE", "app_data"),
            username=environ.get("SCYLLA_USERNAME"),
            password=environ.get("SCYLLA_PASSWORD")
        )

        registry = RegistryConfig(
            vault_url=_pick(args.vault_url, environ, "VAULT_ADDR", None),
            vault_token=environ.get("VAULT_TOKEN"),
            mount_point=environ.get("VAULT_MOUNT_POINT", "secret"),
            peers_path=_pick(args.peers_path, environ, "VAULT_PEERS_PATH", DEFAULT_PEERS_PATH),
            verify_ssl=_env_bool(environ, "VAULT_VERIFY_SSL", True)
        )

        config = cls(
            peer_id=args.peer_id,
            table_name=args.table_name,
            start_time=args.starttime if args.starttime is not None else 0,
            end_time=args.endtime if args.endtime is not None else MAX_TIMESTAMP,
            versions=args.versions,
            families=args.families,
            local=local,
            registry=registry,
            workers=args.workers,
            splits=args.splits,
            partition_attempts=args.attempts,
            fetch_size=args.fetch_size,
            replication_enabled=_env_bool(environ, "REPLICATION_ENABLED", True),
            pushgateway_url=_pick(args.pushgateway, environ, "PUSHGATEWAY_URL", None),
            json_logging=args.json_logs or _env_bool(environ, "JSON_LOGGING", False)
        )

        logger.debug(f"Loaded configuration: {config}")
        return config
