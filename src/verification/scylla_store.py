"""
Scylla storage adapter for replication verification.

Tables are wide-row cell stores:

    CREATE TABLE <keyspace>.<table> (
        row_key   blob,
        family    text,
        qualifier blob,
        value     blob,
        PRIMARY KEY ((row_key), family, qualifier)
    );

A cell's timestamp is WRITETIME(value) in microseconds. Scans run in token
order, which is the key order of a full-table scan. The local table is
partitioned into contiguous token ranges (start, end]; the remote session
scans from the token of the partition's first row to the end of the ring
and is read only as far as the local partition goes.
"""

import logging
import re
import threading
from itertools import groupby
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from cassandra import DriverException
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import Cluster, NoHostAvailable
from cassandra.query import SimpleStatement

from src.verification.config import ClusterConfig
from src.verification.errors import InvalidArguments, RemoteSessionError
from src.verification.interfaces import LocalTable, RemoteSession, RemoteSessionFactory
from src.verification.model import Cell, Partition, PeerDescriptor, Row
from src.verification.scan_spec import ScanSpec

logger = logging.getLogger(__name__)

MIN_TOKEN = -2 ** 63
MAX_TOKEN = 2 ** 63 - 1

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,47}$")

_SELECT_CELLS = "SELECT row_key, family, qualifier, value, WRITETIME(value) AS ts FROM {table}"

_DRIVER_ERRORS = (DriverException, NoHostAvailable)


def validate_identifier(name: str, kind: str = "table") -> str:
    """
    Check that a keyspace or table name is a plain CQL identifier.

    Raises:
        InvalidArguments: If the name could not be used unquoted in CQL
    """
    if not name or not _IDENTIFIER.match(name):
        raise InvalidArguments(f"Invalid {kind} name: {name!r}")
    return name


def split_token_ring(splits: int) -> List[Partition]:
    """
    Split the Murmur3 token ring into contiguous ranges.

    Args:
        splits: Number of partitions (at least 1)

    Returns:
        Partitions with (start, end] token bounds covering the whole ring
    """
    if splits < 1:
        raise InvalidArguments(f"Splits must be positive, got {splits}")

    width = (MAX_TOKEN - MIN_TOKEN) // splits
    bounds = [MIN_TOKEN + i * width for i in range(splits)] + [MAX_TOKEN]

    return [Partition(i, bounds[i], bounds[i + 1]) for i in range(splits)]


def rows_from_records(records: Iterable, spec: ScanSpec) -> Iterator[Row]:
    """
    Group CQL records into Rows, applying the scan spec to every cell.

    Records must arrive grouped by row key, as a token-ordered scan returns
    them. Rows left with no cells are skipped.
    """
    for key, group in groupby(records, key=lambda record: record.row_key):
        row_key = bytes(key)
        cells = [
            Cell(row_key, record.family, bytes(record.qualifier), record.ts, bytes(record.value))
            for record in group
            if record.value is not None and spec.admits(record.family, record.ts // 1000)
        ]
        cells = spec.limit_versions(cells)
        if cells:
            yield Row(row_key, tuple(cells))


def connect_cluster(
    contact_points: Tuple[str, ...],
    port: int,
    keyspace: str,
    username: Optional[str] = None,
    password: Optional[str] = None
):
    """
    Connect to a Scylla cluster.

    Returns:
        (cluster, session) tuple; the caller owns cluster.shutdown()
    """
    auth_provider = None
    if username:
        auth_provider = PlainTextAuthProvider(username=username, password=password)

    logger.info(f"Connecting to ScyllaDB at {','.join(contact_points)}:{port}/{keyspace}")
    cluster = Cluster(list(contact_points), port=port, auth_provider=auth_provider)
    try:
        session = cluster.connect(keyspace)
    except Exception:
        cluster.shutdown()
        raise
    return cluster, session


class ScyllaTable(LocalTable):
    """Local table scanned one token range at a time."""

    def __init__(self, cluster_config: ClusterConfig, table_name: str, splits: int = 16):
        """
        Initialize the local table.

        Args:
            cluster_config: Local cluster connection settings
            table_name: Table to verify
            splits: Number of token-range partitions
        """
        self.cluster_config = cluster_config
        self.name = validate_identifier(table_name)
        validate_identifier(cluster_config.keyspace, "keyspace")
        self.splits = splits
        self.cluster = None
        self.session = None

    def connect(self) -> "ScyllaTable":
        if self.session is None:
            self.cluster, self.session = connect_cluster(
                self.cluster_config.contact_points,
                self.cluster_config.port,
                self.cluster_config.keyspace,
                self.cluster_config.username,
                self.cluster_config.password
            )
        return self

    def close(self) -> None:
        if self.cluster is not None:
            self.cluster.shutdown()
        self.cluster = None
        self.session = None

    def __enter__(self) -> "ScyllaTable":
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def partitions(self, spec: ScanSpec) -> List[Partition]:
        return split_token_ring(self.splits)

    def scan_partition(self, partition: Partition, spec: ScanSpec) -> Iterator[Row]:
        """Yield the rows whose token falls in (partition.start, partition.end]."""
        if self.session is None:
            raise RuntimeError("ScyllaTable is not connected")

        statement = SimpleStatement(
            _SELECT_CELLS.format(table=self.name)
            + " WHERE token(row_key) > %s AND token(row_key) <= %s",
            fetch_size=spec.fetch_size
        )
        logger.debug(f"Scanning local {partition}")
        records = self.session.execute(statement, (partition.start, partition.end))
        yield from rows_from_records(records, spec)


class ScyllaRemoteSession(RemoteSession):
    """Cursor over the peer's table starting at a given row."""

    def __init__(self, records: Iterable, spec: ScanSpec):
        self.spec = spec
        self._rows = rows_from_records(records, spec)
        self._exhausted = False
        self._closed = False

    def next_row(self) -> Optional[Row]:
        if self._closed:
            raise RemoteSessionError("Remote session is closed")
        if self._exhausted:
            return None

        try:
            return next(self._rows)
        except StopIteration:
            self._exhausted = True
            return None
        except _DRIVER_ERRORS as e:
            raise RemoteSessionError(f"Remote scan failed: {e}") from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._rows.close()


class ScyllaSessionFactory(RemoteSessionFactory):
    """
    Opens remote sessions against peer clusters.

    One driver connection is kept per peer and shared by all partition
    workers (the driver session is thread-safe); every open_session() call
    gets its own cursor.
    """

    def __init__(self, table_name: str):
        self.table_name = validate_identifier(table_name)
        self._connections: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def open_session(self, peer: PeerDescriptor, spec: ScanSpec, start_key: bytes) -> ScyllaRemoteSession:
        remote_spec = spec.with_start_row(start_key)
        session = self._session_for(peer)

        statement = SimpleStatement(
            _SELECT_CELLS.format(table=self.table_name)
            + " WHERE token(row_key) >= token(%s)",
            fetch_size=remote_spec.fetch_size
        )

        try:
            records = session.execute(statement, (remote_spec.start_row,))
        except _DRIVER_ERRORS as e:
            raise RemoteSessionError(
                f"Failed to open remote scan on peer '{peer.peer_id}': {e}"
            ) from e

        return ScyllaRemoteSession(iter(records), remote_spec)

    def close(self) -> None:
        with self._lock:
            connections, self._connections = self._connections, {}
        for cluster, _ in connections.values():
            cluster.shutdown()

    def __enter__(self) -> "ScyllaSessionFactory":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _session_for(self, peer: PeerDescriptor):
        with self._lock:
            if peer.peer_id not in self._connections:
                validate_identifier(peer.keyspace, "keyspace")
                try:
                    self._connections[peer.peer_id] = connect_cluster(
                        peer.contact_points,
                        peer.port,
                        peer.keyspace,
                        peer.username,
                        peer.password
                    )
                except _DRIVER_ERRORS as e:
                    raise RemoteSessionError(
                        f"Failed to connect to peer '{peer.peer_id}' at {peer.cluster_key}: {e}"
                    ) from e
            return self._connections[peer.peer_id][1]
