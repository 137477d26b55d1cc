"""
Error taxonomy for replication verification.

Submission-time errors abort the whole job before any partition runs.
Partition-time errors abort a single partition attempt. Row divergence is
never an error; it is counted and logged.
"""


class VerificationError(Exception):
    """Base class for all verification errors."""
    pass


class InvalidArguments(VerificationError):
    """Raised for malformed flags, missing positionals or an invalid scan spec."""
    pass


class ReplicationDisabled(VerificationError):
    """Raised when verification is requested while replication is disabled."""
    pass


class PeerResolutionError(VerificationError):
    """Raised when a peer id cannot be turned into a PeerDescriptor."""

    def __init__(self, peer_id: str, message: str):
        super().__init__(message)
        self.peer_id = peer_id


class PeerNotFound(PeerResolutionError):
    """Raised when the registry holds no usable configuration for a peer."""
    pass


class MetadataUnavailable(PeerResolutionError):
    """Raised when the peer registry cannot be reached or read."""
    pass


class RemoteSessionError(VerificationError):
    """Raised when opening or reading the remote cursor fails."""
    pass


class CancellationError(VerificationError):
    """Raised inside a worker when its partition has been cancelled."""
    pass
