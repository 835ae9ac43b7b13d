from __future__ import annotations


class DomainError(Exception):
    """Base for domain errors."""


class DiscoveryUnavailableError(DomainError):
    """Pool or lock discovery could not be completed; the refresh is aborted."""


class MalformedDiscoveryDataError(DiscoveryUnavailableError):
    """Discovery payload could not be parsed into pool or lock records."""


class SnapshotCancelledError(DomainError):
    """Refresh abandoned by its caller before the snapshot was published."""


class SnapshotNotReadyError(DomainError):
    """No snapshot has been published yet."""
