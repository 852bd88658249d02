"""Artifact cache exception hierarchy."""
from __future__ import annotations


class ArtifactError(Exception):
    """Base artifact exception.

    ``location`` carries the remote location (or URL) being processed so
    callers can log context without parsing messages.
    """

    def __init__(self, message: str, location: str | None = None) -> None:
        super().__init__(message)
        self.location = location


class ArtifactIOError(ArtifactError):
    """Filesystem failure while materializing an artifact."""


class ManifestCodecError(ArtifactError):
    """Manifest or metadata JSON could not be encoded / decoded."""


class NetworkFailure(ArtifactError):
    """HTTP transport failure or error status.

    retryable: True for transport errors and 5xx responses.
    status: HTTP status code when the server answered.
    """

    def __init__(
        self,
        message: str,
        location: str | None = None,
        retryable: bool = False,
        status: int | None = None,
    ) -> None:
        super().__init__(message, location)
        self.retryable = retryable
        self.status = status


class UnknownLocationScheme(ArtifactError):
    """Location is neither a hub reference nor an HTTP(S) URL."""


class InvalidLocation(ArtifactError):
    """Malformed location or filename pattern."""


__all__ = [
    "ArtifactError",
    "ArtifactIOError",
    "ManifestCodecError",
    "NetworkFailure",
    "UnknownLocationScheme",
    "InvalidLocation",
]
