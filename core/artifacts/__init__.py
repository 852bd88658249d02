"""Artifact cache: downloads model weights once and keeps them on disk."""

from .cache import ArtifactCache, ArtifactPaths, parse_location  # noqa: F401
from .errors import (  # noqa: F401
    ArtifactError,
    ArtifactIOError,
    InvalidLocation,
    ManifestCodecError,
    NetworkFailure,
    UnknownLocationScheme,
)
from .remote import HubModelInfo, RemoteFetcher  # noqa: F401
from .retry import RetryPolicy  # noqa: F401

__all__ = [
    "ArtifactCache",
    "ArtifactPaths",
    "parse_location",
    "ArtifactError",
    "ArtifactIOError",
    "InvalidLocation",
    "ManifestCodecError",
    "NetworkFailure",
    "UnknownLocationScheme",
    "HubModelInfo",
    "RemoteFetcher",
    "RetryPolicy",
]
