"""ArtifactCache: remote location -> local directory of files.

Locations:
    huggingface:<org>/<repo>   every repo file matching a regex pattern
    http(s)://host/path/file   that single file

Layout under ``cache_dir``::

    <sanitized-location>-<digest>/manifest.json
    <sanitized-location>-<digest>/<files...>

A directory counts as materialized only when its manifest decodes and
lists files that all exist. Anything less is wiped and downloaded again
from scratch.
"""
from __future__ import annotations

import hashlib
import logging
import re
import shutil
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from core.events import ArtifactDownloaded, emit
from core.singleflight import SingleFlight

from .errors import ArtifactIOError, InvalidLocation, UnknownLocationScheme
from .manifest import is_materialized, read_manifest, write_manifest
from .remote import RemoteFetcher
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

HUB_PREFIX = "huggingface:"
DEFAULT_PATTERN = r"\.(json|md|ot|txt)$"
_UNSAFE = (":", "/", "\\")


@dataclass(frozen=True)
class ArtifactPaths:
    """Local paths for one definition's artifacts.

    weights: directory (hub) or file (http) for the primary location.
    files: every file of the primary artifact, manifest order.
    tokenizer: artifact directory of the auxiliary tokenizer location, if any.
    """

    weights: Path
    files: List[Path] = field(default_factory=list)
    tokenizer: Optional[Path] = None


def _is_http(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def _url_basename(location: str) -> str:
    name = PurePosixPath(urlsplit(location).path).name
    if not name:
        raise InvalidLocation(
            f"URL has no file name: {location}", location=location
        )
    return name


def parse_location(location: str) -> Tuple[str, str]:
    """Return ``(scheme, target)``: ``("huggingface", repo)`` or ``("http", url)``."""
    if location.startswith(HUB_PREFIX):
        repo = location[len(HUB_PREFIX):].strip("/")
        if not repo:
            raise InvalidLocation(
                f"empty repository name in {location!r}", location=location
            )
        return "huggingface", repo
    if _is_http(location):
        _url_basename(location)
        return "http", location
    raise UnknownLocationScheme(
        f"Unsupported location: {location}", location=location
    )


def _safe_relative(name: str, location: str) -> str:
    rel = PurePosixPath(name)
    if rel.is_absolute() or ".." in rel.parts:
        raise InvalidLocation(
            f"refusing file name outside artifact dir: {name}",
            location=location,
        )
    return rel.as_posix()


class ArtifactCache:
    def __init__(
        self,
        cache_dir: str | Path,
        fetcher: RemoteFetcher | None = None,
        default_pattern: str = DEFAULT_PATTERN,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.fetcher = fetcher or RemoteFetcher()
        self.default_pattern = default_pattern
        self._flight: SingleFlight[None] = SingleFlight()
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls, cfg, client=None, sleep=None) -> "ArtifactCache":
        """Build from an AggregatedConfig (``storage`` + ``download``)."""
        dl = cfg.download
        fetcher = RemoteFetcher(
            hub_endpoint=dl.hub_endpoint,
            retry=RetryPolicy.from_config(dl.retry, sleep=sleep),
            client=client,
            timeout_s=dl.timeout_s,
            chunk_size=dl.chunk_size,
        )
        return cls(cfg.storage.cache_dir, fetcher, dl.default_pattern)

    # --- path mapping (pure) ---------------------------------------------------
    def artifact_dir(self, location: str) -> Path:
        safe = location
        for ch in _UNSAFE:
            safe = safe.replace(ch, "_")
        digest = hashlib.sha256(location.encode("utf-8")).hexdigest()[:10]
        return self.cache_dir / f"{safe}-{digest}"

    def resolve_path(self, location: str) -> Path:
        directory = self.artifact_dir(location)
        if _is_http(location):
            return directory / _url_basename(location)
        return directory

    def needs_download(self, location: str) -> bool:
        return not is_materialized(self.artifact_dir(location))

    # --- acquisition -----------------------------------------------------------
    def acquire(self, params: Any) -> ArtifactPaths | None:
        """Materialize every location ``params`` declares (no-op when cached).

        Returns None for params without remote weights (remote API backends).
        """
        return self._acquire(params, force=False)

    def force(self, params: Any) -> ArtifactPaths | None:
        """Redownload unconditionally."""
        return self._acquire(params, force=True)

    def _acquire(self, params: Any, force: bool) -> ArtifactPaths | None:
        location = getattr(params, "location", None)
        if not location:
            return None
        pattern = getattr(params, "pattern", None)
        self._ensure(location, pattern, force)
        tokenizer = getattr(params, "tokenizer_location", None)
        if tokenizer:
            # Auxiliary artifact: own directory + manifest, default pattern.
            self._ensure(tokenizer, None, force)
        directory = self.artifact_dir(location)
        files = [directory / name for name in read_manifest(directory).files]
        return ArtifactPaths(
            weights=self.resolve_path(location),
            files=files,
            tokenizer=self.artifact_dir(tokenizer) if tokenizer else None,
        )

    def _location_lock(self, location: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(location)
            if lock is None:
                lock = self._locks[location] = threading.Lock()
            return lock

    def _ensure(self, location: str, pattern: str | None, force: bool) -> None:
        # Plain and forced calls get separate flights, serialized per location.
        def _run() -> None:
            with self._location_lock(location):
                if not force and not self.needs_download(location):
                    logger.debug("artifact cached location=%s", location)
                    return
                self._materialize(location, pattern, force)

        self._flight.do((location, force), _run)

    def _materialize(
        self, location: str, pattern: str | None, forced: bool
    ) -> None:
        scheme, target = parse_location(location)
        regex = None
        if scheme == "huggingface":
            try:
                regex = re.compile(pattern or self.default_pattern)
            except re.error as e:
                raise InvalidLocation(
                    f"invalid file pattern {pattern!r}: {e}", location=location
                ) from e
        directory = self.artifact_dir(location)
        t0 = time.time()
        try:
            if directory.exists():
                shutil.rmtree(directory)
            directory.mkdir(parents=True)
        except OSError as e:
            raise ArtifactIOError(
                f"cannot prepare {directory}: {e}", location=location
            ) from e
        logger.info(
            "downloading artifact location=%s scheme=%s forced=%s",
            location,
            scheme,
            forced,
        )
        if scheme == "huggingface":
            files = self._download_repo(target, regex, directory, location)
        else:
            name = _url_basename(target)
            self.fetcher.download(target, directory / name)
            files = [name]
        write_manifest(directory, files)
        download_ms = int((time.time() - t0) * 1000)
        logger.info(
            "artifact ready location=%s files=%d ms=%d",
            location,
            len(files),
            download_ms,
        )
        emit(
            ArtifactDownloaded(
                location=location,
                scheme=scheme,
                files=len(files),
                download_ms=download_ms,
                forced=forced,
            )
        )

    def _download_repo(
        self, repo: str, regex: re.Pattern, directory: Path, location: str
    ) -> List[str]:
        info = self.fetcher.model_info(repo)
        written: List[str] = []
        for name in info.filenames():
            if not regex.search(name):
                continue
            rel = _safe_relative(name, location)
            self.fetcher.download(
                self.fetcher.file_url(repo, rel), directory / rel
            )
            written.append(rel)
        if not written:
            logger.warning(
                "no repository files matched pattern location=%s", location
            )
        return written


__all__ = ["ArtifactCache", "ArtifactPaths", "parse_location", "DEFAULT_PATTERN"]
