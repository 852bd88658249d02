"""HTTP access to remote artifact sources (model hub + plain URLs).

All requests go through one ``httpx.Client`` and the configured
``RetryPolicy``. HTTP errors are normalized to ``NetworkFailure`` so the
retry layer can decide on ``retryable`` alone.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ArtifactIOError, ManifestCodecError, NetworkFailure
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class HubSibling(BaseModel):
    rfilename: str

    model_config = ConfigDict(extra="ignore")


class HubModelInfo(BaseModel):
    """Subset of ``GET {hub}/api/models/{repo}`` we rely on."""

    model_id: Optional[str] = Field(default=None, alias="modelId")
    siblings: List[HubSibling] = Field(default_factory=list)
    last_modified: Optional[str] = Field(default=None, alias="lastModified")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def filenames(self) -> List[str]:
        return [s.rfilename for s in self.siblings]


def _failure(url: str, e: Exception) -> NetworkFailure:
    if isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code
        return NetworkFailure(
            f"GET {url} returned {status}",
            location=url,
            retryable=status >= 500,
            status=status,
        )
    return NetworkFailure(f"GET {url} failed: {e}", location=url, retryable=True)


class RemoteFetcher:
    def __init__(
        self,
        hub_endpoint: str = "https://huggingface.co",
        retry: RetryPolicy | None = None,
        client: httpx.Client | None = None,
        timeout_s: float = 60.0,
        chunk_size: int = 1024 * 1024,
    ) -> None:
        self.hub_endpoint = hub_endpoint.rstrip("/")
        self.retry = retry or RetryPolicy()
        self._client = client or httpx.Client(
            timeout=timeout_s, follow_redirects=True
        )
        self._chunk_size = chunk_size

    def close(self) -> None:
        self._client.close()

    # --- hub -----------------------------------------------------------------
    def model_info_url(self, repo: str) -> str:
        return f"{self.hub_endpoint}/api/models/{repo}"

    def file_url(self, repo: str, rfilename: str) -> str:
        return f"{self.hub_endpoint}/{repo}/resolve/main/{rfilename}"

    def model_info(self, repo: str) -> HubModelInfo:
        url = self.model_info_url(repo)
        data = self.retry.call(lambda: self._get_json(url), url)
        try:
            return HubModelInfo.model_validate(data)
        except ValidationError as e:
            raise ManifestCodecError(
                f"unexpected hub metadata for {repo}: {e}", location=url
            ) from e

    # --- raw -----------------------------------------------------------------
    def _get_json(self, url: str) -> Any:
        try:
            resp = self._client.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise _failure(url, e) from e
        try:
            return resp.json()
        except ValueError as e:
            raise ManifestCodecError(
                f"invalid JSON from {url}: {e}", location=url
            ) from e

    def download(self, url: str, dest: Path) -> int:
        """Stream ``url`` into ``dest`` (retrying); returns bytes written."""
        return self.retry.call(lambda: self._download_once(url, dest), url)

    def _download_once(self, url: str, dest: Path) -> int:
        written = 0
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with self._client.stream("GET", url) as resp:
                resp.raise_for_status()
                with dest.open("wb") as fh:
                    for chunk in resp.iter_bytes(self._chunk_size):
                        fh.write(chunk)
                        written += len(chunk)
        except httpx.HTTPError as e:
            raise _failure(url, e) from e
        except OSError as e:
            raise ArtifactIOError(
                f"cannot write {dest}: {e}", location=url
            ) from e
        logger.debug("fetched url=%s bytes=%d", url, written)
        return written


__all__ = ["HubModelInfo", "HubSibling", "RemoteFetcher"]
