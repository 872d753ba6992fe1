# Vault - Content-Addressed Store Adapters
#
# The only component allowed to do remote I/O. Three implementations
# behind one async interface, picked at construction time:
#   InMemoryContentStore  process-local, for tests and ephemeral sessions
#   LocalContentStore     content-addressed files on disk (local-only stand-in)
#   HttpContentStore      remote blob service over HTTP (httpx), bounded retry
#
# Keys are namespaced per account: "{account_identity}:{record_id}".

import asyncio
import base64
import hashlib
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..exceptions import RecordNotFoundError, RemoteUnavailableError

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MAX_ATTEMPTS = 3
INITIAL_BACKOFF_SEC = 0.5
BACKOFF_MULTIPLIER = 2.0
MAX_BACKOFF_SEC = 8.0
REQUEST_TIMEOUT_SEC = 30


def storage_key(account_identity: str, record_id: str) -> str:
    """Build the per-account storage key for a record."""
    return f"{account_identity}:{record_id}"


def account_prefix(account_identity: str) -> str:
    return f"{account_identity}:"


def content_ref(key: str, blob: bytes) -> str:
    """Reference for a blob: its key plus a digest of its content."""
    return f"{key}#{hashlib.sha256(blob).hexdigest()[:16]}"


def ref_key(ref: str) -> str:
    """Storage key part of a reference."""
    return ref.split("#", 1)[0]


class ContentStore(ABC):
    """Abstract content-addressed blob store.

    All operations are coroutines and may fail with
    ``RemoteUnavailableError``; ``get`` raises ``RecordNotFoundError`` for
    an unknown reference.
    """

    name = "abstract"

    @abstractmethod
    async def put(self, key: str, blob: bytes) -> str:
        """Store ``blob`` under ``key`` and return its reference."""

    @abstractmethod
    async def get(self, ref: str) -> bytes:
        """Return the blob for ``ref``."""

    @abstractmethod
    async def delete(self, ref: str) -> bool:
        """Delete ``ref``. Returns False if it did not exist."""

    @abstractmethod
    async def list(self, prefix: str = "") -> List[str]:
        """References whose storage key starts with ``prefix``."""

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Release any held connections."""

    def describe(self) -> Dict[str, Any]:
        return {"backend": self.name}


class InMemoryContentStore(ContentStore):
    """Dict-backed store. Contents vanish with the process."""

    name = "memory"

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    async def put(self, key: str, blob: bytes) -> str:
        ref = content_ref(key, blob)
        self._blobs[ref] = bytes(blob)
        return ref

    async def get(self, ref: str) -> bytes:
        try:
            return self._blobs[ref]
        except KeyError:
            raise RecordNotFoundError(f"Blob not found: {ref}", key=ref) from None

    async def delete(self, ref: str) -> bool:
        return self._blobs.pop(ref, None) is not None

    async def list(self, prefix: str = "") -> List[str]:
        return sorted(ref for ref in self._blobs if ref_key(ref).startswith(prefix))

    def __len__(self) -> int:
        return len(self._blobs)


class LocalContentStore(ContentStore):
    """Content-addressed blobs as files in one directory.

    File names are the urlsafe-base64 of the reference so ``list`` can
    recover keys without an index.
    """

    name = "local"
    SUFFIX = ".blob"

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, ref: str) -> Path:
        encoded = base64.urlsafe_b64encode(ref.encode("utf-8")).decode("ascii").rstrip("=")
        return self.directory / f"{encoded}{self.SUFFIX}"

    @staticmethod
    def _ref_from_name(name: str) -> Optional[str]:
        encoded = name[: -len(LocalContentStore.SUFFIX)]
        padded = encoded + "=" * (-len(encoded) % 4)
        try:
            return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None

    async def put(self, key: str, blob: bytes) -> str:
        ref = content_ref(key, blob)
        path = self._path(ref)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
            with os.fdopen(fd, "wb") as f:
                f.write(blob)
            os.replace(tmp_name, path)
            os.chmod(path, 0o600)
        except OSError as exc:
            raise RemoteUnavailableError(f"Local blob write failed: {exc}") from exc
        return ref

    async def get(self, ref: str) -> bytes:
        path = self._path(ref)
        if not path.exists():
            raise RecordNotFoundError(f"Blob not found: {ref}", key=ref)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise RemoteUnavailableError(f"Local blob read failed: {exc}") from exc

    async def delete(self, ref: str) -> bool:
        path = self._path(ref)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise RemoteUnavailableError(f"Local blob delete failed: {exc}") from exc

    async def list(self, prefix: str = "") -> List[str]:
        refs = []
        for path in self.directory.glob(f"*{self.SUFFIX}"):
            ref = self._ref_from_name(path.name)
            if ref is not None and ref_key(ref).startswith(prefix):
                refs.append(ref)
        return sorted(refs)

    def describe(self) -> Dict[str, Any]:
        return {"backend": self.name, "directory": str(self.directory)}


class HttpContentStore(ContentStore):
    """Remote blob service client.

    Endpoints (relative to ``base_url``)::

        PUT    /blobs/{key}        body = blob   → {"ref": "..."}
        GET    /blobs/{ref}                      → blob bytes
        DELETE /blobs/{ref}
        GET    /blobs?prefix=...                 → {"refs": [...]}
        GET    /health

    Failed calls are retried with exponential backoff, at most
    ``max_attempts`` times per call; then ``RemoteUnavailableError``.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = REQUEST_TIMEOUT_SEC,
        initial_backoff: float = INITIAL_BACKOFF_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.initial_backoff = initial_backoff
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": "TieredVault/1.0"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute a request with bounded retry + exponential backoff.

        404 responses are returned to the caller; other 4xx fail at once.
        """
        backoff = self.initial_backoff
        last_error = "no attempt made"

        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = await self._get_client().request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                wait = backoff
            else:
                if resp.status_code < 400 or resp.status_code == 404:
                    return resp

                if resp.status_code == 429:
                    retry_after = resp.headers.get("Retry-After")
                    try:
                        wait = float(retry_after) if retry_after else backoff
                    except ValueError:
                        wait = backoff
                    last_error = "rate limited (429)"
                elif resp.status_code >= 500:
                    wait = backoff
                    last_error = f"server error {resp.status_code}"
                else:
                    raise RemoteUnavailableError(
                        f"Content store rejected {method} {url}: HTTP {resp.status_code}"
                    )

            if attempt < self.max_attempts:
                wait = min(wait, MAX_BACKOFF_SEC)
                logger.warning(
                    "Content store %s %s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    method, url, last_error, wait, attempt, self.max_attempts,
                )
                await asyncio.sleep(wait)
                backoff *= BACKOFF_MULTIPLIER

        raise RemoteUnavailableError(
            f"Content store {method} {url} failed after {self.max_attempts} attempts: {last_error}"
        )

    @staticmethod
    def _blob_url(ref: str) -> str:
        return f"/blobs/{quote(ref, safe='')}"

    # ------------------------------------------------------------------
    # ContentStore interface
    # ------------------------------------------------------------------

    async def put(self, key: str, blob: bytes) -> str:
        resp = await self._request(
            "PUT",
            self._blob_url(key),
            content=blob,
            headers={"Content-Type": "application/octet-stream"},
        )
        if resp.status_code == 404:
            raise RemoteUnavailableError("Content store has no blob endpoint (404)")
        try:
            ref = resp.json()["ref"]
        except (ValueError, KeyError, TypeError) as exc:
            raise RemoteUnavailableError("Content store returned a malformed put response") from exc
        if not isinstance(ref, str) or not ref:
            raise RemoteUnavailableError("Content store returned an empty reference")
        return ref

    async def get(self, ref: str) -> bytes:
        resp = await self._request("GET", self._blob_url(ref))
        if resp.status_code == 404:
            raise RecordNotFoundError(f"Blob not found: {ref}", key=ref)
        return resp.content

    async def delete(self, ref: str) -> bool:
        resp = await self._request("DELETE", self._blob_url(ref))
        return resp.status_code != 404

    async def list(self, prefix: str = "") -> List[str]:
        resp = await self._request("GET", "/blobs", params={"prefix": prefix})
        if resp.status_code == 404:
            return []
        try:
            refs = resp.json()["refs"]
        except (ValueError, KeyError, TypeError) as exc:
            raise RemoteUnavailableError("Content store returned a malformed list response") from exc
        return [r for r in refs if isinstance(r, str)]

    async def health_check(self) -> bool:
        try:
            resp = await self._get_client().get("/health")
            return resp.status_code < 400
        except httpx.HTTPError:
            return False

    def describe(self) -> Dict[str, Any]:
        return {
            "backend": self.name,
            "base_url": self.base_url,
            "max_attempts": self.max_attempts,
        }


def build_content_store(config) -> ContentStore:
    """Select the store implementation from configuration."""
    if config.remote_backend == "http":
        return HttpContentStore(
            config.remote_url,
            max_attempts=config.remote_max_attempts,
            timeout=config.remote_timeout,
        )
    if config.remote_backend == "local":
        return LocalContentStore(config.data_dir / "blobs")
    return InMemoryContentStore()
