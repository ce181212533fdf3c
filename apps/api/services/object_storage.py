"""
Object storage for uploaded content files.

Two backends:
- LocalObjectStore: files under a directory (development, tests)
- HttpObjectStore: REST object API (bucket/path addressing, bearer key)

Timeouts and retries live here, at the I/O boundary, and nowhere in the
domain services. Every failure surfaces as UpstreamError.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote
import logging
import threading
import time

import requests

from core.config import settings
from core.exceptions import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

# Status codes worth another attempt; everything else 4xx fails immediately.
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def _clean_path(path: str) -> str:
    parts = [p for p in (path or "").replace("\\", "/").split("/") if p]
    if not parts or any(p in (".", "..") for p in parts):
        raise ValidationError(f"Invalid object path: {path}", field="file_path")
    return "/".join(parts)


class ObjectStore(ABC):
    """Contract used by the submission service."""

    bucket: str

    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store bytes at `path`; returns the stored path."""

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Public URL of a stored object."""


class LocalObjectStore(ObjectStore):
    def __init__(self, root: str, bucket: str, public_base_url: str):
        self.root = Path(root)
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        clean = _clean_path(path)
        target = self.root / self.bucket / clean
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error(f"Local object write failed for {clean}", exc_info=True)
            raise UpstreamError("File upload failed, please retry", cause=e) from e
        return clean

    def get_public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{quote(_clean_path(path))}"


class HttpObjectStore(ObjectStore):
    """
    REST object API client.

    Upload:     POST {base_url}/object/{bucket}/{path}
    Public URL: {base_url}/object/public/{bucket}/{path}
    """

    def __init__(
        self,
        base_url: str,
        bucket: str,
        api_key: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = backoff_seconds
        self.session_factory = session_factory
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Session owned by the calling thread; upload workers never share one."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            self._local.session = session
        return session

    def _headers(self, content_type: Optional[str]) -> dict:
        headers = {"Content-Type": content_type or "application/octet-stream", "x-upsert": "false"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        clean = _clean_path(path)
        url = f"{self.base_url}/object/{self.bucket}/{quote(clean)}"
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_retries):
            try:
                r = self.session.post(url, data=data, headers=self._headers(content_type), timeout=self.timeout)
                if r.status_code in RETRYABLE_STATUS_CODES:
                    last_error = requests.HTTPError(f"{r.status_code} from object store", response=r)
                else:
                    r.raise_for_status()
                    return clean
            except requests.exceptions.RequestException as e:
                last_error = e
                response = getattr(e, "response", None)
                if response is not None and response.status_code not in RETRYABLE_STATUS_CODES:
                    break

            if attempt < self.max_retries - 1:
                wait_time = self.backoff_seconds * (2 ** attempt)
                logger.warning(f"Object upload failed for {clean}, retrying in {wait_time}s ({attempt + 1}/{self.max_retries})")
                time.sleep(wait_time)

        logger.error(
            f"Object upload failed for {clean}: {last_error}",
            extra={"extra_fields": {"bucket": self.bucket, "path": clean}},
        )
        raise UpstreamError("File upload failed, please retry", cause=last_error)

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{quote(_clean_path(path))}"


def get_object_store() -> ObjectStore:
    """Backend selected by STORAGE_BACKEND; usable as a FastAPI dependency."""
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "http":
        if not settings.STORAGE_BASE_URL:
            raise RuntimeError("STORAGE_BASE_URL must be set when STORAGE_BACKEND=http")
        return HttpObjectStore(
            base_url=settings.STORAGE_BASE_URL,
            bucket=settings.STORAGE_BUCKET,
            api_key=settings.STORAGE_API_KEY,
            timeout=settings.EXTERNAL_API_TIMEOUT,
            max_retries=settings.EXTERNAL_API_RETRY_ATTEMPTS,
        )
    if backend == "local":
        return LocalObjectStore(
            root=settings.STORAGE_LOCAL_ROOT,
            bucket=settings.STORAGE_BUCKET,
            public_base_url=settings.STORAGE_PUBLIC_BASE_URL,
        )
    raise RuntimeError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
