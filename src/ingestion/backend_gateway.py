"""
Backend gateway for PollutionWatch

The managed backend stores report rows and uploaded photos. This module
defines the narrow interface the report workflow needs and a client for
Supabase-style backends (PostgREST table + Storage bucket).

API Documentation:
- https://postgrest.org/en/stable/references/api.html
- https://supabase.com/docs/reference/api/storage
"""

import logging
import mimetypes
import os
import random
import string
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

import httpx

from src.core.config import Settings
from src.core.constants import (
    DEFAULT_IMAGE_EXTENSION,
    IMAGE_PATH_PREFIX,
    IMAGE_SUFFIX_LENGTH,
    REPORTS_PAGE_SIZE,
)
from src.core.errors import BackendError, FetchError, InsertError, UploadError

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def build_image_path(
    filename: str,
    content_type: Optional[str] = None,
    now_ms: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Build a unique storage key for an uploaded image.

    Keys look like ``public/<epoch-millis>_<6-char-random>.<ext>``.

    Args:
        filename: Original filename, used for the extension
        content_type: Media type, used when the filename has no extension
        now_ms: Epoch milliseconds (defaults to the current time)
        rng: Random generator for the suffix

    Returns:
        Storage object key
    """
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    chooser = rng or random
    suffix = "".join(chooser.choice(_SUFFIX_ALPHABET) for _ in range(IMAGE_SUFFIX_LENGTH))
    return f"{IMAGE_PATH_PREFIX}/{millis}_{suffix}.{_extension_for(filename, content_type)}"


def _extension_for(filename: str, content_type: Optional[str]) -> str:
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    if ext:
        return ext

    if content_type:
        guessed = mimetypes.guess_extension(content_type.split(";")[0].strip())
        if guessed:
            return guessed.lstrip(".")

    return DEFAULT_IMAGE_EXTENSION


class BackendGateway(ABC):
    """
    Storage and record operations the report workflow depends on.

    Implementations never retry; a failure is raised as the operation's
    BackendError subclass.
    """

    @abstractmethod
    async def upload_image(self, data: bytes, path: str, content_type: str) -> Optional[str]:
        """
        Upload a blob and return its public URL.

        Returns:
            Public URL, or None if the backend yields none

        Raises:
            UploadError
        """

    @abstractmethod
    async def insert_report(self, record: Dict[str, Any]) -> None:
        """
        Insert one report row. id and created_at are backend-assigned.

        Raises:
            InsertError
        """

    @abstractmethod
    async def list_reports(self, limit: int = REPORTS_PAGE_SIZE) -> List[Dict[str, Any]]:
        """
        List report rows, most recent first.

        Raises:
            FetchError
        """

    async def aclose(self) -> None:
        """Release network resources."""


class SupabaseGateway(BackendGateway):
    """
    Client for a Supabase project's REST and Storage APIs.

    Usage:
        async with SupabaseGateway(settings) as gateway:
            rows = await gateway.list_reports()
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str = "report-images",
        table: str = "pollution_reports",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize gateway.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: Public (anon) API key
            bucket: Storage bucket for report photos
            table: Reports table name
            timeout: HTTP request timeout in seconds
            client: Pre-built HTTP client (tests pass one with a mock transport)
        """
        if not base_url or not api_key:
            raise ValueError("base_url and api_key are required")

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.table = table
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "SupabaseGateway":
        """Build a gateway from application settings. Raises ConfigurationError."""
        settings.require_backend()
        return cls(
            base_url=settings.backend_url,
            api_key=settings.backend_anon_key,
            bucket=settings.storage_bucket,
            table=settings.reports_table,
            timeout=settings.http_timeout_seconds,
            client=client,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }
        headers.update(extra)
        return headers

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def _request(
        self,
        error_cls: Type[BackendError],
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise error_cls(str(e) or e.__class__.__name__)

        if response.is_error:
            detail = _error_detail(response)
            logger.error(f"{method} {url} returned {response.status_code}: {detail}")
            raise error_cls(detail, status_code=response.status_code)

        return response

    async def upload_image(self, data: bytes, path: str, content_type: str) -> Optional[str]:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"

        logger.info(f"Uploading image {path} ({len(data)} bytes)")
        response = await self._request(
            UploadError,
            "POST",
            url,
            content=data,
            headers=self._headers(**{
                "Content-Type": content_type or "application/octet-stream",
                "x-upsert": "false",
            }),
        )

        stored_key = _json_or_empty(response).get("Key")
        if stored_key:
            # Storage echoes "<bucket>/<path>"
            path = stored_key.split("/", 1)[1] if "/" in stored_key else path

        return self.public_url(path)

    async def insert_report(self, record: Dict[str, Any]) -> None:
        url = f"{self.base_url}/rest/v1/{self.table}"

        logger.info(f"Inserting report ({record.get('pollution_type')}) at "
                    f"({record.get('latitude')}, {record.get('longitude')})")
        await self._request(
            InsertError,
            "POST",
            url,
            json=record,
            headers=self._headers(Prefer="return=minimal"),
        )

    async def list_reports(self, limit: int = REPORTS_PAGE_SIZE) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/rest/v1/{self.table}"
        params = {
            "select": "*",
            "order": "created_at.desc",
            "limit": str(limit),
        }

        logger.info(f"Fetching up to {limit} reports")
        response = await self._request(
            FetchError, "GET", url, params=params, headers=self._headers(),
        )

        try:
            rows = response.json()
        except ValueError:
            raise FetchError("Backend returned invalid JSON")

        if not isinstance(rows, list):
            raise FetchError(f"Unexpected response shape: {type(rows).__name__}")

        logger.info(f"Retrieved {len(rows)} reports")
        return rows


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_detail(response: httpx.Response) -> str:
    """Pull the backend's own message out of an error response."""
    body = _json_or_empty(response)
    for key in ("message", "error_description", "error", "msg", "hint"):
        value = body.get(key)
        if value:
            return str(value)

    text = response.text.strip()
    return text or f"HTTP {response.status_code}"
