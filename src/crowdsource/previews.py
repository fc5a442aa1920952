"""
Object URLs for locally selected images

Each selected image gets a short-lived ``blob:`` URL so the page can show
a preview before upload. Owners must revoke the URL when the selection
changes or the form goes away.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)

URL_PREFIX = "blob:"


@dataclass
class PreviewObject:
    data: bytes
    content_type: str


class PreviewStore:
    """In-process registry of preview objects keyed by blob URL."""

    def __init__(self):
        self._objects: Dict[str, PreviewObject] = {}

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, url: str) -> bool:
        return url in self._objects

    def create_url(self, data: bytes, content_type: str) -> str:
        url = f"{URL_PREFIX}{uuid.uuid4().hex}"
        self._objects[url] = PreviewObject(data=data, content_type=content_type)
        return url

    def get(self, url: str) -> Optional[PreviewObject]:
        return self._objects.get(url)

    def revoke_url(self, url: Optional[str]) -> None:
        """Release a preview. Unknown or already-revoked URLs are ignored."""
        if url and self._objects.pop(url, None) is not None:
            logger.debug(f"Revoked preview {url}")


def token_from_url(url: str) -> str:
    return url[len(URL_PREFIX):] if url.startswith(URL_PREFIX) else url


def url_from_token(token: str) -> str:
    return f"{URL_PREFIX}{token}"
