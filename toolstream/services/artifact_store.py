# This module persists binary tool outputs (rendered images) to blob object storage.
# Date: 2025-06-14
# Version: 0.1.0

import time
from typing import Optional
from uuid import uuid4

import httpx

from toolstream.core.errors import ArtifactStorageError
from toolstream.utils.logger import console

CONTENT_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "svg": "image/svg+xml",
}


class ArtifactStore:
    """
    Append-only client for a Vercel-Blob-compatible HTTP API.
    Every object lands under `{namespace}/` with a millisecond timestamp in its
    name; deleting objects is left to an external retention job.
    """
    def __init__(
        self,
        token: Optional[str],
        api_url: str = "https://blob.vercel-storage.com",
        namespace: str = "toolstream",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._namespace = namespace.strip("/")
        self._transport = transport

    def build_path(self, extension: str) -> str:
        return f"{self._namespace}/image-{int(time.time() * 1000)}-{uuid4().hex[:8]}.{extension}"

    async def put(self, pathname: str, data: bytes, content_type: str) -> str:
        """
        Uploads `data` publicly under `pathname` and returns its durable URL.
        Cancelling the awaiting task aborts the request.
        """
        if not self._token:
            raise ArtifactStorageError("BLOB_READ_WRITE_TOKEN is not configured.")
        headers = {
            "authorization": f"Bearer {self._token}",
            "x-api-version": "7",
            "x-content-type": content_type,
            "x-add-random-suffix": "0",
        }
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.put(f"{self._api_url}/{pathname}", content=data, headers=headers)
                response.raise_for_status()
                url = response.json().get("url")
        except (httpx.HTTPError, ValueError) as e:
            raise ArtifactStorageError(f"Upload of '{pathname}' failed: {e}") from e

        if not url:
            raise ArtifactStorageError(f"Upload of '{pathname}' returned no URL.")
        console.info(f"Blob put request completed: {url}")
        return url
