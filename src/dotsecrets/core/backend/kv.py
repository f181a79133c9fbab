"""Cloudflare Worker + KV backend.

The worker keeps one payload per group plus a metadata record it builds
from the ``X-Files``/``X-Size`` headers of the upload:

    GET    /list               -> ["default", ...]
    GET    /metadata/{group}   -> {"files": [...], "size": "...", "uploaded": "..."}
    GET    /secrets/{group}    -> payload
    POST   /secrets/{group}    -> store payload (+ metadata from headers)
    DELETE /secrets/{group}    -> remove payload and metadata

Because payload and metadata travel in the same POST, put_blob() only
stages the payload and put_metadata() performs the upload. That request is
the commit point of a push.
"""

import json
from urllib.parse import quote

import httpx
from loguru import logger

from dotsecrets.core.backend.base import StorageBackend
from dotsecrets.core.models import SecretsMetadata
from dotsecrets.errors import (
    BackendUnavailable,
    ConfigError,
    CorruptMetadataError,
    NotFoundError,
    Unauthorized,
)


class KVBackend(StorageBackend):
    MAX_BLOB_SIZE = 25 * 1024 * 1024
    max_chunks = 1

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        if not url:
            raise ConfigError(
                "No worker URL configured. Set SECRETS_URL or run "
                "'dotsecrets backend set kv --url <url>'"
            )
        self.url = url.rstrip("/")
        self._client = client or httpx.Client(base_url=self.url, timeout=timeout)
        self._headers = {"Authorization": f"Bearer {token}"}
        self._staged: dict[str, str] = {}

    @property
    def backend_type(self) -> str:
        return "kv"

    def max_blob_size(self) -> int:
        return self.MAX_BLOB_SIZE

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        logger.debug("{} {}", method, path)
        try:
            response = self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise BackendUnavailable(f"Cannot reach {self.url}: {e}") from e

        if response.status_code == 401:
            raise Unauthorized("Worker rejected the bearer token (HTTP 401)")
        if response.status_code == 404:
            raise NotFoundError(f"Not found: {path}")
        if response.status_code >= 400:
            raise BackendUnavailable(
                f"Worker error {response.status_code} on {method} {path}: "
                f"{response.text[:200]}"
            )
        return response

    @staticmethod
    def _group_path(prefix: str, group: str) -> str:
        return f"/{prefix}/{quote(group, safe='')}"

    def put_blob(self, group: str, key: str, data: str) -> None:
        if len(data) > self.MAX_BLOB_SIZE:
            raise ValueError(f"Payload of {len(data)} chars exceeds KV value limit")
        self._staged[group] = data

    def get_blob(self, group: str, key: str) -> str:
        return self._request("GET", self._group_path("secrets", group)).text

    def delete_blob(self, group: str, key: str) -> None:
        # One payload per group, replaced by each commit, so there is never a
        # stale key to remove. delete_group() clears the payload.
        pass

    def list_blobs(self, group: str) -> list[str]:
        return []

    def put_metadata(self, group: str, metadata: SecretsMetadata) -> None:
        if group not in self._staged:
            raise ValueError(f"No payload staged for group '{group}'")

        headers = {
            "Content-Type": "application/octet-stream",
            "X-Files": json.dumps(metadata.files),
            "X-Size": str(metadata.size),
            "X-Chunks": str(metadata.chunks),
        }
        self._request(
            "POST",
            self._group_path("secrets", group),
            content=self._staged[group].encode("ascii"),
            headers=headers,
        )
        del self._staged[group]

    def get_metadata(self, group: str) -> SecretsMetadata:
        response = self._request("GET", self._group_path("metadata", group))
        try:
            return SecretsMetadata.model_validate(response.json())
        except ValueError as e:
            raise CorruptMetadataError(group, str(e)) from e

    def delete_metadata(self, group: str) -> None:
        # The worker only deletes payload and metadata together
        self._request("DELETE", self._group_path("secrets", group))

    def delete_group(self, group: str) -> None:
        self._request("DELETE", self._group_path("secrets", group))

    def list_groups(self) -> list[str]:
        response = self._request("GET", "/list")
        try:
            groups = response.json()
        except ValueError as e:
            raise BackendUnavailable(f"Unexpected group list: {e}") from e
        return sorted(str(g) for g in groups)
