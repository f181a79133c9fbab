"""Bitwarden secure-note backend, driven through the ``bw`` CLI.

Secure notes are capped at 10,000 characters, so payloads are stored as
numbered chunk notes next to a metadata note:

    dotsecrets/default - Metadata
    dotsecrets/default - Chunk 3.0
    dotsecrets/default - Chunk 3.1

The CLI must already be logged in and unlocked (BW_SESSION exported).
"""

import base64
import json
import re
import subprocess
from typing import Any

from loguru import logger

from dotsecrets.core.backend.base import StorageBackend
from dotsecrets.core.models import SecretsMetadata
from dotsecrets.errors import (
    BackendUnavailable,
    CorruptMetadataError,
    NotFoundError,
    Unauthorized,
)

SECURE_NOTE_TYPE = 2


class NoteBackend(StorageBackend):
    MAX_CHUNK_SIZE = 8000
    MAX_CHUNKS = 100
    METADATA_NAME = "Metadata"

    def __init__(
        self,
        label_prefix: str = "dotsecrets/",
        max_chunk_size: int = MAX_CHUNK_SIZE,
        max_chunks: int = MAX_CHUNKS,
        bw_binary: str = "bw",
    ):
        self.label_prefix = label_prefix
        self.max_chunk_size = max_chunk_size
        self.max_chunks = max_chunks
        self.bw_binary = bw_binary
        self._synced = False
        self._items_cache: dict[str, dict[str, dict[str, Any]]] = {}

    @property
    def backend_type(self) -> str:
        return "notes"

    def max_blob_size(self) -> int:
        return self.max_chunk_size

    def _run_bw(self, args: list[str]) -> str:
        cmd = [self.bw_binary] + args + ["--nointeraction"]
        logger.debug("Running: bw {}", args[0] if args else "")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError:
            raise BackendUnavailable(
                "Bitwarden CLI not found. Please install it:\n"
                "  macOS: brew install bitwarden-cli\n"
                "  Linux: npm install -g @bitwarden/cli\n"
                "Then run: bw login && export BW_SESSION=$(bw unlock --raw)"
            ) from None
        except subprocess.CalledProcessError as e:
            message = (e.stderr or e.stdout or str(e)).strip()
            lowered = message.lower()
            if "not logged in" in lowered or "locked" in lowered:
                raise Unauthorized(f"Bitwarden: {message}") from e
            if "not found" in lowered:
                raise NotFoundError(f"Bitwarden: {message}") from e
            raise BackendUnavailable(f"Bitwarden CLI error: {message}") from e
        return result.stdout.strip()

    def _sync(self) -> None:
        if not self._synced:
            self._run_bw(["sync"])
            self._synced = True

    def _label(self, group: str) -> str:
        return f"{self.label_prefix}{group}"

    def _item_name(self, group: str, key: str) -> str:
        return f"{self._label(group)} - {key}"

    def _search(self, term: str) -> list[dict[str, Any]]:
        self._sync()
        output = self._run_bw(["list", "items", "--search", term])
        try:
            items = json.loads(output or "[]")
        except json.JSONDecodeError as e:
            raise BackendUnavailable(f"Unexpected bw output: {e}") from e
        return [i for i in items if i.get("type") == SECURE_NOTE_TYPE]

    def _items(self, group: str) -> dict[str, dict[str, Any]]:
        """Index of this group's notes by name, cached until invalidated."""
        if group not in self._items_cache:
            prefix = f"{self._label(group)} - "
            self._items_cache[group] = {
                item["name"]: item
                for item in self._search(self._label(group))
                if item.get("name", "").startswith(prefix)
            }
        return self._items_cache[group]

    @staticmethod
    def _encode(item: dict[str, Any]) -> str:
        return base64.b64encode(json.dumps(item).encode("utf-8")).decode("ascii")

    def _put_note(self, group: str, name: str, text: str) -> None:
        items = self._items(group)
        existing = items.get(name)

        if existing:
            item = dict(existing)
            item["notes"] = text
            output = self._run_bw(["edit", "item", existing["id"], self._encode(item)])
        else:
            item = {
                "organizationId": None,
                "collectionIds": None,
                "folderId": None,
                "type": SECURE_NOTE_TYPE,
                "name": name,
                "notes": text,
                "favorite": False,
                "fields": [],
                "login": None,
                "secureNote": {"type": 0},
                "card": None,
                "identity": None,
                "reprompt": 0,
            }
            output = self._run_bw(["create", "item", self._encode(item)])

        try:
            items[name] = json.loads(output)
        except json.JSONDecodeError:
            self._items_cache.pop(group, None)

    def _get_note(self, group: str, name: str) -> str:
        item = self._items(group).get(name)
        if item is None:
            raise NotFoundError(f"Bitwarden item not found: {name}")
        return item.get("notes") or ""

    def _delete_note(self, group: str, name: str) -> None:
        items = self._items(group)
        item = items.get(name)
        if item is None:
            return
        try:
            self._run_bw(["delete", "item", item["id"], "--permanent"])
        except NotFoundError:
            logger.debug("{} was already gone", name)
        items.pop(name, None)

    def put_blob(self, group: str, key: str, data: str) -> None:
        if len(data) > self.max_chunk_size:
            raise ValueError(
                f"Chunk of {len(data)} chars exceeds note limit {self.max_chunk_size}"
            )
        self._put_note(group, self._item_name(group, key), data)

    def get_blob(self, group: str, key: str) -> str:
        return self._get_note(group, self._item_name(group, key))

    def delete_blob(self, group: str, key: str) -> None:
        self._delete_note(group, self._item_name(group, key))

    def list_blobs(self, group: str) -> list[str]:
        prefix = f"{self._label(group)} - "
        return sorted(
            name[len(prefix) :]
            for name in self._items(group)
            if name[len(prefix) :].startswith("Chunk ")
        )

    def put_metadata(self, group: str, metadata: SecretsMetadata) -> None:
        name = self._item_name(group, self.METADATA_NAME)
        self._put_note(group, name, metadata.model_dump_json())

    def get_metadata(self, group: str) -> SecretsMetadata:
        text = self._get_note(group, self._item_name(group, self.METADATA_NAME))
        try:
            return SecretsMetadata.model_validate_json(text)
        except ValueError as e:
            raise CorruptMetadataError(group, str(e)) from e

    def delete_metadata(self, group: str) -> None:
        self._delete_note(group, self._item_name(group, self.METADATA_NAME))

    def list_groups(self) -> list[str]:
        pattern = re.compile(
            rf"^{re.escape(self.label_prefix)}(.+) - {self.METADATA_NAME}$"
        )
        groups = set()
        for item in self._search(self.label_prefix):
            match = pattern.match(item.get("name", ""))
            if match:
                groups.add(match.group(1))
        return sorted(groups)
