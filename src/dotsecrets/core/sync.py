"""Push/pull orchestration between the registry and a storage backend."""

import re
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from dotsecrets.core import archive, chunker, cipher
from dotsecrets.core.backend.base import StorageBackend
from dotsecrets.core.chunker import chunk_key
from dotsecrets.core.credentials import PassphraseProvider
from dotsecrets.core.models import SecretsMetadata
from dotsecrets.core.registry import Registry
from dotsecrets.errors import (
    ChunkBudgetExceededError,
    CorruptMetadataError,
    DecryptionError,
    EmptyRegistryError,
    InvalidGroupError,
    NoSecretsFoundError,
    NotFoundError,
    PathNotFoundError,
)

DEFAULT_GROUP = "default"
GROUP_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")

ChunkCallback = Callable[[int, int], None]


class PushResult:
    def __init__(self, group: str, files: list[str], size: int, chunks: int, removed: int):
        self.group = group
        self.files = files
        self.size = size
        self.chunks = chunks
        self.removed = removed


class PullResult:
    def __init__(self, group: str, files: list[str], destination: Path):
        self.group = group
        self.files = files
        self.destination = destination


def validate_group(group: str) -> str:
    if not GROUP_PATTERN.match(group or "") or group in (".", ".."):
        raise InvalidGroupError(group)
    return group


class SyncOrchestrator:
    """Runs push, pull and the thin remote passthroughs for one backend.

    Push writes the new chunk set under a fresh generation, commits the
    metadata, and only then deletes chunks that are not part of the new set.
    A push that dies before the metadata write leaves the previous push
    fully pullable.
    """

    def __init__(
        self,
        backend: StorageBackend,
        registry: Registry,
        credentials: PassphraseProvider,
        home: Path | str | None = None,
        kdf_iterations: int = cipher.KDF_ITERATIONS,
    ):
        self.backend = backend
        self.registry = registry
        self.credentials = credentials
        self.home = Path(home).expanduser() if home else registry.home
        self.kdf_iterations = kdf_iterations

    def push(
        self, group: str = DEFAULT_GROUP, on_chunk: ChunkCallback | None = None
    ) -> PushResult:
        validate_group(group)

        # Local checks first: nothing remote happens until these pass
        statuses = self.registry.status()
        if not statuses:
            raise EmptyRegistryError()
        missing = [s.path for s in statuses if not s.exists]
        if missing:
            raise PathNotFoundError(missing)

        packed = archive.pack([s.path for s in statuses], self.home)
        logger.info("Packed {} file(s) ({} bytes)", len(packed.files), packed.size)

        passphrase = self.credentials.get_passphrase(confirm=True)
        ciphertext = cipher.encrypt(packed.data, passphrase, self.kdf_iterations)
        logger.info("Encrypted archive ({} bytes)", len(ciphertext))

        chunks = chunker.split(ciphertext, self.backend.max_blob_size())
        max_chunks = self.backend.max_chunks
        if max_chunks is not None and len(chunks) > max_chunks:
            raise ChunkBudgetExceededError(
                len(chunks), max_chunks, self.backend.backend_type
            )

        generation = self._next_generation(group)

        new_keys = [chunk_key(i, generation) for i in range(len(chunks))]
        for i, (key, chunk) in enumerate(zip(new_keys, chunks), start=1):
            self.backend.put_blob(group, key, chunk)
            if on_chunk:
                on_chunk(i, len(chunks))
        logger.info(
            "Uploaded {} chunk(s) to {} backend", len(chunks), self.backend.backend_type
        )

        metadata = SecretsMetadata(
            files=packed.files,
            size=len(ciphertext),
            uploaded=datetime.now(UTC),
            chunks=len(chunks),
            generation=generation,
        )
        self.backend.put_metadata(group, metadata)
        logger.info("Committed metadata for group '{}'", group)

        removed = self._remove_orphans(group, set(new_keys))
        return PushResult(group, packed.files, len(ciphertext), len(chunks), removed)

    def _next_generation(self, group: str) -> int:
        try:
            return self.backend.get_metadata(group).generation + 1
        except NotFoundError:
            return 0
        except CorruptMetadataError as e:
            # Step past every generation that still has chunks stored
            logger.warning("{}; overwriting it", e)
            keys = self.backend.list_blobs(group)
            generations = [p[0] for p in map(chunker.parse_chunk_key, keys) if p]
            return max(generations, default=-1) + 1

    def _remove_orphans(self, group: str, keep: set[str]) -> int:
        stale = [key for key in self.backend.list_blobs(group) if key not in keep]
        for key in stale:
            self.backend.delete_blob(group, key)
        if stale:
            logger.info("Removed {} stale chunk(s)", len(stale))
        return len(stale)

    def pull(
        self,
        group: str = DEFAULT_GROUP,
        destination: Path | str | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> PullResult:
        validate_group(group)
        metadata = self.show(group)

        chunks = []
        for i in range(metadata.chunks):
            chunks.append(self.backend.get_blob(group, chunk_key(i, metadata.generation)))
            if on_chunk:
                on_chunk(i + 1, metadata.chunks)
        logger.info("Downloaded {} chunk(s)", len(chunks))

        try:
            ciphertext = chunker.join(chunks)
        except ValueError:
            raise DecryptionError() from None

        passphrase = self.credentials.get_passphrase()
        plaintext = cipher.decrypt(ciphertext, passphrase)

        target = Path(destination).expanduser() if destination else self.home
        files = archive.unpack(plaintext, target)
        logger.info("Restored {} file(s) to {}", len(files), target)
        return PullResult(group, files, target)

    def show(self, group: str = DEFAULT_GROUP) -> SecretsMetadata:
        validate_group(group)
        try:
            return self.backend.get_metadata(group)
        except NotFoundError:
            raise NoSecretsFoundError(group) from None

    def groups(self) -> list[str]:
        return self.backend.list_groups()

    def delete(self, group: str) -> None:
        try:
            self.show(group)
        except CorruptMetadataError as e:
            logger.warning("{}; deleting anyway", e)
        self.backend.delete_group(group)
        logger.info("Deleted group '{}'", group)
