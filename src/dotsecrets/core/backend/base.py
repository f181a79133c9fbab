"""Abstract base class for storage backends."""

from abc import ABC, abstractmethod

from loguru import logger

from dotsecrets.core.chunker import chunk_key
from dotsecrets.core.models import SecretsMetadata
from dotsecrets.errors import CorruptMetadataError, NoSecretsFoundError, NotFoundError


class StorageBackend(ABC):
    """Abstract interface for encrypted payload storage.

    Backends only ever see ciphertext chunks and metadata, never plaintext
    or passphrases. Every operation is scoped to one group.

    Implementations:
    - NoteBackend: Bitwarden secure notes, small items, chunked payloads
    - KVBackend: Cloudflare Worker + KV over HTTP, one payload per group
    - LocalBackend: a directory on disk (offline, or a synced folder)
    """

    max_chunks: int | None = None

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Return the backend type identifier (e.g., 'kv', 'notes')."""
        ...

    @abstractmethod
    def max_blob_size(self) -> int:
        """Largest chunk, in characters, a single blob may hold."""
        ...

    @abstractmethod
    def put_blob(self, group: str, key: str, data: str) -> None:
        ...

    @abstractmethod
    def get_blob(self, group: str, key: str) -> str:
        """Return the blob stored under ``key``.

        Raises:
            NotFoundError: No such blob.
        """
        ...

    @abstractmethod
    def delete_blob(self, group: str, key: str) -> None:
        """Delete a blob. Deleting a missing blob is not an error."""
        ...

    @abstractmethod
    def list_blobs(self, group: str) -> list[str]:
        """Return the keys of every blob stored for ``group``."""
        ...

    @abstractmethod
    def put_metadata(self, group: str, metadata: SecretsMetadata) -> None:
        """Commit ``metadata`` for ``group``. This is the last write of a push."""
        ...

    @abstractmethod
    def get_metadata(self, group: str) -> SecretsMetadata:
        """Load metadata for ``group``.

        Raises:
            NotFoundError: The group has never been pushed.
        """
        ...

    @abstractmethod
    def delete_metadata(self, group: str) -> None:
        ...

    @abstractmethod
    def list_groups(self) -> list[str]:
        ...

    def delete_group(self, group: str) -> None:
        """Remove every blob and the metadata of ``group``.

        Default implementation deletes blob by blob, then the metadata, so an
        interrupted delete still leaves metadata that names missing chunks
        rather than orphans nobody can find. An unreadable metadata record
        does not block the delete: the stored blob keys are used instead.
        """
        expected: set[str] = set()
        try:
            metadata = self.get_metadata(group)
        except NotFoundError:
            raise NoSecretsFoundError(group) from None
        except CorruptMetadataError as e:
            logger.warning("{}; deleting stored chunks only", e)
        else:
            expected = {
                chunk_key(i, metadata.generation) for i in range(metadata.chunks)
            }

        keys = expected | set(self.list_blobs(group))
        for key in sorted(keys):
            self.delete_blob(group, key)
        self.delete_metadata(group)
