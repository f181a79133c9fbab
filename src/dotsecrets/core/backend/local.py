"""Local directory backend for encrypted payload storage."""

import json
import os
import stat
from pathlib import Path

from loguru import logger

from dotsecrets.core.backend.base import StorageBackend
from dotsecrets.core.models import SecretsMetadata
from dotsecrets.errors import BackendUnavailable, CorruptMetadataError, NotFoundError

SECURE_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR  # 0600
SECURE_DIR_MODE = stat.S_IRWXU  # 0700


class LocalBackend(StorageBackend):
    """Directory-based payload storage.

    Layout: ``<data_dir>/<group>/metadata.json`` plus one ``<key>.chunk``
    file per blob. Works offline; point ``data_dir`` at a folder synced by
    other tooling to move secrets between machines.
    """

    DEFAULT_DATA_DIR = Path("~/.local/share/dotsecrets")
    METADATA_FILENAME = "metadata.json"
    CHUNK_SUFFIX = ".chunk"
    MAX_BLOB_SIZE = 64 * 1024 * 1024

    def __init__(self, data_dir: Path | str | None = None):
        if data_dir is None:
            data_dir = self.DEFAULT_DATA_DIR
        self.data_dir = Path(data_dir).expanduser()

    @property
    def backend_type(self) -> str:
        return "local"

    def max_blob_size(self) -> int:
        return self.MAX_BLOB_SIZE

    def _group_dir(self, group: str) -> Path:
        return self.data_dir / group

    def _blob_file(self, group: str, key: str) -> Path:
        return self._group_dir(group) / f"{key}{self.CHUNK_SUFFIX}"

    def _write_secure(self, path: Path, data: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            os.chmod(path.parent, SECURE_DIR_MODE)
            tmp_file = path.with_name(path.name + ".tmp")
            tmp_file.write_text(data, encoding="utf-8")
            os.chmod(tmp_file, SECURE_FILE_MODE)
            os.replace(tmp_file, path)
        except OSError as e:
            raise BackendUnavailable(f"Cannot write {path}: {e}") from e

    def put_blob(self, group: str, key: str, data: str) -> None:
        logger.debug("Writing blob {} for group {}", key, group)
        self._write_secure(self._blob_file(group, key), data)

    def get_blob(self, group: str, key: str) -> str:
        blob_file = self._blob_file(group, key)
        if not blob_file.exists():
            raise NotFoundError(f"Blob '{key}' not found for group '{group}'")
        return blob_file.read_text(encoding="utf-8")

    def delete_blob(self, group: str, key: str) -> None:
        self._blob_file(group, key).unlink(missing_ok=True)

    def list_blobs(self, group: str) -> list[str]:
        group_dir = self._group_dir(group)
        if not group_dir.is_dir():
            return []
        return sorted(
            f.name[: -len(self.CHUNK_SUFFIX)]
            for f in group_dir.iterdir()
            if f.name.endswith(self.CHUNK_SUFFIX)
        )

    def put_metadata(self, group: str, metadata: SecretsMetadata) -> None:
        metadata_file = self._group_dir(group) / self.METADATA_FILENAME
        self._write_secure(metadata_file, metadata.model_dump_json(indent=2))

    def get_metadata(self, group: str) -> SecretsMetadata:
        metadata_file = self._group_dir(group) / self.METADATA_FILENAME
        if not metadata_file.exists():
            raise NotFoundError(f"No metadata for group '{group}'")

        try:
            data = json.loads(metadata_file.read_text(encoding="utf-8"))
            return SecretsMetadata.model_validate(data)
        except (json.JSONDecodeError, ValueError) as e:
            raise CorruptMetadataError(group, str(e)) from e

    def delete_metadata(self, group: str) -> None:
        group_dir = self._group_dir(group)
        (group_dir / self.METADATA_FILENAME).unlink(missing_ok=True)
        if group_dir.is_dir() and not any(group_dir.iterdir()):
            group_dir.rmdir()

    def list_groups(self) -> list[str]:
        if not self.data_dir.is_dir():
            return []
        return sorted(
            d.name
            for d in self.data_dir.iterdir()
            if (d / self.METADATA_FILENAME).is_file()
        )
