"""Build and extract the gzip tarball that carries the tracked files."""

import io
import os
import tarfile
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from dotsecrets.errors import ArchiveError, PathNotFoundError

# OS-generated sidecar files that never belong in a secrets bundle
EXCLUDED_NAMES = {
    ".DS_Store",
    ".localized",
    "Icon\r",
    "Thumbs.db",
    "ehthumbs.db",
    "desktop.ini",
}
EXCLUDED_DIRS = {
    "__MACOSX",
    ".Spotlight-V100",
    ".Trashes",
    ".fseventsd",
    ".TemporaryItems",
}


def is_excluded(name: str) -> bool:
    return name in EXCLUDED_NAMES or name.startswith("._")


def _is_archivable(path: Path) -> bool:
    if is_excluded(path.name):
        return False
    if not path.is_file():
        logger.warning("Skipping {}: not a regular file", path)
        return False
    return True


class PackedArchive:
    def __init__(self, data: bytes, files: list[str]):
        self.data = data
        self.files = files

    @property
    def size(self) -> int:
        return len(self.data)


def collect_files(entries: Iterable[str], home: Path) -> list[str]:
    """Expand tracked entries into the sorted list of files to archive.

    Directories are walked recursively. Only regular files (or symlinks to
    them) are kept; sockets, FIFOs and device nodes are skipped. Raises
    PathNotFoundError listing every entry that does not exist.
    """
    files: set[str] = set()
    missing: list[str] = []

    for entry in entries:
        path = home / entry
        if not path.exists():
            missing.append(entry)
            continue

        if not path.is_dir():
            if _is_archivable(path):
                files.add(entry)
            continue

        for root, dirs, names in os.walk(path, followlinks=True):
            dirs[:] = sorted(d for d in dirs if d not in EXCLUDED_DIRS)
            for name in names:
                full_path = Path(root) / name
                if _is_archivable(full_path):
                    files.add(full_path.relative_to(home).as_posix())

    if missing:
        raise PathNotFoundError(missing)

    return sorted(files)


def pack(entries: Iterable[str], home: Path | str) -> PackedArchive:
    """Pack tracked entries into an in-memory tar.gz.

    Member names are the home-relative paths; file modes are preserved and
    symlinks are archived as the files they point to.
    """
    home = Path(home).expanduser()
    files = collect_files(entries, home)

    buffer = io.BytesIO()
    try:
        with tarfile.open(fileobj=buffer, mode="w:gz", dereference=True) as tar:
            for rel_path in files:
                tar.add(str(home / rel_path), arcname=rel_path, recursive=False)
    except OSError as e:
        raise ArchiveError(f"Could not read tracked file: {e}") from e

    data = buffer.getvalue()
    logger.debug("Packed {} file(s) into {} bytes", len(files), len(data))
    return PackedArchive(data, files)


def unpack(data: bytes, destination: Path | str) -> list[str]:
    """Extract an archive produced by pack() under ``destination``.

    Existing files are replaced without prompting. Returns the extracted
    member names.
    """
    destination = Path(destination).expanduser()
    destination.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
            members = tar.getmembers()
            # Rejects absolute paths, escaping members and special files. Every
            # member is checked before any existing file is touched.
            for member in members:
                tarfile.data_filter(member, str(destination))
            for member in members:
                target = destination / member.name
                # Read-only files (e.g. 0400 keys) cannot be opened for writing
                if member.isfile() and target.is_file() and not target.is_symlink():
                    target.unlink()
            tar.extractall(path=destination, members=members, filter="data")
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveError(f"Could not extract archive: {e}") from e

    names = [m.name for m in members if m.isfile()]
    logger.debug("Extracted {} file(s) to {}", len(names), destination)
    return names
